from __future__ import annotations

from typing import Protocol

from schoolhub.models.staff_profile import StaffProfile


class StaffProfileRepo(Protocol):
    async def get_profile(self, principal_id: str) -> StaffProfile | None: ...


class InMemoryStaffProfileRepo:
    def __init__(self) -> None:
        self._by_principal: dict[str, StaffProfile] = {}

    async def get_profile(self, principal_id: str) -> StaffProfile | None:
        return self._by_principal.get(principal_id)

    def add(self, profile: StaffProfile) -> None:
        if profile.principal_id in self._by_principal:
            raise ValueError("profile already exists")
        self._by_principal[profile.principal_id] = profile

    def replace(self, profile: StaffProfile) -> None:
        self._by_principal[profile.principal_id] = profile

    def remove(self, principal_id: str) -> bool:
        return self._by_principal.pop(principal_id, None) is not None
