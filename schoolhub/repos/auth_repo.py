from __future__ import annotations

import logging
from dataclasses import replace
from typing import Protocol

from schoolhub.models.principal import Principal

logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    def current_principal(self) -> Principal | None: ...
    def is_auth_resolving(self) -> bool: ...

    async def refresh(self) -> None:
        """Re-read the session from the identity provider."""
        ...

    async def persist_active_role(self, principal_id: str, role: str) -> None:
        """Store the active role on the principal record; raises on failure."""
        ...


class InMemoryAuthProvider:
    """Session holder for tests and embedding applications.

    ``sign_in``/``sign_out`` stand in for the identity provider's session
    events.  ``fail_persist`` makes the next synchronizations raise.
    """

    def __init__(self, principal: Principal | None = None) -> None:
        self._principal = principal
        self._resolving = False
        self.persisted: list[tuple[str, str]] = []
        self.fail_persist: str | None = None

    def current_principal(self) -> Principal | None:
        return self._principal

    def is_auth_resolving(self) -> bool:
        return self._resolving

    def set_resolving(self, resolving: bool) -> None:
        self._resolving = resolving

    def sign_in(self, principal: Principal) -> None:
        self._principal = principal

    def sign_out(self) -> None:
        self._principal = None

    async def refresh(self) -> None:
        return None

    async def persist_active_role(self, principal_id: str, role: str) -> None:
        if self.fail_persist is not None:
            raise RuntimeError(self.fail_persist)
        self.persisted.append((principal_id, role))
        if self._principal is not None and self._principal.principal_id == principal_id:
            self._principal = replace(self._principal, remembered_role=role)
        logger.debug("Persisted active role=%s for principal=%s", role, principal_id)
