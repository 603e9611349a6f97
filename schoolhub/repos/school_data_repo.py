from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from schoolhub.models.records import (
    AdminRecord,
    DashboardStats,
    StaffMember,
    StudentRecord,
    Subject,
    Subscription,
    TeachingAssignment,
    Tenant,
    Term,
)


class RemoteDataError(Exception):
    """A remote query failed; ``str(exc)`` is the service's message."""


class SchoolDataRepo(Protocol):
    # --- tenant tier ---
    async def get_tenant(self, tenant_id: str) -> Tenant | None: ...
    async def list_tenants(self) -> list[Tenant]: ...
    async def count_students(self, tenant_id: str) -> int: ...
    async def count_staff(self, tenant_id: str) -> int: ...
    async def list_subscriptions(self) -> list[Subscription]: ...
    async def list_admins(self, tenant_id: str | None) -> list[AdminRecord]: ...
    async def list_staff(self, tenant_id: str) -> list[StaffMember]: ...
    async def list_subjects(self, tenant_id: str) -> list[Subject]: ...

    # --- year tier ---
    async def list_students(
        self, tenant_id: str, academic_year: str
    ) -> list[StudentRecord]: ...
    async def get_dashboard_stats(
        self, tenant_id: str, academic_year: str
    ) -> DashboardStats: ...

    # --- term tier ---
    async def list_teaching_assignments(
        self, tenant_id: str, academic_year: str, term_id: str
    ) -> list[TeachingAssignment]: ...

    # --- year / term catalog ---
    async def list_student_years(self, tenant_id: str) -> list[str]: ...
    async def list_registered_years(self, tenant_id: str) -> list[str]: ...
    async def add_registered_year(self, tenant_id: str, academic_year: str) -> None: ...
    async def list_terms(self, tenant_id: str, academic_year: str) -> list[Term]: ...


class InMemorySchoolDataRepo:
    """Dict-backed data service for tests and local dev.

    Collections are plain lists filtered on read, the same way the remote
    tables are filtered by query parameters.
    """

    def __init__(self) -> None:
        self.tenants: dict[str, Tenant] = {}
        self.subscriptions: list[Subscription] = []
        self.admins: list[AdminRecord] = []
        self.staff: list[StaffMember] = []
        self.subjects: list[Subject] = []
        self.students: dict[str, list[StudentRecord]] = {}
        self.stats: dict[tuple[str, str], DashboardStats] = {}
        self.assignments: dict[str, list[TeachingAssignment]] = {}
        self.registered_years: dict[str, list[str]] = {}
        self.terms: dict[tuple[str, str], list[Term]] = {}

    # --- seeding helpers ---

    def add_tenant(self, tenant: Tenant) -> None:
        self.tenants[tenant.id] = tenant

    def add_students(self, tenant_id: str, students: Iterable[StudentRecord]) -> None:
        self.students.setdefault(tenant_id, []).extend(students)

    def add_assignments(
        self, tenant_id: str, assignments: Iterable[TeachingAssignment]
    ) -> None:
        self.assignments.setdefault(tenant_id, []).extend(assignments)

    def add_terms(self, tenant_id: str, academic_year: str, terms: Iterable[Term]) -> None:
        self.terms.setdefault((tenant_id, academic_year), []).extend(terms)

    # --- tenant tier ---

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        return self.tenants.get(tenant_id)

    async def list_tenants(self) -> list[Tenant]:
        return list(self.tenants.values())

    async def count_students(self, tenant_id: str) -> int:
        return len(self.students.get(tenant_id, []))

    async def count_staff(self, tenant_id: str) -> int:
        return sum(1 for s in self.staff if s.tenant_id == tenant_id)

    async def list_subscriptions(self) -> list[Subscription]:
        return list(self.subscriptions)

    async def list_admins(self, tenant_id: str | None) -> list[AdminRecord]:
        if tenant_id is None:
            return list(self.admins)
        return [a for a in self.admins if a.tenant_id == tenant_id]

    async def list_staff(self, tenant_id: str) -> list[StaffMember]:
        return [s for s in self.staff if s.tenant_id == tenant_id]

    async def list_subjects(self, tenant_id: str) -> list[Subject]:
        return [s for s in self.subjects if s.tenant_id == tenant_id]

    # --- year tier ---

    async def list_students(
        self, tenant_id: str, academic_year: str
    ) -> list[StudentRecord]:
        return [
            s
            for s in self.students.get(tenant_id, [])
            if s.academic_year == academic_year
        ]

    async def get_dashboard_stats(
        self, tenant_id: str, academic_year: str
    ) -> DashboardStats:
        return self.stats.get((tenant_id, academic_year), DashboardStats())

    # --- term tier ---

    async def list_teaching_assignments(
        self, tenant_id: str, academic_year: str, term_id: str
    ) -> list[TeachingAssignment]:
        # Assignments without a term apply to every term of their year.
        return [
            a
            for a in self.assignments.get(tenant_id, [])
            if a.academic_year == academic_year and a.term_id in (None, term_id)
        ]

    # --- year / term catalog ---

    async def list_student_years(self, tenant_id: str) -> list[str]:
        return [
            s.academic_year
            for s in self.students.get(tenant_id, [])
            if s.academic_year is not None
        ]

    async def list_registered_years(self, tenant_id: str) -> list[str]:
        return list(self.registered_years.get(tenant_id, []))

    async def add_registered_year(self, tenant_id: str, academic_year: str) -> None:
        years = self.registered_years.setdefault(tenant_id, [])
        if academic_year in years:
            raise RemoteDataError(f"academic year {academic_year} already exists")
        years.append(academic_year)

    async def list_terms(self, tenant_id: str, academic_year: str) -> list[Term]:
        return sorted(
            self.terms.get((tenant_id, academic_year), []),
            key=lambda t: t.start_date,
        )
