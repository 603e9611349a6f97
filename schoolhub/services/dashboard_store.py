"""Dashboard store: the one object consumers talk to.

Wires the collaborators (auth, staff profiles, remote data, local cache,
notifier) to the resolver, the scope store, the tier loader, the year and
term selectors and the class-structure aggregator.

Mutation entry points:

  sync()                 re-read the session, resolve roles, cascade
  switch_active_role()   explicit role switch
  change_year()          operator picked another academic year
  add_year()             register a new academic year and select it
  change_term()          operator picked another term
  refetch()              reload every applicable tier

Everything else is read-only: ``snapshot()`` returns a frozen view of the
published state, and ``class_structure()`` the memoized hierarchy for the
current roster and scope.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from schoolhub.models.principal import Principal
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
from schoolhub.models.roles import Role
from schoolhub.models.scope import Scope
from schoolhub.models.staff_profile import StaffProfile
from schoolhub.repos.auth_repo import AuthProvider
from schoolhub.repos.school_data_repo import SchoolDataRepo
from schoolhub.repos.staff_profile_repo import StaffProfileRepo
from schoolhub.services.academic_year import AcademicYearSelector
from schoolhub.services.data_loader import CascadingDataLoader
from schoolhub.services.hierarchy import ClassStructure, HierarchyAggregator
from schoolhub.services.local_cache import LocalCache
from schoolhub.services.notifications import Notifier, Severity
from schoolhub.services.role_resolver import RoleResolver, RoleSwitch, RoleSyncOutcome
from schoolhub.services.scope_store import ScopeStore, apply_scope
from schoolhub.services.term_selector import TermSelector
from schoolhub.services.tier import TierState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardSnapshot:
    principal_id: str | None
    tenant_id: str | None
    available_roles: tuple[Role, ...]
    active_role: Role | None
    scope: Scope
    academic_year: str | None
    available_years: tuple[str, ...]
    term: Term | None
    available_terms: tuple[Term, ...]
    tenant: Tenant | None
    tenants: tuple[Tenant, ...]
    subscriptions: tuple[Subscription, ...]
    admins: tuple[AdminRecord, ...]
    staff: tuple[StaffMember, ...]
    subjects: tuple[Subject, ...]
    students: tuple[StudentRecord, ...]
    dashboard_stats: DashboardStats
    teaching_assignments: tuple[TeachingAssignment, ...]
    tier_states: dict[str, TierState]
    is_loading: bool


class DashboardStore:
    def __init__(
        self,
        *,
        auth: AuthProvider,
        profiles: StaffProfileRepo,
        repo: SchoolDataRepo,
        notifier: Notifier,
        local_cache: LocalCache,
    ) -> None:
        self._auth = auth
        self._profiles = profiles
        self._repo = repo
        self._notifier = notifier
        self.resolver = RoleResolver(auth, local_cache, notifier)
        self.scopes = ScopeStore()
        self.loader = CascadingDataLoader(repo, notifier)
        self.years = AcademicYearSelector(repo, local_cache, notifier)
        self.terms = TermSelector(repo, local_cache, notifier)
        self._aggregate = HierarchyAggregator()
        self._principal: Principal | None = None
        self._profile: StaffProfile | None = None
        self._walks = 0

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def principal(self) -> Principal | None:
        return self._principal

    @property
    def active_role(self) -> Role | None:
        return self.resolver.active_role

    @property
    def scope(self) -> Scope:
        return self.scopes.get_scope(self.resolver.active_role, self._profile)

    @property
    def is_loading(self) -> bool:
        return (
            self._walks > 0
            or self.loader.is_loading
            or self._auth.is_auth_resolving()
            or self.years.loading
            or self.terms.loading
        )

    def scoped_students(self) -> tuple[StudentRecord, ...]:
        return tuple(apply_scope(self.loader.year.data.students, self.scope))

    def class_structure(self) -> ClassStructure:
        return self._aggregate(self.loader.year.data.students, self.scope)

    def snapshot(self) -> DashboardSnapshot:
        tenant_data = self.loader.tenant.data
        year_data = self.loader.year.data
        principal = self._principal
        return DashboardSnapshot(
            principal_id=principal.principal_id if principal else None,
            tenant_id=principal.tenant_id if principal else None,
            available_roles=self.resolver.role_set.roles,
            active_role=self.resolver.active_role,
            scope=self.scope,
            academic_year=self.years.academic_year,
            available_years=self.years.available_years,
            term=self.terms.term,
            available_terms=self.terms.available_terms,
            tenant=tenant_data.tenant,
            tenants=tenant_data.tenants,
            subscriptions=tenant_data.subscriptions,
            admins=tenant_data.admins,
            staff=tenant_data.staff,
            subjects=tenant_data.subjects,
            students=year_data.students,
            dashboard_stats=year_data.stats,
            teaching_assignments=self.loader.term.data.assignments,
            tier_states=self.loader.states(),
            is_loading=self.is_loading,
        )

    # ------------------------------------------------------------------
    # Mutation entry points
    # ------------------------------------------------------------------

    async def sync(self) -> RoleSyncOutcome:
        """Re-read the principal and profile, resolve roles, and cascade."""
        await self._auth.refresh()
        principal = self._auth.current_principal()
        self._principal = principal
        self._profile = await self._load_profile(principal)

        switch = await self.resolver.resolve(principal, self._profile)
        tenant_id = principal.tenant_id if principal else None
        await self.years.refresh(tenant_id)
        await self.terms.refresh(tenant_id, self.years.academic_year)
        await self._cascade()
        return await switch.outcome()

    async def switch_active_role(self, role: Role) -> RoleSwitch:
        switch = await self.resolver.switch_active_role(role)
        if switch.applied:
            await self._cascade()
        return switch

    async def change_year(self, academic_year: str) -> bool:
        if not await self.years.change_year(academic_year):
            return False
        await self._after_year_change()
        return True

    async def add_year(self, academic_year: str) -> bool:
        if not await self.years.add_year(academic_year):
            return False
        await self._after_year_change()
        return True

    async def change_term(self, term_id: str) -> bool:
        if not await self.terms.change_term(term_id):
            return False
        await self._cascade()
        return True

    async def refetch(self) -> None:
        self._walks += 1
        try:
            await self.loader.refetch()
        finally:
            self._walks -= 1

    async def aclose(self) -> None:
        """Close collaborators that hold network clients."""
        closed: set[int] = set()
        for collaborator in (self._auth, self._profiles, self._repo):
            close = getattr(collaborator, "aclose", None)
            if close is None or id(collaborator) in closed:
                continue
            closed.add(id(collaborator))
            await close()

    # ------------------------------------------------------------------

    async def _after_year_change(self) -> None:
        tenant_id = self._principal.tenant_id if self._principal else None
        await self.terms.refresh(tenant_id, self.years.academic_year)
        await self._cascade()

    async def _cascade(self) -> None:
        principal = self._principal
        self._walks += 1
        try:
            await self.loader.cascade(
                principal.tenant_id if principal else None,
                self.resolver.active_role,
                self.years.academic_year,
                # A term picked for another year is not a valid selector.
                self.terms.term_id
                if self.terms.academic_year == self.years.academic_year
                else None,
            )
        finally:
            self._walks -= 1

    async def _load_profile(self, principal: Principal | None) -> StaffProfile | None:
        if principal is None:
            return None
        try:
            return await self._profiles.get_profile(principal.principal_id)
        except Exception as exc:
            logger.warning(
                "Loading staff profile failed for principal=%s: %s",
                principal.principal_id,
                exc,
            )
            self._notifier.report(Severity.ERROR, "Failed to load staff profile", str(exc))
            return None

