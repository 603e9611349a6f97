"""Cascading three-tier data loader.

    tenant tier  (tenant_id, active_role)      staff, subjects, tenant metadata
        │  settled at least once
        ▼
    year tier    (tenant_id, year)             student roster, dashboard counters
        │  ready for the same (tenant_id, year)
        ▼
    term tier    (tenant_id, year, term_id)    teaching assignments

Each tier reloads only when its own key changes (or on ``refetch``).  The
guards between tiers are explicit checks in ``load_year_tier`` and
``load_term_tier``, not an accident of call order.

Concurrency: every selector change calls ``cascade``, which records the
desired selectors and walks the tiers.  Walks overlap freely.  A walk
stops as soon as it finds a tier already loading the key it wants (the
walk that started that load will carry on, reading the newest desired
selectors at each step) or its own result was superseded.  Superseded
results are dropped silently: they are the expected consequence of
rapid operator input, not failures.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import TypeVar

from schoolhub.core.metrics import TIER_FETCH_DURATION, TIER_FETCHES
from schoolhub.models.records import (
    AdminRecord,
    DashboardStats,
    StaffMember,
    StudentRecord,
    Subject,
    Subscription,
    TeachingAssignment,
    Tenant,
)
from schoolhub.models.roles import Role
from schoolhub.repos.school_data_repo import SchoolDataRepo
from schoolhub.services.notifications import Notifier, Severity
from schoolhub.services.tier import FetchOutcome, Tier, TierState

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class TenantTierData:
    tenant: Tenant | None = None
    tenants: tuple[Tenant, ...] = ()
    subscriptions: tuple[Subscription, ...] = ()
    admins: tuple[AdminRecord, ...] = ()
    staff: tuple[StaffMember, ...] = ()
    subjects: tuple[Subject, ...] = ()


@dataclass(frozen=True, slots=True)
class YearTierData:
    students: tuple[StudentRecord, ...] = ()
    stats: DashboardStats = field(default_factory=DashboardStats)


@dataclass(frozen=True, slots=True)
class TermTierData:
    assignments: tuple[TeachingAssignment, ...] = ()


@dataclass(frozen=True, slots=True)
class Selectors:
    tenant_id: str | None = None
    active_role: Role | None = None
    academic_year: str | None = None
    term_id: str | None = None


_FAILURE_TITLES = {
    "tenant": "Failed to fetch critical data",
    "year": "Failed to fetch academic year data",
    "term": "Failed to fetch term data",
}


class CascadingDataLoader:
    def __init__(self, repo: SchoolDataRepo, notifier: Notifier) -> None:
        self._repo = repo
        self._notifier = notifier
        self.tenant: Tier[TenantTierData] = Tier("tenant", TenantTierData)
        self.year: Tier[YearTierData] = Tier("year", YearTierData)
        self.term: Tier[TermTierData] = Tier("term", TermTierData)
        self._desired = Selectors()

    @property
    def tiers(self) -> tuple[Tier, ...]:
        return (self.tenant, self.year, self.term)

    @property
    def desired(self) -> Selectors:
        return self._desired

    @property
    def is_loading(self) -> bool:
        return any(t.is_loading for t in self.tiers)

    def states(self) -> dict[str, TierState]:
        return {t.name: t.state for t in self.tiers}

    def idle_all(self) -> None:
        for tier in self.tiers:
            tier.idle(clear=True)

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    async def cascade(
        self,
        tenant_id: str | None,
        active_role: Role | None,
        academic_year: str | None,
        term_id: str | None,
        *,
        force: bool = False,
    ) -> None:
        self._desired = Selectors(tenant_id, active_role, academic_year, term_id)
        await self._walk(force=force)

    async def refetch(self) -> None:
        """Re-run every tier the current selectors make applicable."""
        await self._walk(force=True)

    async def _walk(self, *, force: bool) -> None:
        d = self._desired
        if d.active_role is None:
            self.idle_all()
            return
        if not await self.load_tenant_tier(d.tenant_id, d.active_role, force=force):
            return

        # Selectors may have moved while the tenant tier was in flight.
        d = self._desired
        if not await self.load_year_tier(d.tenant_id, d.academic_year, force=force):
            return

        d = self._desired
        await self.load_term_tier(d.tenant_id, d.academic_year, d.term_id, force=force)

    # ------------------------------------------------------------------
    # Tier loads
    #
    # Each returns True when its tier is ready for the requested key once
    # the call finishes, i.e. the next tier may go ahead.
    # ------------------------------------------------------------------

    async def load_tenant_tier(
        self, tenant_id: str | None, active_role: Role | None, *, force: bool = False
    ) -> bool:
        if active_role is None:
            self.idle_all()
            return False

        key = (tenant_id, active_role)
        if not force:
            if self.tenant.is_ready_for(key):
                return True
            if self.tenant.is_loading and self.tenant.key == key:
                return False

        if self.year.key is not None and self.year.key[0] != tenant_id:
            self.year.idle(clear=False)
            self.term.idle(clear=False)

        return await self._run(
            self.tenant, key, self._fetch_tenant(tenant_id, active_role)
        )

    async def load_year_tier(
        self, tenant_id: str | None, academic_year: str | None, *, force: bool = False
    ) -> bool:
        if not tenant_id or not academic_year or not self.tenant.settled_once:
            self.year.idle(clear=True)
            self.term.idle(clear=True)
            return False

        key = (tenant_id, academic_year)
        if not force:
            if self.year.is_ready_for(key):
                return True
            if self.year.is_loading and self.year.key == key:
                return False

        # Term data for another year must not be published from here on.
        if self.term.key is not None and self.term.key[:2] != key:
            self.term.idle(clear=False)

        return await self._run(
            self.year, key, self._fetch_year(tenant_id, academic_year)
        )

    async def load_term_tier(
        self,
        tenant_id: str | None,
        academic_year: str | None,
        term_id: str | None,
        *,
        force: bool = False,
    ) -> bool:
        if not tenant_id or not academic_year:
            self.term.idle(clear=True)
            return False
        if not self.year.is_ready_for((tenant_id, academic_year)):
            if self.year.state is TierState.IDLE:
                self.term.idle(clear=True)
            # Otherwise the year tier is still loading; its walk will
            # come back for the term tier.
            return False
        if not term_id:
            self.term.idle(clear=True)
            return False

        key = (tenant_id, academic_year, term_id)
        if not force:
            if self.term.is_ready_for(key):
                return True
            if self.term.is_loading and self.term.key == key:
                return False

        return await self._run(
            self.term, key, self._fetch_term(tenant_id, academic_year, term_id)
        )

    async def _run(self, tier: Tier[T], key: tuple, fetch: Awaitable[T]) -> bool:
        ticket = tier.begin(key)
        start = time.monotonic()
        try:
            outcome: FetchOutcome[T] = FetchOutcome(data=await fetch)
        except Exception as exc:
            outcome = FetchOutcome(error=str(exc) or type(exc).__name__)
        finally:
            TIER_FETCH_DURATION.labels(tier=tier.name).observe(time.monotonic() - start)

        if not tier.settle(ticket, outcome):
            TIER_FETCHES.labels(tier=tier.name, outcome="discarded").inc()
            logger.debug(
                "Discarded stale %s tier result",
                tier.name,
                extra={"tier": tier.name, "key": repr(key)},
            )
            return False

        if not outcome.ok:
            TIER_FETCHES.labels(tier=tier.name, outcome="error").inc()
            logger.warning(
                "%s tier fetch failed: %s",
                tier.name,
                outcome.error,
                extra={"tier": tier.name, "key": repr(key)},
            )
            self._notifier.report(
                Severity.ERROR, _FAILURE_TITLES[tier.name], outcome.error or ""
            )
        else:
            TIER_FETCHES.labels(tier=tier.name, outcome="ok").inc()
        return True

    # ------------------------------------------------------------------
    # Fetches
    # ------------------------------------------------------------------

    async def _fetch_tenant(
        self, tenant_id: str | None, active_role: Role
    ) -> TenantTierData:
        repo = self._repo
        tenant = await repo.get_tenant(tenant_id) if tenant_id else None

        if active_role is Role.SUPER_ADMIN:
            tenants, subscriptions, admins = await asyncio.gather(
                repo.list_tenants(), repo.list_subscriptions(), repo.list_admins(None)
            )
            counted = await asyncio.gather(*(self._with_counts(t) for t in tenants))
            return TenantTierData(
                tenant=tenant,
                tenants=tuple(counted),
                subscriptions=tuple(subscriptions),
                admins=tuple(admins),
            )

        if active_role.is_school_role and tenant_id:
            admins, staff, subjects = await asyncio.gather(
                repo.list_admins(tenant_id),
                repo.list_staff(tenant_id),
                repo.list_subjects(tenant_id),
            )
            return TenantTierData(
                tenant=tenant,
                admins=tuple(admins),
                staff=tuple(staff),
                subjects=tuple(subjects),
            )

        return TenantTierData(tenant=tenant)

    async def _with_counts(self, tenant: Tenant) -> Tenant:
        students, staff = await asyncio.gather(
            self._repo.count_students(tenant.id), self._repo.count_staff(tenant.id)
        )
        return Tenant(
            id=tenant.id,
            name=tenant.name,
            status=tenant.status or "Active",
            student_count=students,
            staff_count=staff,
        )

    async def _fetch_year(self, tenant_id: str, academic_year: str) -> YearTierData:
        students, stats = await asyncio.gather(
            self._repo.list_students(tenant_id, academic_year),
            self._repo.get_dashboard_stats(tenant_id, academic_year),
        )
        return YearTierData(students=tuple(students), stats=stats)

    async def _fetch_term(
        self, tenant_id: str, academic_year: str, term_id: str
    ) -> TermTierData:
        assignments = await self._repo.list_teaching_assignments(
            tenant_id, academic_year, term_id
        )
        return TermTierData(assignments=tuple(assignments))
