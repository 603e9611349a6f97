"""Academic-year selection for a tenant.

Available years are the union of years that appear on the student roster
and years registered explicitly (a new year is usually registered before
any student is enrolled in it), newest first.

The selected year survives reloads through the local cache.  A cached
year that no longer exists falls back to the newest available year.
"""

from __future__ import annotations

import asyncio
import logging

from schoolhub.repos.school_data_repo import SchoolDataRepo
from schoolhub.services.local_cache import ACADEMIC_YEAR_KEY, LocalCache
from schoolhub.services.notifications import Notifier, Severity

logger = logging.getLogger(__name__)


class AcademicYearSelector:
    def __init__(
        self, repo: SchoolDataRepo, local_cache: LocalCache, notifier: Notifier
    ) -> None:
        self._repo = repo
        self._cache = local_cache
        self._notifier = notifier
        self._generation = 0
        self.tenant_id: str | None = None
        self.academic_year: str | None = None
        self.available_years: tuple[str, ...] = ()
        self.loading = False

    async def refresh(self, tenant_id: str | None) -> None:
        self._generation += 1
        generation = self._generation
        self.tenant_id = tenant_id

        if not tenant_id:
            self.available_years = ()
            self.academic_year = None
            self.loading = False
            await self._cache.delete(ACADEMIC_YEAR_KEY)
            return

        self.loading = True
        try:
            student_years, registered = await asyncio.gather(
                self._repo.list_student_years(tenant_id),
                self._repo.list_registered_years(tenant_id),
            )
        except Exception as exc:
            if generation != self._generation:
                return
            logger.warning("Fetching academic years failed: %s", exc, extra={"tenant_id": tenant_id})
            self._notifier.report(
                Severity.ERROR, "Error fetching academic years", str(exc)
            )
            self.available_years = ()
            self.loading = False
            return

        if generation != self._generation:
            return

        years = tuple(sorted({*student_years, *registered}, reverse=True))
        self.available_years = years
        cached = await self._cache.get(ACADEMIC_YEAR_KEY)
        if years:
            current = self.academic_year or cached
            if current not in years:
                current = years[0]
            await self._select(current)
        else:
            self.academic_year = None
            await self._cache.delete(ACADEMIC_YEAR_KEY)
        self.loading = False

    async def _select(self, year: str) -> None:
        self.academic_year = year
        await self._cache.set(ACADEMIC_YEAR_KEY, year)

    async def change_year(self, year: str) -> bool:
        if year not in self.available_years:
            logger.debug("Ignored change to unknown academic year=%s", year)
            return False
        await self._select(year)
        return True

    async def add_year(self, year: str) -> bool:
        """Register ``year`` for the tenant and select it."""
        year = year.strip()
        if not year or not self.tenant_id:
            return False
        if year in self.available_years:
            self._notifier.report(Severity.INFO, "Year already exists.", year)
            return False
        try:
            await self._repo.add_registered_year(self.tenant_id, year)
        except Exception as exc:
            logger.warning("Registering academic year=%s failed: %s", year, exc)
            self._notifier.report(
                Severity.ERROR, "Error", "Failed to save new academic year."
            )
            return False

        self.available_years = tuple(sorted({*self.available_years, year}, reverse=True))
        await self._select(year)
        logger.info("Registered academic year=%s", year, extra={"tenant_id": self.tenant_id})
        return True
