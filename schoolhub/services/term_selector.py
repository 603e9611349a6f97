from __future__ import annotations

import logging
from datetime import date

from schoolhub.models.records import Term
from schoolhub.repos.school_data_repo import SchoolDataRepo
from schoolhub.services.local_cache import LocalCache, term_key
from schoolhub.services.notifications import Notifier, Severity

logger = logging.getLogger(__name__)


class TermSelector:
    """Term selection within the selected academic year.

    Choice order: the term remembered for that year, the term running
    today, the first term of the year.
    """

    def __init__(
        self, repo: SchoolDataRepo, local_cache: LocalCache, notifier: Notifier
    ) -> None:
        self._repo = repo
        self._cache = local_cache
        self._notifier = notifier
        self._generation = 0
        self.academic_year: str | None = None
        self.term: Term | None = None
        self.available_terms: tuple[Term, ...] = ()
        self.loading = False

    @property
    def term_id(self) -> str | None:
        return self.term.id if self.term is not None else None

    async def refresh(
        self,
        tenant_id: str | None,
        academic_year: str | None,
        *,
        today: date | None = None,
    ) -> None:
        self._generation += 1
        generation = self._generation
        # Drop the previous year's selection before the year changes, so
        # term_id never pairs an old term with the new year.
        self.available_terms = ()
        self.term = None
        self.academic_year = academic_year

        if not tenant_id or not academic_year:
            self.loading = False
            return

        self.loading = True
        try:
            terms = await self._repo.list_terms(tenant_id, academic_year)
        except Exception as exc:
            if generation != self._generation:
                return
            logger.warning("Fetching terms failed: %s", exc, extra={"tenant_id": tenant_id})
            self._notifier.report(Severity.ERROR, "Error", "Could not fetch terms.")
            self.available_terms = ()
            self.loading = False
            return

        if generation != self._generation:
            return

        terms = sorted(terms, key=lambda t: t.start_date)
        self.available_terms = tuple(terms)
        key = term_key(academic_year)
        stored_id = await self._cache.get(key)
        chosen = next((t for t in terms if t.id == stored_id), None)
        if chosen is None and terms:
            today = today or date.today()
            chosen = next((t for t in terms if t.contains(today)), terms[0])
            await self._cache.set(key, chosen.id)
        elif chosen is None:
            await self._cache.delete(key)
        self.term = chosen
        self.loading = False

    async def change_term(self, term_id: str) -> bool:
        chosen = next((t for t in self.available_terms if t.id == term_id), None)
        if chosen is None or self.academic_year is None:
            logger.debug("Ignored change to unknown term=%s", term_id)
            return False
        self.term = chosen
        await self._cache.set(term_key(self.academic_year), chosen.id)
        return True
