"""Composition of the process-wide DashboardStore.

The facade serves one operator session per process.  Collaborators are
picked from settings the same way the Redis pool is: REST adapters when
DATA_API_URL is set, in-memory ones otherwise (local dev, tests).
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends

from schoolhub.core.config import SETTINGS, Settings
from schoolhub.repos.auth_repo import InMemoryAuthProvider
from schoolhub.repos.rest_auth_repo import RestAuthProvider
from schoolhub.repos.rest_school_data_repo import RestSchoolDataRepo
from schoolhub.repos.school_data_repo import InMemorySchoolDataRepo
from schoolhub.repos.staff_profile_repo import InMemoryStaffProfileRepo
from schoolhub.services.dashboard_store import DashboardStore
from schoolhub.services.local_cache import local_cache_for
from schoolhub.services.notifications import LoggingNotifier

logger = logging.getLogger(__name__)

_CACHE_NAMESPACE = "dashboard"


def build_store(settings: Settings) -> DashboardStore:
    notifier = LoggingNotifier()
    local_cache = local_cache_for(_CACHE_NAMESPACE)
    if settings.uses_remote_data:
        repo = RestSchoolDataRepo.from_settings(settings)
        return DashboardStore(
            auth=RestAuthProvider.from_settings(settings),
            profiles=repo,
            repo=repo,
            notifier=notifier,
            local_cache=local_cache,
        )
    return DashboardStore(
        auth=InMemoryAuthProvider(),
        profiles=InMemoryStaffProfileRepo(),
        repo=InMemorySchoolDataRepo(),
        notifier=notifier,
        local_cache=local_cache,
    )


dashboard_store = build_store(SETTINGS)


def get_store() -> DashboardStore:
    """FastAPI dependency; overridden in tests."""
    return dashboard_store


Store = Annotated[DashboardStore, Depends(get_store)]


@asynccontextmanager
async def lifespan_store() -> AsyncIterator[None]:
    """Resolve the session once on startup; close HTTP clients on shutdown."""
    try:
        await dashboard_store.sync()
    except Exception:
        # The service stays up; POST /v1/dashboard/sync retries.
        logger.exception("Initial dashboard sync failed")

    yield

    await dashboard_store.aclose()
