"""Liveness endpoint.

Reports the optional Redis backend and whether the dashboard tiers are
currently settled.  Always 200: a degraded Redis only means remembered
selections stop persisting, which is no reason to restart the process.
"""

from __future__ import annotations

from fastapi import APIRouter

from schoolhub.api.dependencies import Store
from schoolhub.db.redis import redis_pool

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(store: Store) -> dict:
    checks: dict[str, str] = {}
    overall = "ok"

    if redis_pool is not None:
        try:
            await redis_pool.ping()  # type: ignore[misc]
            checks["redis"] = "ok"
        except Exception:
            checks["redis"] = "degraded"
            overall = "degraded"
    else:
        checks["redis"] = "not_configured"

    return {
        "status": overall,
        "checks": checks,
        "tiers": {name: state.value for name, state in store.loader.states().items()},
    }
