"""Dashboard facade application.

RUN:  uvicorn schoolhub.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from schoolhub.api.dashboard import router as dashboard_router
from schoolhub.api.dependencies import lifespan_store
from schoolhub.api.health import router as health_router
from schoolhub.api.metrics_endpoint import router as metrics_router
from schoolhub.core.config import SETTINGS
from schoolhub.core.logging import setup_logging
from schoolhub.db.redis import lifespan_redis
from schoolhub.middleware.metrics import MetricsMiddleware
from schoolhub.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # The store's first sync reads remembered selections from Redis.
    async with lifespan_redis():
        async with lifespan_store():
            yield


app = FastAPI(
    title="schoolhub-dashboard",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last added runs first: RequestContext -> Metrics -> route handler.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(dashboard_router)

logger.info(
    "schoolhub-dashboard started  env=%s log_level=%s port=%d data=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "rest" if SETTINGS.uses_remote_data else "in-memory",
)
