"""Prometheus scrape endpoint.

Serves the process-local registry in text exposition format: tier fetch
outcomes and durations, role sync outcomes, role switches, and the
facade's own request metrics.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
