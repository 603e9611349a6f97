"""Request metrics for the dashboard facade.

Labels use the matched route template (``/v1/dashboard/groups``), not
the raw path, so query strings and unknown URLs cannot blow up label
cardinality.  Scrapes of ``/metrics`` are not counted.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match

from schoolhub.core.metrics import HTTP_REQUEST_DURATION, HTTP_REQUESTS


def _route_label(request: Request) -> str:
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match is Match.FULL:
            return getattr(route, "path", "unmatched")
    return "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        route = _route_label(request)
        start = time.monotonic()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        finally:
            HTTP_REQUESTS.labels(
                method=request.method, route=route, status_code=status_code
            ).inc()
            HTTP_REQUEST_DURATION.labels(method=request.method, route=route).observe(
                time.monotonic() - start
            )
        return response
