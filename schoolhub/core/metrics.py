"""Prometheus metric inventory.

Every metric the service records is declared here; the modules that own
the behavior import and increment them.

Tier fetch outcomes are the interesting signal for this layer:

  ok         result published into the tier
  error      remote call failed, tier kept its last good data
  discarded  result arrived for a dependency key that is no longer
             current (operator switched year/term mid-flight)

A high discarded rate is normal under rapid selector changes; a high
error rate is not.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# HTTP facade
# ---------------------------------------------------------------------------

HTTP_REQUESTS = Counter(
    "dashboard_http_requests_total",
    "Dashboard facade requests by method, route and status",
    ["method", "route", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "dashboard_http_request_duration_seconds",
    "Dashboard facade request latency",
    ["method", "route"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# ---------------------------------------------------------------------------
# Orchestration metrics
# ---------------------------------------------------------------------------

TIER_FETCHES = Counter(
    "tier_fetches_total",
    "Tier fetch completions by tier and outcome",
    ["tier", "outcome"],  # tier: tenant|year|term  outcome: ok|error|discarded
)

TIER_FETCH_DURATION = Histogram(
    "tier_fetch_duration_seconds",
    "Wall time of one tier fetch, including discarded ones",
    ["tier"],
    # Tier fetches fan out into several remote calls; slower than one query.
    buckets=[0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ROLE_SYNC = Counter(
    "role_sync_total",
    "Best-effort active-role synchronizations by outcome",
    ["outcome"],  # ok|failed
)

ACTIVE_ROLE_SWITCHES = Counter(
    "active_role_switches_total",
    "Explicit active-role switches by target role",
    ["role"],
)
