# Centralized Prometheus metrics for the settlement engine. The request
# middleware tracks API latency; the payout helpers below count claims,
# conflicts, rail dispatches and ledger transitions so finance dashboards
# can spot stuck or failing rails.

from time import monotonic

from fastapi import Request
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware


REQUEST_DURATION_MS = Histogram(
    "request_duration_ms",
    "API request duration in milliseconds",
    ["method", "route"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2000, 5000, 10000],
)
REQUESTS_TOTAL = Counter(
    "requests_total",
    "Total API requests",
    ["method", "route", "status_code"],
)

# Payout outcomes by rail and resulting status (processing, failed, ...).
PAYOUTS_TOTAL = Counter(
    "affiliate_payouts_total",
    "Affiliate payouts grouped by rail and resulting status",
    ["method", "status"],
)

# Claims that lost a race to a concurrent payout request and were retried.
PAYOUT_CLAIM_CONFLICTS_TOTAL = Counter(
    "affiliate_payout_claim_conflicts_total",
    "Payout claims rolled back because another request claimed the same events",
)

COMMISSION_TRANSITIONS_TOTAL = Counter(
    "affiliate_commission_transitions_total",
    "Commission event state transitions",
    ["to_status"],
)

RAIL_DISPATCH_SECONDS = Histogram(
    "affiliate_rail_dispatch_seconds",
    "Time spent in an external payout rail call",
    ["method"],
    buckets=[0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60],
)

JOB_RUN_TOTAL = Counter(
    "job_run_total",
    "Scheduled job runs",
    ["job_name", "status"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = monotonic()
        response = await call_next(request)
        duration_ms = (monotonic() - start) * 1000.0

        route = request.scope.get("route")
        route_path = getattr(route, "path", None) or request.url.path
        REQUEST_DURATION_MS.labels(request.method, route_path).observe(duration_ms)
        REQUESTS_TOTAL.labels(request.method, route_path, str(response.status_code)).inc()
        return response


def _label(value: object | None, default: str = "unknown") -> str:
    if value is None:
        return default
    if isinstance(value, str) and not value.strip():
        return default
    return str(value)


def record_payout(*, method: str | None, status: str | None) -> None:
    PAYOUTS_TOTAL.labels(method=_label(method), status=_label(status)).inc()


def record_claim_conflict() -> None:
    PAYOUT_CLAIM_CONFLICTS_TOTAL.inc()


def record_commission_transition(to_status: str | None, count: int = 1) -> None:
    if count <= 0:
        return
    COMMISSION_TRANSITIONS_TOTAL.labels(to_status=_label(to_status)).inc(count)


def record_rail_dispatch(*, method: str | None, duration_seconds: float) -> None:
    RAIL_DISPATCH_SECONDS.labels(method=_label(method)).observe(duration_seconds)


def record_job_run(*, job_name: str, success: bool) -> None:
    JOB_RUN_TOTAL.labels(
        job_name=_label(job_name),
        status="success" if success else "failure",
    ).inc()
