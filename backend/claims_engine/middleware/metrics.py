"""
Prometheus metrics.

HTTP request counter + histogram middleware, plus the claim lifecycle
counters the services increment directly.
"""

import time

from prometheus_client import Counter, Gauge, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# ── HTTP metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Claim lifecycle metrics ──────────────────────────────────────────────────

claim_transitions_total = Counter(
    "claim_transitions_total",
    "Claim status transitions",
    ["from_status", "to_status", "actor"],
)

claims_by_status = Gauge(
    "claims_by_status",
    "Claims currently in each status, from the in-process counters",
    ["status"],
)

claim_submissions_total = Counter(
    "claim_submissions_total",
    "Claim submissions by outcome",
    ["outcome"],  # approved | rejected | manual_review | dependency_timeout | invalid
)

risk_lookup_duration_seconds = Histogram(
    "risk_lookup_duration_seconds",
    "External risk score lookup duration in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

status_count_divergence_total = Counter(
    "status_count_divergence_total",
    "Times the in-process status counts disagreed with a full recount",
)


def _normalize_path(path: str) -> str:
    """Collapse path parameters to reduce cardinality.

    e.g. /api/claims/CLM-0A1B2C3D4E5F/history → /api/claims/{id}/history
    """
    parts = path.strip("/").split("/")
    fixed = {"claims", "rules", "audit", "verify", "counts", "status", "active", "stats", "history", "reevaluate"}
    normalized = []
    for i, part in enumerate(parts):
        if i > 1 and (part.startswith("CLM-") or part.isdigit() or part not in fixed):
            normalized.append("{id}")
        else:
            normalized.append(part)
    return "/" + "/".join(normalized)


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        http_requests_total.labels(method=method, path=path, status_code=response.status_code).inc()
        http_request_duration_seconds.labels(method=method, path=path).observe(duration)
        return response
