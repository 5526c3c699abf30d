"""
Prometheus metrics for monitoring
"""
import re
import time

from fastapi import Request
from fastapi.responses import Response as FastAPIResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    ["method", "endpoint"]
)

moderation_verdicts_total = Counter(
    "moderation_verdicts_total",
    "Classifier verdicts",
    ["action"]
)

pipeline_outcomes_total = Counter(
    "pipeline_outcomes_total",
    "Inbound fan messages by terminal state",
    ["terminal_state"]
)

side_effect_failures_total = Counter(
    "side_effect_failures_total",
    "Swallowed failures of best-effort writes",
    ["kind"]
)

ai_requests_total = Counter(
    "ai_requests_total",
    "Total AI service requests",
    ["service", "status"]
)

ai_request_duration_seconds = Histogram(
    "ai_request_duration_seconds",
    "AI service request duration in seconds",
    ["service"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP metrics"""

    def __init__(self, app):
        super().__init__(app)
        self.excluded_paths = {"/metrics", "/health", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        """Collect metrics for each request"""

        if request.url.path in self.excluded_paths:
            return await call_next(request)

        method = request.method
        endpoint = self._normalize_endpoint(request.url.path)

        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()

        start_time = time.time()

        try:
            response = await call_next(request)

            http_request_duration_seconds.labels(
                method=method,
                endpoint=endpoint
            ).observe(time.time() - start_time)

            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status_code=response.status_code
            ).inc()

            return response

        finally:
            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

    def _normalize_endpoint(self, path: str) -> str:
        """
        Normalize endpoint path to reduce cardinality
        Replace UUIDs and numeric IDs with placeholders
        """
        path = re.sub(
            r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
            "{uuid}",
            path,
            flags=re.IGNORECASE
        )

        return re.sub(r"/\d+", "/{id}", path)


async def metrics_endpoint():
    """Endpoint to expose Prometheus metrics"""
    return FastAPIResponse(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
