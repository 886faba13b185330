"""
Prometheus-style metrics endpoint.
"""
import threading
import time
from typing import Callable

from fastapi import APIRouter, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from chathub.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Metrics"])

# In-memory counters for this process
_metrics = {
    "http_requests_total": {},  # {(method, path, status): count}
    "http_request_duration_seconds": {},  # {(method, path): [durations]}
    "webhook_events_total": {},  # {(event, outcome): count}
    "startup_time": None,
    "version": "unknown",
}
_lock = threading.Lock()

MAX_DURATIONS = 1000


def record_request(method: str, path: str, status_code: int, duration: float) -> None:
    """Record an HTTP request metric."""
    with _lock:
        key = (method, path, str(status_code))
        _metrics["http_requests_total"][key] = _metrics["http_requests_total"].get(key, 0) + 1

        durations = _metrics["http_request_duration_seconds"].setdefault((method, path), [])
        durations.append(duration)
        if len(durations) > MAX_DURATIONS:
            del durations[:-MAX_DURATIONS]


def record_webhook_event(event: str, outcome: str) -> None:
    """Count one webhook call by event name and outcome (ok or error)."""
    with _lock:
        key = (event, outcome)
        _metrics["webhook_events_total"][key] = _metrics["webhook_events_total"].get(key, 0) + 1


def set_startup_time(version: str = "unknown") -> None:
    """Record application startup time."""
    _metrics["startup_time"] = time.time()
    _metrics["version"] = version


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        # Route template instead of the raw path keeps instance names out of labels
        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path

        record_request(
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration=duration,
        )

        return response


def generate_prometheus_metrics() -> str:
    """Generate Prometheus-format metrics output."""
    lines = []

    lines.append("# HELP app_info Application information")
    lines.append("# TYPE app_info gauge")
    lines.append(f'app_info{{version="{_metrics["version"]}"}} 1')
    lines.append("")

    if _metrics["startup_time"]:
        lines.append("# HELP app_start_time_seconds Unix timestamp when the app started")
        lines.append("# TYPE app_start_time_seconds gauge")
        lines.append(f'app_start_time_seconds {_metrics["startup_time"]:.3f}')
        lines.append("")

    with _lock:
        requests = dict(_metrics["http_requests_total"])
        durations_by_key = {key: list(values) for key, values in _metrics["http_request_duration_seconds"].items()}
        webhook_events = dict(_metrics["webhook_events_total"])

    lines.append("# HELP http_requests_total Total number of HTTP requests")
    lines.append("# TYPE http_requests_total counter")
    for (method, path, status), count in requests.items():
        lines.append(f'http_requests_total{{method="{method}",path="{path}",status="{status}"}} {count}')
    lines.append("")

    lines.append("# HELP http_request_duration_seconds HTTP request duration in seconds")
    lines.append("# TYPE http_request_duration_seconds summary")
    for (method, path), durations in durations_by_key.items():
        if durations:
            lines.append(f'http_request_duration_seconds_sum{{method="{method}",path="{path}"}} {sum(durations):.6f}')
            lines.append(f'http_request_duration_seconds_count{{method="{method}",path="{path}"}} {len(durations)}')
    lines.append("")

    lines.append("# HELP webhook_events_total Webhook calls by event and outcome")
    lines.append("# TYPE webhook_events_total counter")
    for (event, outcome), count in webhook_events.items():
        lines.append(f'webhook_events_total{{event="{event}",outcome="{outcome}"}} {count}')

    return "\n".join(lines)


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Returns metrics in Prometheus exposition format.",
    response_class=Response,
)
async def metrics() -> Response:
    """
    Prometheus-style metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    content = generate_prometheus_metrics()
    return Response(
        content=content,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
