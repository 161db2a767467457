"""Per-request logging and metrics.

Every request gets an id (taken from ``X-Request-Id`` when the caller sends
one) and a single ``request_completed`` or ``request_failed`` line. Archive
proxy requests also carry the archive endpoint and the cache status, so cache
behaviour can be read straight from the access log.
"""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.metrics import REQUEST_COUNT, REQUEST_ERRORS, REQUEST_LATENCY

logger = logging.getLogger(__name__)

CACHE_STATUS_HEADER = "X-Cache-Status"


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    if route and hasattr(route, "path"):
        return route.path
    return request.url.path


def _record(request: Request, status_code: int, started: float) -> dict:
    duration = time.monotonic() - started
    path = _route_path(request)
    labels = (request.method, path, str(status_code))
    REQUEST_COUNT.labels(*labels).inc()
    REQUEST_LATENCY.labels(*labels).observe(duration)
    if status_code >= 500:
        REQUEST_ERRORS.labels(*labels).inc()
    return {
        "request_id": request.state.request_id,
        # Set by AuthGateMiddleware, which runs inside this one.
        "actor_id": getattr(request.state, "actor_id", None),
        "endpoint": getattr(request.state, "archive_endpoint", None),
        "path": path,
        "method": request.method,
        "status": status_code,
        "duration_ms": round(duration * 1000.0, 2),
    }


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request.state.request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        started = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed", extra=_record(request, 500, started))
            raise
        context = _record(request, response.status_code, started)
        context["cache_status"] = response.headers.get(CACHE_STATUS_HEADER)
        logger.info("request_completed", extra=context)
        response.headers["x-request-id"] = request.state.request_id
        return response
