"""Request logging middleware."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("cugino.requests")


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status, duration and caller id for every request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "%s %s - unhandled exception (%.1fms)",
                request.method,
                request.url.path,
                duration_ms,
                extra={"path": request.url.path, "method": request.method},
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        identity = getattr(request.state, "identity", None)
        user_id = getattr(identity, "id", None)
        logger.log(
            _level_for(response.status_code),
            "%s %s - %s (%.1fms user_id=%s)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            user_id,
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 1),
                "user_id": user_id,
                "user_agent": request.headers.get("user-agent"),
            },
        )
        return response
