import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("ems.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request: method, path, status and latency."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.error("%s %s 500 %.2fms", request.method, request.url.path, latency_ms)
            raise
        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.info("%s %s %s %.2fms", request.method, request.url.path, response.status_code, latency_ms)
        return response
