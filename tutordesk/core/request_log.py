import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from tutordesk.core.security import email_from_header

logger = logging.getLogger("tutordesk.requests")

class RequestLogMiddleware(BaseHTTPMiddleware):
    """One log line per request: method, path, status, caller and duration."""

    async def dispatch(self, request, call_next):
        started = time.perf_counter()
        caller = email_from_header(request.headers.get("authorization")) or "-"

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level, "%s %s %s user=%s %.1fms",
            request.method, request.url.path, response.status_code, caller, elapsed_ms,
        )
        return response
