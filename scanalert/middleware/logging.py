"""
ScanAlert Backend — Request Logging Middleware
================================================

What:  One access log line per HTTP request: method, path, status, duration.
       Exceptions no handler claimed become a 500 JSON response here.
When:  Runs inside RequestIDMiddleware, so the request ID is already set.

Not logged: request bodies. Scan bodies carry registration numbers, and
responses carry parent phone numbers.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from scanalert.exceptions import unexpected_error_body
from scanalert.middleware.request_id import request_id_var

logger = logging.getLogger("scanalert.access")

# Polled by uptime monitors every few seconds
QUIET_PATHS = frozenset({"/", "/health"})


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Access log for the scanner API.

    A failed SMS still returns 500, so scan alerts that never reached a
    parent show up at ERROR level here as well as in the service log.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            # Answered here rather than by Starlette's outermost error
            # middleware, so RequestIDMiddleware still tags the response
            logger.error(
                "%s %s raised %s [%s]",
                request.method, path, type(exc).__name__, request_id_var.get(""),
                exc_info=True,
            )
            response = JSONResponse(status_code=500, content=unexpected_error_body(exc))

        if path in QUIET_PATHS and response.status_code < 500:
            return response

        elapsed_ms = (time.perf_counter() - started) * 1000
        client_ip = request.client.host if request.client else "unknown"
        logger.log(
            level_for_status(response.status_code),
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            request_id_var.get(""),
            client_ip,
            extra={
                "request_id": request_id_var.get(""),
                "status": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
        return response
