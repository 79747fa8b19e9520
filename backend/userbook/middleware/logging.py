"""
Userbook Backend - Request Logging Middleware
=============================================

What:  One access log line per request: method, path, status, duration,
       request id and client address. Requests addressed to one user or one
       asset also carry `user=<id>` or `asset=<filename>`, so every line for a
       record can be found with a single search.
How:   Measures time around call_next; log level follows the status class
       (5xx ERROR, 4xx WARNING, else INFO).

Request bodies are never logged: forms carry personal data and uploads are
binary.
"""

import logging
import re
import time
from typing import Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from userbook.middleware.request_id import request_id_var

logger = logging.getLogger("userbook.access")

_USER_PATH = re.compile(r"^/api/users/(\d+)/?$")
_ASSET_PATH = re.compile(r"^/uploads/([^/]+)$")


def _subject(path: str) -> Tuple[Optional[int], Optional[str]]:
    """(user id, asset filename) addressed by the path, either may be None."""
    match = _USER_PATH.match(path)
    if match:
        return int(match.group(1)), None
    match = _ASSET_PATH.match(path)
    if match:
        return None, match.group(1)
    return None, None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each HTTP request with its outcome. /health is skipped."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path
        user_id, asset = _subject(path)
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        if user_id is not None:
            subject = f" user={user_id}"
        elif asset is not None:
            subject = f" asset={asset}"
        else:
            subject = ""

        logger.log(
            log_level,
            "%s %s %d %.1fms%s [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            subject,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_id": user_id,
                "asset": asset,
            },
        )
        return response
