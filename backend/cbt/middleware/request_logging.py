"""
Per-request access logging with request id correlation.
"""
import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from cbt.core.logging_config import request_id_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request and its response status with a correlation id.

    The id is taken from ``X-Request-ID`` when the client sends one, set on
    ``request_id_context`` for the duration of the request and echoed back in
    the response headers. Bodies are never logged: they carry student answers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_context.set(request_id)
        started = time.perf_counter()
        fields = {
            "method": request.method,
            "path": request.url.path,
            "client_host": request.client.host if request.client else "unknown",
        }

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            fields["status_code"] = response.status_code
            fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            logger.log(
                _level_for(response.status_code),
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra=fields,
            )
            return response
        finally:
            request_id_context.reset(token)
