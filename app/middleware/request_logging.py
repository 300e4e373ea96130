# =====================================================
# FILE: app/middleware/request_logging.py
# Correlation id and access logging
# =====================================================

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable
import logging
import time
import uuid

from app.utils.log_sanitizer import sanitize_for_logging, sanitize_headers

logger = logging.getLogger("app.http")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Assigns every request an X-Request-ID (kept when the caller sends one)
    and logs method, path, status and duration once the response is ready.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        start_time = time.time()

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"→ {request.method} {request.url.path} "
                f"query={sanitize_for_logging(dict(request.query_params))} "
                f"headers={sanitize_headers(request.headers)} [{request_id}]"
            )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = round((time.time() - start_time) * 1000, 2)
            logger.error(f"{request.method} {request.url.path} 500 {duration_ms}ms - {e} [{request_id}]")
            raise

        duration_ms = round((time.time() - start_time) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id

        client = request.client.host if request.client else "unknown"
        message = f"{request.method} {request.url.path} {response.status_code} {duration_ms}ms - {client} [{request_id}]"
        if response.status_code >= 500:
            logger.error(message)
        elif response.status_code >= 400:
            logger.warning(message)
        else:
            logger.info(message)

        return response
