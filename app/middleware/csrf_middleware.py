# =====================================================
# FILE: app/middleware/csrf_middleware.py
# Double-submit cookie CSRF protection
# =====================================================

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from typing import Callable, Iterable, Optional
import logging

from app.core.config import settings
from app.core.security import generate_csrf_token, is_valid_csrf_token

logger = logging.getLogger(__name__)

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
CSRF_COOKIE_MAX_AGE = 24 * 60 * 60


def set_csrf_cookie(response, token: str) -> None:
    response.set_cookie(
        key=settings.CSRF_COOKIE_NAME,
        value=token,
        max_age=CSRF_COOKIE_MAX_AGE,
        httponly=False,  # read by the frontend
        secure=settings.COOKIE_SECURE,
        samesite="strict",
        path="/"
    )


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Safe methods make sure an XSRF-TOKEN cookie exists. Every other method
    must echo that cookie in the X-CSRF-Token header.
    """

    def __init__(self, app: ASGIApp, exempt_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.exempt_paths = list(exempt_paths if exempt_paths is not None else settings.CSRF_EXEMPT_PATHS)

    async def dispatch(self, request: Request, call_next: Callable):
        cookie_token = request.cookies.get(settings.CSRF_COOKIE_NAME)

        if request.method in SAFE_METHODS:
            response = await call_next(request)
            if not is_valid_csrf_token(cookie_token or "") and not self._sets_csrf_cookie(response):
                set_csrf_cookie(response, generate_csrf_token())
            return response

        if self._is_exempt(request.url.path):
            return await call_next(request)

        header_token = request.headers.get(settings.CSRF_HEADER_NAME)

        if not cookie_token or not header_token:
            return self._reject(
                request,
                "CSRF token missing. Please include X-CSRF-Token header with the value from XSRF-TOKEN cookie."
            )
        if cookie_token != header_token:
            return self._reject(request, "CSRF token mismatch. Possible CSRF attack detected.")
        if not is_valid_csrf_token(header_token):
            return self._reject(request, "Invalid CSRF token format.")

        return await call_next(request)

    def _is_exempt(self, path: str) -> bool:
        return any(path.startswith(exempt) for exempt in self.exempt_paths)

    def _sets_csrf_cookie(self, response) -> bool:
        prefix = f"{settings.CSRF_COOKIE_NAME}="
        return any(value.startswith(prefix) for value in response.headers.getlist("set-cookie"))

    def _reject(self, request: Request, detail: str) -> JSONResponse:
        logger.warning(f" CSRF check failed for {request.method} {request.url.path}: {detail}")
        return JSONResponse(
            status_code=403,
            content={
                "success": False,
                "detail": detail,
                "status_code": 403,
                "path": request.url.path,
                "request_id": getattr(request.state, "request_id", None),
            }
        )
