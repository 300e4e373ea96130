# =====================================================
# FILE: app/middleware/audit_middleware.py
# Middleware for Automatic Audit Logging of API calls
# =====================================================

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from typing import Callable, Optional, Tuple
import time
import logging

from app.core.database import SessionLocal
from app.services.audit_service import AuditService, AuditActions

logger = logging.getLogger(__name__)


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to automatically log successful state-changing API requests
    to the audit trail
    """

    # Endpoints to exclude from logging
    EXCLUDED_ENDPOINTS = [
        "/api/v1/health",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/api/v1/auth/login",
        "/api/v1/auth/forgot-password",
        "/api/v1/auth/reset-password",
        "/api/v1/audit",  # Don't log audit trail queries
    ]

    ENTITY_SEGMENTS = {
        "contracts": "contract",
        "approvals": "approval",
        "templates": "template",
        "users": "user",
        "organizations": "organization",
        "notifications": "notification",
        "features": "feature",
    }

    def __init__(self, app: ASGIApp, session_factory=SessionLocal):
        super().__init__(app)
        self.session_factory = session_factory

    async def dispatch(self, request: Request, call_next: Callable):
        start_time = time.time()
        should_log = self._should_log_request(request)

        response = await call_next(request)

        if should_log and response.status_code < 400:
            try:
                self._log_request(request, response.status_code, start_time)
            except Exception as e:
                logger.error(f"❌ Failed to log audit trail: {str(e)}")

        return response

    def _should_log_request(self, request: Request) -> bool:
        path = request.url.path
        if not path.startswith("/api/"):
            return False
        for excluded in self.EXCLUDED_ENDPOINTS:
            if path.startswith(excluded):
                return False
        return request.method in ("POST", "PUT", "PATCH", "DELETE")

    def _log_request(self, request: Request, status_code: int, start_time: float):
        entity_type, entity_id = self._extract_entity_info(request.url.path)

        db = self.session_factory()
        try:
            AuditService(db).log_action(
                action=AuditActions.API_REQUEST,
                user_id=getattr(request.state, "user_id", None),
                organization_id=getattr(request.state, "organization_id", None),
                contract_id=int(entity_id) if entity_type == "contract" and entity_id else None,
                module="SYSTEM",
                target_type=entity_type,
                target_id=entity_id,
                metadata={
                    "method": request.method,
                    "path": request.url.path,
                    "query_params": dict(request.query_params),
                    "status_code": status_code,
                    "response_time_ms": round((time.time() - start_time) * 1000, 2),
                    "request_id": getattr(request.state, "request_id", None),
                },
                ip_address=self._get_client_ip(request),
                user_agent=request.headers.get("user-agent")
            )
        finally:
            db.close()

    def _extract_entity_info(self, path: str) -> Tuple[str, Optional[str]]:
        """Entity type from the first known path segment, id from the segment after it"""
        parts = [p for p in path.split("/") if p]
        for index, part in enumerate(parts):
            if part in self.ENTITY_SEGMENTS:
                entity_id = None
                if index + 1 < len(parts) and parts[index + 1].isdigit():
                    entity_id = parts[index + 1]
                return self.ENTITY_SEGMENTS[part], entity_id
        return "unknown", None

    def _get_client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"
