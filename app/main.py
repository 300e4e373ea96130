# =====================================================
# FILE: app/main.py
# CLM Platform backend API entrypoint
# =====================================================

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import asyncio
import logging

from app.core.config import settings
from app.core.database import init_db
from app.middleware.audit_middleware import AuditLoggingMiddleware
from app.middleware.csrf_middleware import CSRFMiddleware
from app.middleware.request_logging import RequestLoggingMiddleware
from app.services.scheduler_service import scheduler, setup_scheduler

from app.api.api_v1.admin import admin, templates as admin_templates
from app.api.api_v1 import approvals
from app.api.api_v1.analytics import analytics
from app.api.api_v1.auth import auth
from app.api.api_v1.contracts import contracts
from app.api.api_v1.health import health
from app.api.api_v1.notifications import notifications
from app.api.api_v1.reports import audit_trail
from app.api.api_v1.search import search
from app.api.api_v1.templates import templates
from app.api.api_v1.users import user_management

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _error_body(request: Request, status_code: int, detail) -> dict:
    return {
        "success": False,
        "detail": detail,
        "status_code": status_code,
        "path": request.url.path,
        "request_id": getattr(request.state, "request_id", None),
    }


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, exc.detail),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(part) for part in err.get("loc", [])[1:]), "message": err.get("msg")}
            for err in exc.errors()
        ]
        body = _error_body(request, 422, "Validation failed")
        body["errors"] = errors
        return JSONResponse(status_code=422, content=body)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content=_error_body(request, 500, "Internal server error"))


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Contract Lifecycle Management backend API",
        version="1.0.0"
    )

    # ---- MIDDLEWARE (last added runs first) ----
    app.add_middleware(AuditLoggingMiddleware)
    if settings.CSRF_ENABLED:
        app.add_middleware(CSRFMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    register_exception_handlers(app)

    # ---- STARTUP / SHUTDOWN ----
    @app.on_event("startup")
    async def on_startup():
        logger.info(f"🚀 Starting {settings.APP_NAME}")
        init_db()
        if settings.SCHEDULER_ENABLED:
            setup_scheduler()
            app.state.scheduler_task = asyncio.create_task(scheduler.start())

    @app.on_event("shutdown")
    async def on_shutdown():
        scheduler.stop()
        task = getattr(app.state, "scheduler_task", None)
        if task:
            task.cancel()

    # ---- ROUTERS ----
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(contracts.router)
    app.include_router(approvals.router)
    app.include_router(templates.router)
    app.include_router(notifications.router)
    app.include_router(audit_trail.router)
    app.include_router(analytics.router)
    app.include_router(search.router)
    app.include_router(user_management.router)
    app.include_router(admin.router)
    app.include_router(admin_templates.router)

    @app.get("/", tags=["system"])
    async def root():
        return {"status": "running", "api": settings.APP_NAME}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
