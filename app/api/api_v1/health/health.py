# =====================================================
# FILE: app/api/api_v1/health/health.py
# Health check (also bootstraps the CSRF cookie)
# =====================================================

from fastapi import APIRouter
from datetime import datetime
import logging

from app.core.config import settings
from app.core.database import test_connection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
async def health_check():
    """
    Liveness plus database reachability. Being a GET, the CSRF middleware
    attaches the XSRF-TOKEN cookie to this response when the client has none.
    """
    database_ok = test_connection()
    return {
        "success": True,
        "status": "healthy" if database_ok else "degraded",
        "service": settings.APP_NAME,
        "database": "connected" if database_ok else "unavailable",
        "timestamp": datetime.utcnow().isoformat()
    }
