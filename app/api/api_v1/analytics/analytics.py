# =====================================================
# FILE: app/api/api_v1/analytics/analytics.py
# Dashboard metrics for the current organization
# =====================================================

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.core.database import get_db
from app.core.dependencies import CurrentContext
from app.core.permissions import PermissionCode as P
from app.middleware.rbac_middleware import RBACDependency
from app.services.analytics_service import AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])

# Holders of any of these see the whole organization, everyone else only their own contracts
ORG_WIDE_PERMISSIONS = (
    P.ORG_VIEW, P.ORG_MANAGE,
    P.APPROVAL_LEGAL_VIEW, P.APPROVAL_FINANCE_VIEW,
    P.SYSTEM_AUDIT,
    P.CONTRACT_CREATE, P.CONTRACT_VIEW,
)


def _scope(context: CurrentContext) -> Optional[int]:
    """None for organization-wide figures, else the user whose contracts are counted"""
    if context.is_super_admin or context.can(*ORG_WIDE_PERMISSIONS):
        return None
    return context.user_id


def _failed(action: str, e: Exception) -> HTTPException:
    logger.error(f"❌ Error {action}: {str(e)}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed {action}")


@router.get("/contracts/summary")
async def contracts_summary(
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ANALYTICS_VIEW))
):
    organization_id = context.require_organization()
    try:
        data = AnalyticsService.contracts_summary(db, organization_id, _scope(context))
        return {"success": True, "data": data}
    except Exception as e:
        raise _failed("loading contract summary", e)


@router.get("/contracts/by-status")
async def contracts_by_status(
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ANALYTICS_VIEW))
):
    organization_id = context.require_organization()
    try:
        data = AnalyticsService.contracts_by_status(db, organization_id, _scope(context))
        return {"success": True, "data": data}
    except Exception as e:
        raise _failed("loading contracts by status", e)


@router.get("/contracts/trend")
async def contract_trend(
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ANALYTICS_VIEW))
):
    """Contracts created per month, last six months"""
    organization_id = context.require_organization()
    try:
        data = AnalyticsService.contract_trend(db, organization_id, _scope(context))
        return {"success": True, "data": data}
    except Exception as e:
        raise _failed("loading contract trend", e)


@router.get("/approvals/metrics")
async def approval_metrics(
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ANALYTICS_VIEW))
):
    organization_id = context.require_organization()
    try:
        data = AnalyticsService.approval_metrics(db, organization_id, _scope(context))
        return {"success": True, "data": data}
    except Exception as e:
        raise _failed("loading approval metrics", e)


@router.get("/activity")
async def recent_activity(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ANALYTICS_VIEW))
):
    """Most recently updated contracts"""
    organization_id = context.require_organization()
    try:
        data = AnalyticsService.recent_activity(db, organization_id, limit, _scope(context))
        return {"success": True, "data": data}
    except Exception as e:
        raise _failed("loading recent activity", e)


@router.get("/admin/stats")
async def admin_stats(
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ANALYTICS_VIEW))
):
    if not context.is_super_admin:
        logger.warning(f"User {context.user_id} requested system statistics without SUPER_ADMIN")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="System statistics are restricted to super administrators"
        )
    try:
        return {"success": True, "data": AnalyticsService.admin_stats(db)}
    except Exception as e:
        raise _failed("loading system statistics", e)
