# =====================================================
# FILE: app/api/api_v1/reports/audit_trail.py
# Organization audit trail: listing and export
# =====================================================

from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from sqlalchemy import distinct
from typing import Optional
from datetime import datetime
from io import StringIO
import csv
import json
import logging

from app.core.database import get_db
from app.core.dependencies import CurrentContext
from app.core.permissions import PermissionCode as P
from app.middleware.rbac_middleware import RBACDependency
from app.models.audit import AuditLog
from app.services.audit_service import AuditService
from app.schemas.audit_trail import (
    AuditLogListResponse,
    AuditModule,
    ExportFormat,
    to_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/audit", tags=["audit-trail"])

EXPORT_LIMIT = 10000


# =====================================================
# GET AUDIT LOGS WITH FILTERS
# =====================================================

@router.get("", response_model=AuditLogListResponse)
async def get_audit_logs(
    module: Optional[AuditModule] = Query(None, description="Filter by module"),
    action: Optional[str] = Query(None, description="Filter by action"),
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    date_from: Optional[datetime] = Query(None, alias="from", description="Start date filter"),
    date_to: Optional[datetime] = Query(None, alias="to", description="End date filter"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.SYSTEM_AUDIT))
):
    """
    Audit logs of the current organization, newest first
    """
    logs, total = AuditService(db).get_by_organization(
        context.require_organization(),
        module=module.value if module else None,
        action=action,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        skip=(page - 1) * page_size,
        limit=page_size
    )

    logger.info(f" Retrieved {len(logs)} audit logs for user {context.user_id}")

    return {
        "success": True,
        "logs": [to_response(entry) for entry in logs],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size
    }


# =====================================================
# EXPORT
# =====================================================

@router.get("/export")
async def export_audit_logs(
    format: ExportFormat = Query(ExportFormat.CSV, description="Export format"),
    module: Optional[AuditModule] = Query(None),
    action: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.SYSTEM_AUDIT))
):
    """
    Export audit logs in CSV or JSON format
    """
    try:
        logs, _ = AuditService(db).get_by_organization(
            context.require_organization(),
            module=module.value if module else None,
            action=action,
            date_from=date_from,
            date_to=date_to,
            limit=EXPORT_LIMIT
        )
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')

        if format == ExportFormat.CSV:
            output = StringIO()
            writer = csv.writer(output)

            writer.writerow([
                "ID", "Timestamp", "Action", "Module", "User", "Contract ID",
                "Target", "IP Address", "Details"
            ])

            for log in logs:
                writer.writerow([
                    log.id,
                    log.created_at.isoformat() if log.created_at else "",
                    log.action,
                    log.module or "",
                    log.user.email if log.user else "System",
                    log.contract_id or "",
                    f"{log.target_type or ''}:{log.target_id or ''}",
                    log.ip_address or "",
                    json.dumps(log.details, default=str) if log.details else ""
                ])

            output.seek(0)
            return StreamingResponse(
                iter([output.getvalue()]),
                media_type="text/csv",
                headers={"Content-Disposition": f"attachment; filename=audit_trail_{timestamp}.csv"}
            )

        json_data = json.dumps([to_response(log).model_dump(mode="json") for log in logs], indent=2)
        return StreamingResponse(
            iter([json_data]),
            media_type="application/json",
            headers={"Content-Disposition": f"attachment; filename=audit_trail_{timestamp}.json"}
        )

    except Exception as e:
        logger.error(f" Error exporting audit logs: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error exporting audit logs"
        )


# =====================================================
# GET AVAILABLE ACTIONS
# =====================================================

@router.get("/actions")
async def get_actions(
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.SYSTEM_AUDIT))
):
    """
    Distinct actions recorded for the organization, for filtering
    """
    rows = (
        db.query(distinct(AuditLog.action))
        .filter(AuditLog.organization_id == context.require_organization())
        .order_by(AuditLog.action)
        .all()
    )
    return {"success": True, "actions": [row[0] for row in rows]}
