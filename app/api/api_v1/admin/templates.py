# =====================================================
# FILE: app/api/api_v1/admin/templates.py
# Template administration (create / update / publish)
# =====================================================

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session, selectinload
from typing import Optional
import logging

from app.core.database import get_db
from app.core.dependencies import CurrentContext, get_client_ip
from app.core.permissions import PermissionCode as P
from app.middleware.rbac_middleware import RBACDependency
from app.models.template import Template
from app.services.audit_service import AuditActions, AuditService
from app.services.template_service import TemplateService
from app.api.api_v1.templates.schemas import (
    TemplateAccessRequest,
    TemplateCreateRequest,
    TemplateResponse,
    TemplateUpdateRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/admin/templates", tags=["Admin", "templates"])


def _serialize(template: Template):
    data = TemplateResponse.model_validate(template).model_dump()
    data["organization_ids"] = [
        link.organization_id for link in template.organization_access if link.is_enabled
    ]
    return data


def _audit(db: Session, request: Request, context: CurrentContext, action: str, template: Template, details=None):
    AuditService(db).log_action(
        action=action,
        user_id=context.user_id,
        organization_id=context.organization_id,
        target_type="template",
        target_id=template.id,
        metadata=details,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent")
    )


@router.get("")
async def list_all_templates(
    include_inactive: bool = Query(False),
    category: Optional[str] = Query(None, max_length=50),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ADMIN_TEMPLATE_GOVERN))
):
    """Every template regardless of organization access"""
    query = db.query(Template).options(
        selectinload(Template.annexures), selectinload(Template.organization_access)
    )
    if not include_inactive:
        query = query.filter(Template.is_active == True)
    if category:
        query = query.filter(Template.category == category)

    templates = query.order_by(Template.name.asc()).all()
    return {"success": True, "data": [_serialize(t) for t in templates], "total": len(templates)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_template(
    payload: TemplateCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ADMIN_TEMPLATE_GOVERN))
):
    template = TemplateService.create(db, context.user_id, context.organization_id, payload.model_dump())
    _audit(db, request, context, AuditActions.TEMPLATE_CREATED, template,
           {"code": template.code, "is_global": template.is_global})
    return {"success": True, "message": "Template created successfully", "template": _serialize(template)}


@router.put("/{template_id}")
async def update_template(
    template_id: int,
    payload: TemplateUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ADMIN_TEMPLATE_GOVERN))
):
    changes = payload.model_dump(exclude_unset=True)
    template = TemplateService.update(db, template_id, changes)
    _audit(db, request, context, AuditActions.TEMPLATE_UPDATED, template, {"fields": sorted(changes.keys())})
    return {"success": True, "message": "Template updated successfully", "template": _serialize(template)}


@router.put("/{template_id}/access")
async def set_template_access(
    template_id: int,
    payload: TemplateAccessRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ADMIN_TEMPLATE_GOVERN))
):
    """Enable or disable a template for one organization"""
    link = TemplateService.set_enabled_for_organization(db, template_id, payload.organization_id, payload.is_enabled)
    template = TemplateService.get_by_id(db, template_id)
    _audit(db, request, context, AuditActions.TEMPLATE_UPDATED, template,
           {"organization_id": link.organization_id, "is_enabled": link.is_enabled})
    return {
        "success": True,
        "message": f"Template {'enabled' if link.is_enabled else 'disabled'} for organization {link.organization_id}"
    }


@router.delete("/{template_id}")
async def deactivate_template(
    template_id: int,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ADMIN_TEMPLATE_GOVERN))
):
    template = TemplateService.deactivate(db, template_id)
    _audit(db, request, context, AuditActions.TEMPLATE_UPDATED, template, {"is_active": False})
    return {"success": True, "message": "Template deactivated"}
