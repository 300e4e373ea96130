"""
Templates API Router
File: app/api/api_v1/templates/templates.py

Templates available to the current organization
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.core.database import get_db
from app.core.dependencies import CurrentContext
from app.core.permissions import PermissionCode as P
from app.middleware.rbac_middleware import RBACDependency
from app.services.template_service import TemplateService, render_template
from app.utils.sanitize import sanitize_contract_content
from app.api.api_v1.templates.schemas import PreviewRequest, TemplateResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/templates", tags=["templates"])


def _available_template(db: Session, template_id: int, context: CurrentContext):
    template = TemplateService.get_by_id(db, template_id)
    if not context.is_super_admin and not TemplateService.is_available(db, template, context.require_organization()):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return template


@router.get("")
async def list_templates(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=255),
    category: Optional[str] = Query(None, max_length=50),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.TEMPLATE_VIEW))
):
    """Global templates plus those enabled for the organization"""
    result = TemplateService.list_for_organization(
        db, context.require_organization(), page=page, limit=limit, search=search, category=category
    )
    return {
        "success": True,
        "data": [TemplateResponse.model_validate(t).model_dump() for t in result["data"]],
        "meta": result["meta"]
    }


@router.get("/{template_id}")
async def get_template(
    template_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.TEMPLATE_VIEW))
):
    template = _available_template(db, template_id, context)
    return {"success": True, "template": TemplateResponse.model_validate(template).model_dump()}


@router.get("/{template_id}/variables")
async def get_template_variables(
    template_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.TEMPLATE_VIEW))
):
    """Placeholders of the main agreement then the annexures, each key once"""
    _available_template(db, template_id, context)
    return {"success": True, **TemplateService.extract_variables(db, template_id)}


@router.post("/{template_id}/preview")
async def preview_template(
    template_id: int,
    payload: PreviewRequest,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.TEMPLATE_VIEW))
):
    template = _available_template(db, template_id, context)
    return {
        "success": True,
        "content": sanitize_contract_content(render_template(template.base_content, payload.values)),
        "annexures": [
            {
                "name": annexure.name,
                "title": annexure.title,
                "content": sanitize_contract_content(render_template(annexure.content, payload.values))
            }
            for annexure in template.annexures
        ]
    }
