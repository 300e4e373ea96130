# =====================================================
# FILE: app/api/api_v1/admin/admin.py
# Organization, Feature Flag and Role Administration API
# =====================================================

from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, validator
import logging

from app.core.database import get_db
from app.core.dependencies import CurrentContext, get_client_ip
from app.core.permissions import PermissionCode as P, permission_module
from app.middleware.rbac_middleware import RBACDependency
from app.models.organization import Organization
from app.models.user import Role, RolePermission, UserOrganizationRole
from app.services import feature_flags
from app.services.audit_service import AuditActions, AuditService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


# =====================================================
# SCHEMAS
# =====================================================

class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    code: str = Field(..., min_length=2, max_length=20)
    org_type: str = "ENTITY"
    parent_id: Optional[int] = None
    settings: Optional[Dict[str, Any]] = None

    @validator('code')
    def validate_code(cls, v):
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError('Organization code must be alphanumeric')
        return v

    @validator('org_type')
    def validate_org_type(cls, v):
        v = v.upper()
        if v not in ("PARENT", "ENTITY"):
            raise ValueError('Organization type must be PARENT or ENTITY')
        return v


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    parent_id: Optional[int] = None
    is_active: Optional[bool] = None
    settings: Optional[Dict[str, Any]] = None


class FeatureFlagUpdate(BaseModel):
    is_enabled: bool
    config: Optional[Dict[str, Any]] = None


def serialize_organization(org: Organization) -> Dict[str, Any]:
    return {
        "id": org.id,
        "name": org.name,
        "code": org.code,
        "org_type": org.org_type,
        "parent_id": org.parent_id,
        "is_active": org.is_active,
        "settings": org.settings or {},
        "created_at": org.created_at,
    }


def _audit(db: Session, request: Request, context: CurrentContext, action: str,
           organization_id: Optional[int], target_type: str, target_id, details=None):
    AuditService(db).log_action(
        action=action,
        user_id=context.user_id,
        organization_id=organization_id,
        target_type=target_type,
        target_id=target_id,
        metadata=details,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent")
    )


def _get_organization(db: Session, organization_id: int) -> Organization:
    org = db.query(Organization).filter(Organization.id == organization_id).first()
    if not org:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return org


def _check_org_scope(context: CurrentContext, organization_id: int) -> None:
    """Outside SUPER_ADMIN, admins manage only their current organization"""
    if not context.is_super_admin and organization_id != context.organization_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied to this organization")


# =====================================================
# ORGANIZATIONS
# =====================================================

@router.get("/organizations")
async def list_organizations(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ORG_VIEW, P.ORG_MANAGE))
):
    query = db.query(Organization)
    if not context.is_super_admin:
        member_org_ids = db.query(UserOrganizationRole.organization_id).filter(
            UserOrganizationRole.user_id == context.user_id,
            UserOrganizationRole.is_active == True
        )
        query = query.filter(Organization.id.in_(member_org_ids))
    if not include_inactive:
        query = query.filter(Organization.is_active == True)

    organizations = query.order_by(Organization.name.asc()).all()
    return {
        "success": True,
        "data": [serialize_organization(o) for o in organizations],
        "total": len(organizations)
    }


@router.post("/organizations", status_code=status.HTTP_201_CREATED)
async def create_organization(
    payload: OrganizationCreate,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ORG_CREATE))
):
    if db.query(Organization).filter(Organization.code == payload.code).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Organization code {payload.code} already exists"
        )
    if payload.parent_id is not None:
        _get_organization(db, payload.parent_id)

    org = Organization(
        name=payload.name.strip(),
        code=payload.code,
        org_type=payload.org_type,
        parent_id=payload.parent_id,
        settings=payload.settings or {},
        is_active=True
    )
    db.add(org)
    db.commit()

    _audit(db, request, context, AuditActions.ORG_CREATED, org.id, "organization", org.id,
           {"code": org.code, "org_type": org.org_type})
    logger.info(f"Organization created: {org.code} by user {context.user_id}")

    return {"success": True, "message": "Organization created successfully", "data": serialize_organization(org)}


@router.put("/organizations/{organization_id}")
async def update_organization(
    organization_id: int,
    payload: OrganizationUpdate,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ORG_EDIT))
):
    _check_org_scope(context, organization_id)
    org = _get_organization(db, organization_id)

    changes = payload.dict(exclude_unset=True)
    if changes.get("parent_id") is not None:
        if changes["parent_id"] == org.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="An organization cannot be its own parent")
        _get_organization(db, changes["parent_id"])

    for field, value in changes.items():
        setattr(org, field, value)
    db.commit()

    _audit(db, request, context, AuditActions.ORG_UPDATED, org.id, "organization", org.id, changes)
    return {"success": True, "message": "Organization updated successfully", "data": serialize_organization(org)}


@router.delete("/organizations/{organization_id}")
async def deactivate_organization(
    organization_id: int,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ORG_MANAGE))
):
    """Organizations are deactivated, never removed"""
    _check_org_scope(context, organization_id)
    org = _get_organization(db, organization_id)
    org.is_active = False
    db.commit()

    _audit(db, request, context, AuditActions.ORG_UPDATED, org.id, "organization", org.id, {"is_active": False})
    return {"success": True, "message": "Organization deactivated"}


# =====================================================
# FEATURE FLAGS
# =====================================================

@router.get("/organizations/{organization_id}/features")
async def list_features(
    organization_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ADMIN_CONFIG_MODULES))
):
    _check_org_scope(context, organization_id)
    _get_organization(db, organization_id)
    return {"success": True, "data": feature_flags.get_all_flags(db, organization_id)}


@router.put("/organizations/{organization_id}/features/{feature_code}")
async def update_feature(
    organization_id: int,
    feature_code: str,
    payload: FeatureFlagUpdate,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ADMIN_CONFIG_MODULES))
):
    _check_org_scope(context, organization_id)
    _get_organization(db, organization_id)
    flag = feature_flags.update_flag(db, organization_id, feature_code.upper(), payload.is_enabled, payload.config)

    _audit(db, request, context, AuditActions.FEATURE_TOGGLED, organization_id, "feature", flag.feature_code,
           {"feature_code": flag.feature_code, "is_enabled": flag.is_enabled})

    return {
        "success": True,
        "message": f"Feature {flag.feature_code} {'enabled' if flag.is_enabled else 'disabled'}",
        "data": {"code": flag.feature_code, "is_enabled": flag.is_enabled, "config": flag.config}
    }


# =====================================================
# ROLES
# =====================================================

@router.get("/roles")
async def list_roles(
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.ROLE_VIEW, P.ROLE_MANAGE))
):
    roles = (
        db.query(Role)
        .options(selectinload(Role.permissions).selectinload(RolePermission.permission))
        .order_by(Role.id.asc())
        .all()
    )

    data: List[Dict[str, Any]] = []
    for role in roles:
        codes = sorted(rp.permission.code for rp in role.permissions if rp.permission)
        grouped: Dict[str, List[str]] = {}
        for code in codes:
            grouped.setdefault(permission_module(code), []).append(code)
        data.append({
            "id": role.id,
            "code": role.code,
            "name": role.name,
            "description": role.description,
            "is_system": role.is_system,
            "permissions": codes,
            "permissions_by_module": grouped,
        })

    return {"success": True, "data": data}
