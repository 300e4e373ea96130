# =====================================================
# FILE: app/api/api_v1/users/user_management.py
# User Management API Endpoints (current organization)
# =====================================================

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Request, Query
from sqlalchemy.orm import Session, joinedload
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, validator
import logging

from app.core.database import get_db
from app.core.dependencies import CurrentContext, get_client_ip
from app.core.email import send_welcome_email
from app.core.permissions import PermissionCode as P, RoleCode
from app.core.security import generate_temporary_password, hash_password
from app.middleware.rbac_middleware import RBACDependency
from app.models.user import User, UserOrganizationRole, UserSession
from app.services.audit_service import AuditActions, log_user_action
from app.services.auth_service import get_role_by_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])

# =====================================================
# PYDANTIC SCHEMAS
# =====================================================

class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    role_code: str
    send_welcome_email: bool = True

    @validator('email')
    def normalize_email(cls, v):
        return v.lower()

    @validator('role_code')
    def validate_role_code(cls, v):
        return v.strip().upper()


class RoleAssignment(BaseModel):
    role_code: str

    @validator('role_code')
    def validate_role_code(cls, v):
        return v.strip().upper()


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    phone: Optional[str] = None
    is_active: bool
    must_change_password: bool
    last_login_at: Optional[datetime] = None
    roles: List[str] = []


# =====================================================
# HELPERS
# =====================================================

def _memberships(db: Session, user_id: int, organization_id: int) -> List[UserOrganizationRole]:
    return (
        db.query(UserOrganizationRole)
        .options(joinedload(UserOrganizationRole.role))
        .filter(
            UserOrganizationRole.user_id == user_id,
            UserOrganizationRole.organization_id == organization_id
        )
        .all()
    )


def _to_response(user: User, memberships: List[UserOrganizationRole]) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        phone=user.phone,
        is_active=user.is_active,
        must_change_password=user.must_change_password,
        last_login_at=user.last_login_at,
        roles=sorted(m.role.code for m in memberships if m.is_active),
    )


def _get_member(db: Session, user_id: int, organization_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not _memberships(db, user_id, organization_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found in this organization")
    return user


def _resolve_role(db: Session, role_code: str, context: CurrentContext):
    role = get_role_by_code(db, role_code)
    if not role:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown role: {role_code}")
    if role.code == RoleCode.SUPER_ADMIN.value and not context.is_super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only a Super Admin can grant SUPER_ADMIN")
    return role


def _grant(db: Session, user: User, role, organization_id: int) -> bool:
    """Returns False when the user already held the role"""
    existing = db.query(UserOrganizationRole).filter(
        UserOrganizationRole.user_id == user.id,
        UserOrganizationRole.organization_id == organization_id,
        UserOrganizationRole.role_id == role.id
    ).first()
    if existing:
        if existing.is_active:
            return False
        existing.is_active = True
        return True
    db.add(UserOrganizationRole(user_id=user.id, organization_id=organization_id, role_id=role.id, is_active=True))
    return True


# =====================================================
# LIST / GET
# =====================================================

@router.get("")
async def list_users(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.USER_VIEW, P.USER_MANAGE))
):
    organization_id = context.require_organization()
    memberships = (
        db.query(UserOrganizationRole)
        .options(joinedload(UserOrganizationRole.user), joinedload(UserOrganizationRole.role))
        .filter(UserOrganizationRole.organization_id == organization_id)
        .all()
    )

    by_user = {}
    for m in memberships:
        by_user.setdefault(m.user_id, (m.user, []))[1].append(m)

    users = [
        _to_response(user, user_memberships)
        for user, user_memberships in by_user.values()
        if include_inactive or (user.is_active and any(m.is_active for m in user_memberships))
    ]
    users.sort(key=lambda u: u.name.lower())
    return {"success": True, "users": users, "total": len(users)}


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.USER_VIEW, P.USER_MANAGE))
):
    organization_id = context.require_organization()
    user = _get_member(db, user_id, organization_id)
    return _to_response(user, _memberships(db, user.id, organization_id))


# =====================================================
# CREATE
# =====================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.USER_MANAGE))
):
    """
    Create an account with a temporary password and a role in the current
    organization. An existing account only receives the role.
    """
    organization_id = context.require_organization()
    role = _resolve_role(db, payload.role_code, context)

    user = db.query(User).filter(User.email == payload.email).first()
    temporary_password = None

    if user:
        if _memberships(db, user.id, organization_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already belongs to this organization")
    else:
        temporary_password = generate_temporary_password()
        user = User(
            email=payload.email,
            name=payload.name.strip(),
            phone=payload.phone,
            password_hash=hash_password(temporary_password),
            is_active=True,
            must_change_password=True
        )
        db.add(user)
        db.flush()

    _grant(db, user, role, organization_id)
    db.commit()

    if temporary_password and payload.send_welcome_email:
        background_tasks.add_task(send_welcome_email, user.email, user.name, temporary_password)

    log_user_action(
        db, AuditActions.USER_CREATED, context.user_id,
        organization_id=organization_id,
        target_id=user.id,
        details={"email": user.email, "role": role.code, "new_account": temporary_password is not None},
        ip_address=get_client_ip(request)
    )
    logger.info(f"✅ User {user.id} added to organization {organization_id} as {role.code}")

    return {
        "success": True,
        "message": "User created successfully" if temporary_password else "Existing user added to organization",
        "user": _to_response(user, _memberships(db, user.id, organization_id))
    }


# =====================================================
# ROLES
# =====================================================

@router.post("/{user_id}/roles")
async def assign_role(
    user_id: int,
    payload: RoleAssignment,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.USER_MANAGE))
):
    organization_id = context.require_organization()
    user = _get_member(db, user_id, organization_id)
    role = _resolve_role(db, payload.role_code, context)

    if not _grant(db, user, role, organization_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"User already has role {role.code}")
    db.commit()

    log_user_action(
        db, AuditActions.ROLE_ASSIGNED, context.user_id,
        organization_id=organization_id, target_id=user.id,
        details={"role": role.code}, ip_address=get_client_ip(request)
    )
    return {"success": True, "user": _to_response(user, _memberships(db, user.id, organization_id))}


@router.delete("/{user_id}/roles/{role_code}")
async def remove_role(
    user_id: int,
    role_code: str,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.USER_MANAGE))
):
    organization_id = context.require_organization()
    user = _get_member(db, user_id, organization_id)

    membership = next(
        (m for m in _memberships(db, user.id, organization_id) if m.role.code == role_code.upper() and m.is_active),
        None
    )
    if not membership:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role assignment not found")
    if user.id == context.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot remove your own role")

    membership.is_active = False
    db.commit()

    log_user_action(
        db, AuditActions.ROLE_REMOVED, context.user_id,
        organization_id=organization_id, target_id=user.id,
        details={"role": membership.role.code}, ip_address=get_client_ip(request)
    )
    return {"success": True, "user": _to_response(user, _memberships(db, user.id, organization_id))}


# =====================================================
# ACTIVATE / DEACTIVATE
# =====================================================

@router.post("/{user_id}/deactivate")
async def deactivate_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.USER_MANAGE))
):
    """Disable the account and end its sessions"""
    organization_id = context.require_organization()
    if user_id == context.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot deactivate your own account")

    user = _get_member(db, user_id, organization_id)
    user.is_active = False
    db.query(UserSession).filter(
        UserSession.user_id == user.id,
        UserSession.revoked_at.is_(None)
    ).update({UserSession.revoked_at: datetime.utcnow()}, synchronize_session=False)
    db.commit()

    log_user_action(
        db, AuditActions.USER_DEACTIVATED, context.user_id,
        organization_id=organization_id, target_id=user.id,
        details={"email": user.email}, ip_address=get_client_ip(request)
    )
    return {"success": True, "message": "User deactivated"}


@router.post("/{user_id}/activate")
async def activate_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.USER_MANAGE))
):
    organization_id = context.require_organization()
    user = _get_member(db, user_id, organization_id)
    user.is_active = True
    user.failed_login_attempts = 0
    user.account_locked_until = None
    db.commit()

    log_user_action(
        db, AuditActions.USER_UPDATED, context.user_id,
        organization_id=organization_id, target_id=user.id,
        details={"is_active": True}, ip_address=get_client_ip(request)
    )
    return {"success": True, "message": "User activated"}
