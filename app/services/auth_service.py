# =====================================================
# FILE: app/services/auth_service.py
# Login, session and organization context handling
# =====================================================

from sqlalchemy.orm import Session, joinedload
from fastapi import HTTPException, status
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List, Tuple
import logging

from app.core.config import settings
from app.core.permissions import ROLE_PRIORITY
from app.core.security import (
    verify_password,
    hash_password,
    generate_session_token,
    hash_token,
)
from app.models.organization import Organization
from app.models.user import (
    User,
    Role,
    Permission,
    RolePermission,
    UserOrganizationRole,
    UserSession,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


def get_active_memberships(db: Session, user_id: int, organization_id: Optional[int] = None) -> List[UserOrganizationRole]:
    """Active role assignments of a user in active organizations"""
    query = (
        db.query(UserOrganizationRole)
        .options(joinedload(UserOrganizationRole.organization), joinedload(UserOrganizationRole.role))
        .join(Organization, Organization.id == UserOrganizationRole.organization_id)
        .filter(
            UserOrganizationRole.user_id == user_id,
            UserOrganizationRole.is_active == True,
            Organization.is_active == True,
        )
    )
    if organization_id is not None:
        query = query.filter(UserOrganizationRole.organization_id == organization_id)
    return query.all()


def role_score(role_code: str) -> int:
    return ROLE_PRIORITY.get(role_code, 0)


def pick_default_membership(memberships: List[UserOrganizationRole]) -> Optional[UserOrganizationRole]:
    """SUPER_ADMIN > ENTITY_ADMIN > LEGAL_MANAGER > everything else"""
    if not memberships:
        return None
    return sorted(memberships, key=lambda m: (-role_score(m.role.code), m.organization_id))[0]


def resolve_access(db: Session, user_id: int, organization_id: Optional[int]) -> Tuple[Optional[str], List[str]]:
    """
    Effective role code and permission codes of a user inside one organization.
    With several roles in the same organization the highest priority role is
    reported and the permissions are merged.
    """
    if organization_id is None:
        return None, []

    memberships = get_active_memberships(db, user_id, organization_id)
    if not memberships:
        return None, []

    primary = pick_default_membership(memberships)
    role_ids = [m.role_id for m in memberships]

    rows = (
        db.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id.in_(role_ids))
        .distinct()
        .all()
    )
    return primary.role.code, sorted(row.code for row in rows)


def serialize_memberships(memberships: List[UserOrganizationRole]) -> List[Dict[str, Any]]:
    return [
        {
            "id": m.organization.id,
            "name": m.organization.name,
            "code": m.organization.code,
            "role": m.role.code,
        }
        for m in memberships
    ]


class AuthService:
    """Credential checks and session lifecycle"""

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> User:
        """
        Validate credentials. Failed attempts are counted on the user row and
        the account is locked for LOCKOUT_MINUTES once MAX_FAILED_LOGINS is reached.
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        now = datetime.utcnow()

        if not user:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

        if user.account_locked_until and user.account_locked_until > now:
            minutes = max(1, int((user.account_locked_until - now).total_seconds() // 60) + 1)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Account is locked. Please try again in {minutes} minutes."
            )

        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")

        if not verify_password(password, user.password_hash):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            if user.failed_login_attempts >= settings.MAX_FAILED_LOGINS:
                user.account_locked_until = now + timedelta(minutes=settings.LOCKOUT_MINUTES)
                user.failed_login_attempts = 0
                logger.warning(f"Account locked after repeated failures: user {user.id}")
            db.commit()
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

        user.failed_login_attempts = 0
        user.account_locked_until = None
        user.last_login_at = now
        return user

    @staticmethod
    def create_session(
        db: Session,
        user: User,
        organization_id: Optional[int],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Tuple[str, UserSession]:
        token = generate_session_token()
        session = UserSession(
            token_hash=hash_token(token),
            user_id=user.id,
            organization_id=organization_id,
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
            expires_at=datetime.utcnow() + timedelta(hours=settings.SESSION_EXPIRE_HOURS),
        )
        db.add(session)
        return token, session

    @staticmethod
    def login(
        db: Session,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Dict[str, Any]:
        user = AuthService.authenticate(db, email, password)

        memberships = get_active_memberships(db, user.id)
        default = pick_default_membership(memberships)
        organization_id = default.organization_id if default else None

        token, session = AuthService.create_session(db, user, organization_id, ip_address, user_agent)
        db.commit()

        logger.info(
            f"User logged in: {user.id} "
            f"(default organization: {default.organization.code if default else 'None'})"
        )

        profile = AuthService.build_profile(db, user, organization_id)
        profile["access_token"] = token
        profile["token_type"] = "bearer"
        profile["expires_at"] = session.expires_at
        return profile

    @staticmethod
    def build_profile(db: Session, user: User, organization_id: Optional[int]) -> Dict[str, Any]:
        memberships = get_active_memberships(db, user.id)
        role_code, permissions = resolve_access(db, user.id, organization_id)
        current = next((m.organization for m in memberships if m.organization_id == organization_id), None)

        return {
            "user": {
                "id": user.id,
                "email": user.email,
                "name": user.name,
                "must_change_password": user.must_change_password,
                "last_login_at": user.last_login_at,
            },
            "organizations": serialize_memberships(memberships),
            "current_organization": (
                {"id": current.id, "name": current.name, "code": current.code} if current else None
            ),
            "role": role_code,
            "permissions": permissions,
        }

    @staticmethod
    def logout(db: Session, session: UserSession) -> None:
        session.revoked_at = datetime.utcnow()
        db.commit()

    @staticmethod
    def switch_organization(db: Session, session: UserSession, organization_id: int) -> Dict[str, Any]:
        memberships = get_active_memberships(db, session.user_id, organization_id)
        if not memberships:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied to this organization"
            )

        previous = session.organization_id
        session.organization_id = organization_id
        db.commit()

        logger.info(f"User {session.user_id} switched organization {previous} -> {organization_id}")
        return AuthService.build_profile(db, session.user, organization_id)

    # =====================================================
    # PASSWORD RESET
    # =====================================================

    @staticmethod
    def create_password_reset(db: Session, email: str) -> Optional[Tuple[User, str]]:
        """
        Store a reset token for an active user. Returns (user, raw_token) or
        None; callers answer identically in both cases.
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not user.is_active:
            return None

        token = generate_session_token()
        user.password_reset_token = hash_token(token)
        user.password_reset_expires = datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
        db.commit()
        return user, token

    @staticmethod
    def reset_password(db: Session, token: str, new_password: str) -> User:
        user = db.query(User).filter(User.password_reset_token == hash_token(token)).first()

        if not user or not user.password_reset_expires or user.password_reset_expires < datetime.utcnow():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired reset token"
            )

        user.password_hash = hash_password(new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        user.must_change_password = False
        user.failed_login_attempts = 0
        user.account_locked_until = None

        # Every existing login ends with a password reset
        db.query(UserSession).filter(
            UserSession.user_id == user.id,
            UserSession.revoked_at.is_(None)
        ).update({UserSession.revoked_at: datetime.utcnow()}, synchronize_session=False)

        db.commit()
        logger.info(f"Password reset completed for user {user.id}")
        return user

    @staticmethod
    def find_session(db: Session, token: str) -> Optional[UserSession]:
        session = (
            db.query(UserSession)
            .options(joinedload(UserSession.user))
            .filter(UserSession.token_hash == hash_token(token))
            .first()
        )
        if not session or session.revoked_at is not None:
            return None
        if session.expires_at < datetime.utcnow():
            return None
        if not session.user or not session.user.is_active:
            return None
        return session


def get_role_by_code(db: Session, code: str) -> Optional[Role]:
    return db.query(Role).filter(Role.code == code).first()
