# =====================================================
# FILE: app/core/dependencies.py
# Authentication dependencies shared by every router
# =====================================================

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from app.core.config import settings
from app.core.database import get_db
from app.core.permissions import RoleCode, has_permission
from app.models.user import User, UserSession
from app.services.auth_service import AuthService, resolve_access

logger = logging.getLogger(__name__)


class CurrentContext:
    """Authenticated user together with the organization the session points at"""

    def __init__(
        self,
        user: User,
        session: UserSession,
        organization_id: Optional[int],
        role_code: Optional[str],
        permissions: List[str]
    ):
        self.user = user
        self.session = session
        self.organization_id = organization_id
        self.role_code = role_code
        self.permissions = permissions

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def is_super_admin(self) -> bool:
        return self.role_code == RoleCode.SUPER_ADMIN.value

    def can(self, *permissions) -> bool:
        return has_permission(self.permissions, *permissions, role_code=self.role_code)

    def require_organization(self) -> int:
        if self.organization_id is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No organization selected"
            )
        return self.organization_id


def extract_session_token(request: Request) -> Optional[str]:
    """Session cookie first, then an Authorization: Bearer header"""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token

    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def get_current_session(request: Request, db: Session = Depends(get_db)) -> UserSession:
    token = extract_session_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    session = AuthService.find_session(db, token)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired or invalid"
        )
    return session


def get_current_context(
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session)
) -> CurrentContext:
    role_code, permissions = resolve_access(db, session.user_id, session.organization_id)

    context = CurrentContext(
        user=session.user,
        session=session,
        organization_id=session.organization_id if role_code else None,
        role_code=role_code,
        permissions=permissions,
    )

    # Read by the audit middleware after the response
    request.state.user_id = context.user_id
    request.state.organization_id = context.organization_id
    return context


def get_current_user(context: CurrentContext = Depends(get_current_context)) -> User:
    return context.user


def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
