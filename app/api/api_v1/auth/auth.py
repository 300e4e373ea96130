# =====================================================
# File: app/api/api_v1/auth/auth.py
# Login / logout / organization context / password reset
# =====================================================

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session
import logging

from app.core.config import settings
from app.core.database import get_db
from app.core.dependencies import (
    CurrentContext,
    get_client_ip,
    get_current_context,
    get_current_session,
)
from app.core.email import send_password_reset_email
from app.core.security import generate_csrf_token, is_valid_csrf_token
from app.middleware.csrf_middleware import set_csrf_cookie
from app.models.user import UserSession
from app.services.audit_service import AuditActions, log_user_action
from app.services.auth_service import AuthService
from app.api.api_v1.auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    ResetPasswordRequest,
    SwitchOrganizationRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["authentication"])

FORGOT_PASSWORD_MESSAGE = "If an account exists for this email, a password reset link has been sent."


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_EXPIRE_HOURS * 3600,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        path="/"
    )


# =====================================================
# LOGIN / LOGOUT
# =====================================================

@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Validate credentials, open a session in the highest priority organization
    and return the profile together with the session token
    """
    ip_address = get_client_ip(request)
    profile = AuthService.login(
        db, payload.email, payload.password,
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent")
    )

    _set_session_cookie(response, profile["access_token"])

    current = profile.get("current_organization")
    log_user_action(
        db, AuditActions.USER_LOGIN, profile["user"]["id"],
        organization_id=current["id"] if current else None,
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent")
    )

    logger.info(f"✅ Login successful: user {profile['user']['id']}")
    return profile


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db)
):
    """Revoke the current session and clear the session cookie"""
    try:
        AuthService.logout(db, session)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Logout error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Logout failed"
        )

    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path="/")
    log_user_action(
        db, AuditActions.USER_LOGOUT, session.user_id,
        organization_id=session.organization_id,
        ip_address=get_client_ip(request)
    )

    return {
        "success": True,
        "message": "Logged out successfully",
        "redirect_url": "/login"
    }


# =====================================================
# PROFILE / ORGANIZATION CONTEXT
# =====================================================

@router.get("/me", response_model=ProfileResponse)
async def me(
    context: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db)
):
    return AuthService.build_profile(db, context.user, context.organization_id)


@router.post("/switch-org", response_model=ProfileResponse)
async def switch_organization(
    payload: SwitchOrganizationRequest,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db)
):
    previous = session.organization_id
    profile = AuthService.switch_organization(db, session, payload.organization_id)

    log_user_action(
        db, AuditActions.ORG_SWITCHED, session.user_id,
        organization_id=payload.organization_id,
        details={"from_organization_id": previous, "to_organization_id": payload.organization_id},
        ip_address=get_client_ip(request)
    )
    return profile


# =====================================================
# PASSWORD RESET
# =====================================================

@router.post("/forgot-password")
async def forgot_password(
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Same answer whether or not the account exists"""
    result = AuthService.create_password_reset(db, payload.email)
    if result:
        user, token = result
        reset_link = f"{settings.FRONTEND_URL}/reset-password?token={token}"
        background_tasks.add_task(send_password_reset_email, user.email, user.name, reset_link)
        logger.info(f"Password reset requested for user {user.id}")

    return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password")
async def reset_password(
    payload: ResetPasswordRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    user = AuthService.reset_password(db, payload.token, payload.new_password)
    log_user_action(db, AuditActions.PASSWORD_RESET, user.id, ip_address=get_client_ip(request))
    return {"success": True, "message": "Password has been reset. Please log in again."}


# =====================================================
# CSRF BOOTSTRAP
# =====================================================

@router.get("/csrf-token")
async def csrf_token(request: Request, response: Response):
    token = request.cookies.get(settings.CSRF_COOKIE_NAME)
    if not is_valid_csrf_token(token or ""):
        token = generate_csrf_token()
        set_csrf_cookie(response, token)
    return {"csrf_token": token}
