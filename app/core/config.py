# =====================================================
# FILE: app/core/config.py
# Application Settings (environment / .env driven)
# =====================================================

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime configuration. Every field can be overridden by an
    environment variable of the same name or by the .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=True)

    # Application
    APP_NAME: str = "CLM Platform API"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    FRONTEND_URL: str = "http://localhost:3000"
    ADMIN_FRONTEND_URL: str = "http://localhost:3002"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:3002"]
    COMPANY_DISPLAY_NAME: str = "CLM Enterprise"

    # Database
    DATABASE_URL: Optional[str] = None
    DB_USER: str = "clm"
    DB_PASSWORD: str = "clm"
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_NAME: str = "clm"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_PRE_PING: bool = True
    DB_ECHO: bool = False

    # Sessions
    SESSION_COOKIE_NAME: str = "session_token"
    SESSION_EXPIRE_HOURS: int = 12
    COOKIE_SECURE: bool = False
    MAX_FAILED_LOGINS: int = 5
    LOCKOUT_MINUTES: int = 15
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60

    # CSRF
    CSRF_COOKIE_NAME: str = "XSRF-TOKEN"
    CSRF_HEADER_NAME: str = "x-csrf-token"
    CSRF_ENABLED: bool = True
    CSRF_EXEMPT_PATHS: List[str] = [
        "/api/v1/health",
        "/api/v1/webhooks",
        "/api/v1/auth/login",
        "/api/v1/auth/forgot-password",
        "/api/v1/auth/reset-password",
    ]

    # Mail
    MAIL_USERNAME: Optional[str] = None
    MAIL_PASSWORD: Optional[str] = None
    MAIL_FROM: str = "noreply@clm-platform.com"
    MAIL_PORT: int = 587
    MAIL_SERVER: str = "smtp.gmail.com"
    LEGAL_TEAM_EMAIL: str = "legal@clm-platform.com"
    FINANCE_TEAM_EMAIL: str = "finance@clm-platform.com"

    # Storage
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_MB: int = 25

    # Scheduler
    SCHEDULER_ENABLED: bool = False
    EXPIRY_CHECK_INTERVAL_MINUTES: int = 1440
    EXPIRY_REMINDER_DAYS: List[int] = [30, 7, 1]

    # Gateway (user-app / admin-app route handlers)
    BACKEND_URL: str = "http://localhost:8000/api/v1"
    GATEWAY_TIMEOUT_SECONDS: float = 30.0

    @property
    def mail_configured(self) -> bool:
        return bool(self.MAIL_USERNAME and self.MAIL_PASSWORD)


settings = Settings()
