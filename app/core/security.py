# =====================================================
# FILE: app/core/security.py
# Password hashing, session tokens and CSRF tokens
# =====================================================

import hashlib
import re
import secrets

import bcrypt

CSRF_TOKEN_PATTERN = re.compile(r"^[a-f0-9]{32}$", re.IGNORECASE)


def hash_password(password: str) -> str:
    """Hash a plain password with bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Check a plain password against a stored bcrypt hash"""
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def generate_session_token() -> str:
    return secrets.token_urlsafe(48)


def hash_token(token: str) -> str:
    """Tokens are persisted as SHA-256 digests, never in clear"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_csrf_token() -> str:
    # 16 bytes = 32 hex characters
    return secrets.token_hex(16)


def is_valid_csrf_token(token: str) -> bool:
    return bool(token) and bool(CSRF_TOKEN_PATTERN.match(token))


def generate_temporary_password(length: int = 12) -> str:
    """Temporary password for invited users: letters, digits and one symbol"""
    alphabet = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz23456789"
    body = "".join(secrets.choice(alphabet) for _ in range(length - 1))
    return body + secrets.choice("@#$%")
