"""
Log Sanitizer
File: app/utils/log_sanitizer.py

Redacts secrets and masks personal data before request payloads,
headers or errors reach the application log.
"""

import re
from typing import Any

REDACTED = "[REDACTED]"

SENSITIVE_FIELDS = (
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "privatekey",
    "authorization",
    "auth",
    "cookie",
    "session",
    "csrf",
    "jwt",
    "creditcard",
    "cardnumber",
    "cvv",
    "ssn",
)

CREDIT_CARD_PATTERN = re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b")
EMAIL_PATTERN = re.compile(r"([a-zA-Z0-9._%+-])[a-zA-Z0-9._%+-]*@([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
JWT_PATTERN = re.compile(r"eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*")
SSN_PATTERN = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")


def is_sensitive_key(key: str) -> bool:
    normalized = str(key).lower().replace("-", "")
    return any(field in normalized for field in SENSITIVE_FIELDS)


def sanitize_string(value: str) -> str:
    """Mask e-mails, card numbers, JWTs and SSNs inside free text"""
    value = CREDIT_CARD_PATTERN.sub(lambda m: f"****-****-****-{m.group(0)[-4:]}", value)
    value = EMAIL_PATTERN.sub(lambda m: f"{m.group(1)}***@{m.group(2)}", value)
    value = JWT_PATTERN.sub("[JWT_REDACTED]", value)
    value = SSN_PATTERN.sub("***-**-****", value)
    return value


def sanitize_for_logging(data: Any, max_depth: int = 5) -> Any:
    if max_depth <= 0:
        return "[MAX_DEPTH_EXCEEDED]"

    if data is None or isinstance(data, (bool, int, float)):
        return data

    if isinstance(data, str):
        return sanitize_string(data)

    if isinstance(data, (list, tuple, set)):
        return [sanitize_for_logging(item, max_depth - 1) for item in data]

    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            if is_sensitive_key(key):
                sanitized[key] = REDACTED
            else:
                sanitized[key] = sanitize_for_logging(value, max_depth - 1)
        return sanitized

    return sanitize_string(str(data))


def sanitize_headers(headers) -> dict:
    """Header mapping with cookies, tokens and auth values redacted"""
    return {
        key: REDACTED if is_sensitive_key(key) else value
        for key, value in dict(headers).items()
    }
