# =====================================================
# FILE: app/schemas/audit_trail.py
# Pydantic Schemas for Audit Trail API
# =====================================================

from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

# =====================================================
# ENUMS
# =====================================================

class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


class AuditModule(str, Enum):
    AUTH = "AUTH"
    CONTRACTS = "CONTRACTS"
    APPROVALS = "APPROVALS"
    TEMPLATES = "TEMPLATES"
    USERS = "USERS"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"

# =====================================================
# RESPONSE SCHEMAS
# =====================================================

class AuditLogResponse(BaseModel):
    id: int
    timestamp: Optional[datetime]
    action: str
    module: Optional[str]
    user_id: Optional[int]
    user_name: str
    organization_id: Optional[int]
    contract_id: Optional[int]
    target_type: Optional[str]
    target_id: Optional[str]
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    metadata: Optional[Dict[str, Any]] = None
    ip_address: Optional[str]
    user_agent: Optional[str]


class AuditLogListResponse(BaseModel):
    success: bool = True
    logs: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


def to_response(entry) -> AuditLogResponse:
    """Flatten an AuditLog row (with its user) for the API"""
    return AuditLogResponse(
        id=entry.id,
        timestamp=entry.created_at,
        action=entry.action,
        module=entry.module,
        user_id=entry.user_id,
        user_name=entry.user.name if entry.user else "System",
        organization_id=entry.organization_id,
        contract_id=entry.contract_id,
        target_type=entry.target_type,
        target_id=entry.target_id,
        old_value=entry.old_value,
        new_value=entry.new_value,
        metadata=entry.details,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
    )
