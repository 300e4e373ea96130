# =====================================================
# FILE: app/services/audit_service.py
# Service Layer for Audit Trail
# =====================================================

from sqlalchemy.orm import Session, joinedload
from datetime import datetime
from typing import Optional, Dict, Any, List, Tuple
import logging

from app.models.audit import AuditLog
from app.utils.log_sanitizer import is_sensitive_key, REDACTED

logger = logging.getLogger(__name__)

MAX_STRING_LENGTH = 5000
MAX_ARRAY_LENGTH = 100
MAX_OBJECT_FIELDS = 50
MAX_DEPTH = 3


class AuditActions:
    # Auth
    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    ORG_SWITCHED = "ORG_SWITCHED"
    PASSWORD_RESET = "PASSWORD_RESET"

    # Contracts
    CONTRACT_CREATED = "CONTRACT_CREATED"
    CONTRACT_UPDATED = "CONTRACT_UPDATED"
    CONTRACT_DELETED = "CONTRACT_DELETED"
    CONTRACT_SUBMITTED = "CONTRACT_SUBMITTED"
    CONTRACT_APPROVED = "CONTRACT_APPROVED"
    CONTRACT_REJECTED = "CONTRACT_REJECTED"
    CONTRACT_REVISION_REQUESTED = "CONTRACT_REVISION_REQUESTED"
    CONTRACT_ESCALATED = "CONTRACT_ESCALATED"
    CONTRACT_SENT = "CONTRACT_SENT"
    CONTRACT_SIGNED = "CONTRACT_SIGNED"
    CONTRACT_CANCELLED = "CONTRACT_CANCELLED"
    CONTRACT_REVERTED = "CONTRACT_REVERTED"
    CONTRACT_EXPIRED = "CONTRACT_EXPIRED"
    VERSION_RESTORED = "VERSION_RESTORED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"

    # Templates
    TEMPLATE_CREATED = "TEMPLATE_CREATED"
    TEMPLATE_UPDATED = "TEMPLATE_UPDATED"

    # Users and organizations
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    ROLE_ASSIGNED = "ROLE_ASSIGNED"
    ROLE_REMOVED = "ROLE_REMOVED"
    ORG_CREATED = "ORG_CREATED"
    ORG_UPDATED = "ORG_UPDATED"
    FEATURE_TOGGLED = "FEATURE_TOGGLED"

    # Request middleware
    API_REQUEST = "API_REQUEST"


_MODULE_PREFIXES = (
    ("CONTRACT_", "CONTRACTS"),
    ("VERSION_", "CONTRACTS"),
    ("DOCUMENT_", "CONTRACTS"),
    ("APPROVAL_", "APPROVALS"),
    ("TEMPLATE_", "TEMPLATES"),
    ("USER_LOG", "AUTH"),
    ("PASSWORD_", "AUTH"),
    ("ORG_SWITCHED", "AUTH"),
    ("USER_", "USERS"),
    ("ROLE_", "USERS"),
    ("ORG_", "ADMIN"),
    ("FEATURE_", "ADMIN"),
)


def module_for_action(action: str) -> str:
    for prefix, module in _MODULE_PREFIXES:
        if action.startswith(prefix):
            return module
    return "SYSTEM"


def sanitize_metadata(data: Any, max_depth: int = MAX_DEPTH, current_depth: int = 0) -> Any:
    """
    Bound the size of JSON stored on audit rows.
    Strings are cut at 5000 chars, lists at 100 items, objects at 50 fields
    and nesting below depth 3 is replaced by a marker.
    """
    if current_depth > max_depth:
        return "[MAX_DEPTH_EXCEEDED]"

    if data is None or isinstance(data, (bool, int, float)):
        return data

    if isinstance(data, str):
        if len(data) > MAX_STRING_LENGTH:
            return data[:MAX_STRING_LENGTH] + "...[TRUNCATED]"
        return data

    if isinstance(data, (list, tuple)):
        items = [
            sanitize_metadata(item, max_depth, current_depth + 1)
            for item in list(data)[:MAX_ARRAY_LENGTH]
        ]
        if len(data) > MAX_ARRAY_LENGTH:
            items.append(f"[{len(data) - MAX_ARRAY_LENGTH} MORE ITEMS TRUNCATED]")
        return items

    if isinstance(data, dict):
        sanitized = {}
        for index, (key, value) in enumerate(data.items()):
            if index >= MAX_OBJECT_FIELDS:
                sanitized["__TRUNCATED__"] = f"{len(data) - MAX_OBJECT_FIELDS} more fields omitted"
                break
            if is_sensitive_key(key):
                sanitized[str(key)] = REDACTED
            else:
                sanitized[str(key)] = sanitize_metadata(value, max_depth, current_depth + 1)
        return sanitized

    # Dates, decimals and other scalars
    return str(data)


class AuditService:
    """
    Service for creating and querying audit logs.
    Writing an entry never fails the caller's operation.
    """

    def __init__(self, db: Session):
        self.db = db

    def log_action(
        self,
        action: str,
        user_id: Optional[int] = None,
        organization_id: Optional[int] = None,
        contract_id: Optional[int] = None,
        module: Optional[str] = None,
        target_type: Optional[str] = None,
        target_id: Optional[Any] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Optional[int]:
        """
        Create an audit log entry

        Returns:
            ID of created audit log, None when it could not be written
        """
        try:
            entry = AuditLog(
                organization_id=organization_id,
                contract_id=contract_id,
                user_id=user_id,
                action=action,
                module=module or module_for_action(action),
                target_type=target_type,
                target_id=str(target_id) if target_id is not None else None,
                old_value=sanitize_metadata(old_value) if old_value is not None else None,
                new_value=sanitize_metadata(new_value) if new_value is not None else None,
                details=sanitize_metadata(metadata) if metadata is not None else None,
                ip_address=ip_address,
                user_agent=user_agent[:500] if user_agent else None,
                created_at=datetime.utcnow()
            )
            self.db.add(entry)
            self.db.commit()

            logger.info(f" Audit log created: {action} by user {user_id}")
            return entry.id

        except Exception as e:
            self.db.rollback()
            logger.error(f" Error creating audit log: {str(e)}")
            return None

    def get_by_organization(
        self,
        organization_id: int,
        module: Optional[str] = None,
        action: Optional[str] = None,
        user_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        limit: Optional[int] = 50
    ) -> Tuple[List[AuditLog], int]:
        query = self.db.query(AuditLog).filter(AuditLog.organization_id == organization_id)

        if module:
            query = query.filter(AuditLog.module == module)
        if action:
            query = query.filter(AuditLog.action == action)
        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if date_from:
            query = query.filter(AuditLog.created_at >= date_from)
        if date_to:
            query = query.filter(AuditLog.created_at <= date_to)

        total = query.count()
        query = query.options(joinedload(AuditLog.user)).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all(), total

    def get_by_contract(self, contract_id: int) -> List[AuditLog]:
        return (
            self.db.query(AuditLog)
            .options(joinedload(AuditLog.user))
            .filter(AuditLog.contract_id == contract_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .all()
        )


# =====================================================
# CONVENIENCE FUNCTIONS FOR COMMON ACTIONS
# =====================================================

def log_contract_action(
    db: Session,
    action: str,
    contract,
    user_id: Optional[int],
    details: Optional[Dict[str, Any]] = None,
    old_value: Optional[Any] = None,
    new_value: Optional[Any] = None,
    ip_address: Optional[str] = None
) -> Optional[int]:
    """Convenience function to log contract-related actions"""
    return AuditService(db).log_action(
        action=action,
        user_id=user_id,
        organization_id=contract.organization_id,
        contract_id=contract.id,
        target_type="contract",
        target_id=contract.id,
        old_value=old_value,
        new_value=new_value,
        metadata=details,
        ip_address=ip_address
    )


def log_user_action(
    db: Session,
    action: str,
    user_id: int,
    organization_id: Optional[int] = None,
    target_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> Optional[int]:
    """Convenience function to log user-related actions"""
    return AuditService(db).log_action(
        action=action,
        user_id=user_id,
        organization_id=organization_id,
        target_type="user",
        target_id=target_id if target_id is not None else user_id,
        metadata=details,
        ip_address=ip_address,
        user_agent=user_agent
    )


def log_system_action(
    db: Session,
    action: str,
    organization_id: Optional[int] = None,
    contract_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None
) -> Optional[int]:
    """Convenience function to log system-level actions (scheduler, scripts)"""
    return AuditService(db).log_action(
        action=action,
        organization_id=organization_id,
        contract_id=contract_id,
        target_type="system",
        target_id="system",
        metadata=details
    )
