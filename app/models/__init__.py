# =====================================================
# FILE: app/models/__init__.py
# =====================================================

from app.core.database import Base

# Organization and identity
from app.models.organization import Organization, FeatureFlag
from app.models.user import (
    User,
    Role,
    Permission,
    RolePermission,
    UserOrganizationRole,
    UserSession,
)

# Templates and contracts
from app.models.template import Template, Annexure, TemplateOrganization
from app.models.contract import Contract, ContractVersion, ContractAttachment
from app.models.approval import Approval

# Audit and Notification models
from app.models.audit import AuditLog
from app.models.notification import Notification

# Search
from app.models.search import SavedSearch

__all__ = [
    "Base",

    "Organization",
    "FeatureFlag",
    "User",
    "Role",
    "Permission",
    "RolePermission",
    "UserOrganizationRole",
    "UserSession",

    "Template",
    "Annexure",
    "TemplateOrganization",
    "Contract",
    "ContractVersion",
    "ContractAttachment",
    "Approval",

    "AuditLog",
    "Notification",

    "SavedSearch",
]
