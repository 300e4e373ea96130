# =====================================================
# FILE: app/core/permissions.py
# Role-Based Access Control Permission Definitions
# =====================================================

from enum import Enum
from typing import Dict, Iterable, Set


class PermissionCode(str, Enum):
    # Contract Permissions
    CONTRACT_VIEW = "contract:view"
    CONTRACT_CREATE = "contract:create"
    CONTRACT_EDIT = "contract:edit"
    CONTRACT_DELETE = "contract:delete"
    CONTRACT_SUBMIT = "contract:submit"
    CONTRACT_SEND = "contract:send"
    CONTRACT_UPLOAD = "contract:upload"
    CONTRACT_DOWNLOAD = "contract:download"
    CONTRACT_HISTORY = "contract:history"
    CONTRACT_REVERT = "contract:revert"
    CONTRACT_ESCALATE = "contract:escalate"

    # Templates
    TEMPLATE_VIEW = "template:view"
    TEMPLATE_CREATE = "template:create"
    TEMPLATE_EDIT = "template:edit"
    TEMPLATE_DELETE = "template:delete"
    TEMPLATE_PUBLISH = "template:publish"

    # Approvals
    APPROVAL_LEGAL_VIEW = "approval:legal:view"
    APPROVAL_LEGAL_ACT = "approval:legal:act"
    APPROVAL_LEGAL_ESCALATE = "approval:legal:escalate"
    APPROVAL_FINANCE_VIEW = "approval:finance:view"
    APPROVAL_FINANCE_ACT = "approval:finance:act"

    # Identity Management
    USER_VIEW = "user:view"
    USER_MANAGE = "user:manage"
    ROLE_VIEW = "role:view"
    ROLE_MANAGE = "role:manage"

    # Analytics
    ANALYTICS_VIEW = "analytics:view"

    # Organization
    ORG_VIEW = "org:view"
    ORG_CREATE = "org:create"
    ORG_EDIT = "org:edit"
    ORG_MANAGE = "org:manage"

    # System Administration
    SYSTEM_AUDIT = "system:audit"
    SYSTEM_SETTINGS = "system:settings"
    ADMIN_CONFIG_MODULES = "admin:config_modules"
    ADMIN_ACCESS = "admin:access"
    ADMIN_TEMPLATE_GOVERN = "admin:template:govern"


PERMISSION_MODULES: Dict[str, str] = {
    "contract": "Contracts",
    "template": "Templates",
    "approval": "Approvals",
    "analytics": "Analytics",
    "user": "Identity Management",
    "role": "Identity Management",
    "org": "Organization",
    "system": "System",
    "admin": "System",
}


class RoleCode(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ENTITY_ADMIN = "ENTITY_ADMIN"
    LEGAL_HEAD = "LEGAL_HEAD"
    LEGAL_MANAGER = "LEGAL_MANAGER"
    FINANCE_MANAGER = "FINANCE_MANAGER"
    BUSINESS_USER = "BUSINESS_USER"


P = PermissionCode

# Default grants used when seeding the roles table
ROLE_PERMISSIONS: Dict[str, Set[PermissionCode]] = {
    RoleCode.SUPER_ADMIN.value: {p for p in PermissionCode},

    RoleCode.ENTITY_ADMIN.value: {
        P.CONTRACT_VIEW, P.CONTRACT_CREATE, P.CONTRACT_EDIT, P.CONTRACT_DELETE,
        P.CONTRACT_SUBMIT, P.CONTRACT_SEND, P.CONTRACT_UPLOAD, P.CONTRACT_DOWNLOAD,
        P.CONTRACT_HISTORY, P.CONTRACT_REVERT,
        P.TEMPLATE_VIEW, P.TEMPLATE_CREATE, P.TEMPLATE_EDIT, P.TEMPLATE_PUBLISH,
        P.USER_VIEW, P.USER_MANAGE, P.ROLE_VIEW,
        P.ORG_VIEW, P.ORG_EDIT, P.ORG_MANAGE,
        P.SYSTEM_AUDIT, P.ADMIN_CONFIG_MODULES, P.ADMIN_ACCESS,
        P.ANALYTICS_VIEW,
    },

    RoleCode.LEGAL_HEAD.value: {
        P.CONTRACT_VIEW, P.CONTRACT_EDIT, P.CONTRACT_HISTORY, P.CONTRACT_DOWNLOAD,
        P.CONTRACT_REVERT,
        P.TEMPLATE_VIEW,
        P.APPROVAL_LEGAL_VIEW, P.APPROVAL_LEGAL_ACT, P.APPROVAL_LEGAL_ESCALATE,
        P.SYSTEM_AUDIT,
        P.ANALYTICS_VIEW,
    },

    RoleCode.LEGAL_MANAGER.value: {
        P.CONTRACT_VIEW, P.CONTRACT_EDIT, P.CONTRACT_HISTORY, P.CONTRACT_DOWNLOAD,
        P.CONTRACT_ESCALATE,
        P.TEMPLATE_VIEW, P.TEMPLATE_CREATE, P.TEMPLATE_EDIT,
        P.APPROVAL_LEGAL_VIEW, P.APPROVAL_LEGAL_ACT,
        P.ANALYTICS_VIEW,
    },

    RoleCode.FINANCE_MANAGER.value: {
        P.CONTRACT_VIEW, P.CONTRACT_HISTORY, P.CONTRACT_DOWNLOAD,
        P.TEMPLATE_VIEW,
        P.APPROVAL_FINANCE_VIEW, P.APPROVAL_FINANCE_ACT,
        P.ANALYTICS_VIEW,
    },

    RoleCode.BUSINESS_USER.value: {
        P.CONTRACT_VIEW, P.CONTRACT_CREATE, P.CONTRACT_EDIT, P.CONTRACT_DELETE,
        P.CONTRACT_SUBMIT, P.CONTRACT_SEND, P.CONTRACT_UPLOAD, P.CONTRACT_DOWNLOAD,
        P.CONTRACT_HISTORY,
        P.TEMPLATE_VIEW,
    },
}

# Higher score wins when choosing the default organization at login
ROLE_PRIORITY: Dict[str, int] = {
    RoleCode.SUPER_ADMIN.value: 3,
    RoleCode.ENTITY_ADMIN.value: 2,
    RoleCode.LEGAL_MANAGER.value: 1,
}


def get_permissions_for_role(role_code: str) -> Set[str]:
    """Default permission codes for a role"""
    return {p.value for p in ROLE_PERMISSIONS.get(role_code, set())}


def permission_module(code: str) -> str:
    return PERMISSION_MODULES.get(code.split(":", 1)[0], "General")


def has_permission(user_permissions: Iterable[str], *required: str, role_code: str = None) -> bool:
    """True when the user holds ANY of the required permissions"""
    if role_code == RoleCode.SUPER_ADMIN.value:
        return True
    granted = set(user_permissions)
    return any(_code(perm) in granted for perm in required)


def _code(perm) -> str:
    return perm.value if isinstance(perm, PermissionCode) else str(perm)
