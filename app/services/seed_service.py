# =====================================================
# FILE: app/services/seed_service.py
# Reference data: permissions, roles and a demo tenant
# =====================================================

from sqlalchemy.orm import Session
from typing import Dict, Iterable, Optional
import logging

from app.core.permissions import PermissionCode, RoleCode, ROLE_PERMISSIONS, permission_module
from app.core.security import hash_password
from app.models.organization import Organization, FeatureFlag
from app.models.template import Template, Annexure
from app.models.user import User, Role, Permission, RolePermission, UserOrganizationRole

logger = logging.getLogger(__name__)

ROLE_NAMES = {
    RoleCode.SUPER_ADMIN.value: "Super Administrator",
    RoleCode.ENTITY_ADMIN.value: "Entity Administrator",
    RoleCode.LEGAL_HEAD.value: "Legal Head",
    RoleCode.LEGAL_MANAGER.value: "Legal Manager",
    RoleCode.FINANCE_MANAGER.value: "Finance Manager",
    RoleCode.BUSINESS_USER.value: "Business User",
}

DEMO_PASSWORD = "Password@123"

DEMO_USERS = [
    ("superadmin@clm-platform.com", "Platform Super Admin", RoleCode.SUPER_ADMIN.value),
    ("admin@clm-platform.com", "Entity Admin", RoleCode.ENTITY_ADMIN.value),
    ("legal.head@clm-platform.com", "Legal Head", RoleCode.LEGAL_HEAD.value),
    ("legal@clm-platform.com", "Legal Manager", RoleCode.LEGAL_MANAGER.value),
    ("finance@clm-platform.com", "Finance Manager", RoleCode.FINANCE_MANAGER.value),
    ("user@clm-platform.com", "Business User", RoleCode.BUSINESS_USER.value),
]

DEMO_TEMPLATE_CONTENT = (
    "<h1>Service Agreement</h1>"
    "<p>This agreement is made between {{COMPANY_NAME}} and {{COUNTERPARTY_NAME}}.</p>"
    "<p>The services start on {{START_DATE}} for a fee of {{CONTRACT_VALUE}}.</p>"
)


def permission_name(code: str) -> str:
    """'approval:legal:act' -> 'Approval Legal Act'"""
    return " ".join(part.replace("_", " ").title() for part in code.split(":"))


def ensure_permission(db: Session, code: str, name: Optional[str] = None, module: Optional[str] = None) -> Permission:
    permission = db.query(Permission).filter(Permission.code == code).first()
    if not permission:
        permission = Permission(
            code=code,
            name=name or permission_name(code),
            module=module or permission_module(code)
        )
        db.add(permission)
        db.flush()
        logger.info(f"✅ Permission created: {code}")
    return permission


def ensure_role(db: Session, code: str, name: Optional[str] = None) -> Role:
    role = db.query(Role).filter(Role.code == code).first()
    if not role:
        role = Role(code=code, name=name or ROLE_NAMES.get(code, code.title()), is_system=code in ROLE_NAMES)
        db.add(role)
        db.flush()
        logger.info(f"✅ Role created: {code}")
    return role


def grant_permission(db: Session, role: Role, permission: Permission) -> bool:
    """Returns True when the grant was added"""
    exists = db.query(RolePermission).filter(
        RolePermission.role_id == role.id,
        RolePermission.permission_id == permission.id
    ).first()
    if exists:
        return False
    db.add(RolePermission(role_id=role.id, permission_id=permission.id))
    db.flush()
    return True


def sync_permissions_and_roles(db: Session) -> Dict[str, int]:
    """Create every known permission and role with its default grants. Idempotent."""
    permissions = {p.value: ensure_permission(db, p.value) for p in PermissionCode}
    grants = 0
    for role_code, codes in ROLE_PERMISSIONS.items():
        role = ensure_role(db, role_code)
        for perm in codes:
            if grant_permission(db, role, permissions[perm.value]):
                grants += 1
    return {"permissions": len(permissions), "roles": len(ROLE_PERMISSIONS), "grants_added": grants}


def ensure_organization(db: Session, code: str, name: str, org_type: str = "ENTITY",
                        parent_id: Optional[int] = None) -> Organization:
    org = db.query(Organization).filter(Organization.code == code).first()
    if not org:
        org = Organization(code=code, name=name, org_type=org_type, parent_id=parent_id, settings={}, is_active=True)
        db.add(org)
        db.flush()
    return org


def ensure_user(db: Session, email: str, name: str, password: str,
                organization: Organization, role_codes: Iterable[str]) -> User:
    user = db.query(User).filter(User.email == email).first()
    if not user:
        user = User(email=email, name=name, password_hash=hash_password(password), is_active=True)
        db.add(user)
        db.flush()

    for role_code in role_codes:
        role = ensure_role(db, role_code)
        membership = db.query(UserOrganizationRole).filter(
            UserOrganizationRole.user_id == user.id,
            UserOrganizationRole.organization_id == organization.id,
            UserOrganizationRole.role_id == role.id
        ).first()
        if not membership:
            db.add(UserOrganizationRole(user_id=user.id, organization_id=organization.id, role_id=role.id))
    db.flush()
    return user


def seed_demo_data(db: Session, password: str = DEMO_PASSWORD, finance_workflow: bool = True) -> Dict[str, int]:
    """Reference data plus a demo group, one entity, its users and a global template"""
    summary = sync_permissions_and_roles(db)

    group = ensure_organization(db, "DEMOGRP", "Demo Group", org_type="PARENT")
    entity = ensure_organization(db, "DEMO", "Demo Entity", parent_id=group.id)

    if finance_workflow and not db.query(FeatureFlag).filter(
        FeatureFlag.organization_id == entity.id,
        FeatureFlag.feature_code == "FINANCE_WORKFLOW"
    ).first():
        db.add(FeatureFlag(organization_id=entity.id, feature_code="FINANCE_WORKFLOW", is_enabled=True))

    for email, name, role_code in DEMO_USERS:
        ensure_user(db, email, name, password, entity, [role_code])

    if not db.query(Template).filter(Template.code == "SERVICE_AGREEMENT").first():
        template = Template(
            name="Service Agreement",
            code="SERVICE_AGREEMENT",
            category="SERVICES",
            description="Standard services agreement",
            base_content=DEMO_TEMPLATE_CONTENT,
            is_global=True,
            is_active=True
        )
        template.annexures = [
            Annexure(name="Scope of Work", title="Annexure A", content="<p>{{SCOPE_OF_WORK}}</p>", order=1)
        ]
        db.add(template)

    db.flush()
    summary.update({"organizations": 2, "users": len(DEMO_USERS)})
    return summary
