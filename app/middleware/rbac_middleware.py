# =====================================================
# FILE: app/middleware/rbac_middleware.py
# Role-Based Access Control Dependencies
# =====================================================

from typing import List
from fastapi import HTTPException, status, Depends
import logging

from app.core.dependencies import CurrentContext, get_current_context
from app.core.permissions import PermissionCode

logger = logging.getLogger(__name__)


def _codes(permissions) -> List[str]:
    return [p.value if isinstance(p, PermissionCode) else str(p) for p in permissions]


class RBACDependency:
    """
    Dependency class for RBAC checks in FastAPI
    Usage: Depends(RBACDependency(PermissionCode.CONTRACT_CREATE))

    The user needs ANY of the listed permissions in the current organization.
    """
    def __init__(self, *permissions: PermissionCode):
        self.permissions = permissions

    async def __call__(
        self,
        context: CurrentContext = Depends(get_current_context)
    ) -> CurrentContext:
        # Super Admin bypass
        if context.is_super_admin:
            return context

        if self.permissions and not context.can(*self.permissions):
            logger.warning(
                f"Access denied for user {context.user_id} in organization "
                f"{context.organization_id}. Required any of: {_codes(self.permissions)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )

        return context
