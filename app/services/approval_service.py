# =====================================================
# FILE: app/services/approval_service.py
# Legal / Finance approval workflow
# =====================================================

from sqlalchemy.orm import Session, joinedload
from typing import List, Optional, Dict, Any
from datetime import datetime
from fastapi import HTTPException, status
import logging

from app.core.dependencies import CurrentContext
from app.models.approval import Approval
from app.models.contract import Contract
from app.models.user import User, Role, Permission, RolePermission, UserOrganizationRole
from app.services.notification_service import NotificationService, NotificationTypes

logger = logging.getLogger(__name__)

APPROVAL_TYPES = ("LEGAL", "FINANCE")
OPEN_STATUSES = ("PENDING", "ESCALATED")
REVIEWABLE_CONTRACT_STATUSES = ("IN_REVIEW", "LEGAL_APPROVED", "FINANCE_APPROVED")


def act_permission(approval_type: str) -> str:
    return f"approval:{approval_type.lower()}:act"


def view_permission(approval_type: str) -> str:
    return f"approval:{approval_type.lower()}:view"


def users_with_permission(db: Session, organization_id: int, permission_code: str) -> List[User]:
    """Active users of the organization whose role grants the permission"""
    return (
        db.query(User)
        .join(UserOrganizationRole, UserOrganizationRole.user_id == User.id)
        .join(RolePermission, RolePermission.role_id == UserOrganizationRole.role_id)
        .join(Permission, Permission.id == RolePermission.permission_id)
        .filter(
            UserOrganizationRole.organization_id == organization_id,
            UserOrganizationRole.is_active == True,
            User.is_active == True,
            Permission.code == permission_code
        )
        .distinct()
        .all()
    )


def users_with_role(db: Session, organization_id: int, role_code: str) -> List[User]:
    return (
        db.query(User)
        .join(UserOrganizationRole, UserOrganizationRole.user_id == User.id)
        .join(Role, Role.id == UserOrganizationRole.role_id)
        .filter(
            UserOrganizationRole.organization_id == organization_id,
            UserOrganizationRole.is_active == True,
            User.is_active == True,
            Role.code == role_code
        )
        .distinct()
        .all()
    )


def approvers_for(db: Session, organization_id: int, approval_type: str) -> List[User]:
    return users_with_permission(db, organization_id, act_permission(approval_type))


def aggregate_status(approvals: List[Approval]) -> Optional[str]:
    """
    Contract status implied by its approvals: APPROVED when every one is
    approved, LEGAL_APPROVED / FINANCE_APPROVED when that one is approved
    and the rest are still open. None leaves the contract status unchanged.
    """
    current = {}
    for approval in sorted(approvals, key=lambda a: a.id):
        current[approval.approval_type] = approval  # latest round per type
    if not current:
        return None
    approved = [a for a in current.values() if a.status == "APPROVED"]
    if len(approved) == len(current):
        return "APPROVED"
    others_open = all(a.status in OPEN_STATUSES for a in current.values() if a.status != "APPROVED")
    if len(approved) == 1 and others_open:
        return f"{approved[0].approval_type}_APPROVED"
    return None


class ApprovalService:

    # =====================================================
    # QUERIES
    # =====================================================

    @staticmethod
    def list_pending(db: Session, organization_id: int, approval_types: List[str]) -> List[Approval]:
        """Pending approvals of the organization, oldest first"""
        return (
            db.query(Approval)
            .join(Contract, Contract.id == Approval.contract_id)
            .options(joinedload(Approval.contract))
            .filter(
                Contract.organization_id == organization_id,
                Contract.is_deleted == False,
                Contract.status.in_(REVIEWABLE_CONTRACT_STATUSES),
                Approval.status == "PENDING",
                Approval.approval_type.in_(approval_types)
            )
            .order_by(Approval.created_at.asc(), Approval.id.asc())
            .all()
        )

    @staticmethod
    def get_for_action(db: Session, approval_id: int, context: CurrentContext) -> Approval:
        approval = db.query(Approval).filter(Approval.id == approval_id).first()
        if not approval:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Approval not found")

        contract = approval.contract
        if contract is None or contract.is_deleted:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contract not found")
        if contract.organization_id != context.organization_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied to this contract")
        if contract.status not in REVIEWABLE_CONTRACT_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Contract is {contract.status} and no longer under review"
            )

        if not context.can(act_permission(approval.approval_type)):
            logger.warning(
                f" User {context.user_id} lacks {act_permission(approval.approval_type)} for approval {approval.id}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You are not allowed to act on {approval.approval_type} approvals"
            )

        if approval.status == "ESCALATED" and ApprovalService.can_decide_escalated(approval, context):
            return approval
        if approval.status != "PENDING":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Approval is already {approval.status}"
            )
        return approval

    @staticmethod
    def can_decide_escalated(approval: Approval, context: CurrentContext) -> bool:
        """The escalation target, or anyone holding the escalate permission, decides an escalated approval"""
        return approval.escalated_to == context.user_id or context.can("approval:legal:escalate")

    # =====================================================
    # DECISIONS
    # =====================================================

    @staticmethod
    def approve(db: Session, approval: Approval, user: User, comment: Optional[str] = None) -> Contract:
        now = datetime.utcnow()
        approval.status = "APPROVED"
        approval.actor_id = user.id
        approval.acted_at = now
        approval.comment = comment

        contract = approval.contract
        db.flush()
        db.expire(contract, ["approvals"])

        new_status = aggregate_status(contract.approvals)
        if new_status:
            contract.status = new_status
        if new_status == "APPROVED":
            contract.approved_at = now

        ApprovalService._notify_creator(
            db, contract, NotificationTypes.CONTRACT_APPROVED,
            f"{approval.approval_type.title()} approval granted: {contract.reference}",
            comment
        )
        logger.info(f" {approval.approval_type} approval {approval.id} approved by {user.id}; contract is {contract.status}")
        return contract

    @staticmethod
    def reject(db: Session, approval: Approval, user: User, comment: str) -> Contract:
        if not comment or not comment.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A comment is required to reject")

        ApprovalService._close(approval, user, "REJECTED", comment)
        contract = approval.contract
        ApprovalService._withdraw_open_siblings(db, approval)
        contract.status = "REJECTED"

        ApprovalService._notify_creator(
            db, contract, NotificationTypes.CONTRACT_REJECTED,
            f"Contract rejected: {contract.reference}", comment
        )
        return contract

    @staticmethod
    def request_revision(db: Session, approval: Approval, user: User, comment: str) -> Contract:
        if not comment or not comment.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A comment is required to request a revision")

        ApprovalService._close(approval, user, "REJECTED", comment)
        contract = approval.contract
        ApprovalService._withdraw_open_siblings(db, approval)
        contract.status = "REVISION_REQUESTED"

        ApprovalService._notify_creator(
            db, contract, NotificationTypes.REVISION_REQUESTED,
            f"Revision requested: {contract.reference}", comment
        )
        return contract

    # =====================================================
    # ESCALATION
    # =====================================================

    @staticmethod
    def escalate(db: Session, approval: Approval, user: User, escalated_to: int, comment: Optional[str] = None) -> Approval:
        target = db.query(User).filter(User.id == escalated_to, User.is_active == True).first()
        if not target:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Escalation target not found")

        contract = approval.contract
        member = db.query(UserOrganizationRole).filter(
            UserOrganizationRole.user_id == target.id,
            UserOrganizationRole.organization_id == contract.organization_id,
            UserOrganizationRole.is_active == True
        ).first()
        if not member:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Escalation target is not a member of this organization")

        ApprovalService._mark_escalated(approval, user, target.id, comment)
        NotificationService.create_notification(
            db, target.id, NotificationTypes.ESCALATION,
            f"Approval escalated: {contract.reference}",
            comment or f"{user.name} escalated {contract.title} to you.",
            f"/dashboard/contracts/{contract.id}"
        )
        return approval

    @staticmethod
    def escalate_to_legal_head(db: Session, contract: Contract, user: User, reason: Optional[str] = None) -> List[User]:
        approval = db.query(Approval).filter(
            Approval.contract_id == contract.id,
            Approval.approval_type == "LEGAL",
            Approval.status == "PENDING"
        ).first()
        if not approval:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Contract has no pending legal approval to escalate"
            )

        heads = users_with_role(db, contract.organization_id, "LEGAL_HEAD")
        if not heads:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No Legal Head found for this organization")

        ApprovalService._mark_escalated(approval, user, heads[0].id, reason)
        NotificationService.notify_users(
            db, [head.id for head in heads], NotificationTypes.ESCALATION,
            f"Escalated to Legal Head: {contract.reference}",
            reason or f"{user.name} escalated {contract.title} for your review.",
            f"/dashboard/contracts/{contract.id}"
        )
        logger.info(f" Contract {contract.reference} escalated to {len(heads)} legal head(s)")
        return heads

    # =====================================================
    # HELPERS
    # =====================================================

    @staticmethod
    def _close(approval: Approval, user: User, new_status: str, comment: Optional[str]) -> None:
        approval.status = new_status
        approval.actor_id = user.id
        approval.acted_at = datetime.utcnow()
        approval.comment = comment

    @staticmethod
    def _withdraw_open_siblings(db: Session, approval: Approval) -> None:
        """Drop the other open approvals of a contract once one of them turns it down"""
        withdrawn = db.query(Approval).filter(
            Approval.contract_id == approval.contract_id,
            Approval.id != approval.id,
            Approval.status.in_(OPEN_STATUSES)
        ).delete(synchronize_session=False)
        db.expire(approval.contract, ["approvals"])
        if withdrawn:
            logger.info(f" Withdrew {withdrawn} open approval(s) of contract {approval.contract_id}")

    @staticmethod
    def _mark_escalated(approval: Approval, user: User, target_id: int, comment: Optional[str]) -> None:
        now = datetime.utcnow()
        approval.status = "ESCALATED"
        approval.escalated_by = user.id
        approval.escalated_to = target_id
        approval.escalated_at = now
        if comment:
            approval.comment = comment

    @staticmethod
    def _notify_creator(db: Session, contract: Contract, notification_type: str, title: str, message: Optional[str]) -> None:
        NotificationService.create_notification(
            db, contract.created_by, notification_type, title,
            message, f"/dashboard/contracts/{contract.id}"
        )

    @staticmethod
    def serialize(approval: Approval) -> Dict[str, Any]:
        contract = approval.contract
        return {
            "id": approval.id,
            "approval_type": approval.approval_type,
            "status": approval.status,
            "comment": approval.comment,
            "created_at": approval.created_at,
            "acted_at": approval.acted_at,
            "escalated_to": approval.escalated_to,
            "contract": {
                "id": contract.id,
                "title": contract.title,
                "reference": contract.reference,
                "status": contract.status,
                "counterparty_name": contract.counterparty_name,
                "amount": contract.amount,
                "currency": contract.currency,
            } if contract else None,
        }

