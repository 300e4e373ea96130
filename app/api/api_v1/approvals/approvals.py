"""
Approvals API Router
File: app/api/api_v1/approvals/approvals.py

Legal and Finance review of submitted contracts
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from app.core.database import get_db
from app.core.dependencies import CurrentContext, get_client_ip
from app.core.email import send_approval_result
from app.core.permissions import PermissionCode as P
from app.middleware.rbac_middleware import RBACDependency
from app.services.approval_service import ApprovalService, APPROVAL_TYPES, view_permission
from app.services.audit_service import AuditActions, log_contract_action
from app.api.api_v1.approvals.schemas import (
    ApprovalType,
    ApproveRequest,
    CommentRequest,
    EscalateRequest,
    EscalateToLegalHeadRequest,
)
from app.api.api_v1.contracts.service import ContractService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/approvals", tags=["approvals"])

ANY_APPROVAL_VIEW = (P.APPROVAL_LEGAL_VIEW, P.APPROVAL_FINANCE_VIEW)
ANY_APPROVAL_ACT = (P.APPROVAL_LEGAL_ACT, P.APPROVAL_FINANCE_ACT)


def _result_email(background_tasks: BackgroundTasks, contract, decision: str, comment: Optional[str]):
    creator = contract.creator
    if creator and creator.email:
        background_tasks.add_task(
            send_approval_result,
            creator.email,
            contract.title,
            contract.reference,
            decision,
            contract.id,
            comment
        )


# =====================================================
# PENDING APPROVALS
# =====================================================

@router.get("/pending")
async def get_pending_approvals(
    type: Optional[ApprovalType] = Query(None),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(*ANY_APPROVAL_VIEW))
):
    """
    Pending approvals of the current organization, oldest first.
    Only the types the user may view are returned.
    """
    requested = [type.value] if type else list(APPROVAL_TYPES)
    visible = [t for t in requested if context.can(view_permission(t))]
    if not visible:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")

    approvals = ApprovalService.list_pending(db, context.require_organization(), visible)
    return {
        "success": True,
        "approvals": [ApprovalService.serialize(a) for a in approvals],
        "total": len(approvals)
    }


# =====================================================
# DECISIONS
# =====================================================

@router.post("/{approval_id}/approve")
async def approve(
    approval_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    payload: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(*ANY_APPROVAL_ACT))
):
    comment = payload.comment if payload else None
    try:
        approval = ApprovalService.get_for_action(db, approval_id, context)
        previous_status = approval.contract.status
        contract = ApprovalService.approve(db, approval, context.user, comment)
        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_APPROVED, contract, context.user_id,
            details={"approval_id": approval.id, "approval_type": approval.approval_type, "comment": comment},
            old_value={"status": previous_status},
            new_value={"status": contract.status},
            ip_address=get_client_ip(request)
        )
        if contract.status == "APPROVED":
            _result_email(background_tasks, contract, "APPROVED", comment)

        return {
            "success": True,
            "message": f"{approval.approval_type.title()} approval recorded",
            "approval": ApprovalService.serialize(approval)
        }

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error approving {approval_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to approve")


@router.post("/{approval_id}/reject")
async def reject(
    approval_id: int,
    payload: CommentRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(*ANY_APPROVAL_ACT))
):
    try:
        approval = ApprovalService.get_for_action(db, approval_id, context)
        previous_status = approval.contract.status
        contract = ApprovalService.reject(db, approval, context.user, payload.comment)
        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_REJECTED, contract, context.user_id,
            details={"approval_id": approval.id, "approval_type": approval.approval_type, "comment": payload.comment},
            old_value={"status": previous_status},
            new_value={"status": contract.status},
            ip_address=get_client_ip(request)
        )
        _result_email(background_tasks, contract, "REJECTED", payload.comment)

        return {"success": True, "message": "Contract rejected", "approval": ApprovalService.serialize(approval)}

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error rejecting {approval_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to reject")


@router.post("/{approval_id}/request-revision")
async def request_revision(
    approval_id: int,
    payload: CommentRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(*ANY_APPROVAL_ACT))
):
    try:
        approval = ApprovalService.get_for_action(db, approval_id, context)
        previous_status = approval.contract.status
        contract = ApprovalService.request_revision(db, approval, context.user, payload.comment)
        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_REVISION_REQUESTED, contract, context.user_id,
            details={"approval_id": approval.id, "approval_type": approval.approval_type, "comment": payload.comment},
            old_value={"status": previous_status},
            new_value={"status": contract.status},
            ip_address=get_client_ip(request)
        )
        _result_email(background_tasks, contract, "RETURNED FOR REVISION", payload.comment)

        return {"success": True, "message": "Revision requested", "approval": ApprovalService.serialize(approval)}

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error requesting revision on {approval_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to request revision")


# =====================================================
# ESCALATION
# =====================================================

@router.post("/{approval_id}/escalate")
async def escalate(
    approval_id: int,
    payload: EscalateRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.APPROVAL_LEGAL_ESCALATE))
):
    try:
        approval = ApprovalService.get_for_action(db, approval_id, context)
        ApprovalService.escalate(db, approval, context.user, payload.escalated_to, payload.comment)
        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_ESCALATED, approval.contract, context.user_id,
            details={"approval_id": approval.id, "escalated_to": payload.escalated_to, "comment": payload.comment},
            ip_address=get_client_ip(request)
        )
        return {"success": True, "message": "Approval escalated", "approval": ApprovalService.serialize(approval)}

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error escalating {approval_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to escalate")


@router.post("/contracts/{contract_id}/escalate-to-legal-head")
async def escalate_to_legal_head(
    contract_id: int,
    request: Request,
    payload: Optional[EscalateToLegalHeadRequest] = None,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_ESCALATE))
):
    reason = payload.reason if payload else None
    try:
        contract = ContractService.get_contract(db, contract_id, context.require_organization())
        heads = ApprovalService.escalate_to_legal_head(db, contract, context.user, reason)
        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_ESCALATED, contract, context.user_id,
            details={"escalated_to": [h.id for h in heads], "reason": reason, "target_role": "LEGAL_HEAD"},
            ip_address=get_client_ip(request)
        )
        return {
            "success": True,
            "message": "Contract escalated to Legal Head",
            "escalated_to": [{"id": h.id, "name": h.name, "email": h.email} for h in heads]
        }

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error escalating contract {contract_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to escalate")
