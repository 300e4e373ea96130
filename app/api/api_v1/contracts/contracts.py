# =====================================================
# FILE: app/api/api_v1/contracts/contracts.py
# Contract drafting, versioning and lifecycle endpoints
# =====================================================

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Query, File, UploadFile, Request
from fastapi.responses import FileResponse, StreamingResponse
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any
import logging
import math

from app.core.database import get_db
from app.core.dependencies import CurrentContext, get_client_ip
from app.core.email import send_approval_request, send_contract_to_counterparty
from app.core.permissions import PermissionCode as P
from app.middleware.rbac_middleware import RBACDependency
from app.models.contract import Contract
from app.schemas.audit_trail import to_response
from app.services import storage_service
from app.services.approval_service import approvers_for
from app.services.audit_service import AuditActions, AuditService, log_contract_action
from app.services.document_export import (
    DOCX_MEDIA_TYPE,
    PDF_MEDIA_TYPE,
    DocumentExportService,
    export_filename,
)
from app.services.notification_service import NotificationService, NotificationTypes
from app.api.api_v1.contracts.service import ContractService, build_snapshot
from app.api.api_v1.contracts.schemas import (
    ApprovalSummary,
    AttachmentResponse,
    CancelRequest,
    ContractCreateRequest,
    ContractListItem,
    ContractResponse,
    ContractStatus,
    ContractUpdateRequest,
    ExportFormat,
    ReasonRequest,
    VersionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/contracts", tags=["contracts"])


def serialize_contract(contract: Contract) -> Dict[str, Any]:
    return ContractResponse.model_validate(contract).model_dump()


def _load(db: Session, contract_id: int, context: CurrentContext) -> Contract:
    return ContractService.get_contract(db, contract_id, context.require_organization())


def _internal_error(db: Session, action: str, e: Exception) -> HTTPException:
    db.rollback()
    logger.error(f"❌ Error {action}: {str(e)}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed {action}"
    )


# =====================================================
# CREATE CONTRACT
# =====================================================

@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
async def create_contract(
    payload: ContractCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_CREATE))
):
    """
    Create a DRAFT contract from a template. The template placeholders are
    filled from field_data and version 1 is recorded.
    """
    try:
        contract = ContractService.create_contract(db, payload, context.user, context.require_organization())
        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_CREATED, contract, context.user_id,
            details={"reference": contract.reference, "template_id": contract.template_id},
            new_value=build_snapshot(contract),
            ip_address=get_client_ip(request)
        )

        return {
            "success": True,
            "message": "Contract created successfully",
            "contract": serialize_contract(contract)
        }

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        raise _internal_error(db, "creating contract", e)


# =====================================================
# LIST / GET CONTRACTS
# =====================================================

@router.get("")
@router.get("/", include_in_schema=False)
async def list_contracts(
    status_filter: Optional[ContractStatus] = Query(None, alias="status"),
    mine: bool = Query(False),
    search: Optional[str] = Query(None, max_length=255),
    expiring: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_VIEW))
):
    contracts, total = ContractService.list_contracts(
        db,
        context.require_organization(),
        context.user_id,
        status_filter=status_filter.value if status_filter else None,
        mine=mine,
        search=search,
        expiring=expiring,
        page=page,
        limit=limit
    )

    return {
        "success": True,
        "contracts": [ContractListItem.model_validate(c).model_dump() for c in contracts],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0
        }
    }


@router.get("/{contract_id}")
async def get_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_VIEW))
):
    contract = _load(db, contract_id, context)
    versions = ContractService.list_versions(db, contract.id, limit=5)

    data = serialize_contract(contract)
    data["versions"] = [VersionResponse.model_validate(v).model_dump() for v in versions]
    data["approvals"] = [ApprovalSummary.model_validate(a).model_dump() for a in contract.approvals]
    data["creator"] = {"id": contract.creator.id, "name": contract.creator.name} if contract.creator else None

    return {"success": True, "contract": data}


# =====================================================
# UPDATE / DELETE
# =====================================================

@router.put("/{contract_id}")
async def update_contract(
    contract_id: int,
    payload: ContractUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_EDIT))
):
    try:
        contract = _load(db, contract_id, context)
        previous = build_snapshot(contract)
        contract, version = ContractService.update_contract(db, contract, payload, context.user)
        db.commit()

        if version:
            log_contract_action(
                db, AuditActions.CONTRACT_UPDATED, contract, context.user_id,
                details={"version_number": version.version_number, "summary": version.change_log.get("summary")},
                old_value=previous,
                new_value=build_snapshot(contract),
                ip_address=get_client_ip(request)
            )

        return {
            "success": True,
            "message": "Contract updated successfully" if version else "No changes made",
            "contract": serialize_contract(contract),
            "version": VersionResponse.model_validate(version).model_dump()
        }

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        raise _internal_error(db, "updating contract", e)


@router.delete("/{contract_id}")
async def delete_contract(
    contract_id: int,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_DELETE))
):
    """Soft delete a DRAFT or CANCELLED contract"""
    try:
        contract = _load(db, contract_id, context)
        ContractService.delete_contract(db, contract)
        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_DELETED, contract, context.user_id,
            details={"reference": contract.reference},
            ip_address=get_client_ip(request)
        )
        return {"success": True, "message": "Contract deleted successfully"}

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        raise _internal_error(db, "deleting contract", e)


# =====================================================
# LIFECYCLE TRANSITIONS
# =====================================================

@router.post("/{contract_id}/submit")
async def submit_contract(
    contract_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_SUBMIT))
):
    """Send a draft to Legal (and Finance when enabled) for approval"""
    try:
        contract = _load(db, contract_id, context)
        previous_status = contract.status
        approvals = ContractService.submit_for_approval(db, contract, context.user)

        for approval in approvals:
            approvers = [u for u in approvers_for(db, contract.organization_id, approval.approval_type)
                         if u.id != context.user_id]
            NotificationService.notify_users(
                db, [u.id for u in approvers],
                NotificationTypes.APPROVAL_REQUIRED,
                f"{approval.approval_type.title()} approval required: {contract.reference}",
                f"{context.user.name} submitted {contract.title} for review.",
                f"/dashboard/contracts/{contract.id}"
            )
            if approvers:
                background_tasks.add_task(
                    send_approval_request,
                    [u.email for u in approvers],
                    contract.title,
                    contract.reference,
                    approval.approval_type,
                    contract.id,
                    context.user.name
                )

        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_SUBMITTED, contract, context.user_id,
            details={"approval_types": [a.approval_type for a in approvals]},
            old_value={"status": previous_status},
            new_value={"status": contract.status},
            ip_address=get_client_ip(request)
        )

        return {
            "success": True,
            "message": "Contract submitted for approval",
            "contract": serialize_contract(contract),
            "approvals": [ApprovalSummary.model_validate(a).model_dump() for a in approvals]
        }

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        raise _internal_error(db, "submitting contract", e)


@router.post("/{contract_id}/send")
async def send_to_counterparty(
    contract_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_SEND))
):
    try:
        contract = _load(db, contract_id, context)
        ContractService.send_to_counterparty(db, contract)
        db.commit()

        background_tasks.add_task(
            send_contract_to_counterparty,
            contract.counterparty_email,
            contract.counterparty_name,
            contract.title,
            contract.reference,
            context.user.name
        )
        log_contract_action(
            db, AuditActions.CONTRACT_SENT, contract, context.user_id,
            details={"counterparty_email": contract.counterparty_email},
            new_value={"status": contract.status},
            ip_address=get_client_ip(request)
        )

        return {
            "success": True,
            "message": f"Contract sent to {contract.counterparty_name}",
            "contract": serialize_contract(contract)
        }

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        raise _internal_error(db, "sending contract", e)


@router.post("/{contract_id}/upload-signed")
async def upload_signed_contract(
    contract_id: int,
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_UPLOAD))
):
    """Store the counterparty-signed copy and activate the contract"""
    try:
        contract = _load(db, contract_id, context)
        attachment = ContractService.upload_signed(db, contract, file, context.user)
        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_SIGNED, contract, context.user_id,
            details={"attachment_id": attachment.id, "file_name": attachment.file_name},
            new_value={"status": contract.status},
            ip_address=get_client_ip(request)
        )

        return {
            "success": True,
            "message": "Signed contract uploaded. Contract is now active.",
            "contract": serialize_contract(contract),
            "attachment": AttachmentResponse.model_validate(attachment).model_dump()
        }

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        raise _internal_error(db, "uploading signed contract", e)


@router.post("/{contract_id}/cancel")
async def cancel_contract(
    contract_id: int,
    payload: CancelRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_EDIT))
):
    try:
        contract = _load(db, contract_id, context)
        previous_status = contract.status
        ContractService.cancel(db, contract, payload.reason)
        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_CANCELLED, contract, context.user_id,
            details={"reason": payload.reason},
            old_value={"status": previous_status},
            new_value={"status": contract.status},
            ip_address=get_client_ip(request)
        )
        return {"success": True, "message": "Contract cancelled", "contract": serialize_contract(contract)}

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        raise _internal_error(db, "cancelling contract", e)


@router.post("/{contract_id}/revert")
async def revert_contract(
    contract_id: int,
    request: Request,
    payload: Optional[ReasonRequest] = None,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_REVERT))
):
    """Back to negotiation: ACTIVE -> DRAFT"""
    try:
        contract = _load(db, contract_id, context)
        ContractService.revert_to_draft(db, contract)
        db.commit()

        log_contract_action(
            db, AuditActions.CONTRACT_REVERTED, contract, context.user_id,
            details={"reason": payload.reason if payload else None},
            old_value={"status": "ACTIVE"},
            new_value={"status": contract.status},
            ip_address=get_client_ip(request)
        )
        return {"success": True, "message": "Contract reverted to draft", "contract": serialize_contract(contract)}

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        raise _internal_error(db, "reverting contract", e)


# =====================================================
# DOCUMENTS & ATTACHMENTS
# =====================================================

@router.post("/{contract_id}/documents")
async def upload_document(
    contract_id: int,
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_EDIT))
):
    try:
        contract = _load(db, contract_id, context)
        attachment, version = ContractService.upload_document(db, contract, file, context.user)
        db.commit()

        log_contract_action(
            db, AuditActions.DOCUMENT_UPLOADED, contract, context.user_id,
            details={
                "attachment_id": attachment.id,
                "file_name": attachment.file_name,
                "version_number": version.version_number
            },
            ip_address=get_client_ip(request)
        )

        return {
            "success": True,
            "message": "Document uploaded successfully",
            "attachment": AttachmentResponse.model_validate(attachment).model_dump(),
            "version": VersionResponse.model_validate(version).model_dump()
        }

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        raise _internal_error(db, "uploading document", e)


@router.get("/{contract_id}/attachments")
async def list_attachments(
    contract_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_VIEW))
):
    contract = _load(db, contract_id, context)
    return {
        "success": True,
        "attachments": [AttachmentResponse.model_validate(a).model_dump() for a in contract.attachments]
    }


@router.get("/{contract_id}/attachments/{attachment_id}/download")
async def download_attachment(
    contract_id: int,
    attachment_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_DOWNLOAD))
):
    contract = _load(db, contract_id, context)
    attachment = ContractService.get_attachment(db, contract, attachment_id)
    path = storage_service.resolve_path(attachment.file_url)

    return FileResponse(
        path,
        media_type=attachment.file_type or "application/octet-stream",
        filename=attachment.file_name
    )


@router.get("/{contract_id}/export")
async def export_contract(
    contract_id: int,
    format: ExportFormat = Query(ExportFormat.DOCX),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_DOWNLOAD))
):
    """Render the contract body to DOCX or PDF"""
    contract = _load(db, contract_id, context)

    try:
        if format == ExportFormat.PDF:
            buffer = DocumentExportService.generate_pdf(contract)
            media_type = PDF_MEDIA_TYPE
        else:
            buffer = DocumentExportService.generate_docx(contract)
            media_type = DOCX_MEDIA_TYPE
    except Exception as e:
        logger.error(f"❌ Export failed for contract {contract_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate {format.value.upper()}"
        )

    filename = export_filename(contract, format.value)
    return StreamingResponse(
        buffer,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


# =====================================================
# VERSION HISTORY
# =====================================================

@router.get("/{contract_id}/versions")
async def list_versions(
    contract_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_HISTORY))
):
    contract = _load(db, contract_id, context)
    versions = ContractService.list_versions(db, contract.id)
    return {
        "success": True,
        "versions": [VersionResponse.model_validate(v).model_dump() for v in versions],
        "total": len(versions)
    }


@router.get("/{contract_id}/versions/{version_id}/changelog")
async def get_version_changelog(
    contract_id: int,
    version_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_HISTORY, P.CONTRACT_VIEW))
):
    contract = _load(db, contract_id, context)
    return {"success": True, **ContractService.get_changelog(db, contract, version_id)}


@router.get("/{contract_id}/compare")
async def compare_versions(
    contract_id: int,
    from_version_id: int = Query(...),
    to_version_id: int = Query(...),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_HISTORY, P.CONTRACT_VIEW))
):
    contract = _load(db, contract_id, context)
    return {"success": True, **ContractService.compare_versions(db, contract, from_version_id, to_version_id)}


@router.post("/{contract_id}/versions/{version_id}/restore")
async def restore_version(
    contract_id: int,
    version_id: int,
    request: Request,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_EDIT))
):
    try:
        contract = _load(db, contract_id, context)
        version = ContractService.restore_version(db, contract, version_id, context.user)
        db.commit()

        log_contract_action(
            db, AuditActions.VERSION_RESTORED, contract, context.user_id,
            details={"restored_from": version.change_log.get("restored_from"), "version_number": version.version_number},
            ip_address=get_client_ip(request)
        )

        return {
            "success": True,
            "message": version.change_log["summary"],
            "contract": serialize_contract(contract),
            "version": VersionResponse.model_validate(version).model_dump()
        }

    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        raise _internal_error(db, "restoring version", e)


# =====================================================
# AUDIT TRAIL
# =====================================================

@router.get("/{contract_id}/audit")
async def contract_audit_trail(
    contract_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_VIEW))
):
    contract = _load(db, contract_id, context)
    entries = AuditService(db).get_by_contract(contract.id)
    return {
        "success": True,
        "logs": [to_response(entry).model_dump() for entry in entries],
        "total": len(entries)
    }
