# =====================================================
# FILE: app/api/api_v1/contracts/service.py
# Contract Service - drafting, versions and lifecycle
# =====================================================

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc, or_
from typing import List, Optional, Dict, Any, Tuple
from datetime import datetime, date, timedelta
from decimal import Decimal
from fastapi import HTTPException, UploadFile, status
import json
import logging
import secrets
import string

from app.models.contract import Contract, ContractVersion, ContractAttachment
from app.models.approval import Approval
from app.models.organization import Organization
from app.models.template import Template
from app.models.user import User
from app.services import storage_service
from app.services.diff_service import DiffService
from app.services.feature_flags import is_enabled, FINANCE_WORKFLOW
from app.services.notification_service import NotificationService, NotificationTypes
from app.services.template_service import TemplateService, render_template
from app.utils.sanitize import sanitize_contract_content, sanitize_rich_text

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = {"DRAFT", "REVISION_REQUESTED"}
DELETABLE_STATUSES = {"DRAFT", "CANCELLED"}
TERMINAL_STATUSES = {"CANCELLED", "EXPIRED", "TERMINATED"}
EXPIRING_WINDOW_DAYS = 30

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
AMOUNT_QUANTUM = Decimal("0.01")

SNAPSHOT_FIELDS = (
    "title", "counterparty_name", "counterparty_email", "start_date", "end_date",
    "amount", "currency", "description", "status", "content", "annexure_data", "field_data",
)


def encode_snapshot(snapshot: Dict[str, Any]) -> str:
    return json.dumps(snapshot, default=str)


def decode_snapshot(raw: Optional[str]) -> Dict[str, Any]:
    """Version snapshots are JSON objects; legacy rows hold bare HTML"""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return {"content": raw}
    return data if isinstance(data, dict) else {"content": raw}


def build_snapshot(contract: Contract) -> Dict[str, Any]:
    snapshot = {}
    for field in SNAPSHOT_FIELDS:
        value = getattr(contract, field)
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            # same text whether the value came from the request or the database
            value = str(value.quantize(AMOUNT_QUANTUM))
        snapshot[field] = value
    return snapshot


class ContractService:
    """Contract business logic service"""

    # =====================================================
    # REFERENCE GENERATION
    # =====================================================

    @staticmethod
    def generate_reference(org_code: str, today: Optional[date] = None) -> str:
        """{ORGCODE}-{YYMM}-{6 random uppercase alphanumerics}"""
        today = today or datetime.utcnow().date()
        unique = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(6))
        return f"{org_code}-{today.strftime('%y%m')}-{unique}"

    @staticmethod
    def _unique_reference(db: Session, org_code: str) -> str:
        while True:
            reference = ContractService.generate_reference(org_code)
            if not db.query(Contract.id).filter(Contract.reference == reference).first():
                return reference

    # =====================================================
    # CREATE CONTRACT
    # =====================================================

    @staticmethod
    def create_contract(db: Session, request, user: User, organization_id: int) -> Contract:
        organization = db.query(Organization).filter(Organization.id == organization_id).first()
        if not organization:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")

        template = db.query(Template).filter(Template.id == request.template_id).first()
        if not template or not TemplateService.is_available(db, template, organization_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Template is not available for this organization"
            )

        field_data = dict(request.field_data or {})
        contract = Contract(
            organization_id=organization_id,
            template_id=template.id,
            title=request.title,
            reference=ContractService._unique_reference(db, organization.code),
            status="DRAFT",
            counterparty_name=request.counterparty_name,
            counterparty_email=request.counterparty_email,
            start_date=request.start_date,
            end_date=request.end_date,
            amount=request.amount,
            currency=request.currency,
            description=sanitize_rich_text(request.description) if request.description else None,
            content=sanitize_contract_content(render_template(template.base_content, field_data)),
            annexure_data=sanitize_contract_content(request.annexure_data),
            field_data=field_data,
            created_by=user.id,
            is_deleted=False,
        )
        db.add(contract)
        db.flush()

        change_log = DiffService.calculate_changes(None, build_snapshot(contract), user.email)
        ContractService._add_version(db, contract, user, change_log)

        logger.info(f"Contract created: {contract.reference} by user {user.id}")
        return contract

    # =====================================================
    # GET / LIST
    # =====================================================

    @staticmethod
    def get_contract(db: Session, contract_id: int, organization_id: Optional[int]) -> Contract:
        """404 when missing or deleted, 403 when owned by another organization"""
        contract = db.query(Contract).filter(
            Contract.id == contract_id,
            Contract.is_deleted == False
        ).first()

        if not contract:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contract not found")

        if contract.organization_id != organization_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied to this contract")

        return contract

    @staticmethod
    def list_contracts(
        db: Session,
        organization_id: int,
        user_id: int,
        status_filter: Optional[str] = None,
        mine: bool = False,
        search: Optional[str] = None,
        expiring: bool = False,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Contract], int]:
        query = db.query(Contract).filter(
            Contract.organization_id == organization_id,
            Contract.is_deleted == False
        )

        if status_filter:
            query = query.filter(Contract.status == status_filter)
        if mine:
            query = query.filter(Contract.created_by == user_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Contract.title.ilike(pattern), Contract.reference.ilike(pattern)))
        if expiring:
            today = datetime.utcnow().date()
            query = query.filter(
                Contract.status == "ACTIVE",
                Contract.end_date >= today,
                Contract.end_date <= today + timedelta(days=EXPIRING_WINDOW_DAYS)
            )

        total = query.count()
        contracts = (
            query.order_by(desc(Contract.created_at), desc(Contract.id))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return contracts, total

    # =====================================================
    # UPDATE / DELETE
    # =====================================================

    @staticmethod
    def update_contract(db: Session, contract: Contract, request, user: User) -> Tuple[Contract, Optional[ContractVersion]]:
        """
        Apply changes to an editable contract. A new version is written only
        when something tracked by the change log actually changed.
        """
        if contract.status not in EDITABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Can only update contracts in DRAFT or REVISION_REQUESTED status"
            )

        previous = build_snapshot(contract)
        changes = request.dict(exclude_unset=True)

        if "end_date" in changes or "start_date" in changes:
            start = changes.get("start_date", contract.start_date)
            end = changes.get("end_date", contract.end_date)
            if start and end and end <= start:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must be after start date")

        for field in ("title", "counterparty_name", "counterparty_email", "start_date",
                      "end_date", "amount", "currency"):
            if field in changes:
                setattr(contract, field, changes[field])

        if "description" in changes:
            contract.description = sanitize_rich_text(changes["description"]) if changes["description"] else None
        if changes.get("annexure_data") is not None:
            contract.annexure_data = sanitize_contract_content(changes["annexure_data"])
        if changes.get("field_data") is not None:
            contract.field_data = dict(changes["field_data"])
            if contract.template is not None:
                contract.content = sanitize_contract_content(
                    render_template(contract.template.base_content, contract.field_data)
                )

        current = build_snapshot(contract)
        version = None
        if current != previous:
            change_log = DiffService.calculate_changes(previous, current, user.email)
            version = ContractService._add_version(db, contract, user, change_log)

        contract.updated_at = datetime.utcnow()
        return contract, version

    @staticmethod
    def delete_contract(db: Session, contract: Contract) -> None:
        """Soft delete"""
        if contract.status not in DELETABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only DRAFT or CANCELLED contracts can be deleted"
            )
        contract.is_deleted = True
        contract.deleted_at = datetime.utcnow()

    # =====================================================
    # VERSIONS
    # =====================================================

    @staticmethod
    def _add_version(
        db: Session,
        contract: Contract,
        user: User,
        change_log: Dict[str, Any],
        snapshot: Optional[Dict[str, Any]] = None
    ) -> ContractVersion:
        latest = db.query(ContractVersion.version_number).filter(
            ContractVersion.contract_id == contract.id
        ).order_by(desc(ContractVersion.version_number)).first()

        version = ContractVersion(
            contract_id=contract.id,
            version_number=(latest[0] if latest else 0) + 1,
            content_snapshot=encode_snapshot(snapshot if snapshot is not None else build_snapshot(contract)),
            change_log=change_log,
            created_by=user.id,
            created_at=datetime.utcnow()
        )
        db.add(version)
        db.flush()
        return version

    @staticmethod
    def list_versions(db: Session, contract_id: int, limit: Optional[int] = None) -> List[ContractVersion]:
        query = (
            db.query(ContractVersion)
            .options(selectinload(ContractVersion.creator))
            .filter(ContractVersion.contract_id == contract_id)
            .order_by(desc(ContractVersion.version_number))
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def get_version(db: Session, contract: Contract, version_id: int) -> ContractVersion:
        version = db.query(ContractVersion).filter(ContractVersion.id == version_id).first()
        if not version or version.contract_id != contract.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Version not found for this contract")
        return version

    @staticmethod
    def get_changelog(db: Session, contract: Contract, version_id: int) -> Dict[str, Any]:
        version = ContractService.get_version(db, contract, version_id)
        previous = db.query(ContractVersion).filter(
            ContractVersion.contract_id == contract.id,
            ContractVersion.version_number < version.version_number
        ).order_by(desc(ContractVersion.version_number)).first()

        return {
            "version_id": version.id,
            "version_number": version.version_number,
            "previous_version_number": previous.version_number if previous else None,
            "change_log": version.change_log,
            "created_by": version.creator.name if version.creator else None,
            "created_at": version.created_at,
        }

    @staticmethod
    def compare_versions(db: Session, contract: Contract, from_version_id: int, to_version_id: int) -> Dict[str, Any]:
        from_version = ContractService.get_version(db, contract, from_version_id)
        to_version = ContractService.get_version(db, contract, to_version_id)

        comparison = DiffService.compare_versions(
            decode_snapshot(from_version.content_snapshot),
            decode_snapshot(to_version.content_snapshot)
        )
        comparison["from_version"] = {"id": from_version.id, "version_number": from_version.version_number}
        comparison["to_version"] = {"id": to_version.id, "version_number": to_version.version_number}
        return comparison

    @staticmethod
    def restore_version(db: Session, contract: Contract, version_id: int, user: User) -> ContractVersion:
        """Copy an older snapshot back onto a DRAFT contract as a new version"""
        if contract.status != "DRAFT":
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Versions can only be restored on DRAFT contracts")

        version = ContractService.get_version(db, contract, version_id)
        snapshot = decode_snapshot(version.content_snapshot)
        previous = build_snapshot(contract)

        for field in ("title", "counterparty_name", "counterparty_email", "currency", "description"):
            if field in snapshot:
                setattr(contract, field, snapshot[field])
        for field in ("start_date", "end_date"):
            if field in snapshot:
                setattr(contract, field, date.fromisoformat(snapshot[field]) if snapshot[field] else None)
        if "amount" in snapshot:
            contract.amount = Decimal(snapshot["amount"]) if snapshot["amount"] is not None else None
        if "content" in snapshot:
            contract.content = sanitize_contract_content(snapshot["content"])
        if "annexure_data" in snapshot:
            contract.annexure_data = sanitize_contract_content(snapshot["annexure_data"])
        if isinstance(snapshot.get("field_data"), dict):
            contract.field_data = snapshot["field_data"]

        change_log = DiffService.calculate_changes(previous, build_snapshot(contract), user.email)
        change_log["summary"] = f"Restored from version {version.version_number}"
        change_log["restored_from"] = version.version_number
        return ContractService._add_version(db, contract, user, change_log)

    # =====================================================
    # LIFECYCLE
    # =====================================================

    @staticmethod
    def submit_for_approval(db: Session, contract: Contract, user: User) -> List[Approval]:
        if contract.status not in EDITABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only DRAFT or REVISION_REQUESTED contracts can be submitted"
            )

        # A resubmission starts a fresh review round
        db.query(Approval).filter(
            Approval.contract_id == contract.id,
            Approval.status == "PENDING"
        ).delete(synchronize_session=False)

        approval_types = ["LEGAL"]
        if is_enabled(db, FINANCE_WORKFLOW, contract.organization_id):
            approval_types.append("FINANCE")

        approvals = []
        for approval_type in approval_types:
            approval = Approval(contract_id=contract.id, approval_type=approval_type, status="PENDING")
            db.add(approval)
            approvals.append(approval)

        contract.status = "IN_REVIEW"
        contract.submitted_at = datetime.utcnow()
        db.flush()
        db.expire(contract, ["approvals"])

        logger.info(f"Contract {contract.reference} submitted for {', '.join(approval_types)} approval")
        return approvals

    @staticmethod
    def send_to_counterparty(db: Session, contract: Contract) -> Contract:
        if contract.status != "APPROVED":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only APPROVED contracts can be sent to counterparty"
            )
        if not contract.counterparty_email:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Counterparty email is missing")

        contract.status = "SENT_TO_COUNTERPARTY"
        contract.sent_at = datetime.utcnow()
        return contract

    @staticmethod
    def upload_signed(db: Session, contract: Contract, file: UploadFile, user: User) -> ContractAttachment:
        if contract.status != "SENT_TO_COUNTERPARTY":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Contract must be in SENT_TO_COUNTERPARTY status"
            )

        attachment = ContractService.add_attachment(db, contract, file, user, "SIGNED_CONTRACT")

        field_data = dict(contract.field_data or {})
        field_data["signed_contract_key"] = attachment.file_url
        contract.field_data = field_data
        contract.status = "ACTIVE"
        contract.signed_at = datetime.utcnow()

        if contract.created_by != user.id:
            NotificationService.create_notification(
                db, contract.created_by,
                NotificationTypes.CONTRACT_SIGNED,
                f"Contract signed: {contract.reference}",
                f"The signed copy of {contract.title} was uploaded and the contract is now active.",
                f"/dashboard/contracts/{contract.id}"
            )
        return attachment

    @staticmethod
    def upload_document(db: Session, contract: Contract, file: UploadFile, user: User) -> Tuple[ContractAttachment, ContractVersion]:
        """
        Store a working document and open a new version whose snapshot
        points at the file; its text is filled in later (ocr_status PENDING).
        Only editable contracts take new documents.
        """
        if contract.status not in EDITABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Documents can only be uploaded in DRAFT or REVISION_REQUESTED status, not {contract.status}"
            )

        attachment = ContractService.add_attachment(db, contract, file, user, "MAIN_DOCUMENT")

        snapshot = build_snapshot(contract)
        snapshot["file_url"] = attachment.file_url
        snapshot["file_name"] = attachment.file_name
        snapshot["ocr_status"] = "PENDING"
        change_log = {
            "summary": "Uploaded draft document",
            "change_count": 1,
            "changes": [{"change_type": "document_uploaded", "file_name": attachment.file_name}],
            "created_by": user.email,
        }
        version = ContractService._add_version(db, contract, user, change_log, snapshot=snapshot)
        return attachment, version

    @staticmethod
    def add_attachment(db: Session, contract: Contract, file: UploadFile, user: User, category: str) -> ContractAttachment:
        key, size = storage_service.save_contract_file(file, contract.organization_id, contract.id)
        attachment = ContractAttachment(
            contract_id=contract.id,
            file_name=file.filename,
            file_url=key,
            file_type=file.content_type,
            file_size=size,
            category=category,
            uploaded_by=user.id
        )
        db.add(attachment)
        db.flush()
        return attachment

    @staticmethod
    def get_attachment(db: Session, contract: Contract, attachment_id: int) -> ContractAttachment:
        attachment = db.query(ContractAttachment).filter(
            ContractAttachment.id == attachment_id,
            ContractAttachment.contract_id == contract.id
        ).first()
        if not attachment:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")
        return attachment

    @staticmethod
    def cancel(db: Session, contract: Contract, reason: str) -> Contract:
        if contract.status in TERMINAL_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Cannot cancel a contract in {contract.status} status"
            )

        db.query(Approval).filter(
            Approval.contract_id == contract.id,
            Approval.status == "PENDING"
        ).delete(synchronize_session=False)

        contract.status = "CANCELLED"
        contract.cancelled_at = datetime.utcnow()
        contract.cancellation_reason = reason
        db.expire(contract, ["approvals"])
        return contract

    @staticmethod
    def revert_to_draft(db: Session, contract: Contract) -> Contract:
        """Send an ACTIVE contract back to negotiation"""
        if contract.status != "ACTIVE":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only ACTIVE contracts can be reverted to DRAFT"
            )

        contract.status = "DRAFT"
        contract.signed_at = None
        contract.sent_at = None
        contract.approved_at = None
        return contract
