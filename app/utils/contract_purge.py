"""
Bulk contract removal

Used by the delete_all_contracts maintenance script. Rows go together with
the uploaded files they point at.
"""
from typing import Dict, List
import logging

from sqlalchemy.orm import Session

from app.models.approval import Approval
from app.models.contract import Contract, ContractAttachment, ContractVersion
from app.models.notification import Notification
from app.services import storage_service

logger = logging.getLogger(__name__)


def purge_contracts(db: Session, contract_ids: List[int]) -> Dict[str, int]:
    """
    Delete the contracts with their approvals, attachments, versions and
    notifications. Does not commit.

    Returns:
        rows removed per table, plus "files" for documents removed from disk
    """
    removed = {"files": 0}
    if not contract_ids:
        return removed

    attachments = db.query(ContractAttachment).filter(ContractAttachment.contract_id.in_(contract_ids)).all()
    for attachment in attachments:
        if storage_service.delete_file(attachment.file_url):
            removed["files"] += 1

    for model in (Approval, ContractAttachment, ContractVersion):
        removed[model.__tablename__] = (
            db.query(model).filter(model.contract_id.in_(contract_ids)).delete(synchronize_session=False)
        )

    removed[Notification.__tablename__] = db.query(Notification).filter(
        Notification.link.in_([f"/dashboard/contracts/{cid}" for cid in contract_ids])
    ).delete(synchronize_session=False)

    removed[Contract.__tablename__] = (
        db.query(Contract).filter(Contract.id.in_(contract_ids)).delete(synchronize_session=False)
    )
    logger.info(f"Purged {removed[Contract.__tablename__]} contracts and {removed['files']} files")
    return removed
