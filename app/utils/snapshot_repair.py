"""
Version snapshot repair helpers

Used by the maintenance scripts to fix JSON-encoded contract
version snapshots in place.
"""
from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from app.api.api_v1.contracts.service import decode_snapshot, encode_snapshot
from app.models.contract import ContractVersion

logger = logging.getLogger(__name__)

RECOVERED_SUFFIX = " (Recovered)"


def patch_snapshot(raw: Optional[str], updates: Dict[str, Any]) -> str:
    """
    Merge `updates` into an encoded snapshot and re-encode it.
    Bare HTML snapshots are wrapped as {"content": ...} first.
    """
    snapshot = decode_snapshot(raw)
    snapshot.update(updates)
    return encode_snapshot(snapshot)


def mark_recovered(change_log: Optional[Dict[str, Any]], suffix: str = RECOVERED_SUFFIX) -> Dict[str, Any]:
    log = dict(change_log or {})
    summary = log.get("summary") or "Version updated"
    if not summary.endswith(suffix):
        summary = f"{summary}{suffix}"
    log["summary"] = summary
    return log


def repair_version(
    db: Session,
    version_id: int,
    updates: Dict[str, Any],
    suffix: str = RECOVERED_SUFFIX
) -> ContractVersion:
    """Patch one version's snapshot and tag its change-log summary. Caller commits."""
    version = db.query(ContractVersion).filter(ContractVersion.id == version_id).first()
    if not version:
        raise LookupError(f"Version {version_id} not found")

    version.content_snapshot = patch_snapshot(version.content_snapshot, updates)
    # JSON columns only track reassignment
    version.change_log = mark_recovered(version.change_log, suffix)
    db.flush()

    logger.info(f"Version {version_id} repaired: keys={sorted(updates.keys())}")
    return version
