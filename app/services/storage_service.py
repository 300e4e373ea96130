# =====================================================
# FILE: app/services/storage_service.py
# Local disk storage for contract documents
# =====================================================

from fastapi import HTTPException, UploadFile, status
from pathlib import Path
from typing import Tuple
import logging
import os
import shutil
import uuid

from app.core.config import settings

logger = logging.getLogger(__name__)


def _root() -> Path:
    return Path(settings.UPLOAD_DIR).resolve()


def save_contract_file(file: UploadFile, organization_id: int, contract_id: int) -> Tuple[str, int]:
    """
    Store an upload under UPLOAD_DIR/contracts/<org>/<contract>/.

    Returns:
        (storage key relative to UPLOAD_DIR, size in bytes)
    """
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File name is required")

    upload_dir = _root() / "contracts" / str(organization_id) / str(contract_id)
    upload_dir.mkdir(parents=True, exist_ok=True)

    extension = os.path.splitext(file.filename)[1].lower()
    stored_name = f"{uuid.uuid4().hex}{extension}"
    file_path = upload_dir / stored_name

    with open(file_path, "wb") as buffer:
        shutil.copyfileobj(file.file, buffer)

    size = file_path.stat().st_size
    if size > settings.MAX_UPLOAD_MB * 1024 * 1024:
        file_path.unlink()
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.MAX_UPLOAD_MB} MB"
        )

    key = file_path.relative_to(_root()).as_posix()
    logger.info(f"💾 File saved: {key} ({size} bytes)")
    return key, size


def resolve_path(key: str) -> Path:
    """Absolute path of a storage key; keys may not leave UPLOAD_DIR"""
    root = _root()
    path = (root / key).resolve()
    if root not in path.parents or not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found on server")
    return path


def delete_file(key: str) -> bool:
    """Remove a stored file; keys outside UPLOAD_DIR or already gone are skipped"""
    path = (_root() / key).resolve()
    if _root() not in path.parents or not path.is_file():
        logger.warning(f"File not removed, missing or outside storage: {key}")
        return False
    path.unlink()
    logger.info(f"File deleted: {key}")
    return True
