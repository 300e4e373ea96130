# =====================================================
# FILE: app/services/feature_flags.py
# Per-organization feature switches
# =====================================================

from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from typing import Any, Dict, List, Optional
import logging

from app.models.organization import FeatureFlag

logger = logging.getLogger(__name__)

FINANCE_WORKFLOW = "FINANCE_WORKFLOW"

SYSTEM_FEATURES = [
    {"code": "E_SIGNATURE", "name": "E-Signature Integration", "description": "Enable electronic signature workflows"},
    {"code": "MULTI_CURRENCY", "name": "Multi-Currency Support", "description": "Support multiple currencies in contracts"},
    {"code": "CUSTOM_WORKFLOWS", "name": "Custom Workflows", "description": "Enable custom approval workflow builder"},
    {"code": "OCR", "name": "OCR Processing", "description": "Enable OCR for uploaded documents"},
    {"code": FINANCE_WORKFLOW, "name": "Finance Review Workflow", "description": "Add a finance approval step to contract review"},
]

FEATURE_CODES = {feature["code"] for feature in SYSTEM_FEATURES}


def _get_flag(db: Session, organization_id: int, feature_code: str) -> Optional[FeatureFlag]:
    return db.query(FeatureFlag).filter(
        FeatureFlag.organization_id == organization_id,
        FeatureFlag.feature_code == feature_code
    ).first()


def is_enabled(db: Session, feature_code: str, organization_id: Optional[int]) -> bool:
    if not organization_id:
        return False
    flag = _get_flag(db, organization_id, feature_code)
    return bool(flag and flag.is_enabled)


def get_all_flags(db: Session, organization_id: int) -> List[Dict[str, Any]]:
    """System definitions merged with what the organization has stored"""
    stored = {
        flag.feature_code: flag
        for flag in db.query(FeatureFlag).filter(FeatureFlag.organization_id == organization_id).all()
    }
    return [
        {
            **feature,
            "is_enabled": bool(stored[feature["code"]].is_enabled) if feature["code"] in stored else False,
            "config": stored[feature["code"]].config if feature["code"] in stored else None,
        }
        for feature in SYSTEM_FEATURES
    ]


def update_flag(
    db: Session,
    organization_id: int,
    feature_code: str,
    is_enabled_value: bool,
    config: Optional[Dict[str, Any]] = None
) -> FeatureFlag:
    if feature_code not in FEATURE_CODES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid feature code: {feature_code}"
        )

    flag = _get_flag(db, organization_id, feature_code)
    if flag is None:
        flag = FeatureFlag(organization_id=organization_id, feature_code=feature_code)
        db.add(flag)

    flag.is_enabled = is_enabled_value
    if config is not None:
        flag.config = config

    db.commit()
    logger.info(f"Feature {feature_code} set to {is_enabled_value} for organization {organization_id}")
    return flag
