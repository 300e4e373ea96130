"""
Approval Schemas
File: app/api/api_v1/approvals/schemas.py
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from enum import Enum


class ApprovalType(str, Enum):
    LEGAL = "LEGAL"
    FINANCE = "FINANCE"


class ApproveRequest(BaseModel):
    comment: Optional[str] = Field(None, max_length=2000)


class CommentRequest(BaseModel):
    comment: str = Field(..., min_length=1, max_length=2000)

    @validator('comment')
    def validate_comment(cls, v):
        if not v.strip():
            raise ValueError('Comment cannot be empty')
        return v.strip()


class EscalateRequest(BaseModel):
    escalated_to: int
    comment: Optional[str] = Field(None, max_length=2000)


class EscalateToLegalHeadRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)
