# =====================================================
# FILE: app/api/api_v1/contracts/schemas.py
# Contract API Schemas
# =====================================================

from pydantic import BaseModel, Field, EmailStr, validator
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# =====================================================
# ENUMS
# =====================================================

class ContractStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    LEGAL_APPROVED = "LEGAL_APPROVED"
    FINANCE_APPROVED = "FINANCE_APPROVED"
    APPROVED = "APPROVED"
    SENT_TO_COUNTERPARTY = "SENT_TO_COUNTERPARTY"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class AttachmentCategory(str, Enum):
    MAIN_DOCUMENT = "MAIN_DOCUMENT"
    SIGNED_CONTRACT = "SIGNED_CONTRACT"
    OTHER = "OTHER"


class ExportFormat(str, Enum):
    DOCX = "docx"
    PDF = "pdf"


# =====================================================
# CONTRACT CREATE REQUEST
# =====================================================

class ContractCreateRequest(BaseModel):
    template_id: int = Field(..., description="Template the contract is drafted from")
    title: str = Field(..., min_length=3, max_length=255)
    counterparty_name: str = Field(..., min_length=1, max_length=255)
    counterparty_email: Optional[EmailStr] = None

    start_date: Optional[date] = None
    end_date: Optional[date] = None

    amount: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    currency: str = Field("USD", min_length=3, max_length=3)
    description: Optional[str] = Field(None, max_length=5000)

    annexure_data: str = Field("", description="Annexure HTML; sanitized before storage")
    field_data: Dict[str, Any] = Field(default_factory=dict, description="Template placeholder values")

    @validator('end_date')
    def validate_end_date(cls, v, values):
        """End date must be after the start date when both are given"""
        if v and values.get('start_date') and v <= values['start_date']:
            raise ValueError('End date must be after start date')
        return v

    @validator('title', 'counterparty_name')
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Value cannot be empty')
        return v.strip()

    @validator('currency')
    def validate_currency(cls, v):
        return v.upper()


# =====================================================
# CONTRACT UPDATE REQUEST
# =====================================================

class ContractUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    counterparty_name: Optional[str] = Field(None, max_length=255)
    counterparty_email: Optional[EmailStr] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    description: Optional[str] = Field(None, max_length=5000)
    annexure_data: Optional[str] = None
    field_data: Optional[Dict[str, Any]] = None

    @validator('end_date')
    def validate_end_date(cls, v, values):
        if v and values.get('start_date') and v <= values['start_date']:
            raise ValueError('End date must be after start date')
        return v


class ReasonRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


# =====================================================
# RESPONSES
# =====================================================

class UserSummary(BaseModel):
    id: int
    name: str
    email: str

    class Config:
        from_attributes = True


class ContractResponse(BaseModel):
    id: int
    organization_id: int
    template_id: Optional[int] = None
    title: str
    reference: str
    status: str

    counterparty_name: str
    counterparty_email: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = "USD"
    description: Optional[str] = None

    content: Optional[str] = None
    annexure_data: Optional[str] = None
    field_data: Optional[Dict[str, Any]] = None

    created_by: int
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContractListItem(BaseModel):
    id: int
    title: str
    reference: str
    status: str
    counterparty_name: str
    end_date: Optional[date] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    created_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VersionResponse(BaseModel):
    id: int
    contract_id: int
    version_number: int
    change_log: Optional[Dict[str, Any]] = None
    created_by: int
    created_at: Optional[datetime] = None
    creator: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class ApprovalSummary(BaseModel):
    id: int
    approval_type: str
    status: str
    comment: Optional[str] = None
    acted_at: Optional[datetime] = None
    escalated_to: Optional[int] = None
    actor: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class AttachmentResponse(BaseModel):
    id: int
    contract_id: int
    file_name: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    category: str
    uploaded_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
