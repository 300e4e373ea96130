"""
Template Schemas
File: app/api/api_v1/templates/schemas.py
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime


class AnnexureInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    title: Optional[str] = Field(None, max_length=255)
    content: str = ""
    fields_config: List[Dict[str, Any]] = []


class TemplateCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    code: str = Field(..., min_length=2, max_length=50)
    category: str = Field("OTHER", max_length=50)
    description: Optional[str] = None
    base_content: str = Field(..., min_length=1)
    variables_config: List[Dict[str, Any]] = []
    is_global: bool = False
    annexures: List[AnnexureInput] = []
    target_org_ids: List[int] = []

    @validator('code')
    def validate_code(cls, v):
        v = v.strip().upper()
        if not v.replace("_", "").replace("-", "").isalnum():
            raise ValueError('Code may only contain letters, digits, "_" and "-"')
        return v


class TemplateUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    category: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    base_content: Optional[str] = None
    variables_config: Optional[List[Dict[str, Any]]] = None
    is_global: Optional[bool] = None
    is_active: Optional[bool] = None
    annexures: Optional[List[AnnexureInput]] = None
    target_org_ids: Optional[List[int]] = None


class TemplateAccessRequest(BaseModel):
    organization_id: int
    is_enabled: bool


class PreviewRequest(BaseModel):
    values: Dict[str, Any] = {}


class AnnexureResponse(BaseModel):
    id: int
    name: str
    title: Optional[str] = None
    content: str
    fields_config: Optional[List[Dict[str, Any]]] = None
    order: int

    class Config:
        from_attributes = True


class TemplateResponse(BaseModel):
    id: int
    name: str
    code: str
    category: str
    description: Optional[str] = None
    base_content: str
    variables_config: Optional[List[Dict[str, Any]]] = None
    is_global: bool
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    annexures: List[AnnexureResponse] = []

    class Config:
        from_attributes = True
