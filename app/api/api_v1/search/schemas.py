# =====================================================
# FILE: app/api/api_v1/search/schemas.py
# Contract search and saved search schemas
# =====================================================

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime, date


class SearchFilters(BaseModel):
    status: List[str] = Field(default_factory=list)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    counterparty: Optional[str] = Field(None, max_length=255)
    template_id: Optional[int] = None

    @validator('status', pre=True)
    def validate_status(cls, v):
        """Accepts a list or a comma separated string"""
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [s.strip().upper() for s in v if s and s.strip()]

    @validator('date_to')
    def validate_date_range(cls, v, values):
        if v and values.get('date_from') and v < values['date_from']:
            raise ValueError('date_to must not be before date_from')
        return v


class SavedSearchCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    query: str = Field("", max_length=255)
    filters: SearchFilters = Field(default_factory=SearchFilters)
    is_default: bool = False

    @validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()


class SavedSearchResponse(BaseModel):
    id: int
    name: str
    query: Optional[Dict[str, Any]] = None
    filters: Optional[Dict[str, Any]] = None
    is_default: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
