"""
Authentication Schemas
File: app/api/api_v1/auth/schemas.py
"""

from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional, List
from datetime import datetime
import re


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)

    @validator('email')
    def normalize_email(cls, v):
        return v.strip().lower()


class SwitchOrganizationRequest(BaseModel):
    organization_id: int


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=10)
    new_password: str = Field(..., min_length=8)

    @validator('new_password')
    def validate_password(cls, v):
        if not re.search(r'[A-Z]', v):
            raise ValueError('Password must contain at least one uppercase letter')
        if not re.search(r'[a-z]', v):
            raise ValueError('Password must contain at least one lowercase letter')
        if not re.search(r'\d', v):
            raise ValueError('Password must contain at least one number')
        return v


class ProfileUser(BaseModel):
    id: int
    email: str
    name: str
    must_change_password: bool = False
    last_login_at: Optional[datetime] = None


class OrganizationMembership(BaseModel):
    id: int
    name: str
    code: str
    role: str


class CurrentOrganization(BaseModel):
    id: int
    name: str
    code: str


class ProfileResponse(BaseModel):
    user: ProfileUser
    organizations: List[OrganizationMembership] = []
    current_organization: Optional[CurrentOrganization] = None
    role: Optional[str] = None
    permissions: List[str] = []


class LoginResponse(ProfileResponse):
    success: bool = True
    message: str = "Login successful"
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
