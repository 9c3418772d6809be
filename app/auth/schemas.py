from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from app.core.context import SchoolContext


class RegisterRequest(BaseModel):
    """School onboarding: creates the school (tenant) and its first admin."""

    school_name: str = Field(..., min_length=3)
    address: Optional[str] = Field(None, max_length=500)
    contact_email: Optional[EmailStr] = None

    admin_full_name: str
    admin_email: EmailStr
    password: str = Field(..., min_length=8)
    confirm_password: str = Field(..., min_length=8)

    accept_terms: bool

    @model_validator(mode="after")
    def validate_passwords_and_consents(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("password and confirm_password do not match")
        if not self.accept_terms:
            raise ValueError("Terms must be accepted")
        return self


class RegisterResponse(BaseModel):
    success: bool
    message: str
    tenant_id: UUID
    school_code: str  # Public identifier; tenant_id remains the internal FK


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserInfo(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    role: str


class SchoolInfo(BaseModel):
    id: UUID
    school_code: str
    school_name: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo
    school: SchoolInfo
    issued_at: datetime


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for RBAC checks."""

    id: UUID
    tenant_id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]]

    def to_context(self) -> SchoolContext:
        return SchoolContext(tenant_id=self.tenant_id, user_id=self.id, role=self.role)
