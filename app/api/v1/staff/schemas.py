from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.core.enums import UserRole
from app.core.schemas import null_sentinel_to_none


class StaffCreate(BaseModel):
    """Set login_role and password together to also give the staff member an operator login."""

    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    contact_number: Optional[str] = Field(None, max_length=50)
    designation: Optional[str] = Field(None, max_length=100)
    department_id: Optional[UUID] = None
    login_role: Optional[UserRole] = None
    password: Optional[str] = Field(None, min_length=8)

    @field_validator("designation", "department_id", mode="before")
    @classmethod
    def clean_optional(cls, value):
        return null_sentinel_to_none(value)

    @model_validator(mode="after")
    def login_needs_password(self) -> "StaffCreate":
        if self.login_role == UserRole.ADMIN:
            raise ValueError("Staff logins can only be TEACHER or INCHARGE")
        if (self.login_role is None) != (self.password is None):
            raise ValueError("login_role and password must be given together")
        return self


class StaffResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    full_name: str
    email: str
    contact_number: Optional[str] = None
    designation: Optional[str] = None
    department_id: Optional[UUID] = None
    has_login: bool = False
    created_at: datetime

    class Config:
        from_attributes = True
