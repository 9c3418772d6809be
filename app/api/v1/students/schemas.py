from datetime import date, datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.enums import StudentStatus
from app.core.schemas import null_sentinel_to_none, strip_text


class StudentCreate(BaseModel):
    """Admission. When class_section_id is given the student is placed straight into that section."""

    admission_number: str = Field(..., min_length=1, max_length=50)
    admission_date: Optional[date] = None
    full_name: str = Field(..., min_length=1, max_length=255)
    parent_guardian_name: Optional[str] = Field(None, max_length=255)
    admission_class: str = Field(..., max_length=10, description="UKG or 1..12")
    class_section_id: Optional[UUID] = None

    @field_validator("admission_class", mode="before")
    @classmethod
    def clean_class(cls, value):
        return strip_text(value)

    @field_validator("class_section_id", mode="before")
    @classmethod
    def clean_section(cls, value):
        return null_sentinel_to_none(value)


class SectionChange(BaseModel):
    class_section_id: UUID


class StatusChange(BaseModel):
    status: StudentStatus
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def reason_required_when_inactive(self) -> "StatusChange":
        if self.status == StudentStatus.INACTIVE and not (self.reason or "").strip():
            raise ValueError("A reason is required to mark a student inactive")
        return self


class StudentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    admission_number: str
    admission_date: Optional[date] = None
    full_name: str
    parent_guardian_name: Optional[str] = None
    admission_class: str
    current_class: str
    class_section_id: Optional[UUID] = None
    status: StudentStatus
    inactive_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TimelineEventResponse(BaseModel):
    id: UUID
    student_id: UUID
    timestamp: datetime
    type: str
    description: str
    details: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class NextAdmissionNumber(BaseModel):
    admission_number: Optional[str] = Field(None, description="Highest numeric admission number + 1, if any")
