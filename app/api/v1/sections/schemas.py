from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.schemas import null_sentinel_to_none, strip_text


class SectionCreate(BaseModel):
    class_name: str = Field(..., max_length=10, description="UKG or 1..12")
    section_identifier: Optional[str] = Field(
        None, max_length=1, description="Single letter A-Z; next free letter when omitted"
    )
    section_name: Optional[str] = Field(None, max_length=100, description="Optional display name")
    section_incharge_id: Optional[UUID] = None

    @field_validator("class_name", mode="before")
    @classmethod
    def clean_class(cls, value):
        return strip_text(value)

    @field_validator("section_incharge_id", mode="before")
    @classmethod
    def clean_incharge(cls, value):
        return null_sentinel_to_none(value)


class SectionUpdate(BaseModel):
    """Incharge is changed through the dedicated incharge endpoint."""

    class_name: Optional[str] = Field(None, max_length=10)
    section_identifier: Optional[str] = Field(None, max_length=1)
    section_name: Optional[str] = Field(None, max_length=100)

    @field_validator("class_name", mode="before")
    @classmethod
    def clean_class(cls, value):
        return strip_text(value)


class InchargeAssignment(BaseModel):
    staff_id: Optional[UUID] = Field(None, description="Staff member to assign; null clears the incharge")

    @field_validator("staff_id", mode="before")
    @classmethod
    def clean_staff(cls, value):
        return null_sentinel_to_none(value)


class SectionResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    class_name: str
    section_identifier: str
    section_name: Optional[str] = None
    section_incharge_id: Optional[UUID] = None
    student_count: int = Field(0, description="Students currently placed in this section")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClassSummary(BaseModel):
    """A class is implied by its sections."""

    class_name: str
    sections: List[SectionResponse]
    next_section_identifier: str
