from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.schemas import strip_text


class ExamCreate(BaseModel):
    exam_name: str = Field(..., min_length=1, max_length=150)
    year: int = Field(..., ge=2000, le=2100)
    class_name: str = Field(..., max_length=10, description="UKG or 1..12")

    @field_validator("class_name", mode="before")
    @classmethod
    def clean_class(cls, value):
        return strip_text(value)


class ExamResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    exam_name: str
    year: int
    class_name: str
    created_at: datetime

    class Config:
        from_attributes = True


class SubjectCreate(BaseModel):
    subject_name: str = Field(..., min_length=1, max_length=100)
    max_marks: int = Field(100, gt=0, le=1000)


class SubjectResponse(BaseModel):
    id: UUID
    exam_id: UUID
    subject_name: str
    max_marks: int

    class Config:
        from_attributes = True


class MarkEntry(BaseModel):
    student_id: UUID
    marks: float = Field(..., ge=0)
    remarks: Optional[str] = Field(None, max_length=500)


class MarksSave(BaseModel):
    entries: List[MarkEntry] = Field(..., min_length=1)


class PerformanceRecordResponse(BaseModel):
    id: str
    student_id: UUID
    subject_id: UUID
    exam_id: UUID
    marks: float
    remarks: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class MarksSaveResult(BaseModel):
    saved: List[PerformanceRecordResponse]
    # Students whose EXAM_RESULT timeline entry was written by this save
    results_published_for: List[UUID]
