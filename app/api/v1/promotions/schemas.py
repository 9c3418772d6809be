from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.api.v1.sections.schemas import SectionResponse
from app.api.v1.students.schemas import StudentResponse
from app.core.schemas import null_sentinel_to_none, strip_text


class PromotionSelection(BaseModel):
    """
    What the operator picked on the promotion screen. Every field may be unset here;
    the orchestrator reports an incomplete selection as MissingSelection.
    """

    session: Optional[str] = Field(None, max_length=20, description="Academic session, e.g. 2025-26")
    from_class: Optional[str] = Field(None, max_length=10)
    from_section_id: Optional[UUID] = None
    to_class: Optional[str] = Field(None, max_length=10)
    student_ids: List[UUID] = Field(default_factory=list)

    @field_validator("from_section_id", mode="before")
    @classmethod
    def clean_section(cls, value):
        return null_sentinel_to_none(value)

    @field_validator("session", "from_class", "to_class", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        value = strip_text(value)
        return value or None


class PromotionResult(BaseModel):
    promoted_count: int
    student_ids: List[UUID]
    to_class: str
    destination_section: SectionResponse
    academic_year: str
    # The operator's selection with the students cleared, ready for the next batch.
    selection: PromotionSelection


class SinglePromotionResult(BaseModel):
    student: StudentResponse
    from_class: str
    to_class: str
    academic_year: str
    destination_section: SectionResponse


class SessionOptions(BaseModel):
    sessions: List[str]
