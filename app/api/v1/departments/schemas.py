from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.enums import DepartmentType
from app.core.schemas import null_sentinel_to_none


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=150)
    type: DepartmentType
    parent_id: Optional[UUID] = Field(None, description="Parent department; omit for a top-level department")

    @field_validator("parent_id", mode="before")
    @classmethod
    def clean_parent(cls, value):
        return null_sentinel_to_none(value)


class DepartmentUpdate(BaseModel):
    """Send parent_id: null explicitly to move a department to the top level."""

    name: Optional[str] = Field(None, min_length=2, max_length=150)
    type: Optional[DepartmentType] = None
    parent_id: Optional[UUID] = None

    @field_validator("parent_id", mode="before")
    @classmethod
    def clean_parent(cls, value):
        return null_sentinel_to_none(value)


class DepartmentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    type: DepartmentType
    parent_id: Optional[UUID] = None
    is_default: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DepartmentNode(BaseModel):
    id: UUID
    name: str
    type: DepartmentType
    is_default: bool
    children: List["DepartmentNode"] = Field(default_factory=list)


DepartmentNode.model_rebuild()
