from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class SchoolContext(BaseModel):
    """Tenant scope for one operator action. Every service call receives it explicitly."""

    tenant_id: UUID
    user_id: Optional[UUID] = None
    role: Optional[str] = None

    class Config:
        frozen = True
