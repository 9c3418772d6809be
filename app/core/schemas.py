from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel

# Strings older clients send where they mean "no reference"
NULL_SENTINELS = frozenset({"", "none", "null", "not assigned"})


def null_sentinel_to_none(value: Any) -> Optional[Any]:
    """Before-validator for optional references: "none"/"" become a real None."""
    if isinstance(value, str) and value.strip().lower() in NULL_SENTINELS:
        return None
    return value


def strip_text(value: Any) -> Any:
    """Before-validator for labels typed into forms: trims surrounding whitespace only."""
    if isinstance(value, str):
        return value.strip()
    return value


class DropdownItem(BaseModel):
    label: str
    value: UUID


class MessageResponse(BaseModel):
    success: bool = True
    message: str
