"""
Section catalog: read model over all class sections of one school.

Built once per operator action from the tenant's full section list, then queried in memory.
"""

import string
from typing import Dict, Iterable, Iterator, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.class_levels import class_sort_key, validate_class_label
from app.core.context import SchoolContext
from app.core.models import ClassSection

SECTION_IDENTIFIERS = string.ascii_uppercase
# Returned when every letter is taken; creating it then fails the uniqueness check.
FALLBACK_IDENTIFIER = "Z"


class SectionCatalog:
    def __init__(self, sections: Iterable[ClassSection]) -> None:
        self._sections: List[ClassSection] = list(sections)
        self._by_id: Dict[UUID, ClassSection] = {s.id: s for s in self._sections}

    @classmethod
    async def load(cls, db: AsyncSession, ctx: SchoolContext) -> "SectionCatalog":
        result = await db.execute(select(ClassSection).where(ClassSection.tenant_id == ctx.tenant_id))
        return cls(result.scalars().all())

    def __len__(self) -> int:
        return len(self._sections)

    def __iter__(self) -> Iterator[ClassSection]:
        return iter(list(self._sections))

    def get(self, section_id: Optional[UUID]) -> Optional[ClassSection]:
        if section_id is None:
            return None
        return self._by_id.get(section_id)

    def sections_for_class(self, class_name: str) -> List[ClassSection]:
        """Sections of one class, ordered by identifier. A new list on every call."""
        label = validate_class_label(class_name)
        return sorted(
            (s for s in self._sections if s.class_name == label),
            key=lambda s: s.section_identifier,
        )

    def find_section(self, class_name: str, section_identifier: str) -> Optional[ClassSection]:
        label = validate_class_label(class_name)
        identifier = section_identifier.strip().upper()
        for s in self._sections:
            if s.class_name == label and s.section_identifier == identifier:
                return s
        return None

    def next_free_identifier(self, class_name: str) -> str:
        """First letter A..Z not used by the class; "Z" when all 26 are taken."""
        used = {s.section_identifier for s in self.sections_for_class(class_name)}
        for letter in SECTION_IDENTIFIERS:
            if letter not in used:
                return letter
        return FALLBACK_IDENTIFIER

    def class_labels(self) -> List[str]:
        """Distinct class labels that have at least one section, UKG first."""
        return sorted({s.class_name for s in self._sections}, key=class_sort_key)
