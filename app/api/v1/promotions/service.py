"""
Promotion orchestrator.

Moves students to the next class's landing section (identifier "A" unless configured
otherwise) and appends a PROMOTION timeline event per student. Every check runs before
the first write; all writes of one operator action share a single commit, so a student
is either fully promoted (section and event) or untouched.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.sections.catalog import SectionCatalog
from app.api.v1.sections.service import section_to_response
from app.api.v1.students.service import get_owned_student, publish_students, student_to_response
from app.api.v1.students.timeline import add_timeline_event, publish_timeline
from app.core.change_feed import ChangeFeed
from app.core.class_levels import next_class, validate_class_label
from app.core.clock import academic_year_label, utcnow
from app.core.config import settings
from app.core.context import SchoolContext
from app.core.enums import TimelineEventType
from app.core.exceptions import (
    AtCeiling,
    CurrentSectionNotFound,
    DestinationSectionNotFound,
    MissingSelection,
    PromotionFailed,
    SectionNotFound,
    StudentNotFound,
)
from app.core.logging import get_logger
from app.core.models import ClassSection, Student

from .schemas import PromotionResult, PromotionSelection, SinglePromotionResult

logger = get_logger("promotions")


def session_options(today: Optional[date] = None, count: int = 5) -> List[str]:
    """Sessions offered on the promotion screen, newest first: 2025-26, 2024-25, ..."""
    year = (today or utcnow().date()).year
    return [f"{y}-{str(y + 1)[-2:]}" for y in range(year, year - count, -1)]


def _landing_section(catalog: SectionCatalog, class_name: str) -> ClassSection:
    identifier = settings.default_landing_section.upper()
    section = catalog.find_section(class_name, identifier)
    if section is None:
        raise DestinationSectionNotFound(class_name, identifier)
    return section


async def _commit_promotion(db: AsyncSession, ctx: SchoolContext, student_count: int, error_message: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            "Promotion of %d student(s) failed for tenant %s: %s", student_count, ctx.tenant_id, e
        )
        raise PromotionFailed(error_message) from e


async def promote_students(
    db: AsyncSession,
    ctx: SchoolContext,
    selection: PromotionSelection,
    feed: Optional[ChangeFeed] = None,
) -> PromotionResult:
    """Batch promotion of the selected students of one section into `to_class`."""
    if not selection.session or not selection.from_section_id or not selection.to_class or not selection.student_ids:
        raise MissingSelection()

    to_class = validate_class_label(selection.to_class)
    catalog = await SectionCatalog.load(db, ctx)
    source = catalog.get(selection.from_section_id)
    if source is None:
        raise SectionNotFound("Source section not found")
    if selection.from_class and validate_class_label(selection.from_class) != source.class_name:
        raise MissingSelection(
            f"Section {source.section_identifier} does not belong to Class {selection.from_class}."
        )
    destination = _landing_section(catalog, to_class)

    # Keep the operator's order, drop repeats.
    student_ids = list(dict.fromkeys(selection.student_ids))
    result = await db.execute(
        select(Student).where(Student.tenant_id == ctx.tenant_id, Student.id.in_(student_ids))
    )
    found = {s.id: s for s in result.scalars().all()}
    missing = [sid for sid in student_ids if sid not in found]
    if missing:
        raise StudentNotFound(f"{len(missing)} selected student(s) not found")
    students = [found[sid] for sid in student_ids]
    outside = [s for s in students if s.class_section_id != source.id]
    if outside:
        raise MissingSelection(
            f"{len(outside)} selected student(s) are not in Class {source.class_name} - {source.section_identifier}."
        )

    events = []
    for student in students:
        student.class_section_id = destination.id
        events.append(
            add_timeline_event(
                db, ctx, student.id, TimelineEventType.PROMOTION,
                f"Promoted to Class {to_class} for session {selection.session}",
                {"fromClass": source.class_name, "toClass": to_class, "academicYear": selection.session},
            )
        )
    await _commit_promotion(db, ctx, len(students), "An error occurred while promoting students.")

    logger.info(
        "Promoted %d student(s) from %s to %s for tenant %s",
        len(students), source.label, destination.label, ctx.tenant_id,
    )
    publish_students(feed, ctx, students)
    publish_timeline(feed, ctx, events)
    return PromotionResult(
        promoted_count=len(students),
        student_ids=student_ids,
        to_class=to_class,
        destination_section=section_to_response(destination),
        academic_year=selection.session,
        selection=selection.model_copy(update={"student_ids": []}),
    )


async def promote_student(
    db: AsyncSession,
    ctx: SchoolContext,
    student_id: UUID,
    feed: Optional[ChangeFeed] = None,
    today: Optional[date] = None,
) -> SinglePromotionResult:
    """
    Promote one student to the class after their current section's class.

    The section is authoritative: the stored current_class is not consulted.
    """
    student = await get_owned_student(db, ctx, student_id)
    if student is None:
        raise StudentNotFound()
    catalog = await SectionCatalog.load(db, ctx)
    current = catalog.get(student.class_section_id)
    if current is None:
        raise CurrentSectionNotFound()
    to_class = next_class(current.class_name)
    if to_class is None:
        raise AtCeiling(current.class_name)
    destination = _landing_section(catalog, to_class)

    academic_year = academic_year_label(today)
    student.class_section_id = destination.id
    student.current_class = to_class
    event = add_timeline_event(
        db, ctx, student.id, TimelineEventType.PROMOTION,
        f"Promoted from Class {current.class_name} to Class {to_class}",
        {"fromClass": current.class_name, "toClass": to_class, "academicYear": academic_year},
    )
    await _commit_promotion(db, ctx, 1, "An error occurred while promoting the student.")
    await db.refresh(student)

    logger.info("Promoted student %s from %s to %s", student.id, current.label, destination.label)
    publish_students(feed, ctx, [student])
    publish_timeline(feed, ctx, [event])
    return SinglePromotionResult(
        student=student_to_response(student),
        from_class=current.class_name,
        to_class=to_class,
        academic_year=academic_year,
        destination_section=section_to_response(destination),
    )
