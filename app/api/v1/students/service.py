from datetime import date
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.change_feed import ChangeFeed, ChangeOperation, Collection, LiveQuery
from app.core.class_levels import class_sort_key, validate_class_label
from app.core.clock import academic_year_label, utcnow
from app.core.context import SchoolContext
from app.core.enums import StudentStatus, TimelineEventType
from app.core.exceptions import SectionNotFound, ServiceError, StudentNotFound
from app.core.logging import get_logger
from app.core.models import ClassSection, Student

from .schemas import StudentCreate, StudentResponse, TimelineEventResponse
from .timeline import add_timeline_event, list_timeline, publish_timeline

logger = get_logger("students")


def student_to_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        tenant_id=s.tenant_id,
        admission_number=s.admission_number,
        admission_date=s.admission_date,
        full_name=s.full_name,
        parent_guardian_name=s.parent_guardian_name,
        admission_class=s.admission_class,
        current_class=s.current_class,
        class_section_id=s.class_section_id,
        status=s.status,
        inactive_reason=s.inactive_reason,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def publish_students(feed: Optional[ChangeFeed], ctx: SchoolContext, students: List[Student]) -> None:
    if feed is None:
        return
    for s in students:
        feed.publish_document(
            ctx.tenant_id, Collection.STUDENTS, student_to_response(s).model_dump(), ChangeOperation.UPDATE
        )


def placed_class():
    """Class a student is in: the class of their section, else the stored label for unplaced students."""
    return func.coalesce(ClassSection.class_name, Student.current_class)


def students_with_class(ctx: SchoolContext):
    """Select (Student, class_name) rows of a school. Batch promotion moves only the section."""
    return (
        select(Student, placed_class().label("class_name"))
        .outerjoin(ClassSection, ClassSection.id == Student.class_section_id)
        .where(Student.tenant_id == ctx.tenant_id)
    )


async def get_owned_student(db: AsyncSession, ctx: SchoolContext, student_id: UUID) -> Optional[Student]:
    result = await db.execute(
        select(Student).where(Student.id == student_id, Student.tenant_id == ctx.tenant_id)
    )
    return result.scalar_one_or_none()


async def get_owned_section(db: AsyncSession, ctx: SchoolContext, section_id: UUID) -> Optional[ClassSection]:
    result = await db.execute(
        select(ClassSection).where(ClassSection.id == section_id, ClassSection.tenant_id == ctx.tenant_id)
    )
    return result.scalar_one_or_none()


def _assignment_description(section: ClassSection) -> str:
    return f"Assigned to Class {section.class_name} - Section {section.section_identifier}."


async def admit_student(
    db: AsyncSession,
    ctx: SchoolContext,
    payload: StudentCreate,
    feed: Optional[ChangeFeed] = None,
    today: Optional[date] = None,
) -> StudentResponse:
    """
    Create a student plus an ADMISSION event, and a CLASS_ASSIGNMENT event when a section
    is chosen. All rows go in one commit.
    """
    admission_class = validate_class_label(payload.admission_class)
    section = None
    if payload.class_section_id is not None:
        section = await get_owned_section(db, ctx, payload.class_section_id)
        if section is None:
            raise SectionNotFound()

    today = today or utcnow().date()
    year = academic_year_label(today)
    student = Student(
        tenant_id=ctx.tenant_id,
        admission_number=payload.admission_number.strip(),
        admission_date=payload.admission_date or today,
        full_name=payload.full_name.strip(),
        parent_guardian_name=(payload.parent_guardian_name or "").strip() or None,
        admission_class=admission_class,
        current_class=section.class_name if section else admission_class,
        class_section_id=section.id if section else None,
        status=StudentStatus.ACTIVE.value,
    )
    db.add(student)
    try:
        await db.flush()
        events = [
            add_timeline_event(
                db, ctx, student.id, TimelineEventType.ADMISSION,
                "Admitted to the school.",
                {"class": admission_class, "academicYear": year},
            )
        ]
        if section is not None:
            events.append(
                add_timeline_event(
                    db, ctx, student.id, TimelineEventType.CLASS_ASSIGNMENT,
                    _assignment_description(section),
                    {"class": section.class_name, "section": section.section_identifier, "academicYear": year},
                )
            )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Admission number already exists for this school", status.HTTP_409_CONFLICT)
    await db.refresh(student)
    logger.info("Admitted student %s (%s) for tenant %s", student.id, student.admission_number, ctx.tenant_id)
    response = student_to_response(student)
    if feed is not None:
        feed.publish_document(ctx.tenant_id, Collection.STUDENTS, response.model_dump(), ChangeOperation.SET)
    publish_timeline(feed, ctx, events)
    return response


async def next_admission_number(db: AsyncSession, ctx: SchoolContext) -> Optional[str]:
    """Highest numeric admission number + 1; None when there is nothing numeric to continue from."""
    result = await db.execute(select(Student.admission_number).where(Student.tenant_id == ctx.tenant_id))
    numbers = [int(n) for n in result.scalars().all() if n and n.strip().isdigit()]
    if not numbers:
        return None
    return str(max(numbers) + 1)


async def get_student(db: AsyncSession, ctx: SchoolContext, student_id: UUID) -> Optional[StudentResponse]:
    s = await get_owned_student(db, ctx, student_id)
    return student_to_response(s) if s else None


async def list_students(
    db: AsyncSession,
    ctx: SchoolContext,
    class_section_id: Optional[UUID] = None,
    class_name: Optional[str] = None,
    student_status: Optional[StudentStatus] = None,
) -> List[StudentResponse]:
    stmt = students_with_class(ctx)
    if class_section_id is not None:
        stmt = stmt.where(Student.class_section_id == class_section_id)
    if class_name is not None:
        stmt = stmt.where(placed_class() == validate_class_label(class_name))
    if student_status is not None:
        stmt = stmt.where(Student.status == student_status.value)
    result = await db.execute(stmt.order_by(Student.admission_number))
    rows = list(result.all())
    if class_name is None and class_section_id is None:
        rows.sort(key=lambda row: (class_sort_key(row.class_name), row.Student.admission_number))
    return [student_to_response(row.Student) for row in rows]


async def change_section(
    db: AsyncSession,
    ctx: SchoolContext,
    student_id: UUID,
    section_id: UUID,
    feed: Optional[ChangeFeed] = None,
) -> Optional[StudentResponse]:
    """Place a student in any section (no promotion). Writes a CLASS_ASSIGNMENT event."""
    student = await get_owned_student(db, ctx, student_id)
    if not student:
        return None
    section = await get_owned_section(db, ctx, section_id)
    if section is None:
        raise SectionNotFound()
    if student.class_section_id == section.id:
        raise ServiceError("Student is already in this section", status.HTTP_400_BAD_REQUEST)

    student.class_section_id = section.id
    student.current_class = section.class_name
    event = add_timeline_event(
        db, ctx, student.id, TimelineEventType.CLASS_ASSIGNMENT,
        _assignment_description(section),
        {"class": section.class_name, "section": section.section_identifier, "academicYear": academic_year_label()},
    )
    await db.commit()
    await db.refresh(student)
    publish_students(feed, ctx, [student])
    publish_timeline(feed, ctx, [event])
    return student_to_response(student)


async def set_status(
    db: AsyncSession,
    ctx: SchoolContext,
    student_id: UUID,
    new_status: StudentStatus,
    reason: Optional[str] = None,
    feed: Optional[ChangeFeed] = None,
) -> Optional[StudentResponse]:
    student = await get_owned_student(db, ctx, student_id)
    if not student:
        return None
    if student.status == new_status.value:
        return student_to_response(student)
    if new_status == StudentStatus.INACTIVE:
        cleaned = (reason or "").strip()
        if not cleaned:
            raise ServiceError("A reason is required to mark a student inactive", status.HTTP_400_BAD_REQUEST)
        student.inactive_reason = cleaned
        description = f"Marked inactive: {cleaned}"
    else:
        student.inactive_reason = None
        description = "Marked active."
    student.status = new_status.value
    event = add_timeline_event(
        db, ctx, student.id, TimelineEventType.STATUS_CHANGE, description, {"status": new_status.value}
    )
    await db.commit()
    await db.refresh(student)
    publish_students(feed, ctx, [student])
    publish_timeline(feed, ctx, [event])
    return student_to_response(student)


async def get_timeline(db: AsyncSession, ctx: SchoolContext, student_id: UUID) -> List[TimelineEventResponse]:
    if await get_owned_student(db, ctx, student_id) is None:
        raise StudentNotFound()
    return await list_timeline(db, ctx, student_id)


async def watch_section_students(
    db: AsyncSession,
    ctx: SchoolContext,
    feed: ChangeFeed,
    section_id: UUID,
    on_change: Optional[Callable[[List[Dict[str, Any]]], None]] = None,
) -> LiveQuery:
    """
    Live list of the students in one section. The caller owns the returned query and
    must close() it (or use it as a context manager).
    """
    snapshot = await list_students(db, ctx, class_section_id=section_id)
    return LiveQuery(
        feed,
        ctx.tenant_id,
        Collection.STUDENTS,
        where=("class_section_id", section_id),
        snapshot=[s.model_dump() for s in snapshot],
        on_change=on_change,
    )
