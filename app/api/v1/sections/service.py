from typing import Dict, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.change_feed import ChangeFeed, ChangeOperation, Collection
from app.core.class_levels import validate_class_label
from app.core.context import SchoolContext
from app.core.delete_guard import build_children_index, ensure_deletable
from app.core.exceptions import DuplicateSection, HasDependents, ServiceError, StaffNotFound
from app.core.logging import get_logger
from app.core.models import ClassSection, Staff, Student

from .catalog import SECTION_IDENTIFIERS, SectionCatalog
from .schemas import ClassSummary, SectionCreate, SectionResponse, SectionUpdate

logger = get_logger("sections")


def normalize_section_identifier(raw: str) -> str:
    identifier = (raw or "").strip().upper()
    if len(identifier) != 1 or identifier not in SECTION_IDENTIFIERS:
        raise ServiceError("Section identifier must be a single letter A-Z", status.HTTP_400_BAD_REQUEST)
    return identifier


def section_to_response(s: ClassSection, student_count: int = 0) -> SectionResponse:
    return SectionResponse(
        id=s.id,
        tenant_id=s.tenant_id,
        class_name=s.class_name,
        section_identifier=s.section_identifier,
        section_name=s.section_name,
        section_incharge_id=s.section_incharge_id,
        student_count=student_count,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def _publish(feed: Optional[ChangeFeed], ctx: SchoolContext, s: SectionResponse, op: ChangeOperation) -> None:
    if feed is not None:
        feed.publish_document(ctx.tenant_id, Collection.CLASS_SECTIONS, s.model_dump(), op)


async def _student_counts(db: AsyncSession, ctx: SchoolContext, section_ids: List[UUID]) -> Dict[UUID, int]:
    """section_id -> number of students currently placed in it."""
    if not section_ids:
        return {}
    r = await db.execute(
        select(Student.class_section_id, func.count(Student.id).label("cnt"))
        .where(Student.tenant_id == ctx.tenant_id, Student.class_section_id.in_(section_ids))
        .group_by(Student.class_section_id)
    )
    return {row.class_section_id: row.cnt for row in r.all()}


async def _ensure_staff_in_school(db: AsyncSession, ctx: SchoolContext, staff_id: Optional[UUID]) -> None:
    if staff_id is None:
        return
    staff = await db.get(Staff, staff_id)
    if not staff or staff.tenant_id != ctx.tenant_id:
        raise StaffNotFound("Section incharge must be a staff member of this school")


async def _get_owned(db: AsyncSession, ctx: SchoolContext, section_id: UUID) -> Optional[ClassSection]:
    result = await db.execute(
        select(ClassSection).where(
            ClassSection.id == section_id,
            ClassSection.tenant_id == ctx.tenant_id,
        )
    )
    return result.scalar_one_or_none()


async def create_section(
    db: AsyncSession,
    ctx: SchoolContext,
    payload: SectionCreate,
    feed: Optional[ChangeFeed] = None,
) -> SectionResponse:
    class_name = validate_class_label(payload.class_name)
    catalog = await SectionCatalog.load(db, ctx)
    if payload.section_identifier:
        identifier = normalize_section_identifier(payload.section_identifier)
    else:
        identifier = catalog.next_free_identifier(class_name)
    if catalog.find_section(class_name, identifier) is not None:
        raise DuplicateSection(class_name, identifier)
    await _ensure_staff_in_school(db, ctx, payload.section_incharge_id)

    section_name = payload.section_name.strip() if payload.section_name else None
    obj = ClassSection(
        tenant_id=ctx.tenant_id,
        class_name=class_name,
        section_identifier=identifier,
        section_name=section_name or None,
        section_incharge_id=payload.section_incharge_id,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        # Another operator created the same (class, identifier) in between.
        await db.rollback()
        raise DuplicateSection(class_name, identifier)
    await db.refresh(obj)
    response = section_to_response(obj)
    logger.info("Created section %s for tenant %s", obj.label, ctx.tenant_id)
    _publish(feed, ctx, response, ChangeOperation.SET)
    return response


async def list_sections(
    db: AsyncSession,
    ctx: SchoolContext,
    class_name: Optional[str] = None,
) -> List[SectionResponse]:
    catalog = await SectionCatalog.load(db, ctx)
    if class_name is not None:
        rows = catalog.sections_for_class(class_name)
    else:
        rows = [s for label in catalog.class_labels() for s in catalog.sections_for_class(label)]
    counts = await _student_counts(db, ctx, [s.id for s in rows])
    return [section_to_response(s, counts.get(s.id, 0)) for s in rows]


async def list_classes(db: AsyncSession, ctx: SchoolContext) -> List[ClassSummary]:
    """Classes implied by existing sections, UKG first, each with its sections in identifier order."""
    catalog = await SectionCatalog.load(db, ctx)
    counts = await _student_counts(db, ctx, [s.id for s in catalog])
    return [
        ClassSummary(
            class_name=label,
            sections=[section_to_response(s, counts.get(s.id, 0)) for s in catalog.sections_for_class(label)],
            next_section_identifier=catalog.next_free_identifier(label),
        )
        for label in catalog.class_labels()
    ]


async def next_section_identifier(db: AsyncSession, ctx: SchoolContext, class_name: str) -> str:
    catalog = await SectionCatalog.load(db, ctx)
    return catalog.next_free_identifier(class_name)


async def get_section(db: AsyncSession, ctx: SchoolContext, section_id: UUID) -> Optional[SectionResponse]:
    obj = await _get_owned(db, ctx, section_id)
    if not obj:
        return None
    counts = await _student_counts(db, ctx, [obj.id])
    return section_to_response(obj, counts.get(obj.id, 0))


async def update_section(
    db: AsyncSession,
    ctx: SchoolContext,
    section_id: UUID,
    payload: SectionUpdate,
    feed: Optional[ChangeFeed] = None,
) -> Optional[SectionResponse]:
    obj = await _get_owned(db, ctx, section_id)
    if not obj:
        return None

    class_name = validate_class_label(payload.class_name) if payload.class_name is not None else obj.class_name
    identifier = (
        normalize_section_identifier(payload.section_identifier)
        if payload.section_identifier is not None
        else obj.section_identifier
    )
    counts = await _student_counts(db, ctx, [obj.id])
    if class_name != obj.class_name and counts.get(obj.id, 0):
        raise HasDependents("Cannot move a section to another class while students are assigned to it.")

    if (class_name, identifier) != (obj.class_name, obj.section_identifier):
        catalog = await SectionCatalog.load(db, ctx)
        clash = catalog.find_section(class_name, identifier)
        if clash is not None and clash.id != obj.id:
            raise DuplicateSection(class_name, identifier)

    obj.class_name = class_name
    obj.section_identifier = identifier
    if payload.section_name is not None:
        obj.section_name = payload.section_name.strip() or None
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateSection(class_name, identifier)
    await db.refresh(obj)
    response = section_to_response(obj, counts.get(obj.id, 0))
    _publish(feed, ctx, response, ChangeOperation.UPDATE)
    return response


async def assign_incharge(
    db: AsyncSession,
    ctx: SchoolContext,
    section_id: UUID,
    staff_id: Optional[UUID],
    feed: Optional[ChangeFeed] = None,
) -> Optional[SectionResponse]:
    """Set (or clear with None) the section incharge."""
    obj = await _get_owned(db, ctx, section_id)
    if not obj:
        return None
    await _ensure_staff_in_school(db, ctx, staff_id)
    obj.section_incharge_id = staff_id
    await db.commit()
    await db.refresh(obj)
    counts = await _student_counts(db, ctx, [obj.id])
    response = section_to_response(obj, counts.get(obj.id, 0))
    _publish(feed, ctx, response, ChangeOperation.UPDATE)
    return response


async def delete_section(
    db: AsyncSession,
    ctx: SchoolContext,
    section_id: UUID,
    feed: Optional[ChangeFeed] = None,
) -> bool:
    obj = await _get_owned(db, ctx, section_id)
    if not obj:
        return False
    placed = await db.execute(
        select(Student.id, Student.class_section_id).where(
            Student.tenant_id == ctx.tenant_id,
            Student.class_section_id == section_id,
        )
    )
    students_by_section = build_children_index(placed.all(), parent_of=lambda row: row.class_section_id)
    try:
        ensure_deletable(obj.id, students_by_section, label="Section", dependents_label="student(s) assigned")
    except HasDependents:
        logger.info("Refused to delete section %s: students still assigned", obj.label)
        raise
    response = section_to_response(obj)
    await db.delete(obj)
    await db.commit()
    logger.info(
        "Deleted section %s-%s for tenant %s", response.class_name, response.section_identifier, ctx.tenant_id
    )
    _publish(feed, ctx, response, ChangeOperation.DELETE)
    return True
