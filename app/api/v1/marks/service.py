"""
Award sheet: exams, their subjects, and marks per (student, subject).

A performance record is keyed by student and subject, so saving again overwrites.
The first save for a student in an exam also publishes the result on their timeline.
"""

import io
from typing import List, Optional, Set
from uuid import UUID

from fastapi import status
from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.students.service import placed_class, students_with_class
from app.api.v1.students.timeline import add_timeline_event, publish_timeline
from app.core.change_feed import ChangeFeed, ChangeOperation, Collection
from app.core.class_levels import class_sort_key, validate_class_label
from app.core.context import SchoolContext
from app.core.enums import StudentStatus, TimelineEventType
from app.core.exceptions import ExamNotFound, ServiceError, StudentNotFound, SubjectNotFound
from app.core.logging import get_logger
from app.core.models import Exam, PerformanceRecord, Student, Subject, TimelineEvent, performance_record_id

from .schemas import (
    ExamCreate,
    ExamResponse,
    MarkEntry,
    MarksSaveResult,
    PerformanceRecordResponse,
    SubjectCreate,
    SubjectResponse,
)

logger = get_logger("marks")


async def _get_exam(db: AsyncSession, ctx: SchoolContext, exam_id: UUID) -> Exam:
    exam = await db.get(Exam, exam_id)
    if not exam or exam.tenant_id != ctx.tenant_id:
        raise ExamNotFound()
    return exam


async def _get_subject(db: AsyncSession, ctx: SchoolContext, subject_id: UUID) -> Subject:
    subject = await db.get(Subject, subject_id)
    if not subject or subject.tenant_id != ctx.tenant_id:
        raise SubjectNotFound()
    return subject


async def create_exam(db: AsyncSession, ctx: SchoolContext, payload: ExamCreate) -> ExamResponse:
    exam = Exam(
        tenant_id=ctx.tenant_id,
        exam_name=payload.exam_name.strip(),
        year=payload.year,
        class_name=validate_class_label(payload.class_name),
    )
    db.add(exam)
    await db.commit()
    await db.refresh(exam)
    return ExamResponse.model_validate(exam)


async def list_exams(db: AsyncSession, ctx: SchoolContext, class_name: Optional[str] = None) -> List[ExamResponse]:
    stmt = select(Exam).where(Exam.tenant_id == ctx.tenant_id)
    if class_name is not None:
        stmt = stmt.where(Exam.class_name == validate_class_label(class_name))
    result = await db.execute(stmt)
    exams = list(result.scalars().all())
    exams.sort(key=lambda e: (-e.year, class_sort_key(e.class_name), e.exam_name))
    return [ExamResponse.model_validate(e) for e in exams]


async def create_subject(
    db: AsyncSession, ctx: SchoolContext, exam_id: UUID, payload: SubjectCreate
) -> SubjectResponse:
    await _get_exam(db, ctx, exam_id)
    subject = Subject(
        tenant_id=ctx.tenant_id,
        exam_id=exam_id,
        subject_name=payload.subject_name.strip(),
        max_marks=payload.max_marks,
    )
    db.add(subject)
    await db.commit()
    await db.refresh(subject)
    return SubjectResponse.model_validate(subject)


async def list_subjects(db: AsyncSession, ctx: SchoolContext, exam_id: UUID) -> List[SubjectResponse]:
    await _get_exam(db, ctx, exam_id)
    result = await db.execute(
        select(Subject)
        .where(Subject.tenant_id == ctx.tenant_id, Subject.exam_id == exam_id)
        .order_by(Subject.subject_name)
    )
    return [SubjectResponse.model_validate(s) for s in result.scalars().all()]


async def _students_with_result(db: AsyncSession, ctx: SchoolContext, exam_id: UUID, student_ids: List[UUID]) -> Set[UUID]:
    result = await db.execute(
        select(TimelineEvent.student_id, TimelineEvent.details).where(
            TimelineEvent.tenant_id == ctx.tenant_id,
            TimelineEvent.type == TimelineEventType.EXAM_RESULT.value,
            TimelineEvent.student_id.in_(student_ids),
        )
    )
    return {row.student_id for row in result.all() if (row.details or {}).get("examId") == str(exam_id)}


async def save_marks(
    db: AsyncSession,
    ctx: SchoolContext,
    subject_id: UUID,
    entries: List[MarkEntry],
    feed: Optional[ChangeFeed] = None,
) -> MarksSaveResult:
    """Upsert one record per entry and, once per exam, an EXAM_RESULT event. One commit."""
    subject = await _get_subject(db, ctx, subject_id)
    exam = await _get_exam(db, ctx, subject.exam_id)

    # Last entry wins when a student appears twice.
    entries = list({e.student_id: e for e in entries}.values())
    student_ids = [e.student_id for e in entries]
    found = await db.execute(
        select(Student.id).where(Student.tenant_id == ctx.tenant_id, Student.id.in_(student_ids))
    )
    known = set(found.scalars().all())
    if len(known) != len(student_ids):
        raise StudentNotFound(f"{len(student_ids) - len(known)} student(s) not found")
    for entry in entries:
        if entry.marks > subject.max_marks:
            raise ServiceError(
                f"Marks cannot exceed {subject.max_marks} for {subject.subject_name}",
                status.HTTP_400_BAD_REQUEST,
            )

    already_published = await _students_with_result(db, ctx, exam.id, student_ids)
    records = []
    events = []
    for entry in entries:
        record_id = performance_record_id(entry.student_id, subject.id)
        record = await db.get(PerformanceRecord, record_id)
        if record is None:
            record = PerformanceRecord(
                id=record_id,
                tenant_id=ctx.tenant_id,
                student_id=entry.student_id,
                subject_id=subject.id,
                exam_id=exam.id,
            )
            db.add(record)
        record.marks = entry.marks
        record.remarks = entry.remarks
        records.append(record)
        if entry.student_id not in already_published:
            already_published.add(entry.student_id)
            events.append(
                add_timeline_event(
                    db, ctx, entry.student_id, TimelineEventType.EXAM_RESULT,
                    f"Results for {exam.exam_name} {exam.year} were published.",
                    {"examId": str(exam.id)},
                )
            )
    await db.commit()
    for record in records:
        await db.refresh(record)

    logger.info("Saved %d mark(s) for subject %s", len(records), subject.id)
    saved = [PerformanceRecordResponse.model_validate(r) for r in records]
    if feed is not None:
        for r in saved:
            feed.publish_document(
                ctx.tenant_id, Collection.PERFORMANCE_RECORDS, r.model_dump(), ChangeOperation.SET
            )
    publish_timeline(feed, ctx, events)
    return MarksSaveResult(saved=saved, results_published_for=[e.student_id for e in events])


async def list_marks(db: AsyncSession, ctx: SchoolContext, subject_id: UUID) -> List[PerformanceRecordResponse]:
    await _get_subject(db, ctx, subject_id)
    result = await db.execute(
        select(PerformanceRecord).where(
            PerformanceRecord.tenant_id == ctx.tenant_id,
            PerformanceRecord.subject_id == subject_id,
        )
    )
    return [PerformanceRecordResponse.model_validate(r) for r in result.scalars().all()]


AWARD_SHEET_HEADERS = ("admission_number", "full_name", "marks", "max_marks", "remarks")


async def build_award_sheet(db: AsyncSession, ctx: SchoolContext, subject_id: UUID) -> bytes:
    """Excel award sheet for one subject: every active student of the exam's class, marks where entered."""
    subject = await _get_subject(db, ctx, subject_id)
    exam = await _get_exam(db, ctx, subject.exam_id)
    students = await db.execute(
        students_with_class(ctx)
        .where(placed_class() == exam.class_name, Student.status == StudentStatus.ACTIVE.value)
        .order_by(Student.admission_number)
    )
    records = {r.student_id: r for r in await list_marks(db, ctx, subject_id)}

    wb = Workbook()
    ws = wb.active
    ws.title = subject.subject_name[:31]
    ws.append([f"{exam.exam_name} {exam.year} - Class {exam.class_name} - {subject.subject_name}"])
    ws["A1"].font = Font(bold=True)
    ws.append(list(AWARD_SHEET_HEADERS))
    for s in students.scalars().all():
        record = records.get(s.id)
        ws.append([
            s.admission_number,
            s.full_name,
            record.marks if record else None,
            subject.max_marks,
            record.remarks if record else None,
        ])

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()
