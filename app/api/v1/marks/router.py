from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_school_context
from app.auth.rbac import check_permission
from app.core.change_feed import ChangeFeed, get_change_feed
from app.core.context import SchoolContext
from app.core.exceptions import ServiceError
from app.core.notifications import NotificationSink, get_notifier, notify_error
from app.db.session import get_db

from .schemas import (
    ExamCreate,
    ExamResponse,
    MarksSave,
    MarksSaveResult,
    PerformanceRecordResponse,
    SubjectCreate,
    SubjectResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/marks", tags=["marks"])


@router.post(
    "/exams",
    response_model=ExamResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("marks", "create"))],
)
async def create_exam(
    payload: ExamCreate,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> ExamResponse:
    try:
        return await service.create_exam(db, ctx, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/exams",
    response_model=List[ExamResponse],
    dependencies=[Depends(check_permission("marks", "read"))],
)
async def list_exams(
    class_name: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[ExamResponse]:
    try:
        return await service.list_exams(db, ctx, class_name=class_name)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/exams/{exam_id}/subjects",
    response_model=SubjectResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("marks", "create"))],
)
async def create_subject(
    exam_id: UUID,
    payload: SubjectCreate,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> SubjectResponse:
    try:
        return await service.create_subject(db, ctx, exam_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/exams/{exam_id}/subjects",
    response_model=List[SubjectResponse],
    dependencies=[Depends(check_permission("marks", "read"))],
)
async def list_subjects(
    exam_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[SubjectResponse]:
    try:
        return await service.list_subjects(db, ctx, exam_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/subjects/{subject_id}",
    response_model=MarksSaveResult,
    dependencies=[Depends(check_permission("marks", "update"))],
)
async def save_marks(
    subject_id: UUID,
    payload: MarksSave,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> MarksSaveResult:
    try:
        result = await service.save_marks(db, ctx, subject_id, payload.entries, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    notifier.notify("Marks Saved!", f"Successfully saved marks for {len(result.saved)} student(s).")
    return result


@router.get(
    "/subjects/{subject_id}",
    response_model=List[PerformanceRecordResponse],
    dependencies=[Depends(check_permission("marks", "read"))],
)
async def list_marks(
    subject_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[PerformanceRecordResponse]:
    try:
        return await service.list_marks(db, ctx, subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/subjects/{subject_id}/award-sheet",
    dependencies=[Depends(check_permission("marks", "read"))],
)
async def download_award_sheet(
    subject_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> Response:
    """Award sheet for one subject as an .xlsx download."""
    try:
        content = await service.build_award_sheet(db, ctx, subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=award_sheet.xlsx"},
    )
