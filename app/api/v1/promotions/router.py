from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_school_context
from app.auth.rbac import check_permission
from app.core.change_feed import ChangeFeed, get_change_feed
from app.core.context import SchoolContext
from app.core.exceptions import ServiceError
from app.core.notifications import NotificationSink, get_notifier, notify_error
from app.db.session import get_db

from .schemas import PromotionResult, PromotionSelection, SessionOptions, SinglePromotionResult
from . import service

router = APIRouter(prefix="/api/v1/promotions", tags=["promotions"])


@router.get(
    "/sessions",
    response_model=SessionOptions,
    dependencies=[Depends(check_permission("promotions", "create"))],
)
async def list_sessions() -> SessionOptions:
    return SessionOptions(sessions=service.session_options())


@router.post(
    "",
    response_model=PromotionResult,
    dependencies=[Depends(check_permission("promotions", "create"))],
)
async def promote_students(
    payload: PromotionSelection,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> PromotionResult:
    """Promote the selected students of one section into the landing section of `to_class`."""
    try:
        result = await service.promote_students(db, ctx, payload, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    notifier.notify("Promotion Successful", f"{result.promoted_count} students have been promoted.")
    return result


@router.post(
    "/students/{student_id}",
    response_model=SinglePromotionResult,
    dependencies=[Depends(check_permission("promotions", "create"))],
)
async def promote_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SinglePromotionResult:
    """Promote one student from their current section's class to the next class."""
    try:
        result = await service.promote_student(db, ctx, student_id, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    notifier.notify(
        "Student Promoted!",
        f"{result.student.full_name} has been promoted to Class {result.to_class}.",
    )
    return result
