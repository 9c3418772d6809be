import asyncio
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user, get_school_context
from app.auth.rbac import check_permission, has_permission
from app.core.change_feed import ChangeFeed, get_change_feed
from app.core.context import SchoolContext
from app.core.enums import StudentStatus
from app.core.exceptions import ServiceError
from app.core.logging import get_logger
from app.core.notifications import NotificationSink, get_notifier, notify_error
from app.db.session import get_db

from .schemas import (
    NextAdmissionNumber,
    SectionChange,
    StatusChange,
    StudentCreate,
    StudentResponse,
    TimelineEventResponse,
)
from . import service

logger = get_logger("students.live")

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("students", "create"))],
)
async def admit_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> StudentResponse:
    try:
        student = await service.admit_student(db, ctx, payload, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    notifier.notify("Student Added", f"{student.full_name} has been successfully added to the school.")
    return student


@router.get(
    "",
    response_model=List[StudentResponse],
    dependencies=[Depends(check_permission("students", "read"))],
)
async def list_students(
    class_section_id: Optional[UUID] = Query(None, description="Students placed in this section"),
    class_name: Optional[str] = Query(None, description="Students whose current class is this label"),
    status_filter: Optional[StudentStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[StudentResponse]:
    try:
        return await service.list_students(
            db, ctx, class_section_id=class_section_id, class_name=class_name, student_status=status_filter
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/next-admission-number",
    response_model=NextAdmissionNumber,
    dependencies=[Depends(check_permission("students", "create"))],
)
async def next_admission_number(
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> NextAdmissionNumber:
    return NextAdmissionNumber(admission_number=await service.next_admission_number(db, ctx))


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(check_permission("students", "read"))],
)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> StudentResponse:
    obj = await service.get_student(db, ctx, student_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return obj


@router.get(
    "/{student_id}/timeline",
    response_model=List[TimelineEventResponse],
    dependencies=[Depends(check_permission("students", "read"))],
)
async def get_timeline(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[TimelineEventResponse]:
    try:
        return await service.get_timeline(db, ctx, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{student_id}/section",
    response_model=StudentResponse,
    dependencies=[Depends(check_permission("students", "update"))],
)
async def change_section(
    student_id: UUID,
    payload: SectionChange,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> StudentResponse:
    try:
        obj = await service.change_section(db, ctx, student_id, payload.class_section_id, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    notifier.notify("Section Updated", f"{obj.full_name} has been moved to a new section.")
    return obj


@router.put(
    "/{student_id}/status",
    response_model=StudentResponse,
    dependencies=[Depends(check_permission("students", "update"))],
)
async def set_status(
    student_id: UUID,
    payload: StatusChange,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> StudentResponse:
    try:
        obj = await service.set_status(db, ctx, student_id, payload.status, payload.reason, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    notifier.notify("Status Updated", f"{obj.full_name} is now {obj.status.value}.")
    return obj


async def _stream_changes(websocket: WebSocket, changes: "asyncio.Queue[List[Dict[str, Any]]]") -> None:
    while True:
        results = await changes.get()
        await websocket.send_json(jsonable_encoder(results))


@router.websocket("/sections/{section_id}/live")
async def live_section_students(
    websocket: WebSocket,
    section_id: UUID,
    token: str = Query(..., description="Access token from /auth/login"),
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
) -> None:
    """
    Students of one section, kept live. The full list is sent on connect and again
    after every change to it. The subscription ends when the client disconnects.
    """
    try:
        user = await get_current_user(token=token, db=db)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Could not validate credentials")
        return
    if not has_permission(user, "students", "read"):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Insufficient permissions")
        return
    ctx = user.to_context()
    if await service.get_owned_section(db, ctx, section_id) is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Section not found")
        return

    await websocket.accept()
    changes: "asyncio.Queue[List[Dict[str, Any]]]" = asyncio.Queue()
    live = await service.watch_section_students(db, ctx, feed, section_id, on_change=changes.put_nowait)
    changes.put_nowait(live.results)
    sender = asyncio.create_task(_stream_changes(websocket, changes))
    try:
        while True:
            # Clients only listen; reading detects the disconnect.
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Live view of section %s closed", section_id)
    finally:
        sender.cancel()
        live.close()
