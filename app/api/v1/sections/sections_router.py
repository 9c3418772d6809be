from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_school_context
from app.auth.rbac import check_permission
from app.core.change_feed import ChangeFeed, get_change_feed
from app.core.context import SchoolContext
from app.core.enums import Severity
from app.core.exceptions import ServiceError
from app.core.notifications import NotificationSink, get_notifier, notify_error
from app.db.session import get_db

from .schemas import ClassSummary, InchargeAssignment, SectionCreate, SectionResponse, SectionUpdate
from . import service

router = APIRouter(prefix="/api/v1/sections", tags=["sections"])


@router.post(
    "",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("sections", "create"))],
)
async def create_section(
    payload: SectionCreate,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SectionResponse:
    try:
        section = await service.create_section(db, ctx, payload, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    notifier.notify(
        "Section Added",
        f"Section {section.section_identifier} added to Class {section.class_name}.",
        Severity.SUCCESS,
    )
    return section


@router.get(
    "",
    response_model=List[SectionResponse],
    dependencies=[Depends(check_permission("sections", "read"))],
)
async def list_sections(
    class_name: Optional[str] = Query(None, description="Only sections of this class (UKG, 1..12)"),
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[SectionResponse]:
    try:
        return await service.list_sections(db, ctx, class_name=class_name)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/classes",
    response_model=List[ClassSummary],
    dependencies=[Depends(check_permission("sections", "read"))],
)
async def list_classes(
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[ClassSummary]:
    return await service.list_classes(db, ctx)


@router.get(
    "/next-identifier",
    dependencies=[Depends(check_permission("sections", "read"))],
)
async def next_identifier(
    class_name: str = Query(..., description="Class to add a section to"),
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> dict:
    """Suggested identifier for the add-section form."""
    try:
        identifier = await service.next_section_identifier(db, ctx, class_name)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"class_name": class_name, "section_identifier": identifier}


@router.get(
    "/{section_id}",
    response_model=SectionResponse,
    dependencies=[Depends(check_permission("sections", "read"))],
)
async def get_section(
    section_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> SectionResponse:
    obj = await service.get_section(db, ctx, section_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")
    return obj


@router.put(
    "/{section_id}",
    response_model=SectionResponse,
    dependencies=[Depends(check_permission("sections", "update"))],
)
async def update_section(
    section_id: UUID,
    payload: SectionUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SectionResponse:
    try:
        obj = await service.update_section(db, ctx, section_id, payload, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")
    notifier.notify("Section Updated", f"Class {obj.class_name} - {obj.section_identifier} has been updated.")
    return obj


@router.put(
    "/{section_id}/incharge",
    response_model=SectionResponse,
    dependencies=[Depends(check_permission("sections", "update"))],
)
async def assign_incharge(
    section_id: UUID,
    payload: InchargeAssignment,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SectionResponse:
    try:
        obj = await service.assign_incharge(db, ctx, section_id, payload.staff_id, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")
    notifier.notify("Incharge Updated", f"Section incharge for Class {obj.class_name} - {obj.section_identifier} saved.")
    return obj


@router.delete(
    "/{section_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("sections", "delete"))],
)
async def delete_section(
    section_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> None:
    try:
        deleted = await service.delete_section(db, ctx, section_id, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")
    notifier.notify("Section Deleted", "The section has been removed.", Severity.DESTRUCTIVE)
