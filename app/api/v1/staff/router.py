from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_school_context
from app.auth.rbac import check_permission
from app.core.change_feed import ChangeFeed, get_change_feed
from app.core.context import SchoolContext
from app.core.exceptions import ServiceError
from app.core.notifications import NotificationSink, get_notifier, notify_error
from app.db.session import get_db

from .schemas import StaffCreate, StaffResponse
from . import service

router = APIRouter(prefix="/api/v1/staff", tags=["staff"])


@router.post(
    "",
    response_model=StaffResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("staff", "create"))],
)
async def create_staff(
    payload: StaffCreate,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> StaffResponse:
    try:
        staff = await service.create_staff(db, ctx, payload, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    notifier.notify("Staff Added", f"{staff.full_name} has been added.")
    return staff


@router.get(
    "",
    response_model=List[StaffResponse],
    dependencies=[Depends(check_permission("staff", "read"))],
)
async def list_staff(
    department_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[StaffResponse]:
    return await service.list_staff(db, ctx, department_id=department_id)


@router.get(
    "/{staff_id}",
    response_model=StaffResponse,
    dependencies=[Depends(check_permission("staff", "read"))],
)
async def get_staff(
    staff_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> StaffResponse:
    obj = await service.get_staff(db, ctx, staff_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Staff member not found")
    return obj
