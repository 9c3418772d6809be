from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_school_context
from app.auth.rbac import check_permission
from app.core.change_feed import ChangeFeed, get_change_feed
from app.core.context import SchoolContext
from app.core.enums import DepartmentType, Severity
from app.core.exceptions import ServiceError
from app.core.notifications import NotificationSink, get_notifier, notify_error
from app.core.schemas import DropdownItem
from app.db.session import get_db

from .schemas import DepartmentCreate, DepartmentNode, DepartmentResponse, DepartmentUpdate
from . import service

router = APIRouter(prefix="/api/v1/departments", tags=["departments"])


@router.post(
    "",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("departments", "create"))],
)
async def create_department(
    payload: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> DepartmentResponse:
    try:
        dept = await service.create_department(db, ctx, payload, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    notifier.notify("Department Added", f"{dept.name} has been created.")
    return dept


@router.get(
    "",
    response_model=List[DepartmentResponse],
    dependencies=[Depends(check_permission("departments", "read"))],
)
async def list_departments(
    type: Optional[DepartmentType] = Query(None, description="Filter by department type"),
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[DepartmentResponse]:
    return await service.list_departments(db, ctx, department_type=type)


@router.get(
    "/tree",
    response_model=List[DepartmentNode],
    dependencies=[Depends(check_permission("departments", "read"))],
)
async def department_tree(
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[DepartmentNode]:
    return await service.get_department_tree(db, ctx)


@router.get(
    "/parent-options",
    response_model=List[DropdownItem],
    dependencies=[Depends(check_permission("departments", "read"))],
)
async def parent_options(
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> List[DropdownItem]:
    return await service.get_parent_options(db, ctx)


@router.get(
    "/{department_id}",
    response_model=DepartmentResponse,
    dependencies=[Depends(check_permission("departments", "read"))],
)
async def get_department(
    department_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
) -> DepartmentResponse:
    obj = await service.get_department(db, ctx, department_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Department not found")
    return obj


@router.put(
    "/{department_id}",
    response_model=DepartmentResponse,
    dependencies=[Depends(check_permission("departments", "update"))],
)
async def update_department(
    department_id: UUID,
    payload: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> DepartmentResponse:
    try:
        obj = await service.update_department(db, ctx, department_id, payload, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Department not found")
    notifier.notify("Department Updated", f"{obj.name} has been updated.")
    return obj


@router.delete(
    "/{department_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("departments", "delete"))],
)
async def delete_department(
    department_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: SchoolContext = Depends(get_school_context),
    notifier: NotificationSink = Depends(get_notifier),
    feed: ChangeFeed = Depends(get_change_feed),
) -> None:
    try:
        deleted = await service.delete_department(db, ctx, department_id, feed)
    except ServiceError as e:
        notify_error(notifier, e)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Department not found")
    notifier.notify("Department Deleted", "The department has been removed.", Severity.DESTRUCTIVE)
