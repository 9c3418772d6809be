from typing import Dict, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.change_feed import ChangeFeed, ChangeOperation, Collection
from app.core.context import SchoolContext
from app.core.delete_guard import build_children_index, ensure_deletable
from app.core.enums import DepartmentType
from app.core.exceptions import DepartmentNotFound, HasDependents, IsProtected, ServiceError
from app.core.logging import get_logger
from app.core.models import Department
from app.core.schemas import DropdownItem

from .schemas import DepartmentCreate, DepartmentNode, DepartmentResponse, DepartmentUpdate

logger = get_logger("departments")


def _to_response(d: Department) -> DepartmentResponse:
    return DepartmentResponse(
        id=d.id,
        tenant_id=d.tenant_id,
        name=d.name,
        type=d.type,
        parent_id=d.parent_id,
        is_default=d.is_default,
        created_at=d.created_at,
        updated_at=d.updated_at,
    )


def _publish(feed: Optional[ChangeFeed], ctx: SchoolContext, d: DepartmentResponse, op: ChangeOperation) -> None:
    if feed is not None:
        feed.publish_document(ctx.tenant_id, Collection.DEPARTMENTS, d.model_dump(), op)


async def _all_departments(db: AsyncSession, ctx: SchoolContext) -> List[Department]:
    result = await db.execute(
        select(Department).where(Department.tenant_id == ctx.tenant_id).order_by(Department.name)
    )
    return list(result.scalars().all())


async def _get_owned(db: AsyncSession, ctx: SchoolContext, department_id: UUID) -> Optional[Department]:
    result = await db.execute(
        select(Department).where(
            Department.id == department_id,
            Department.tenant_id == ctx.tenant_id,
        )
    )
    return result.scalar_one_or_none()


async def _require_parent(db: AsyncSession, ctx: SchoolContext, parent_id: Optional[UUID]) -> None:
    if parent_id is None:
        return
    if await _get_owned(db, ctx, parent_id) is None:
        raise DepartmentNotFound("Parent department not found")


def _descendant_ids(department_id: UUID, children: Dict) -> set:
    seen = set()
    stack = [department_id]
    while stack:
        for child in children.get(stack.pop(), []):
            if child.id not in seen:
                seen.add(child.id)
                stack.append(child.id)
    return seen


async def create_department(
    db: AsyncSession,
    ctx: SchoolContext,
    payload: DepartmentCreate,
    feed: Optional[ChangeFeed] = None,
) -> DepartmentResponse:
    await _require_parent(db, ctx, payload.parent_id)
    dept = Department(
        tenant_id=ctx.tenant_id,
        name=payload.name.strip(),
        type=payload.type.value,
        parent_id=payload.parent_id,
        is_default=False,
    )
    db.add(dept)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Department name already exists for this school", status.HTTP_409_CONFLICT)
    await db.refresh(dept)
    response = _to_response(dept)
    _publish(feed, ctx, response, ChangeOperation.SET)
    return response


async def list_departments(
    db: AsyncSession,
    ctx: SchoolContext,
    department_type: Optional[DepartmentType] = None,
) -> List[DepartmentResponse]:
    rows = await _all_departments(db, ctx)
    if department_type is not None:
        rows = [d for d in rows if d.type == department_type.value]
    return [_to_response(d) for d in rows]


async def get_department_tree(db: AsyncSession, ctx: SchoolContext) -> List[DepartmentNode]:
    """Departments as a forest: top-level nodes (no parent) with nested children, by name."""
    rows = await _all_departments(db, ctx)
    children = build_children_index(rows)

    def node(d: Department) -> DepartmentNode:
        return DepartmentNode(
            id=d.id,
            name=d.name,
            type=d.type,
            is_default=d.is_default,
            children=[node(c) for c in children.get(d.id, [])],
        )

    return [node(d) for d in rows if d.parent_id is None]


async def get_parent_options(db: AsyncSession, ctx: SchoolContext) -> List[DropdownItem]:
    """Top-level departments, offered as parents in the add-department form."""
    rows = await _all_departments(db, ctx)
    return [DropdownItem(label=d.name, value=d.id) for d in rows if d.parent_id is None]


async def get_department(db: AsyncSession, ctx: SchoolContext, department_id: UUID) -> Optional[DepartmentResponse]:
    dept = await _get_owned(db, ctx, department_id)
    return _to_response(dept) if dept else None


async def update_department(
    db: AsyncSession,
    ctx: SchoolContext,
    department_id: UUID,
    payload: DepartmentUpdate,
    feed: Optional[ChangeFeed] = None,
) -> Optional[DepartmentResponse]:
    dept = await _get_owned(db, ctx, department_id)
    if not dept:
        return None
    # Lookups autoflush, so validate the new parent before touching dept.
    move = "parent_id" in payload.model_fields_set
    new_parent = payload.parent_id
    if move and new_parent is not None:
        if new_parent == dept.id:
            raise ServiceError("A department cannot be its own parent", status.HTTP_400_BAD_REQUEST)
        await _require_parent(db, ctx, new_parent)
        children = build_children_index(await _all_departments(db, ctx))
        if new_parent in _descendant_ids(dept.id, children):
            raise ServiceError(
                "A department cannot be moved under one of its own sub-departments",
                status.HTTP_400_BAD_REQUEST,
            )
    if payload.name is not None:
        dept.name = payload.name.strip()
    if payload.type is not None:
        dept.type = payload.type.value
    if move:
        dept.parent_id = new_parent
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Department name already exists for this school", status.HTTP_409_CONFLICT)
    await db.refresh(dept)
    response = _to_response(dept)
    _publish(feed, ctx, response, ChangeOperation.UPDATE)
    return response


async def delete_department(
    db: AsyncSession,
    ctx: SchoolContext,
    department_id: UUID,
    feed: Optional[ChangeFeed] = None,
) -> bool:
    """Hard delete, gated: no sub-departments, not a default department. Never cascades."""
    rows = await _all_departments(db, ctx)
    dept = next((d for d in rows if d.id == department_id), None)
    if dept is None:
        return False
    children = build_children_index(rows)
    try:
        ensure_deletable(
            dept.id,
            children,
            is_protected=dept.is_default,
            label="Department",
            dependents_label="sub-department(s)",
        )
    except (HasDependents, IsProtected) as e:
        logger.info("Refused to delete department %s: %s", dept.id, e.message)
        raise
    response = _to_response(dept)
    await db.delete(dept)
    await db.commit()
    _publish(feed, ctx, response, ChangeOperation.DELETE)
    return True
