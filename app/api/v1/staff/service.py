from typing import List, Optional, Set
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.services import email_in_use, new_user
from app.core.change_feed import ChangeFeed, ChangeOperation, Collection
from app.core.context import SchoolContext
from app.core.exceptions import DepartmentNotFound, ServiceError
from app.core.logging import get_logger
from app.core.models import Department, Staff

from .schemas import StaffCreate, StaffResponse

logger = get_logger("staff")


def _to_response(s: Staff, has_login: bool = False) -> StaffResponse:
    return StaffResponse(
        id=s.id,
        tenant_id=s.tenant_id,
        full_name=s.full_name,
        email=s.email,
        contact_number=s.contact_number,
        designation=s.designation,
        department_id=s.department_id,
        has_login=has_login,
        created_at=s.created_at,
    )


async def _staff_with_login(db: AsyncSession, ctx: SchoolContext) -> Set[UUID]:
    result = await db.execute(
        select(User.staff_id).where(User.tenant_id == ctx.tenant_id, User.staff_id.is_not(None))
    )
    return set(result.scalars().all())


async def create_staff(
    db: AsyncSession,
    ctx: SchoolContext,
    payload: StaffCreate,
    feed: Optional[ChangeFeed] = None,
) -> StaffResponse:
    """Staff member, plus a TEACHER/INCHARGE login when requested, in one commit."""
    if payload.department_id is not None:
        dept = await db.get(Department, payload.department_id)
        if not dept or dept.tenant_id != ctx.tenant_id:
            raise DepartmentNotFound()

    email = payload.email.lower()
    existing = await db.execute(
        select(Staff.id).where(Staff.tenant_id == ctx.tenant_id, func.lower(Staff.email) == email)
    )
    if existing.first() is not None:
        raise ServiceError("Email already exists for this school", status.HTTP_409_CONFLICT)
    if payload.login_role is not None and await email_in_use(db, email):
        raise ServiceError("Email is already in use", status.HTTP_409_CONFLICT)

    staff = Staff(
        tenant_id=ctx.tenant_id,
        full_name=payload.full_name.strip(),
        email=email,
        contact_number=payload.contact_number,
        designation=(payload.designation or "").strip() or None,
        department_id=payload.department_id,
    )
    db.add(staff)
    try:
        await db.flush()
        if payload.login_role is not None:
            db.add(
                new_user(
                    ctx.tenant_id,
                    full_name=payload.full_name,
                    email=email,
                    password=payload.password,
                    role=payload.login_role,
                    staff_id=staff.id,
                )
            )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Email already exists for this school", status.HTTP_409_CONFLICT)
    await db.refresh(staff)
    logger.info("Created staff member %s for tenant %s", staff.id, ctx.tenant_id)
    response = _to_response(staff, has_login=payload.login_role is not None)
    if feed is not None:
        feed.publish_document(ctx.tenant_id, Collection.STAFF, response.model_dump(), ChangeOperation.SET)
    return response


async def list_staff(
    db: AsyncSession,
    ctx: SchoolContext,
    department_id: Optional[UUID] = None,
) -> List[StaffResponse]:
    stmt = select(Staff).where(Staff.tenant_id == ctx.tenant_id)
    if department_id is not None:
        stmt = stmt.where(Staff.department_id == department_id)
    result = await db.execute(stmt.order_by(Staff.full_name))
    with_login = await _staff_with_login(db, ctx)
    return [_to_response(s, s.id in with_login) for s in result.scalars().all()]


async def get_staff(db: AsyncSession, ctx: SchoolContext, staff_id: UUID) -> Optional[StaffResponse]:
    staff = await db.get(Staff, staff_id)
    if not staff or staff.tenant_id != ctx.tenant_id:
        return None
    return _to_response(staff, staff.id in await _staff_with_login(db, ctx))
