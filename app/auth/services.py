from typing import Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.schemas import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    SchoolInfo,
    UserInfo,
)
from app.auth.security import create_access_token, hash_password, verify_password
from app.core.clock import utcnow
from app.core.enums import DepartmentType, UserRole
from app.core.exceptions import ServiceError
from app.core.logging import get_logger
from app.core.models import Department, Tenant
from app.core.tenant_service import generate_school_code

logger = get_logger("auth")

# Top-level departments every school starts with. Flagged is_default, so never deletable.
DEFAULT_DEPARTMENTS = (
    ("Academic Affairs", DepartmentType.ACADEMIC),
    ("School Administration Department", DepartmentType.NON_ACADEMIC),
    ("Business and Technical Education Department", DepartmentType.VOCATIONAL),
)


async def register_school_and_admin(db: AsyncSession, payload: RegisterRequest) -> RegisterResponse:
    # 1. Admin email must be unique across all schools
    if await email_in_use(db, payload.admin_email):
        raise ServiceError("Email is already in use", status.HTTP_409_CONFLICT)

    try:
        # 2. Tenant with both id (UUID) and school_code (public identifier)
        school_code = await generate_school_code(db)
        tenant = Tenant(
            school_code=school_code,
            school_name=payload.school_name.strip(),
            address=payload.address,
            contact_email=payload.contact_email,
            status="ACTIVE",
        )
        db.add(tenant)
        await db.flush()  # to populate tenant.id

        # 3. Seed default departments
        for name, dept_type in DEFAULT_DEPARTMENTS:
            db.add(Department(tenant_id=tenant.id, name=name, type=dept_type.value, is_default=True))

        # 4. First admin
        db.add(
            new_user(
                tenant.id,
                full_name=payload.admin_full_name,
                email=payload.admin_email,
                password=payload.password,
                role=UserRole.ADMIN,
            )
        )
        await db.commit()
        await db.refresh(tenant)
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError("Conflict while creating school or user", status.HTTP_409_CONFLICT) from e

    logger.info("Registered school %s (%s)", tenant.school_code, tenant.id)
    return RegisterResponse(
        success=True,
        message="Account created successfully",
        tenant_id=tenant.id,
        school_code=tenant.school_code,
    )


def new_user(
    tenant_id,
    *,
    full_name: str,
    email: str,
    password: str,
    role: UserRole,
    staff_id=None,
) -> User:
    """Unsaved operator account. The caller adds it to its own transaction."""
    return User(
        tenant_id=tenant_id,
        full_name=full_name.strip(),
        email=email.lower(),
        password_hash=hash_password(password),
        role=role.value,
        status="ACTIVE",
        staff_id=staff_id,
    )


async def email_in_use(db: AsyncSession, email: str) -> bool:
    """Login is by email alone, so an email may belong to one account across all schools."""
    existing = await db.execute(select(User.id).where(func.lower(User.email) == email.lower()))
    return existing.first() is not None


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    # 1. Find user by email (case-insensitive)
    result = await db.execute(select(User).where(func.lower(User.email) == payload.email.lower()))
    user: Optional[User] = result.scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)
    if user.status != "ACTIVE":
        raise ServiceError("User is inactive", status.HTTP_403_FORBIDDEN)

    # 2. School must be active
    tenant = await db.get(Tenant, user.tenant_id)
    if not tenant:
        raise ServiceError("School not found", status.HTTP_403_FORBIDDEN)
    if tenant.status != "ACTIVE":
        raise ServiceError("School is inactive", status.HTTP_403_FORBIDDEN)

    issued_at = utcnow()
    access_token = create_access_token(
        subject={
            "sub": str(user.id),
            "user_id": str(user.id),
            "tenant_id": str(user.tenant_id),
            "school_code": tenant.school_code,
            "role": user.role,
            "iat": int(issued_at.timestamp()),
        }
    )

    return LoginResponse(
        access_token=access_token,
        user=UserInfo(id=user.id, name=user.full_name, email=user.email, role=user.role),
        school=SchoolInfo(id=tenant.id, school_code=tenant.school_code, school_name=tenant.school_name),
        issued_at=issued_at,
    )
