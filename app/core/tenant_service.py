"""
Tenant service: school_code generation.

- school_code is a human-readable public identifier (e.g. SCH-A3K9).
- tenant_id (UUID) remains the only primary key and FK target.
"""
import secrets
from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.core.models import Tenant

SCHOOL_CODE_PREFIX = "SCH"
# Excludes ambiguous 0/O, 1/I
_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_school_code_candidate() -> str:
    """Single candidate code (no DB check): SCH-XXXX."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(4))
    return f"{SCHOOL_CODE_PREFIX}-{suffix}"


async def generate_school_code(db: AsyncSession, max_attempts: int = 20) -> str:
    """Unique school_code; retries with a new suffix on collision."""
    for _ in range(max_attempts):
        code = generate_school_code_candidate()
        result = await db.execute(select(Tenant.id).where(Tenant.school_code == code))
        if result.scalar_one_or_none() is None:
            return code
    raise ServiceError("Could not generate unique school code", status.HTTP_500_INTERNAL_SERVER_ERROR)

