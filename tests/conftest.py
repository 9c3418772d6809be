import os
from typing import AsyncGenerator, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.pool import StaticPool

from app.core.change_feed import ChangeFeed, get_change_feed
from app.core.context import SchoolContext
from app.core.enums import TimelineEventType
from app.core.models import ClassSection, Student, Tenant, TimelineEvent
from app.core.notifications import RecordingNotificationSink, get_notifier
from app.db.session import build_engine, build_session_factory, create_tables, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_EMAIL = "principal@greenfield.example.com"
ADMIN_PASSWORD = "StrongPass123"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test. StaticPool keeps the single connection alive."""
    engine = build_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = build_session_factory(engine)

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
def notifier() -> RecordingNotificationSink:
    sink = RecordingNotificationSink()
    app.dependency_overrides[get_notifier] = lambda: sink
    return sink


@pytest.fixture()
def feed() -> ChangeFeed:
    change_feed = ChangeFeed()
    app.dependency_overrides[get_change_feed] = lambda: change_feed
    return change_feed


@pytest.fixture()
async def client(
    db_session: AsyncSession,
    notifier: RecordingNotificationSink,
    feed: ChangeFeed,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def school(client: AsyncClient) -> dict:
    """Registered school with a logged-in admin: tenant_id, ctx and auth headers."""
    register = await client.post(
        "/api/v1/auth/register",
        json={
            "school_name": "Greenfield Public School",
            "address": "12 Lake Road",
            "admin_full_name": "Asha Verma",
            "admin_email": ADMIN_EMAIL,
            "password": ADMIN_PASSWORD,
            "confirm_password": ADMIN_PASSWORD,
            "accept_terms": True,
        },
    )
    assert register.status_code == 201, register.text
    login = await client.post("/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert login.status_code == 200, login.text
    body = login.json()
    tenant_id = body["school"]["id"]
    return {
        "tenant_id": tenant_id,
        "ctx": SchoolContext(tenant_id=tenant_id, user_id=body["user"]["id"], role="ADMIN"),
        "headers": {"Authorization": f"Bearer {body['access_token']}"},
    }


@pytest.fixture()
async def ctx(db_session: AsyncSession) -> SchoolContext:
    """A bare school for service-level tests (no admin, no seeded departments)."""
    tenant = Tenant(school_code="SCH-TEST", school_name="Test School", status="ACTIVE")
    db_session.add(tenant)
    await db_session.commit()
    return SchoolContext(tenant_id=tenant.id)


@pytest.fixture()
def make_section(db_session: AsyncSession):
    async def _make(ctx: SchoolContext, class_name: str, identifier: str = "A") -> ClassSection:
        section = ClassSection(tenant_id=ctx.tenant_id, class_name=class_name, section_identifier=identifier)
        db_session.add(section)
        await db_session.commit()
        return section

    return _make


@pytest.fixture()
def make_student(db_session: AsyncSession):
    counter = {"n": 1000}

    async def _make(
        ctx: SchoolContext,
        section: Optional[ClassSection] = None,
        full_name: str = "Student",
        current_class: Optional[str] = None,
    ) -> Student:
        counter["n"] += 1
        class_name = current_class or (section.class_name if section else "1")
        student = Student(
            tenant_id=ctx.tenant_id,
            admission_number=str(counter["n"]),
            full_name=full_name,
            admission_class=class_name,
            current_class=class_name,
            class_section_id=section.id if section else None,
        )
        db_session.add(student)
        await db_session.commit()
        return student

    return _make


@pytest.fixture()
def count_events(db_session: AsyncSession):
    """Number of timeline events for a student, optionally of one type."""

    async def _count(ctx: SchoolContext, student_id, event_type: Optional[TimelineEventType] = None) -> int:
        stmt = select(TimelineEvent.id).where(
            TimelineEvent.tenant_id == ctx.tenant_id,
            TimelineEvent.student_id == student_id,
        )
        if event_type is not None:
            stmt = stmt.where(TimelineEvent.type == event_type.value)
        result = await db_session.execute(stmt)
        return len(result.all())

    return _count
