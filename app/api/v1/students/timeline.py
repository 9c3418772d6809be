"""
Student timeline: append-only audit entries.

Events are only ever added to the session of the write they describe, so they commit
(or roll back) together with it. Nothing here updates or deletes one.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.change_feed import ChangeFeed, Collection
from app.core.context import SchoolContext
from app.core.enums import TimelineEventType
from app.core.models import TimelineEvent

from .schemas import TimelineEventResponse


def add_timeline_event(
    db: AsyncSession,
    ctx: SchoolContext,
    student_id: UUID,
    event_type: TimelineEventType,
    description: str,
    details: Optional[Dict[str, Any]] = None,
) -> TimelineEvent:
    """Stage one event in the caller's transaction. The caller commits."""
    event = TimelineEvent(
        tenant_id=ctx.tenant_id,
        student_id=student_id,
        type=event_type.value,
        description=description,
        details=details or {},
    )
    db.add(event)
    return event


def timeline_to_response(e: TimelineEvent) -> TimelineEventResponse:
    return TimelineEventResponse(
        id=e.id,
        student_id=e.student_id,
        timestamp=e.timestamp,
        type=e.type,
        description=e.description,
        details=e.details or {},
    )


def publish_timeline(feed: Optional[ChangeFeed], ctx: SchoolContext, events: List[TimelineEvent]) -> None:
    if feed is None:
        return
    for e in events:
        feed.publish_document(ctx.tenant_id, Collection.TIMELINE, timeline_to_response(e).model_dump())


async def list_timeline(db: AsyncSession, ctx: SchoolContext, student_id: UUID) -> List[TimelineEventResponse]:
    """Newest first."""
    result = await db.execute(
        select(TimelineEvent)
        .where(TimelineEvent.tenant_id == ctx.tenant_id, TimelineEvent.student_id == student_id)
        .order_by(TimelineEvent.timestamp.desc())
    )
    return [timeline_to_response(e) for e in result.scalars().all()]

