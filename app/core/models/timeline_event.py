"""
Per-student audit trail. Append-only: rows are inserted in the same transaction as the
change they describe and are never updated or deleted.
"""

import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, Uuid

from app.core.clock import utcnow
from app.db.session import Base


class TimelineEvent(Base):
    __tablename__ = "student_timeline_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    # ADMISSION | PROMOTION | EXAM_RESULT | CLASS_ASSIGNMENT | STATUS_CHANGE
    type = Column(String(30), nullable=False)
    description = Column(Text, nullable=False)
    # PROMOTION: {"fromClass", "toClass", "academicYear"}; EXAM_RESULT: {"examId"}; ...
    details = Column(JSON, nullable=False, default=dict)
