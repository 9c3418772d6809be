from sqlalchemy import Column, DateTime, Float, ForeignKey, String, Text, Uuid

from app.core.clock import utcnow
from app.db.session import Base


def performance_record_id(student_id, subject_id) -> str:
    """Deterministic key so re-saving the same student+subject overwrites instead of duplicating."""
    return f"{student_id}_{subject_id}"


class PerformanceRecord(Base):
    __tablename__ = "performance_records"

    id = Column(String(80), primary_key=True)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    exam_id = Column(Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    marks = Column(Float, nullable=False)
    remarks = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
