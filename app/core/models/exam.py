import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Uuid

from app.core.clock import utcnow
from app.db.session import Base


class Exam(Base):
    """Exam held for one class (e.g. Half Yearly 2025, Class 5)."""

    __tablename__ = "exams"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    exam_name = Column(String(150), nullable=False)
    year = Column(Integer, nullable=False)
    class_name = Column(String(10), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Subject(Base):
    """Subject paper within an exam. Marks are entered per (student, subject)."""

    __tablename__ = "subjects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    exam_id = Column(Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_name = Column(String(100), nullable=False)
    max_marks = Column(Integer, nullable=False, default=100)
