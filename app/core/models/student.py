import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid

from app.core.clock import utcnow
from app.db.session import Base


class Student(Base):
    """
    Student of a school. class_section_id is authoritative for placement; current_class is the
    denormalised label shown on the student profile. Never hard-deleted: status is toggled instead.
    """

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("tenant_id", "admission_number", name="uq_student_tenant_admission_number"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    admission_number = Column(String(50), nullable=False)
    admission_date = Column(Date, nullable=True)
    full_name = Column(String(255), nullable=False)
    parent_guardian_name = Column(String(255), nullable=True)
    admission_class = Column(String(10), nullable=False)
    current_class = Column(String(10), nullable=False)
    class_section_id = Column(Uuid, ForeignKey("class_sections.id"), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="Active")  # Active | Inactive
    inactive_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
