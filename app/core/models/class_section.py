"""Tenant-scoped class sections (e.g. 5-A, 5-B). The class itself is only implied by class_name."""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid

from app.core.clock import utcnow
from app.db.session import Base


class ClassSection(Base):
    """One section of a class. Identifier is a single uppercase letter, unique per class per school."""

    __tablename__ = "class_sections"
    __table_args__ = (
        UniqueConstraint("tenant_id", "class_name", "section_identifier", name="uq_class_section_tenant_class_identifier"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    class_name = Column(String(10), nullable=False)  # UKG, 1 .. 12
    section_identifier = Column(String(1), nullable=False)
    section_name = Column(String(100), nullable=True)  # optional display name
    section_incharge_id = Column(Uuid, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def label(self) -> str:
        return f"{self.class_name}-{self.section_identifier}"
