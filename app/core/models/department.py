import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid

from app.core.clock import utcnow
from app.db.session import Base


class Department(Base):
    """Tenant-scoped department tree. A node with children, or a default node, cannot be deleted."""

    __tablename__ = "departments"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_department_tenant_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    type = Column(String(30), nullable=False)  # Academic | Non-Academic | Vocational
    parent_id = Column(Uuid, ForeignKey("departments.id"), nullable=True)
    # Seeded at onboarding; never deletable
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
