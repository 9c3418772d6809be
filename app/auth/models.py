import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid

from app.core.clock import utcnow
from app.db.session import Base


class User(Base):
    """Operator account within a school (admin, teacher, section incharge)."""

    __tablename__ = "users"
    __table_args__ = (
        # Email must be unique per tenant
        UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Owning school
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    password_hash = Column(Text, nullable=False)
    # ADMIN | TEACHER | INCHARGE
    role = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    # Set when the account belongs to a staff member
    staff_id = Column(Uuid, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
