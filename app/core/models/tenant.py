import uuid

from sqlalchemy import Column, DateTime, String, Uuid

from app.core.clock import utcnow
from app.db.session import Base


class Tenant(Base):
    """
    A school. Its id is the partition key for every collection in the directory store.

    - id: internal primary key, used for all FKs.
    - school_code: public human-readable identifier (e.g. SCH-A3K9), used at login and for support only.
    """

    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_code = Column(String(20), unique=True, nullable=False, index=True)
    school_name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    contact_email = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
