import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String, Uuid

from app.db.session import Base


class WashPolicy(Base):
    """
    Template for yearly wash allowances. At most one row may have is_active = true;
    the partial unique index below backs that at the storage layer.
    Allowances copy total_washes/max_weight_per_wash at creation, so edits never reach them.
    """

    __tablename__ = "wash_policies"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    total_washes = Column(Integer, nullable=False, default=30)
    max_weight_per_wash = Column(Float, nullable=False, default=7.0)  # kg
    is_active = Column(Boolean, nullable=False, default=False)
    is_archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


Index(
    "uq_wash_policies_single_active",
    WashPolicy.is_active,
    unique=True,
    postgresql_where=WashPolicy.is_active.is_(True),
    sqlite_where=WashPolicy.is_active.is_(True),
)
