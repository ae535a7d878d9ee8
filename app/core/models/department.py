import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Uuid

from app.db.session import Base


class Department(Base):
    """Department master data. duration_years drives the graduation rule of batch promotion."""

    __tablename__ = "departments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    duration_years = Column(Integer, nullable=False)  # 1..6
    is_archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
