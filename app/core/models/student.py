import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, String, Uuid

from app.core.enums import HostelStatus, enum_values
from app.db.session import Base


class Student(Base):
    """Hostel resident. Only active, non-archived students take part in promotion."""

    __tablename__ = "students"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    batch_id = Column(Uuid(as_uuid=True), ForeignKey("batches.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    registration_number = Column(String(50), nullable=False, unique=True)
    hostel_status = Column(
        Enum(HostelStatus, name="hostel_status", native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
        default=HostelStatus.active,
    )
    is_archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
