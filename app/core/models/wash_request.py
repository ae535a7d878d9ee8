import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Index, Integer, Text, Uuid, text

from app.core.enums import WashRequestStatus, enum_values
from app.db.session import Base


class WashRequest(Base):
    """
    Laundry drop-off by a student. allowance_id and weight_kg are set when the bag is weighed;
    wash_count is the number of washes debited from that allowance.
    """

    __tablename__ = "wash_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    allowance_id = Column(Uuid(as_uuid=True), ForeignKey("wash_allowances.id"), nullable=True, index=True)
    cloth_count = Column(Integer, nullable=False, default=0)
    weight_kg = Column(Float, nullable=True)
    wash_count = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(WashRequestStatus, name="wash_request_status", native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
        default=WashRequestStatus.pickup_pending,
        index=True,
    )
    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    returned_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# One non-terminal request per student
_ACTIVE_STATUS_SQL = text("status IN ('pickup_pending', 'picked_up', 'washing', 'completed')")

Index(
    "uq_wash_requests_one_active_per_student",
    WashRequest.student_id,
    unique=True,
    postgresql_where=_ACTIVE_STATUS_SQL,
    sqlite_where=_ACTIVE_STATUS_SQL,
)
