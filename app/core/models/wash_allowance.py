import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Enum, Float, ForeignKey, Integer, UniqueConstraint, Uuid

from app.core.enums import AllowanceStatus, enum_values
from app.db.session import Base


class WashAllowance(Base):
    """
    Yearly wash plan of one student. total_washes and max_weight_per_wash are a snapshot
    of the policy (or promotion override) at creation time.
    Counters change only through conditional updates in the wash_allowances service.
    """

    __tablename__ = "wash_allowances"
    __table_args__ = (
        UniqueConstraint("student_id", "year_no", name="uq_wash_allowance_student_year"),
        CheckConstraint("used_washes >= 0", name="used_non_negative"),
        CheckConstraint("used_washes <= total_washes", name="used_within_total"),
        CheckConstraint("remaining_washes = total_washes - used_washes", name="remaining_matches_used"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    batch_id = Column(Uuid(as_uuid=True), ForeignKey("batches.id"), nullable=False, index=True)
    year_no = Column(Integer, nullable=False)
    # Null when created from a promotion override
    policy_id = Column(Uuid(as_uuid=True), ForeignKey("wash_policies.id", ondelete="SET NULL"), nullable=True)
    total_washes = Column(Integer, nullable=False)
    max_weight_per_wash = Column(Float, nullable=False)
    used_washes = Column(Integer, nullable=False, default=0)
    remaining_washes = Column(Integer, nullable=False)
    status = Column(
        Enum(AllowanceStatus, name="allowance_status", native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
        default=AllowanceStatus.open,
    )
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
