import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Batch(Base):
    """
    Intake of students in one department, e.g. "2024-2028".
    current_year runs 1..duration; duration + 1 means the batch has graduated.
    is_promoting is the claim taken by a running promotion; a claim older than the
    configured timeout is treated as abandoned.
    """

    __tablename__ = "batches"
    __table_args__ = (
        UniqueConstraint("department_id", "batch_label", name="uq_batch_department_label"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    department_id = Column(Uuid(as_uuid=True), ForeignKey("departments.id"), nullable=False, index=True)
    batch_label = Column(String(20), nullable=False)
    start_year = Column(Integer, nullable=False)
    end_year = Column(Integer, nullable=False)
    current_year = Column(Integer, nullable=False, default=1)
    is_archived = Column(Boolean, nullable=False, default=False)
    is_promoting = Column(Boolean, nullable=False, default=False)
    promotion_started_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    department = relationship("Department", lazy="joined")
    years = relationship(
        "BatchYear",
        back_populates="batch",
        order_by="BatchYear.year_no",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class BatchYear(Base):
    """Academic year window of a batch. Dates are set together or not at all."""

    __tablename__ = "batch_years"
    __table_args__ = (
        UniqueConstraint("batch_id", "year_no", name="uq_batch_year_no"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    batch_id = Column(Uuid(as_uuid=True), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False)
    year_no = Column(Integer, nullable=False)  # 1..6
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)

    batch = relationship("Batch", back_populates="years")
