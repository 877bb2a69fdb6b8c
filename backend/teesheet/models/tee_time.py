"""
Generated tee time (slot). (tee_sheet_id, side_id, start_time) is the immutable unique key.

assigned_count is only changed by the booking engine, through conditional updates that keep it
within [0, capacity]; the generator never touches it.
"""
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from teesheet.db.base import Base


class TeeTime(Base):
    __tablename__ = "tee_times"
    __table_args__ = (
        UniqueConstraint("tee_sheet_id", "side_id", "start_time", name="uq_tee_times_sheet_side_start"),
        CheckConstraint("assigned_count >= 0 AND assigned_count <= capacity", name="ck_tee_times_assigned_within_capacity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tee_sheet_id = Column(Integer, ForeignKey("tee_sheets.id"), nullable=False, index=True)
    side_id = Column(Integer, ForeignKey("tee_sheet_sides.id"), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)  # UTC instant
    capacity = Column(Integer, nullable=False, default=4)
    assigned_count = Column(Integer, nullable=False, default=0)
    is_blocked = Column(Boolean, nullable=False, default=False)
    blocked_reason = Column(String(255), nullable=True)
    blocked_by_closure_id = Column(Integer, ForeignKey("closure_blocks.id", ondelete="SET NULL"), nullable=True)
    # Reround annotation, refreshed on every generation pass
    can_start_18 = Column(Boolean, nullable=False, default=False)
    rerounds_to_side_id = Column(Integer, ForeignKey("tee_sheet_sides.id"), nullable=True)
    reround_tee_time_id = Column(Integer, nullable=True)
    holes_label = Column(String(8), nullable=False, default="9")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def remaining(self) -> int:
        return (self.capacity or 0) - (self.assigned_count or 0)
