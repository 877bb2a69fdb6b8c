"""Side: a bookable lane (e.g. front nine) with an effective date range and round-duration metadata."""
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from teesheet.db.base import Base


class TeeSheetSide(Base):
    __tablename__ = "tee_sheet_sides"

    id = Column(Integer, primary_key=True, index=True)
    tee_sheet_id = Column(Integer, ForeignKey("tee_sheets.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=True)  # exclusive; null = open-ended
    minutes_per_hole = Column(Integer, nullable=False, default=12)
    hole_count = Column(Integer, nullable=False, default=9)
    interval_mins = Column(Integer, nullable=False, default=8)
    start_slots_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def is_effective_on(self, day) -> bool:
        """True if the side is in service on the given date."""
        if self.valid_from and day < self.valid_from:
            return False
        if self.valid_to and day >= self.valid_to:
            return False
        return True
