"""Ad-hoc blackout over [starts_at, ends_at) for a whole sheet (side_id null) or one side."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from teesheet.db.base import Base


class ClosureBlock(Base):
    __tablename__ = "closure_blocks"

    id = Column(Integer, primary_key=True, index=True)
    tee_sheet_id = Column(Integer, ForeignKey("tee_sheets.id"), nullable=False, index=True)
    side_id = Column(Integer, ForeignKey("tee_sheet_sides.id"), nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
