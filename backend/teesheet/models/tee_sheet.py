"""Tee sheet: one bookable schedule for a course. Owns sides, configuration and generated tee times."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from teesheet.db.base import Base


class TeeSheet(Base):
    __tablename__ = "tee_sheets"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("golf_courses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    daily_release_local = Column(String(8), nullable=True)  # e.g. "07:00"; furthest bookable day opens at this clock
    cancel_cutoff_hours = Column(Integer, nullable=True)  # null = settings.default_cancel_cutoff_hours
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
