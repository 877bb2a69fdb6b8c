"""Golf course (facility): timezone and coordinates used for local time and sunrise/sunset."""
from sqlalchemy import Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from teesheet.db.base import Base


class GolfCourse(Base):
    __tablename__ = "golf_courses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")  # IANA name, e.g. America/Denver
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
