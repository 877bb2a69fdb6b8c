"""
Seasons: date ranges mapping each weekday to ordered windows, each window pointing at a template version.

Versioned and published the same way as templates. Weekday 0 = Sunday .. 6 = Saturday; windows for one
(season_version, weekday) have contiguous positions starting at 0.
"""
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from teesheet.db.base import Base


class TeeSheetSeason(Base):
    __tablename__ = "tee_sheet_seasons"

    id = Column(Integer, primary_key=True, index=True)
    tee_sheet_id = Column(Integer, ForeignKey("tee_sheets.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False, default="Untitled Season")
    status = Column(String(16), nullable=False, default="draft")  # draft | published
    published_version_id = Column(
        Integer,
        ForeignKey("tee_sheet_season_versions.id", use_alter=True, name="fk_season_published_version"),
        nullable=True,
    )
    archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class TeeSheetSeasonVersion(Base):
    __tablename__ = "tee_sheet_season_versions"

    id = Column(Integer, primary_key=True, index=True)
    season_id = Column(Integer, ForeignKey("tee_sheet_seasons.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date_exclusive = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TeeSheetSeasonWeekdayWindow(Base):
    __tablename__ = "tee_sheet_season_weekday_windows"
    __table_args__ = (
        UniqueConstraint("season_version_id", "weekday", "position", name="uq_season_weekday_position"),
    )

    id = Column(Integer, primary_key=True, index=True)
    season_version_id = Column(Integer, ForeignKey("tee_sheet_season_versions.id"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)  # 0 = Sunday; legacy rows may hold 7 for Sunday
    position = Column(Integer, nullable=False, default=0)
    start_mode = Column(String(16), nullable=False, default="fixed")  # fixed | sunrise_offset
    end_mode = Column(String(16), nullable=False, default="fixed")  # fixed | sunset_offset
    start_time_local = Column(String(8), nullable=True)
    end_time_local = Column(String(8), nullable=True)
    start_offset_mins = Column(Integer, nullable=True)
    end_offset_mins = Column(Integer, nullable=True)
    template_version_id = Column(Integer, ForeignKey("tee_sheet_template_versions.id"), nullable=False)
    side_id = Column(Integer, ForeignKey("tee_sheet_sides.id"), nullable=True)  # null = all sides of the version
