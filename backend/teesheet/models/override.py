"""
Overrides: single-date exceptions. A published override fully replaces season resolution for its date,
including the zero-window case, which means the course is closed that day.
"""
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from teesheet.db.base import Base


class TeeSheetOverride(Base):
    __tablename__ = "tee_sheet_overrides"

    id = Column(Integer, primary_key=True, index=True)
    tee_sheet_id = Column(Integer, ForeignKey("tee_sheets.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False, default="Untitled Override")
    status = Column(String(16), nullable=False, default="draft")  # draft | published
    date = Column(Date, nullable=False, index=True)
    published_version_id = Column(
        Integer,
        ForeignKey("tee_sheet_override_versions.id", use_alter=True, name="fk_override_published_version"),
        nullable=True,
    )
    draft_version_id = Column(
        Integer,
        ForeignKey("tee_sheet_override_versions.id", use_alter=True, name="fk_override_draft_version"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class TeeSheetOverrideVersion(Base):
    __tablename__ = "tee_sheet_override_versions"

    id = Column(Integer, primary_key=True, index=True)
    override_id = Column(Integer, ForeignKey("tee_sheet_overrides.id"), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TeeSheetOverrideWindow(Base):
    __tablename__ = "tee_sheet_override_windows"

    id = Column(Integer, primary_key=True, index=True)
    override_version_id = Column(Integer, ForeignKey("tee_sheet_override_versions.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    start_mode = Column(String(16), nullable=False, default="fixed")
    end_mode = Column(String(16), nullable=False, default="fixed")
    start_time_local = Column(String(8), nullable=True)
    end_time_local = Column(String(8), nullable=True)
    start_offset_mins = Column(Integer, nullable=True)
    end_offset_mins = Column(Integer, nullable=True)
    template_version_id = Column(Integer, ForeignKey("tee_sheet_template_versions.id"), nullable=False)
    side_id = Column(Integer, ForeignKey("tee_sheet_sides.id"), nullable=True)
