"""
Templates: reusable slot/pricing/access configuration, stored as an immutable log of versions.

The template row holds the mutable "current" pointer (published_version_id). A version is frozen
once published_at is set; per-side settings, access, prices and booking windows hang off a version.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from teesheet.db.base import Base


class TeeSheetTemplate(Base):
    __tablename__ = "tee_sheet_templates"

    id = Column(Integer, primary_key=True, index=True)
    tee_sheet_id = Column(Integer, ForeignKey("tee_sheets.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False, default="Untitled Template")
    status = Column(String(16), nullable=False, default="draft")  # draft | published
    # use_alter: versions reference templates and templates point back at one version
    published_version_id = Column(
        Integer,
        ForeignKey("tee_sheet_template_versions.id", use_alter=True, name="fk_template_published_version"),
        nullable=True,
    )
    interval_mins = Column(Integer, nullable=False, default=10)
    max_players_staff = Column(Integer, nullable=False, default=4)
    max_players_online = Column(Integer, nullable=False, default=4)
    archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class TeeSheetTemplateVersion(Base):
    __tablename__ = "tee_sheet_template_versions"
    __table_args__ = (UniqueConstraint("template_id", "version_number", name="uq_template_version_number"),)

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("tee_sheet_templates.id"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)  # set on first publish; immutable afterwards
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TeeSheetTemplateSide(Base):
    """Per-side settings within one template version."""
    __tablename__ = "tee_sheet_template_sides"
    __table_args__ = (UniqueConstraint("version_id", "side_id", name="uq_template_side"),)

    id = Column(Integer, primary_key=True, index=True)
    version_id = Column(Integer, ForeignKey("tee_sheet_template_versions.id"), nullable=False, index=True)
    side_id = Column(Integer, ForeignKey("tee_sheet_sides.id"), nullable=False)
    start_slots_enabled = Column(Boolean, nullable=False, default=True)
    rerounds_to_side_id = Column(Integer, ForeignKey("tee_sheet_sides.id"), nullable=True)
    max_legs_starting = Column(Integer, nullable=False, default=1)
    min_players = Column(Integer, nullable=False, default=1)
    walk_ride_mode = Column(String(8), nullable=False, default="either")  # walk | ride | either


class TeeSheetTemplateSideAccess(Base):
    __tablename__ = "tee_sheet_template_side_access"
    __table_args__ = (UniqueConstraint("version_id", "side_id", "booking_class_id", name="uq_template_side_access"),)

    id = Column(Integer, primary_key=True, index=True)
    version_id = Column(Integer, ForeignKey("tee_sheet_template_versions.id"), nullable=False, index=True)
    side_id = Column(Integer, ForeignKey("tee_sheet_sides.id"), nullable=False)
    booking_class_id = Column(String(64), nullable=False)
    is_allowed = Column(Boolean, nullable=False, default=True)


class TeeSheetTemplateSidePrice(Base):
    __tablename__ = "tee_sheet_template_side_prices"
    __table_args__ = (UniqueConstraint("version_id", "side_id", "booking_class_id", name="uq_template_side_price"),)

    id = Column(Integer, primary_key=True, index=True)
    version_id = Column(Integer, ForeignKey("tee_sheet_template_versions.id"), nullable=False, index=True)
    side_id = Column(Integer, ForeignKey("tee_sheet_sides.id"), nullable=False)
    booking_class_id = Column(String(64), nullable=False)
    greens_fee_cents = Column(Integer, nullable=False, default=0)
    cart_fee_cents = Column(Integer, nullable=False, default=0)


class TemplateVersionBookingWindow(Base):
    """How many days ahead a booking class may book tee times governed by a template version."""
    __tablename__ = "template_version_booking_windows"
    __table_args__ = (UniqueConstraint("template_version_id", "booking_class_id", name="uq_version_booking_window"),)

    id = Column(Integer, primary_key=True, index=True)
    template_version_id = Column(Integer, ForeignKey("tee_sheet_template_versions.id"), nullable=False, index=True)
    booking_class_id = Column(String(64), nullable=False)
    max_days_in_advance = Column(Integer, nullable=False, default=0)
