"""
Booking: an owner's reservation of one or more round legs. Each leg holds one assignment per seat
on the tee time it plays from. Cancelling keeps the rows and releases the seats.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from teesheet.db.base import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    tee_sheet_id = Column(Integer, ForeignKey("tee_sheets.id"), nullable=False, index=True)
    owner_id = Column(String(64), nullable=True, index=True)
    booking_class_id = Column(String(64), nullable=False)
    status = Column(String(16), nullable=False, default="Active")  # Active | Cancelled
    party_size = Column(Integer, nullable=False)
    walk_ride = Column(String(8), nullable=False, default="ride")
    total_price_cents = Column(Integer, nullable=False, default=0)
    source = Column(String(16), nullable=False, default="direct")  # direct | waitlist
    notes = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    legs = relationship("BookingRoundLeg", back_populates="booking", order_by="BookingRoundLeg.leg_index")


class BookingRoundLeg(Base):
    __tablename__ = "booking_round_legs"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    leg_index = Column(Integer, nullable=False, default=0)
    walk_ride = Column(String(8), nullable=True)
    price_cents = Column(Integer, nullable=False, default=0)

    booking = relationship("Booking", back_populates="legs")
    assignments = relationship(
        "TeeTimeAssignment",
        back_populates="leg",
        order_by="TeeTimeAssignment.seat_index",
        cascade="all, delete-orphan",
    )


class TeeTimeAssignment(Base):
    """One seat on a tee time held by a booking leg."""
    __tablename__ = "tee_time_assignments"

    id = Column(Integer, primary_key=True, index=True)
    booking_round_leg_id = Column(Integer, ForeignKey("booking_round_legs.id"), nullable=False, index=True)
    tee_time_id = Column(Integer, ForeignKey("tee_times.id"), nullable=False, index=True)
    seat_index = Column(Integer, nullable=False, default=0)
    player_name = Column(String(255), nullable=True)
    player_email = Column(String(255), nullable=True)

    leg = relationship("BookingRoundLeg", back_populates="assignments")
