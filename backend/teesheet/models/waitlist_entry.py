"""Waitlist entry for a tee time. Oldest-first by (created_at, id); offers carry a time-boxed token."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from teesheet.db.base import Base


class WaitlistEntry(Base):
    __tablename__ = "tee_time_waitlist"

    id = Column(Integer, primary_key=True, index=True)
    tee_time_id = Column(Integer, ForeignKey("tee_times.id"), nullable=False, index=True)
    owner_id = Column(String(64), nullable=True)
    party_size = Column(Integer, nullable=False)
    booking_class_id = Column(String(64), nullable=False)
    contact_email = Column(String(255), nullable=True)
    status = Column(String(16), nullable=False, default="Waiting")  # Waiting | Offered | Accepted | Expired
    offer_token = Column(String(64), nullable=True)
    offer_expires_at = Column(DateTime(timezone=True), nullable=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
