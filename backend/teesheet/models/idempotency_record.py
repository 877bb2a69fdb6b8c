"""Stored response for an idempotency key, replayed verbatim when the same caller retries the request."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from teesheet.db.base import Base


class IdempotencyRecord(Base):
    __tablename__ = "booking_idempotency_keys"

    idempotency_key = Column(String(128), primary_key=True)
    operation = Column(String(32), nullable=False)
    owner_id = Column(String(64), nullable=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    status_code = Column(Integer, nullable=False, default=201)
    response_json = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
