# app/db/models/booking.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.models.booking_status import BookingStatus, PaymentStatus


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)

    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    scheduled_date = Column(DateTime, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String, nullable=False, default=BookingStatus.PENDING.value)
    notes = Column(String, nullable=True)

    # payment sub-record
    payment_status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)
    payment_order_id = Column(String, nullable=True)
    payment_id = Column(String, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    # quote sub-record, all null until a provider quotes
    quote_price = Column(Float, nullable=True)
    quote_estimated_hours = Column(Float, nullable=True)
    quote_notes = Column(String, nullable=True)
    quote_status = Column(String, nullable=True)
    quote_submitted_at = Column(DateTime, nullable=True)
    quote_responded_at = Column(DateTime, nullable=True)

    # rating sub-record, set once after completion
    rating_score = Column(Integer, nullable=True)
    rating_comment = Column(String, nullable=True)
    rating_created_at = Column(DateTime, nullable=True)

    completed_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    # relationships
    client = relationship("User", foreign_keys=[client_id], lazy="joined")
    provider = relationship("User", foreign_keys=[provider_id], lazy="joined")
    service = relationship("Service", foreign_keys=[service_id], lazy="joined")
    tracking = relationship(
        "BookingTracking",
        back_populates="booking",
        order_by="BookingTracking.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def payment(self) -> dict:
        return {
            "status": self.payment_status,
            "order_id": self.payment_order_id,
            "payment_id": self.payment_id,
            "paid_at": self.paid_at,
        }

    @property
    def quote(self):
        if self.quote_status is None:
            return None
        return {
            "price": self.quote_price,
            "estimated_hours": self.quote_estimated_hours,
            "notes": self.quote_notes,
            "status": self.quote_status,
            "submitted_at": self.quote_submitted_at,
            "responded_at": self.quote_responded_at,
        }

    @property
    def rating(self):
        if self.rating_score is None:
            return None
        return {
            "score": self.rating_score,
            "comment": self.rating_comment,
            "created_at": self.rating_created_at,
        }

    def is_party(self, user_id: int) -> bool:
        return user_id in (self.client_id, self.provider_id)

    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    def current_tracking(self):
        """Latest tracking entry, or None for a booking not yet persisted."""
        return self.tracking[-1] if self.tracking else None


class BookingTracking(Base):
    """Append-only audit entry, one per status mutation."""

    __tablename__ = "booking_tracking"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(String, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    notes = Column(String, nullable=True)

    booking = relationship("Booking", back_populates="tracking")
