# app/crud/crud_booking.py
"""Persistence boundary for bookings.

No business rules live here. Every mutation goes through ``save`` which
commits the booking row and any pending tracking entries in one transaction,
guarded by the row's version counter.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConcurrentUpdate, NotFound, ValidationError
from app.db.models.booking import Booking, BookingTracking, utcnow
from app.db.models.booking_status import BookingStatus, PaymentStatus

logger = logging.getLogger(__name__)


@dataclass
class BookingDraft:
    service_id: int
    client_id: int
    provider_id: int
    scheduled_date: datetime
    total_amount: float
    notes: Optional[str] = None


class CRUDBooking:
    def create(self, db: Session, draft: BookingDraft) -> Booking:
        booking = Booking(
            service_id=draft.service_id,
            client_id=draft.client_id,
            provider_id=draft.provider_id,
            scheduled_date=draft.scheduled_date,
            total_amount=draft.total_amount,
            notes=draft.notes,
            status=BookingStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
        )
        self.append_tracking(
            booking, BookingStatus.PENDING, updated_by=draft.client_id, notes="Booking created"
        )
        db.add(booking)
        return self.save(db, booking)

    def find_by_id(self, db: Session, booking_id: int) -> Booking:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFound("Booking not found")
        return booking

    def find_by_client(self, db: Session, client_id: int) -> List[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.client_id == client_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )

    def find_by_provider(self, db: Session, provider_id: int) -> List[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.provider_id == provider_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )

    def find_all(self, db: Session) -> List[Booking]:
        return db.query(Booking).order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    @staticmethod
    def append_tracking(
        booking: Booking, status: BookingStatus, updated_by: int, notes: Optional[str] = None
    ) -> BookingTracking:
        entry = BookingTracking(
            status=BookingStatus(status).value,
            timestamp=utcnow(),
            updated_by=updated_by,
            notes=notes,
        )
        booking.tracking.append(entry)
        return entry

    def flush(self, db: Session, booking: Booking) -> Booking:
        """Write pending changes inside the open transaction; ``save`` finishes it."""
        self._write(db, booking, db.flush)
        return booking

    def save(self, db: Session, booking: Booking) -> Booking:
        """Commit ``booking`` and its new tracking entries, or nothing at all."""
        last = booking.current_tracking()
        if last is None or last.status != booking.status:
            db.rollback()
            raise ValidationError("Tracking history does not end with the booking's status")

        self._write(db, booking, db.commit)
        db.refresh(booking)
        return booking

    @staticmethod
    def _write(db: Session, booking: Booking, step: Callable[[], None]) -> None:
        booking_id, requested = booking.id, booking.status
        try:
            step()
        except StaleDataError:
            db.rollback()
            current = db.query(Booking.status).filter(Booking.id == booking_id).scalar()
            logger.warning(
                "Concurrent update rejected for booking %s (now %s)", booking_id, current
            )
            raise ConcurrentUpdate(
                current=current,
                requested=requested,
                reason="Booking was modified by another request; reload and retry",
            )
        except Exception:
            db.rollback()
            raise


crud_booking = CRUDBooking()
