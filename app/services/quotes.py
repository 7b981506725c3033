# app/services/quotes.py
"""Provider quote / client response sub-protocol.

A provider may (re)quote while the booking is ``pending`` or ``quoted``.
Accepting a quote confirms the booking at the quoted price, declining it
cancels the booking.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import Forbidden, InvalidTransition, NotFound, ValidationError
from app.crud.crud_booking import CRUDBooking, crud_booking
from app.db.models.booking import Booking, utcnow
from app.db.models.booking_status import BookingStatus, QuoteStatus
from app.db.models.user import User
from app.services import transitions

logger = logging.getLogger(__name__)

QUOTABLE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.QUOTED.value)


class QuoteWorkflow:
    def __init__(self, db: Session, store: CRUDBooking = crud_booking):
        self.db = db
        self.store = store

    def submit_quote(
        self,
        booking: Booking,
        actor: User,
        price: Optional[float],
        estimated_hours: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        if actor.id != booking.provider_id:
            raise Forbidden("Only the booking's provider can submit a quote")
        if booking.status not in QUOTABLE_STATUSES:
            raise InvalidTransition(
                booking.status,
                BookingStatus.QUOTED.value,
                f"Cannot quote a booking that is already {booking.status}",
            )
        if price is None or price <= 0:
            raise ValidationError("Quote price must be a positive number")
        if estimated_hours is not None and estimated_hours <= 0:
            raise ValidationError("Estimated hours must be a positive number")

        if booking.status == BookingStatus.PENDING.value:
            result = transitions.validate(booking.status, BookingStatus.QUOTED)
            if not result.valid:
                raise InvalidTransition(booking.status, BookingStatus.QUOTED.value, result.reason)

        now = utcnow()
        booking.quote_price = price
        booking.quote_estimated_hours = estimated_hours
        booking.quote_notes = notes or ""
        booking.quote_status = QuoteStatus.PENDING.value
        booking.quote_submitted_at = now
        booking.quote_responded_at = None
        booking.total_amount = price
        booking.status = BookingStatus.QUOTED.value
        self.store.append_tracking(
            booking,
            BookingStatus.QUOTED,
            updated_by=actor.id,
            notes=notes or "Quote provided by service provider",
        )
        self.store.save(self.db, booking)
        logger.info("Provider %s quoted %.2f for booking %s", actor.id, price, booking.id)
        return booking

    def respond_to_quote(self, booking: Booking, actor: User, approved: bool) -> Booking:
        if actor.id != booking.client_id:
            raise Forbidden("Only the booking's client can respond to its quote")
        if booking.quote_status is None:
            raise NotFound("No quote found for this booking")
        if booking.quote_status != QuoteStatus.PENDING.value:
            raise InvalidTransition(
                booking.status,
                BookingStatus.CONFIRMED.value if approved else BookingStatus.CANCELLED.value,
                f"Quote has already been {booking.quote_status}",
            )

        target = BookingStatus.CONFIRMED if approved else BookingStatus.CANCELLED
        result = transitions.validate(booking.status, target)
        if not result.valid:
            raise InvalidTransition(booking.status, target.value, result.reason)

        booking.quote_status = (QuoteStatus.ACCEPTED if approved else QuoteStatus.DECLINED).value
        booking.quote_responded_at = utcnow()
        booking.status = target.value
        self.store.append_tracking(
            booking,
            target,
            updated_by=actor.id,
            notes=f"Quote {'accepted' if approved else 'declined'} by client",
        )
        self.store.save(self.db, booking)
        logger.info(
            "Client %s %s quote for booking %s",
            actor.id, "accepted" if approved else "declined", booking.id,
        )
        return booking
