# app/services/booking_lifecycle.py
"""Single entry point for every booking state mutation.

Each operation checks who is acting, checks the status edge against
``transitions``, then mutates the booking and appends its tracking entry in
one save. The counterparty is notified afterwards, best effort.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import Forbidden, InvalidTransition, NotFound, ValidationError
from app.crud.crud_booking import BookingDraft, CRUDBooking, crud_booking
from app.db.models.booking import Booking, utcnow
from app.db.models.booking_status import BookingStatus, PaymentStatus, QuoteStatus
from app.db.models.user import User
from app.services import transitions
from app.services.catalog import RatingAggregator, ServiceCatalog, SqlRatingAggregator, SqlServiceCatalog
from app.services.notifications import NotificationChannel, NotificationFanout
from app.services.quotes import QuoteWorkflow

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)
PAYABLE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.QUOTED.value)


@dataclass
class PaymentOutcome:
    """Gateway result, already verified by the caller."""

    status: str  # "paid", "failed" or "refunded"
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    paid_at: Optional[datetime] = None


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class BookingLifecycleService:
    def __init__(
        self,
        db: Session,
        channel: NotificationChannel,
        catalog: Optional[ServiceCatalog] = None,
        ratings: Optional[RatingAggregator] = None,
        store: CRUDBooking = crud_booking,
    ):
        self.db = db
        self.store = store
        self.catalog = catalog or SqlServiceCatalog(db)
        self.ratings = ratings or SqlRatingAggregator(db)
        self.quotes = QuoteWorkflow(db, store)
        self.fanout = NotificationFanout(channel)

    # ---------- reads ----------

    def get_booking(self, booking_id: int, actor: User) -> Booking:
        booking = self.store.find_by_id(self.db, booking_id)
        if actor.role != "admin" and not booking.is_party(actor.id):
            raise Forbidden("Not authorized to view this booking")
        return booking

    def list_bookings(self, actor: User) -> List[Booking]:
        if actor.role == "admin":
            return self.store.find_all(self.db)
        if actor.role == "provider":
            return self.store.find_by_provider(self.db, actor.id)
        return self.store.find_by_client(self.db, actor.id)

    # ---------- mutations ----------

    def create_booking(
        self,
        client: User,
        service_id: int,
        scheduled_date: datetime,
        notes: Optional[str] = None,
    ) -> Booking:
        if client.role != "client":
            raise Forbidden("Only clients can create bookings")
        scheduled = _naive_utc(scheduled_date)
        if scheduled <= utcnow():
            raise ValidationError("Scheduled date must be in the future")

        service = self.catalog.get_service(service_id)
        if not service:
            raise NotFound("Service not found")
        if service.provider_id == client.id:
            raise ValidationError("You cannot book your own service")

        booking = self.store.create(
            self.db,
            BookingDraft(
                service_id=service.id,
                client_id=client.id,
                provider_id=service.provider_id,
                scheduled_date=scheduled,
                total_amount=service.price,
                notes=notes,
            ),
        )
        logger.info("Client %s booked service %s (booking %s)", client.id, service.id, booking.id)
        self._notify(booking.provider_id, "booking:new", booking, serviceId=service.id)
        return booking

    def update_status(
        self,
        booking: Booking,
        requested: str,
        actor: User,
        notes: Optional[str] = None,
    ) -> Booking:
        if not booking.is_party(actor.id):
            raise Forbidden("Not authorized to update this booking")
        requested = getattr(requested, "value", requested)
        if requested == BookingStatus.QUOTED.value:
            raise ValidationError("Submit a quote to move a booking to quoted")

        result = transitions.validate(booking.status, requested)
        if not result.valid:
            logger.warning("Rejected %s -> %s on booking %s", booking.status, requested, booking.id)
            raise InvalidTransition(booking.status, requested, result.reason)
        if actor.id != booking.provider_id:
            raise Forbidden("Only the booking's provider can update its status")

        previous = booking.status
        booking.status = requested
        if requested == BookingStatus.COMPLETED.value:
            booking.completed_at = utcnow()
        self.store.append_tracking(
            booking, BookingStatus(requested), updated_by=actor.id,
            notes=notes or f"Status updated to {requested}",
        )
        self.store.save(self.db, booking)
        logger.info("Booking %s moved %s -> %s by provider %s", booking.id, previous, requested, actor.id)
        self._notify(booking.client_id, "booking:statusUpdate", booking, quote=self._quote_payload(booking))
        return booking

    def submit_quote(
        self,
        booking: Booking,
        actor: User,
        price: Optional[float],
        estimated_hours: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        self.quotes.submit_quote(booking, actor, price, estimated_hours, notes)
        self._notify(booking.client_id, "booking:quoted", booking, quote=self._quote_payload(booking))
        return booking

    def respond_to_quote(self, booking: Booking, actor: User, approved: bool) -> Booking:
        self.quotes.respond_to_quote(booking, actor, approved)
        self._notify(booking.provider_id, "booking:quoteResponse", booking, approved=approved)
        return booking

    def cancel(self, booking: Booking, actor: User) -> Booking:
        if actor.id != booking.client_id:
            raise Forbidden("Only the booking's client can cancel it")
        if booking.status not in CANCELLABLE_STATUSES:
            raise InvalidTransition(
                booking.status,
                BookingStatus.CANCELLED.value,
                f"This booking cannot be cancelled while {booking.status}",
            )
        result = transitions.validate(booking.status, BookingStatus.CANCELLED)
        if not result.valid:
            raise InvalidTransition(booking.status, BookingStatus.CANCELLED.value, result.reason)

        booking.status = BookingStatus.CANCELLED.value
        self.store.append_tracking(
            booking, BookingStatus.CANCELLED, updated_by=actor.id, notes="Booking cancelled by client"
        )
        self.store.save(self.db, booking)
        logger.info("Booking %s cancelled by client %s", booking.id, actor.id)
        self._notify(booking.provider_id, "booking:cancelled", booking)
        return booking

    def complete_with_rating(
        self,
        booking: Booking,
        actor: User,
        score: Any,
        comment: Optional[str] = None,
    ) -> Booking:
        if actor.id != booking.client_id:
            raise Forbidden("Only the booking's client can rate it")
        if booking.status != BookingStatus.COMPLETED.value:
            raise InvalidTransition(
                booking.status,
                BookingStatus.COMPLETED.value,
                "Only completed bookings can be rated",
            )
        if booking.rating_score is not None:
            raise ValidationError("Review already exists for this booking")
        if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
            raise ValidationError("Rating must be between 1 and 5")

        booking.rating_score = score
        booking.rating_comment = comment
        booking.rating_created_at = utcnow()
        # The service aggregate is recomputed in the same transaction as the rating.
        self.store.flush(self.db, booking)
        try:
            self.ratings.record_rating(booking.service_id, score)
        except Exception:
            self.db.rollback()
            logger.warning("Rating for booking %s rolled back", booking.id)
            raise
        self.store.save(self.db, booking)
        logger.info("Booking %s rated %s by client %s", booking.id, score, actor.id)

        self._notify(booking.provider_id, "booking:rated", booking, score=score)
        return booking

    def reconcile_payment(self, booking: Booking, outcome: PaymentOutcome) -> Booking:
        if outcome.status == PaymentStatus.PAID.value:
            if booking.is_paid():
                if booking.payment_id == outcome.payment_id:
                    logger.info("Duplicate payment confirmation for booking %s ignored", booking.id)
                    return booking
                logger.warning(
                    "Second payment %s for booking %s rejected, already paid by %s",
                    outcome.payment_id, booking.id, booking.payment_id,
                )
                raise ValidationError("Booking is already paid")
            booking.payment_status = PaymentStatus.PAID.value
            booking.payment_order_id = outcome.order_id or booking.payment_order_id
            booking.payment_id = outcome.payment_id
            booking.paid_at = _naive_utc(outcome.paid_at) if outcome.paid_at else utcnow()

            if booking.status in PAYABLE_STATUSES:
                result = transitions.validate(booking.status, BookingStatus.CONFIRMED)
                if result.valid:
                    if booking.quote_status == QuoteStatus.PENDING.value:
                        booking.quote_status = QuoteStatus.ACCEPTED.value
                        booking.quote_responded_at = utcnow()
                    booking.status = BookingStatus.CONFIRMED.value
                    self.store.append_tracking(
                        booking, BookingStatus.CONFIRMED, updated_by=booking.client_id,
                        notes="Booking confirmed after payment",
                    )
        elif outcome.status == "failed":
            if outcome.order_id:
                booking.payment_order_id = outcome.order_id
        elif outcome.status == PaymentStatus.REFUNDED.value:
            if not booking.is_paid():
                raise ValidationError("Only paid bookings can be refunded")
            booking.payment_status = PaymentStatus.REFUNDED.value
        else:
            raise ValidationError(f"Unknown payment outcome: {outcome.status}")

        self.store.save(self.db, booking)
        logger.info(
            "Payment %s for booking %s (payment=%s, status=%s)",
            outcome.status, booking.id, booking.payment_status, booking.status,
        )
        self._notify(
            booking.provider_id, "booking:paymentUpdate", booking,
            paymentStatus=booking.payment_status,
        )
        return booking

    # ---------- helpers ----------

    @staticmethod
    def _quote_payload(booking: Booking) -> Optional[Dict[str, Any]]:
        if booking.quote_status is None:
            return None
        return {
            "price": booking.quote_price,
            "estimatedHours": booking.quote_estimated_hours,
            "notes": booking.quote_notes,
            "status": booking.quote_status,
        }

    def _notify(self, user_id: int, event: str, booking: Booking, **extra: Any) -> None:
        payload = {"bookingId": booking.id, "status": booking.status}
        payload.update(extra)
        self.fanout.notify(user_id, event, payload)
