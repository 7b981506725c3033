# app/services/invoices.py
from typing import Any, Dict

from app.core.config import settings
from app.core.exceptions import Forbidden, ValidationError
from app.db.models.booking import Booking, utcnow
from app.db.models.booking_status import BookingStatus
from app.db.models.user import User


def invoice_number(order_id: str) -> str:
    return f"INV-{order_id[-6:]}"


def build_invoice(booking: Booking, actor: User) -> Dict[str, Any]:
    """Invoice data for a completed, paid booking."""
    if actor.role != "admin" and not booking.is_party(actor.id):
        raise Forbidden("Not authorized to access this invoice")
    if booking.status != BookingStatus.COMPLETED.value or not booking.is_paid():
        raise ValidationError("Invoice can only be generated for completed and paid bookings")

    order_id = booking.payment_order_id or str(booking.id)
    return {
        "invoice_number": invoice_number(order_id),
        "date": booking.paid_at or utcnow(),
        "booking_id": booking.id,
        "service": {
            "id": booking.service_id,
            "title": booking.service.title,
            "price": booking.service.price,
        },
        "client": {"id": booking.client.id, "name": booking.client.name, "email": booking.client.email},
        "provider": {
            "id": booking.provider.id,
            "name": booking.provider.name,
            "email": booking.provider.email,
        },
        "amount": float(booking.total_amount),
        "currency": settings.CURRENCY,
        "order_id": booking.payment_order_id,
        "payment_id": booking.payment_id,
    }
