import hashlib
import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import get_current_user
from app.db.base import get_db
from app.db.models.booking_status import PaymentStatus
from app.db.models.user import User
from app.api.routes.bookings import get_lifecycle_service
from app.schemas.booking import BookingResponse
from app.schemas.payment import InvoiceResponse, PaymentHistoryItem, PaymentVerify
from app.services.booking_lifecycle import BookingLifecycleService, PaymentOutcome
from app.services.invoices import build_invoice
from app.services.reports import payment_history

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    expected = hmac.new(
        secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature)


# Gateway checkout callback, relayed by the client

@router.post("/verify", response_model=BookingResponse)
def verify_payment(
    body: PaymentVerify,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    if not settings.RAZORPAY_KEY_SECRET:
        raise HTTPException(status_code=503, detail="Payments are not configured")

    if not verify_payment_signature(
        body.razorpay_order_id,
        body.razorpay_payment_id,
        body.razorpay_signature,
        settings.RAZORPAY_KEY_SECRET,
    ):
        logger.warning("Invalid payment signature for booking %s", body.booking_id)
        raise HTTPException(status_code=400, detail="Invalid payment verification")

    booking = service.store.find_by_id(service.db, body.booking_id)
    if booking.client_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not authorized to pay for this booking")

    return service.reconcile_payment(
        booking,
        PaymentOutcome(
            status=PaymentStatus.PAID.value,
            order_id=body.razorpay_order_id,
            payment_id=body.razorpay_payment_id,
        ),
    )


@router.get("/history", response_model=list[PaymentHistoryItem])
def get_payment_history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.role != "client":
        raise HTTPException(status_code=403, detail="Clients only")
    return payment_history(db, current_user)


@router.get("/bookings/{booking_id}/invoice", response_model=InvoiceResponse)
def get_invoice(
    booking_id: int,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    booking = service.store.find_by_id(service.db, booking_id)
    return build_invoice(booking, current_user)
