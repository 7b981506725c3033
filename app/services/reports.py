# app/services/reports.py
"""Read-only booking summaries: dashboard stats and client payment history."""

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import Forbidden
from app.crud.crud_booking import crud_booking
from app.db.models.booking import Booking, utcnow
from app.db.models.booking_status import BookingStatus, PaymentStatus
from app.db.models.user import User


def booking_stats(db: Session, actor: User, year: int = None) -> Dict[str, Any]:
    if actor.role not in ("admin", "provider"):
        raise Forbidden("Not authorized to access booking stats")

    q = db.query(Booking)
    if actor.role == "provider":
        q = q.filter(Booking.provider_id == actor.id)

    counts = dict(
        q.with_entities(Booking.status, func.count(Booking.id)).group_by(Booking.status).all()
    )
    total_revenue = (
        q.with_entities(func.coalesce(func.sum(Booking.total_amount), 0))
        .filter(
            Booking.status == BookingStatus.COMPLETED.value,
            Booking.payment_status == PaymentStatus.PAID.value,
        )
        .scalar()
    )

    year = year or utcnow().year
    monthly = [{"month": m, "bookings": 0, "revenue": 0.0} for m in range(1, 13)]
    in_year = q.filter(
        Booking.scheduled_date >= datetime(year, 1, 1),
        Booking.scheduled_date < datetime(year + 1, 1, 1),
    ).all()
    for b in in_year:
        bucket = monthly[b.scheduled_date.month - 1]
        bucket["bookings"] += 1
        if b.payment_status == PaymentStatus.PAID.value:
            bucket["revenue"] += float(b.total_amount or 0.0)

    return {
        "total_bookings": int(sum(counts.values())),
        "pending_bookings": int(counts.get(BookingStatus.PENDING.value, 0)),
        "quoted_bookings": int(counts.get(BookingStatus.QUOTED.value, 0)),
        "confirmed_bookings": int(counts.get(BookingStatus.CONFIRMED.value, 0)),
        "in_progress_bookings": int(counts.get(BookingStatus.IN_PROGRESS.value, 0)),
        "completed_bookings": int(counts.get(BookingStatus.COMPLETED.value, 0)),
        "cancelled_bookings": int(counts.get(BookingStatus.CANCELLED.value, 0)),
        "total_revenue": float(total_revenue or 0.0),
        "year": year,
        "monthly_stats": monthly,
    }


def payment_history(db: Session, client: User) -> List[Dict[str, Any]]:
    payments = []
    for b in crud_booking.find_by_client(db, client.id):
        latest = b.current_tracking()
        payments.append(
            {
                "booking_id": b.id,
                "date": b.paid_at or b.updated_at,
                "amount": float(b.total_amount or b.quote_price or 0.0),
                "payment_status": b.payment_status,
                "order_id": b.payment_order_id,
                "payment_id": b.payment_id,
                "service": b.service.title if b.service else None,
                "provider": b.provider.name if b.provider else None,
                "created_at": b.created_at,
                "work_status": latest.status if latest else b.status,
                "last_updated": latest.timestamp if latest else b.updated_at,
                "tracking_notes": latest.notes if latest else None,
            }
        )
    return payments
