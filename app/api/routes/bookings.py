from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional

from app.db.base import get_db
from app.db.models.user import User
from app.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingStatsResponse,
    BookingStatusUpdate,
    QuoteDecision,
    QuoteSubmit,
    RatingCreate,
)
from app.core.security import get_current_user, require_admin
from app.services.booking_lifecycle import BookingLifecycleService
from app.services.notifications import NotificationChannel, get_notification_channel
from app.services.reports import booking_stats

router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_lifecycle_service(
    db: Session = Depends(get_db),
    channel: NotificationChannel = Depends(get_notification_channel),
) -> BookingLifecycleService:
    return BookingLifecycleService(db, channel)


# Client creates booking

@router.post("", response_model=BookingResponse, status_code=201)
def create_booking(
    booking_in: BookingCreate,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    return service.create_booking(
        current_user, booking_in.service_id, booking_in.scheduled_date, booking_in.notes
    )


# Client views their bookings

@router.get("/client", response_model=list[BookingResponse])
def client_bookings(
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    if current_user.role != "client":
        raise HTTPException(status_code=403, detail="Clients only")
    return service.list_bookings(current_user)


# Provider views their bookings

@router.get("/provider", response_model=list[BookingResponse])
def provider_bookings(
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    if current_user.role != "provider":
        raise HTTPException(status_code=403, detail="Only providers can view this")
    return service.list_bookings(current_user)


# Admin views all bookings

@router.get("/admin", response_model=list[BookingResponse])
def admin_bookings(
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    admin: User = Depends(require_admin),
):
    return service.list_bookings(admin)


# Admin / provider dashboard numbers

@router.get("/stats", response_model=BookingStatsResponse)
def stats(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return booking_stats(db, current_user, year)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    return service.get_booking(booking_id, current_user)


# Provider moves booking through its workflow

@router.api_route("/{booking_id}/status", methods=["PUT", "PATCH"], response_model=BookingResponse)
def update_booking_status(
    booking_id: int,
    update: BookingStatusUpdate,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    booking = service.store.find_by_id(service.db, booking_id)
    return service.update_status(booking, update.status, current_user, update.notes)


# Provider quotes a price

@router.post("/{booking_id}/quote", response_model=BookingResponse)
def submit_quote(
    booking_id: int,
    quote: QuoteSubmit,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    booking = service.store.find_by_id(service.db, booking_id)
    return service.submit_quote(
        booking, current_user, quote.price, quote.estimated_hours, quote.notes
    )


# Client accepts or declines the quote

@router.put("/{booking_id}/quote-response", response_model=BookingResponse)
def respond_to_quote(
    booking_id: int,
    decision: QuoteDecision,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    booking = service.store.find_by_id(service.db, booking_id)
    return service.respond_to_quote(booking, current_user, decision.approved)


# Client cancels booking

@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    booking = service.store.find_by_id(service.db, booking_id)
    return service.cancel(booking, current_user)


# Client rates a completed booking

@router.post("/{booking_id}/review", response_model=BookingResponse)
def add_review(
    booking_id: int,
    rating: RatingCreate,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    current_user: User = Depends(get_current_user),
):
    booking = service.store.find_by_id(service.db, booking_id)
    return service.complete_with_rating(booking, current_user, rating.score, rating.comment)
