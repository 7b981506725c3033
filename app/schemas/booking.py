from pydantic import BaseModel, Field, conint
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Optional


class CamelModel(BaseModel):
    """Wire models use the camelCase field names of the stored booking shape."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# --- CREATE (Client) ---
class BookingCreate(CamelModel):
    service_id: int
    scheduled_date: datetime
    notes: Optional[str] = None


# --- STATUS UPDATE (Provider) ---
class BookingStatusUpdate(CamelModel):
    status: str = Field(
        description="Allowed values: confirmed, in_progress, completed, cancelled"
    )
    notes: Optional[str] = None


# --- QUOTE ---
class QuoteSubmit(CamelModel):
    price: float = Field(gt=0)
    estimated_hours: Optional[float] = Field(default=None, gt=0)
    notes: Optional[str] = None


class QuoteDecision(CamelModel):
    approved: bool


# --- RATING (Client) ---
class RatingCreate(CamelModel):
    score: conint(ge=1, le=5) = Field(..., description="Rating 1-5")
    comment: Optional[str] = None


# --- RESPONSE ---
class PartySummary(CamelModel):
    id: int
    name: str
    email: str


class ServiceSummary(CamelModel):
    id: int
    title: str
    price: float


class PaymentOut(CamelModel):
    status: str
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    paid_at: Optional[datetime] = None


class QuoteOut(CamelModel):
    price: Optional[float] = None
    estimated_hours: Optional[float] = None
    notes: Optional[str] = None
    status: str
    submitted_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None


class TrackingEntryOut(CamelModel):
    status: str
    timestamp: datetime
    updated_by: int
    notes: Optional[str] = None


class RatingOut(CamelModel):
    score: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class BookingResponse(CamelModel):
    id: int
    service: ServiceSummary
    client: PartySummary
    provider: PartySummary
    scheduled_date: datetime
    total_amount: float
    status: str
    notes: Optional[str] = None
    payment: PaymentOut
    quote: Optional[QuoteOut] = None
    tracking: List[TrackingEntryOut]
    rating: Optional[RatingOut] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


# --- REPORTS ---
class MonthlyStat(CamelModel):
    month: int
    bookings: int
    revenue: float


class BookingStatsResponse(CamelModel):
    total_bookings: int
    pending_bookings: int
    quoted_bookings: int
    confirmed_bookings: int
    in_progress_bookings: int
    completed_bookings: int
    cancelled_bookings: int
    total_revenue: float
    year: int
    monthly_stats: List[MonthlyStat]
