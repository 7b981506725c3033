from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from app.schemas.booking import CamelModel


# Gateway callback body, field names as the checkout widget posts them
class PaymentVerify(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    booking_id: int


class PaymentHistoryItem(CamelModel):
    booking_id: int
    date: Optional[datetime]
    amount: float
    payment_status: str
    order_id: Optional[str]
    payment_id: Optional[str]
    service: Optional[str]
    provider: Optional[str]
    created_at: Optional[datetime]
    work_status: str
    last_updated: Optional[datetime]
    tracking_notes: Optional[str]


class InvoiceParty(BaseModel):
    id: int
    name: str
    email: str


class InvoiceService(BaseModel):
    id: int
    title: str
    price: float


class InvoiceResponse(CamelModel):
    invoice_number: str
    date: datetime
    booking_id: int
    service: InvoiceService
    client: InvoiceParty
    provider: InvoiceParty
    amount: float
    currency: str
    order_id: Optional[str]
    payment_id: Optional[str]
