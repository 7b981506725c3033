# app/schemas/service.py

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.schemas.user import UserResponse


# Shared fields
class ServiceBase(BaseModel):
    title: str
    description: Optional[str] = None
    price: float = Field(gt=0)
    is_active: Optional[bool] = True


# Provider creates service
class ServiceCreate(ServiceBase):
    pass


# Provider updates service
class ServiceUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


# What API returns
class ServiceResponse(BaseModel):
    id: int

    title: str
    description: Optional[str]
    price: float
    is_active: bool

    average_rating: float
    review_count: int

    provider: UserResponse

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
