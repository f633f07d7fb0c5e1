# backend/booking_engine/schemas/bookings.py

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    provider_id: int
    scheduled_date: date
    start_time: time
    duration_minutes: int = Field(..., gt=0, description="Multiple of 15 minutes")
    notes: Optional[str] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class BookingRead(BaseModel):
    id: int

    seeker_id: int
    provider_id: int

    scheduled_date: date
    start_time: time
    duration_minutes: int

    total_amount: Decimal
    status: str
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancelled_by: Optional[int] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    booking: BookingRead
    refund: Decimal
    retained: Decimal
