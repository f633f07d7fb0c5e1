# backend/booking_engine/schemas/availability.py

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


# ──────────────────────────────────────────────────────────────────────────────
# Weekly rules
# ──────────────────────────────────────────────────────────────────────────────

class RuleCreate(BaseModel):
    """Request body for POST /providers/{id}/rules"""
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: time
    end_time: time


class RuleRead(BaseModel):
    id: int
    provider_id: int
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool

    model_config = {"from_attributes": True}


# ──────────────────────────────────────────────────────────────────────────────
# Blocked dates
# ──────────────────────────────────────────────────────────────────────────────

class BlockedDateCreate(BaseModel):
    blocked_date: date
    reason: Optional[str] = None


class BlockedDateRead(BaseModel):
    id: int
    provider_id: int
    blocked_date: date
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ──────────────────────────────────────────────────────────────────────────────
# Session policy
# ──────────────────────────────────────────────────────────────────────────────

class PolicyUpdate(BaseModel):
    """Request body for PUT /providers/{id}/policy. Omitted fields stay unchanged."""
    rate_per_15min: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    buffer_minutes: Optional[int] = Field(None, ge=0)
    max_advance_days: Optional[int] = Field(None, ge=1)
    min_advance_hours: Optional[int] = Field(None, ge=0)
    auto_accept: Optional[bool] = None
    timezone: Optional[str] = Field(None, description="IANA name, e.g. Europe/Berlin")


class PolicyRead(BaseModel):
    provider_id: int
    rate_per_15min: Optional[Decimal] = None
    buffer_minutes: int
    max_advance_days: int
    min_advance_hours: int
    auto_accept: bool
    timezone: str
