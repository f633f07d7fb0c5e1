# backend/booking_engine/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date
from pydantic import BaseModel, Field


class SlotsDayStatus(BaseModel):
    """Status of a single day in calendar."""
    date: date
    has_slots: bool
    open_slots_count: int = 0


class SlotsCalendarResponse(BaseModel):
    """Response with calendar of available days."""
    provider_id: int
    start_date: date
    end_date: date
    duration_minutes: int
    days: list[SlotsDayStatus]

    # Metadata
    max_advance_days: int
    min_advance_hours: int
    slot_step_minutes: int = Field(description="Grid step in minutes")
    timezone: str


class SlotsDayResponse(BaseModel):
    """Bookable start times of a provider on one date."""
    provider_id: int
    date: date
    duration_minutes: int
    timezone: str
    available_times: list[str]  # "HH:MM", ascending
