# backend/booking_engine/routers/slots.py
"""
Slots API endpoints.

Level 1: GET /slots/calendar - Calendar of open days for a provider
Level 2: GET /slots/day - Bookable start times for one date

Computed on every request from the store; nothing is cached, so a slot
shown here is re-checked again when the booking commits.
"""

from datetime import date, timedelta
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db, storage_now
from ..schemas.slots import SlotsCalendarResponse, SlotsDayResponse, SlotsDayStatus
from ..services.availability_store import get_policy, get_profile
from ..services.slots import available_days, generate_slots, get_engine_config


router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/calendar", response_model=SlotsCalendarResponse)
def get_slots_calendar(
    provider_id: int,
    duration_minutes: int = Query(60, gt=0),
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
):
    """Get calendar of open days for a provider (Level 1)."""
    config = get_engine_config()
    get_profile(db, provider_id)
    policy = get_policy(db, provider_id, config)
    now = storage_now(db)

    today = now.astimezone(policy.tz).date()
    horizon_end = today + timedelta(days=policy.max_advance_days)
    if start_date is None or start_date < today:
        start_date = today
    if end_date is None or end_date > horizon_end:
        end_date = horizon_end
    if end_date < start_date:
        end_date = start_date

    days = [
        SlotsDayStatus(date=day, has_slots=count > 0, open_slots_count=count)
        for day, count in available_days(
            db, provider_id, start_date, end_date, duration_minutes, now, config
        )
    ]

    return SlotsCalendarResponse(
        provider_id=provider_id,
        start_date=start_date,
        end_date=end_date,
        duration_minutes=duration_minutes,
        days=days,
        max_advance_days=policy.max_advance_days,
        min_advance_hours=policy.min_advance_hours,
        slot_step_minutes=config.slot_step_minutes,
        timezone=policy.timezone,
    )


@router.get("/day", response_model=SlotsDayResponse)
def get_slots_day(
    provider_id: int,
    date: date,
    duration_minutes: int = Query(60, gt=0),
    db: Session = Depends(get_db),
):
    """Get bookable start times for a provider on a date (Level 2)."""
    get_profile(db, provider_id)
    policy = get_policy(db, provider_id)
    slots = generate_slots(db, provider_id, date, duration_minutes)

    return SlotsDayResponse(
        provider_id=provider_id,
        date=date,
        duration_minutes=duration_minutes,
        timezone=policy.timezone,
        available_times=[t.strftime("%H:%M") for t in slots],
    )
