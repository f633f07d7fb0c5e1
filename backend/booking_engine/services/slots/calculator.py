# backend/booking_engine/services/slots/calculator.py
"""
Bookable start times for a provider on a date.

Contains:
✓ weekly availability rules of the provider
✓ blocked dates
✓ advance-booking window (provider timezone, store clock)
✓ buffer after each session, inside the rule and between bookings
✓ existing non-cancelled bookings

Does NOT contain:
✗ Funds (checked by the booking ledger)
✗ Caching (computed on every call, including at commit time)

The booking overlap test is padded with the buffer on both sides on purpose:
a candidate occupies [t, t + duration + buffer) and a booking
[start, end + buffer), so the gap after every session holds between
bookings as well as before the end of a rule.
"""

from datetime import date, datetime, time, timedelta
from sqlalchemy.orm import Session

from ...database import as_utc, storage_now
from ...errors import ValidationError
from ...models.tables import ACTIVE_BOOKING_STATUSES, Bookings
from .config import (
    EngineConfig,
    day_of_week,
    get_engine_config,
    intervals_overlap,
    minutes_to_time,
    time_to_minutes,
)


def generate_slots(
    db: Session,
    provider_id: int,
    target_date: date,
    duration_minutes: int,
    now: datetime | None = None,
    config: EngineConfig | None = None,
) -> list[time]:
    """
    Calculate bookable start times for a provider on a specific date.

    Returns:
        Sorted list of start times. Empty list = no availability.
    """
    config = config or get_engine_config()
    if not config.is_valid_duration(duration_minutes):
        raise ValidationError(
            f"Duration must be a positive multiple of {config.slot_step_minutes} minutes"
        )
    now = as_utc(now or storage_now(db))

    # Step 1: Blocked date
    if _is_date_blocked(db, provider_id, target_date):
        return []

    # Step 2: Advance-booking window, in the provider's timezone
    policy = _get_policy(db, provider_id, config)
    local_now = now.astimezone(policy.tz)
    earliest_start = local_now + timedelta(hours=policy.min_advance_hours)
    last_date = local_now.date() + timedelta(days=policy.max_advance_days)

    if target_date < local_now.date() or target_date > last_date:
        return []

    # Step 3: Walk each rule in fixed ticks, leaving room for the buffer
    candidates: set[int] = set()
    for rule in _get_day_rules(db, provider_id, day_of_week(target_date)):
        candidates.update(_rule_candidates(rule, duration_minutes, policy, config))

    candidates = {
        t for t in candidates
        if datetime.combine(target_date, minutes_to_time(t), tzinfo=policy.tz) >= earliest_start
    }
    if not candidates:
        return []

    # Step 4: Drop anything overlapping a live booking, buffers included
    buffer = policy.buffer_minutes
    booked = _booked_intervals(db, provider_id, target_date)
    available = [
        t for t in candidates
        if not any(
            intervals_overlap(t, t + duration_minutes + buffer, b_start, b_end + buffer)
            for b_start, b_end in booked
        )
    ]

    # Step 5: Ascending
    return [minutes_to_time(t) for t in sorted(available)]


def is_slot_available(
    db: Session,
    provider_id: int,
    target_date: date,
    start_time: time,
    duration_minutes: int,
    now: datetime | None = None,
    config: EngineConfig | None = None,
) -> bool:
    """Re-run the generator for a single candidate (used at commit time)."""
    slots = generate_slots(db, provider_id, target_date, duration_minutes, now, config)
    return start_time in slots


def available_days(
    db: Session,
    provider_id: int,
    start_date: date,
    end_date: date,
    duration_minutes: int,
    now: datetime | None = None,
    config: EngineConfig | None = None,
) -> list[tuple[date, int]]:
    """
    Calendar view: number of open start times per date.

    Returns:
        List of (date, open_slots_count) for every date in the range.
    """
    config = config or get_engine_config()
    now = now or storage_now(db)

    days = []
    current = start_date
    while current <= end_date:
        slots = generate_slots(db, provider_id, current, duration_minutes, now, config)
        days.append((current, len(slots)))
        current += timedelta(days=1)
    return days


# ── Helpers ──────────────────────────────────────────────────────────────


def _rule_candidates(
    rule,
    duration_minutes: int,
    policy,
    config: EngineConfig,
) -> list[int]:
    """Start minutes t in [start, end) with t + duration + buffer <= end."""
    start_min = time_to_minutes(rule.start_time)
    end_min = time_to_minutes(rule.end_time)

    result = []
    t = start_min
    while t < end_min:
        if t + duration_minutes + policy.buffer_minutes <= end_min:
            result.append(t)
        t += config.slot_step_minutes
    return result


def _booked_intervals(db: Session, provider_id: int, target_date: date) -> list[tuple[int, int]]:
    """[start, end) minute intervals of non-cancelled bookings."""
    bookings = (
        db.query(Bookings.start_time, Bookings.duration_minutes)
        .filter(
            Bookings.provider_id == provider_id,
            Bookings.scheduled_date == target_date,
            Bookings.status.in_(ACTIVE_BOOKING_STATUSES + ("completed",)),
        )
        .all()
    )
    intervals = []
    for start_time, duration in bookings:
        start = time_to_minutes(start_time)
        intervals.append((start, start + duration))
    return intervals


def _get_policy(db: Session, provider_id: int, config: EngineConfig):
    """Effective session policy of the provider."""
    from ..availability_store import get_policy
    return get_policy(db, provider_id, config)


def _get_day_rules(db: Session, provider_id: int, weekday: int) -> list:
    """Active weekly rules for the weekday."""
    from ..availability_store import get_day_rules
    return get_day_rules(db, provider_id, weekday)


def _is_date_blocked(db: Session, provider_id: int, target_date: date) -> bool:
    from ..availability_store import is_date_blocked
    return is_date_blocked(db, provider_id, target_date)
