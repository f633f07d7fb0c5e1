# backend/booking_engine/services/availability_store.py
"""
Provider availability definitions.

Holds weekly rules, blocked dates and the session policy of each provider.
Never touches bookings: slot generation reads from here, not the other way
round.
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import DuplicateError, NotFoundError, OverlapError, ValidationError
from ..models.tables import (
    BlockedDates as DBBlockedDate,
    ProviderProfiles as DBProviderProfile,
    SessionPolicies as DBSessionPolicy,
    WeeklyAvailabilityRules as DBRule,
)
from .slots.config import EngineConfig, get_engine_config, intervals_overlap, time_to_minutes

logger = logging.getLogger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

POLICY_FIELDS = (
    "buffer_minutes",
    "max_advance_days",
    "min_advance_hours",
    "auto_accept",
    "timezone",
)


@dataclass(frozen=True)
class EffectivePolicy:
    """Session policy of a provider with defaults applied."""
    provider_id: int
    rate_per_15min_cents: Optional[int]
    buffer_minutes: int
    max_advance_days: int
    min_advance_hours: int
    auto_accept: bool
    timezone: str

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


# ── Weekly rules ─────────────────────────────────────────────────────────


def add_rule(
    db: Session,
    provider_id: int,
    day_of_week: int,
    start_time: time,
    end_time: time,
    config: EngineConfig | None = None,
) -> DBRule:
    """
    Add a weekly availability rule.

    Raises:
        ValidationError: day outside 0..6, start >= end, or off the 15-minute grid
        OverlapError: range intersects an existing rule on the same day
    """
    config = config or get_engine_config()
    get_profile(db, provider_id)

    if not 0 <= day_of_week <= 6:
        raise ValidationError(f"day_of_week must be between 0 and 6, got {day_of_week}")
    if start_time >= end_time:
        raise ValidationError("Rule must end after it starts")
    if not (config.is_on_grid(start_time) and config.is_on_grid(end_time)):
        raise ValidationError(
            f"Rule times must fall on {config.slot_step_minutes}-minute boundaries"
        )

    new_start = time_to_minutes(start_time)
    new_end = time_to_minutes(end_time)

    try:
        _lock_provider(db, provider_id)
        existing = (
            db.query(DBRule)
            .filter(
                DBRule.provider_id == provider_id,
                DBRule.day_of_week == day_of_week,
                DBRule.is_active.is_(True),
            )
            .all()
        )
        for rule in existing:
            if intervals_overlap(
                new_start, new_end,
                time_to_minutes(rule.start_time), time_to_minutes(rule.end_time),
            ):
                raise OverlapError(
                    f"{DAY_NAMES[day_of_week]} {start_time:%H:%M}-{end_time:%H:%M} overlaps "
                    f"existing availability {rule.start_time:%H:%M}-{rule.end_time:%H:%M}"
                )

        rule = DBRule(
            provider_id=provider_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
        )
        db.add(rule)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(rule)

    logger.info(
        f"Rule {rule.id} added for provider={provider_id}: "
        f"{DAY_NAMES[day_of_week]} {start_time:%H:%M}-{end_time:%H:%M}"
    )
    return rule


def remove_rule(db: Session, provider_id: int, rule_id: int) -> None:
    rule = db.get(DBRule, rule_id)
    if not rule or rule.provider_id != provider_id:
        raise NotFoundError(f"Availability rule {rule_id} not found")
    db.delete(rule)
    db.commit()
    logger.info(f"Rule {rule_id} removed for provider={provider_id}")


def list_rules(db: Session, provider_id: int) -> list[DBRule]:
    return (
        db.query(DBRule)
        .filter(DBRule.provider_id == provider_id)
        .order_by(DBRule.day_of_week, DBRule.start_time)
        .all()
    )


def get_day_rules(db: Session, provider_id: int, weekday: int) -> list[DBRule]:
    """Active rules for one weekday (0 = Sunday)."""
    return (
        db.query(DBRule)
        .filter(
            DBRule.provider_id == provider_id,
            DBRule.day_of_week == weekday,
            DBRule.is_active.is_(True),
        )
        .order_by(DBRule.start_time)
        .all()
    )


# ── Blocked dates ────────────────────────────────────────────────────────


def block_date(
    db: Session,
    provider_id: int,
    target_date: date,
    reason: Optional[str] = None,
) -> DBBlockedDate:
    """
    Mark a date fully unavailable.

    Duplicates are rejected, not ignored, so double submissions surface.
    """
    get_profile(db, provider_id)

    if is_date_blocked(db, provider_id, target_date):
        raise DuplicateError(f"{target_date.isoformat()} is already blocked")

    blocked = DBBlockedDate(
        provider_id=provider_id,
        blocked_date=target_date,
        reason=reason,
    )
    db.add(blocked)
    try:
        db.commit()
    except IntegrityError as e:
        # Concurrent submission won the unique constraint
        db.rollback()
        raise DuplicateError(f"{target_date.isoformat()} is already blocked") from e
    db.refresh(blocked)

    logger.info(f"Date {target_date} blocked for provider={provider_id}")
    return blocked


def unblock_date(db: Session, provider_id: int, target_date: date) -> None:
    blocked = (
        db.query(DBBlockedDate)
        .filter(
            DBBlockedDate.provider_id == provider_id,
            DBBlockedDate.blocked_date == target_date,
        )
        .first()
    )
    if not blocked:
        raise NotFoundError(f"{target_date.isoformat()} is not blocked")
    db.delete(blocked)
    db.commit()
    logger.info(f"Date {target_date} unblocked for provider={provider_id}")


def list_blocked_dates(
    db: Session,
    provider_id: int,
    from_date: Optional[date] = None,
) -> list[DBBlockedDate]:
    query = db.query(DBBlockedDate).filter(DBBlockedDate.provider_id == provider_id)
    if from_date is not None:
        query = query.filter(DBBlockedDate.blocked_date >= from_date)
    return query.order_by(DBBlockedDate.blocked_date).all()


def is_date_blocked(db: Session, provider_id: int, target_date: date) -> bool:
    return (
        db.query(DBBlockedDate.id)
        .filter(
            DBBlockedDate.provider_id == provider_id,
            DBBlockedDate.blocked_date == target_date,
        )
        .first()
        is not None
    )


# ── Session policy ───────────────────────────────────────────────────────


def set_policy(
    db: Session,
    provider_id: int,
    rate_per_15min_cents: Optional[int] = None,
    **fields,
) -> EffectivePolicy:
    """
    Create or update the provider's session policy.

    Only the fields passed are changed. The rate is stored on the provider
    profile; existing bookings keep the amount they were created with.
    """
    profile = get_profile(db, provider_id)

    unknown = set(fields) - set(POLICY_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown policy fields: {', '.join(sorted(unknown))}")
    fields = {k: v for k, v in fields.items() if v is not None}
    _validate_policy_fields(fields)

    if rate_per_15min_cents is not None:
        if rate_per_15min_cents < 0:
            raise ValidationError("Rate cannot be negative")
        profile.rate_per_15min_cents = rate_per_15min_cents

    policy = db.get(DBSessionPolicy, provider_id)
    if policy is None:
        policy = DBSessionPolicy(provider_id=provider_id, **_policy_defaults())
        db.add(policy)

    for field, value in fields.items():
        setattr(policy, field, value)

    db.commit()
    logger.info(f"Session policy updated for provider={provider_id}: {sorted(fields)}")
    return get_policy(db, provider_id)


def get_policy(
    db: Session,
    provider_id: int,
    config: EngineConfig | None = None,
) -> EffectivePolicy:
    """Effective policy; defaults apply when the provider never saved one."""
    config = config or get_engine_config()
    profile = db.query(DBProviderProfile).filter(DBProviderProfile.user_id == provider_id).first()
    rate = profile.rate_per_15min_cents if profile else None

    policy = db.get(DBSessionPolicy, provider_id)
    if policy is None:
        return EffectivePolicy(
            provider_id=provider_id,
            rate_per_15min_cents=rate,
            **_policy_defaults(config),
        )

    return EffectivePolicy(
        provider_id=provider_id,
        rate_per_15min_cents=rate,
        buffer_minutes=policy.buffer_minutes,
        max_advance_days=policy.max_advance_days,
        min_advance_hours=policy.min_advance_hours,
        auto_accept=bool(policy.auto_accept),
        timezone=policy.timezone,
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def _policy_defaults(config: EngineConfig | None = None) -> dict:
    config = config or get_engine_config()
    return {
        "buffer_minutes": config.default_buffer_minutes,
        "max_advance_days": config.default_max_advance_days,
        "min_advance_hours": config.default_min_advance_hours,
        "auto_accept": config.default_auto_accept,
        "timezone": config.default_timezone,
    }


def _validate_policy_fields(fields: dict) -> None:
    if fields.get("buffer_minutes", 0) < 0:
        raise ValidationError("Buffer time cannot be negative")
    if "max_advance_days" in fields and fields["max_advance_days"] < 1:
        raise ValidationError("Maximum advance booking must be at least 1 day")
    if fields.get("min_advance_hours", 0) < 0:
        raise ValidationError("Minimum advance notice cannot be negative")
    if "timezone" in fields:
        try:
            ZoneInfo(fields["timezone"])
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError(f"Unknown timezone: {fields['timezone']}") from None


def get_profile(db: Session, provider_id: int) -> DBProviderProfile:
    profile = db.query(DBProviderProfile).filter(DBProviderProfile.user_id == provider_id).first()
    if not profile:
        raise NotFoundError(f"Provider {provider_id} not found")
    return profile


def _lock_provider(db: Session, provider_id: int) -> None:
    """Take the provider row lock that booking creation also takes; held until commit."""
    locked = db.execute(
        update(DBProviderProfile)
        .where(DBProviderProfile.user_id == provider_id)
        .values(booking_seq=DBProviderProfile.booking_seq + 1)
        .execution_options(synchronize_session=False)
    )
    if locked.rowcount == 0:
        raise NotFoundError(f"Provider {provider_id} not found")
