# backend/booking_engine/routers/providers.py
"""
Provider availability API: weekly rules, blocked dates, session policy.

Reads are public; mutations are allowed to the provider itself or an admin.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import ensure_self_or_admin, get_actor
from ..money import cents_to_decimal, decimal_to_cents
from ..schemas.availability import (
    BlockedDateCreate,
    BlockedDateRead,
    PolicyRead,
    PolicyUpdate,
    RuleCreate,
    RuleRead,
)
from ..schemas.reviews import ProviderRatingRead
from ..services import availability_store
from ..services.availability_store import EffectivePolicy
from ..services.identity import Actor

router = APIRouter(prefix="/providers", tags=["providers"])


# ──────────────────────────────────────────────────────────────────────────────
# Weekly rules
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/{provider_id}/rules", response_model=list[RuleRead])
def list_rules(provider_id: int, db: Session = Depends(get_db)):
    return availability_store.list_rules(db, provider_id)


@router.post("/{provider_id}/rules", response_model=RuleRead, status_code=status.HTTP_201_CREATED)
def add_rule(
    provider_id: int,
    data: RuleCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(actor, provider_id)
    return availability_store.add_rule(
        db, provider_id, data.day_of_week, data.start_time, data.end_time
    )


@router.delete("/{provider_id}/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_rule(
    provider_id: int,
    rule_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(actor, provider_id)
    availability_store.remove_rule(db, provider_id, rule_id)


# ──────────────────────────────────────────────────────────────────────────────
# Blocked dates
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/{provider_id}/blocked-dates", response_model=list[BlockedDateRead])
def list_blocked_dates(
    provider_id: int,
    from_date: Optional[date] = None,
    db: Session = Depends(get_db),
):
    return availability_store.list_blocked_dates(db, provider_id, from_date)


@router.post(
    "/{provider_id}/blocked-dates",
    response_model=BlockedDateRead,
    status_code=status.HTTP_201_CREATED,
)
def block_date(
    provider_id: int,
    data: BlockedDateCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(actor, provider_id)
    return availability_store.block_date(db, provider_id, data.blocked_date, data.reason)


@router.delete("/{provider_id}/blocked-dates/{blocked_date}", status_code=status.HTTP_204_NO_CONTENT)
def unblock_date(
    provider_id: int,
    blocked_date: date,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(actor, provider_id)
    availability_store.unblock_date(db, provider_id, blocked_date)


# ──────────────────────────────────────────────────────────────────────────────
# Session policy
# ──────────────────────────────────────────────────────────────────────────────

def _policy_read(policy: EffectivePolicy) -> PolicyRead:
    rate = policy.rate_per_15min_cents
    return PolicyRead(
        provider_id=policy.provider_id,
        rate_per_15min=cents_to_decimal(rate) if rate is not None else None,
        buffer_minutes=policy.buffer_minutes,
        max_advance_days=policy.max_advance_days,
        min_advance_hours=policy.min_advance_hours,
        auto_accept=policy.auto_accept,
        timezone=policy.timezone,
    )


@router.get("/{provider_id}/policy", response_model=PolicyRead)
def get_policy(provider_id: int, db: Session = Depends(get_db)):
    availability_store.get_profile(db, provider_id)
    return _policy_read(availability_store.get_policy(db, provider_id))


@router.put("/{provider_id}/policy", response_model=PolicyRead)
def set_policy(
    provider_id: int,
    data: PolicyUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(actor, provider_id)
    fields = data.model_dump(exclude_unset=True)
    rate = fields.pop("rate_per_15min", None)
    policy = availability_store.set_policy(
        db,
        provider_id,
        rate_per_15min_cents=decimal_to_cents(rate) if rate is not None else None,
        **fields,
    )
    return _policy_read(policy)


@router.get("/{provider_id}/rating", response_model=ProviderRatingRead)
def get_rating(provider_id: int, db: Session = Depends(get_db)):
    profile = availability_store.get_profile(db, provider_id)
    return ProviderRatingRead(
        provider_id=provider_id,
        average_rating=profile.average_rating,
        total_reviews=profile.total_reviews,
    )
