# backend/booking_engine/services/booking_ledger.py
"""
Booking ledger.

Creates, confirms, cancels and completes bookings together with the money
movements they imply. Each operation is one database transaction; events are
emitted only after commit.

Money flow per booking:
    create   -> payment (completed, seeker)  + payout (pending, provider)
    cancel   -> refund (completed, seeker)   + pending payout voided
                + new pending payout for any retained late-cancel fee
    settle   -> payout pending -> completed, provider credited
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from functools import lru_cache
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..database import as_utc, storage_now, with_storage_retry
from ..errors import (
    InsufficientFundsError,
    NotCancellableError,
    NotEligibleError,
    NotFoundError,
    SlotUnavailableError,
    ValidationError,
)
from ..models.tables import (
    ACTIVE_BOOKING_STATUSES,
    Bookings as DBBooking,
    LedgerTransactions as DBTransaction,
    ProviderProfiles as DBProviderProfile,
    Users as DBUser,
)
from ..money import format_cents, session_price_cents
from .availability_store import get_policy
from .events import BOOKING_CANCELLED, BOOKING_CONFIRMED, BOOKING_REQUESTED, emit_event
from .identity import Actor
from .slots import get_engine_config, is_slot_available
from .wallet import create_transaction, credit_balance, debit_balance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefundPolicy:
    """
    How much of the payment goes back to the seeker on cancellation.

    Provider and admin cancellations always refund in full.
    """
    full_refund_notice_hours: int = 24
    late_cancel_refund_percent: int = 50

    def refund_cents(self, paid_cents: int, notice_hours: float, by_seeker: bool) -> int:
        if not by_seeker or notice_hours >= self.full_refund_notice_hours:
            return paid_cents
        return paid_cents * self.late_cancel_refund_percent // 100


@lru_cache
def get_refund_policy() -> RefundPolicy:
    return RefundPolicy(
        full_refund_notice_hours=settings.full_refund_notice_hours,
        late_cancel_refund_percent=settings.late_cancel_refund_percent,
    )


@dataclass(frozen=True)
class CancellationResult:
    booking: DBBooking
    refund_cents: int
    retained_cents: int


# ──────────────────────────────────────────────────────────────────────────────
# Create
# ──────────────────────────────────────────────────────────────────────────────

def create_booking(
    db: Session,
    seeker_id: int,
    provider_id: int,
    scheduled_date: date,
    start_time: time,
    duration_minutes: int,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DBBooking:
    """
    Book a slot and take payment in one transaction.

    Algorithm:
    1. Bump the provider's booking_seq (row lock, serializes writers)
    2. Re-run slot generation for the requested start
    3. Price from the provider's current rate
    4. Conditional debit of the seeker's balance
    5. Insert booking, payment and pending payout; commit

    Raises:
        ValidationError: bad duration or self-booking
        NotFoundError: unknown provider or seeker
        SlotUnavailableError: slot gone (also on unique-index violation)
        InsufficientFundsError: balance short of the amount
        StorageUnavailableError: storage still failing after retries
    """
    config = get_engine_config()
    if not config.is_valid_duration(duration_minutes):
        raise ValidationError(
            f"Duration must be a positive multiple of {config.slot_step_minutes} minutes"
        )
    if seeker_id == provider_id:
        raise ValidationError("You cannot book a session with yourself")

    def _unit() -> DBBooking:
        try:
            locked = db.execute(
                update(DBProviderProfile)
                .where(DBProviderProfile.user_id == provider_id)
                .values(booking_seq=DBProviderProfile.booking_seq + 1)
                .execution_options(synchronize_session=False)
            )
            if locked.rowcount == 0:
                raise NotFoundError(f"Provider {provider_id} not found")
            if db.get(DBUser, seeker_id) is None:
                raise NotFoundError(f"User {seeker_id} not found")

            current_now = as_utc(now or storage_now(db))
            if not is_slot_available(
                db, provider_id, scheduled_date, start_time, duration_minutes, current_now, config
            ):
                raise SlotUnavailableError(
                    f"{scheduled_date.isoformat()} {start_time:%H:%M} is no longer available"
                )

            policy = get_policy(db, provider_id, config)
            amount_cents = session_price_cents(policy.rate_per_15min_cents, duration_minutes)
            debit_balance(db, seeker_id, amount_cents)

            booking = DBBooking(
                seeker_id=seeker_id,
                provider_id=provider_id,
                scheduled_date=scheduled_date,
                start_time=start_time,
                duration_minutes=duration_minutes,
                total_amount_cents=amount_cents,
                status="confirmed" if policy.auto_accept else "pending",
                notes=notes,
            )
            db.add(booking)
            db.flush()

            create_transaction(
                db=db,
                user_id=seeker_id,
                amount_cents=amount_cents,
                tx_type="payment",
                booking_id=booking.id,
                description=f"Session on {scheduled_date.isoformat()} {start_time:%H:%M}",
            )
            create_transaction(
                db=db,
                user_id=provider_id,
                amount_cents=amount_cents,
                tx_type="payout",
                status="pending",
                booking_id=booking.id,
                description=f"Earnings for booking #{booking.id}",
            )
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise SlotUnavailableError(
                f"{scheduled_date.isoformat()} {start_time:%H:%M} was just booked by someone else"
            ) from e
        except Exception:
            db.rollback()
            raise
        db.refresh(booking)
        return booking

    try:
        booking = with_storage_retry(db, _unit)
    except (SlotUnavailableError, InsufficientFundsError, NotFoundError) as e:
        logger.warning(f"Booking rejected seeker={seeker_id} provider={provider_id}: {e}")
        raise

    logger.info(
        f"Booking {booking.id} created: seeker={seeker_id} provider={provider_id} "
        f"{scheduled_date} {start_time:%H:%M} {duration_minutes}min "
        f"{format_cents(booking.total_amount_cents)} ({booking.status})"
    )
    emit_event(
        BOOKING_CONFIRMED if booking.status == "confirmed" else BOOKING_REQUESTED,
        _booking_payload(booking),
    )
    return booking


# ──────────────────────────────────────────────────────────────────────────────
# Status transitions
# ──────────────────────────────────────────────────────────────────────────────

def get_booking(db: Session, booking_id: int) -> DBBooking:
    booking = db.get(DBBooking, booking_id)
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


def accept_booking(
    db: Session,
    booking_id: int,
    actor: Actor,
    now: Optional[datetime] = None,
) -> DBBooking:
    """Provider confirms a pending request before its session starts."""
    booking = get_booking(db, booking_id)
    if actor.user_id != booking.provider_id and not actor.is_admin:
        raise NotEligibleError("Only the provider can accept this booking")

    current_now = as_utc(now or storage_now(db))
    if session_start(db, booking) <= current_now:
        raise NotEligibleError(f"Booking {booking_id} has already started and can no longer be accepted")

    def _unit() -> int:
        try:
            result = db.execute(
                update(DBBooking)
                .where(DBBooking.id == booking_id, DBBooking.status == "pending")
                .values(status="confirmed")
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return result.rowcount

    if with_storage_retry(db, _unit) == 0:
        db.refresh(booking)
        raise NotEligibleError(
            f"Booking {booking_id} is {booking.status}, only pending bookings can be accepted"
        )

    db.refresh(booking)
    logger.info(f"Booking {booking_id} accepted by user={actor.user_id}")
    emit_event(BOOKING_CONFIRMED, _booking_payload(booking))
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    actor: Actor,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    refund_policy: Optional[RefundPolicy] = None,
) -> CancellationResult:
    """
    Cancel a pending or confirmed booking before its session starts and
    refund the seeker.

    Exactly one of two concurrent cancellations wins; the other gets
    NotCancellableError.
    """
    refund_policy = refund_policy or get_refund_policy()
    booking = get_booking(db, booking_id)
    by_seeker = actor.user_id == booking.seeker_id
    if not (by_seeker or actor.user_id == booking.provider_id or actor.is_admin):
        raise NotEligibleError("Only the seeker, the provider or an admin can cancel this booking")

    current_now = as_utc(now or storage_now(db))
    starts_at = session_start(db, booking)
    if starts_at <= current_now:
        raise NotCancellableError(f"Booking {booking_id} has already started and cannot be cancelled")
    notice_hours = (starts_at - current_now).total_seconds() / 3600

    def _unit() -> tuple[int, int]:
        try:
            result = db.execute(
                update(DBBooking)
                .where(
                    DBBooking.id == booking_id,
                    DBBooking.status.in_(ACTIVE_BOOKING_STATUSES),
                )
                .values(status="cancelled", cancel_reason=reason, cancelled_by=actor.user_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotCancellableError(f"Booking {booking_id} can no longer be cancelled")

            paid_cents = _paid_cents(db, booking_id)
            refund_cents = refund_policy.refund_cents(paid_cents, notice_hours, by_seeker)
            retained_cents = paid_cents - refund_cents

            if refund_cents > 0:
                create_transaction(
                    db=db,
                    user_id=booking.seeker_id,
                    amount_cents=refund_cents,
                    tx_type="refund",
                    booking_id=booking_id,
                    description=f"Refund for booking #{booking_id}",
                )
                credit_balance(db, booking.seeker_id, refund_cents)

            db.execute(
                update(DBTransaction)
                .where(
                    DBTransaction.booking_id == booking_id,
                    DBTransaction.type == "payout",
                    DBTransaction.status == "pending",
                )
                .values(status="failed")
                .execution_options(synchronize_session=False)
            )
            if retained_cents > 0:
                create_transaction(
                    db=db,
                    user_id=booking.provider_id,
                    amount_cents=retained_cents,
                    tx_type="payout",
                    status="pending",
                    booking_id=booking_id,
                    description=f"Late cancellation fee for booking #{booking_id}",
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return refund_cents, retained_cents

    try:
        refund_cents, retained_cents = with_storage_retry(db, _unit)
    except NotCancellableError:
        db.refresh(booking)
        raise NotCancellableError(
            f"Booking {booking_id} is {booking.status} and cannot be cancelled"
        ) from None

    db.refresh(booking)
    logger.info(
        f"Booking {booking_id} cancelled by user={actor.user_id}: "
        f"refund {format_cents(refund_cents)}, retained {format_cents(retained_cents)}"
    )
    emit_event(BOOKING_CANCELLED, {
        **_booking_payload(booking),
        "cancelled_by": actor.user_id,
        "reason": reason,
        "refund": format_cents(refund_cents, symbol=False),
    })
    return CancellationResult(booking=booking, refund_cents=refund_cents, retained_cents=retained_cents)


def complete_booking(
    db: Session,
    booking_id: int,
    now: Optional[datetime] = None,
) -> DBBooking:
    """Mark a confirmed booking completed once its session has ended."""
    booking = get_booking(db, booking_id)
    current_now = as_utc(now or storage_now(db))
    if session_end(db, booking) > current_now:
        raise NotEligibleError(f"Booking {booking_id} has not ended yet")

    def _unit() -> int:
        try:
            result = db.execute(
                update(DBBooking)
                .where(DBBooking.id == booking_id, DBBooking.status == "confirmed")
                .values(status="completed")
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                completed = (
                    select(func.count(DBBooking.id))
                    .where(
                        DBBooking.provider_id == booking.provider_id,
                        DBBooking.status == "completed",
                    )
                    .scalar_subquery()
                )
                db.execute(
                    update(DBProviderProfile)
                    .where(DBProviderProfile.user_id == booking.provider_id)
                    .values(total_sessions=completed)
                    .execution_options(synchronize_session=False)
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return result.rowcount

    if with_storage_retry(db, _unit) == 0:
        db.refresh(booking)
        raise NotEligibleError(
            f"Booking {booking_id} is {booking.status}, only confirmed bookings can be completed"
        )

    db.refresh(booking)
    logger.info(f"Booking {booking_id} completed")
    return booking


def settle_payout(db: Session, transaction_id: int) -> DBTransaction:
    """
    Pay a pending payout into the provider's wallet.

    Allowed once the booking is completed, or for the retained fee of a
    cancelled booking.
    """
    tx = db.get(DBTransaction, transaction_id)
    if not tx or tx.type != "payout":
        raise NotFoundError(f"Payout {transaction_id} not found")

    booking = db.get(DBBooking, tx.booking_id) if tx.booking_id else None
    if booking is None or booking.status not in ("completed", "cancelled"):
        raise NotEligibleError(
            f"Payout {transaction_id} can be settled only after the session is completed"
        )

    def _unit() -> int:
        try:
            result = db.execute(
                update(DBTransaction)
                .where(DBTransaction.id == transaction_id, DBTransaction.status == "pending")
                .values(status="completed")
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                credit_balance(db, tx.user_id, tx.amount_cents)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return result.rowcount

    if with_storage_retry(db, _unit) == 0:
        db.refresh(tx)
        raise NotEligibleError(f"Payout {transaction_id} is already {tx.status}")

    db.refresh(tx)
    logger.info(
        f"Payout {transaction_id} settled: provider={tx.user_id} +{format_cents(tx.amount_cents)}"
    )
    return tx


# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

def session_start(db: Session, booking: DBBooking) -> datetime:
    """Aware start of the session in the provider's timezone."""
    policy = get_policy(db, booking.provider_id)
    return datetime.combine(booking.scheduled_date, booking.start_time, tzinfo=policy.tz)


def session_end(db: Session, booking: DBBooking) -> datetime:
    return session_start(db, booking) + timedelta(minutes=booking.duration_minutes)


def _paid_cents(db: Session, booking_id: int) -> int:
    paid = (
        db.query(func.coalesce(func.sum(DBTransaction.amount_cents), 0))
        .filter(
            DBTransaction.booking_id == booking_id,
            DBTransaction.type == "payment",
            DBTransaction.status == "completed",
        )
        .scalar()
    )
    return int(paid)


def _booking_payload(booking: DBBooking) -> dict:
    return {
        "booking_id": booking.id,
        "seeker_id": booking.seeker_id,
        "provider_id": booking.provider_id,
        "date": booking.scheduled_date.isoformat(),
        "start_time": booking.start_time.strftime("%H:%M"),
        "duration_minutes": booking.duration_minutes,
        "amount": format_cents(booking.total_amount_cents, symbol=False),
        "status": booking.status,
    }
