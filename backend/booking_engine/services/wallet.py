# backend/booking_engine/services/wallet.py
"""
Wallet balances and ledger transactions.

The stored balance is a cache of the user's completed transactions:

    balance = Σ add_funds + Σ refund + Σ payout − Σ payment   (completed only)

Every balance change goes through credit_balance / debit_balance together
with exactly one transaction row, inside the caller's transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import case, func, update
from sqlalchemy.orm import Session

from ..database import storage_now, with_storage_retry
from ..errors import InsufficientFundsError, NotFoundError, ValidationError
from ..models.tables import (
    LedgerTransactions as DBTransaction,
    Users as DBUser,
)
from ..money import format_cents
from .events import FUNDS_ADDED, emit_event

logger = logging.getLogger(__name__)

CREDIT_TYPES = ("add_funds", "refund", "payout")
DEBIT_TYPES = ("payment",)


@dataclass(frozen=True)
class Reconciliation:
    user_id: int
    stored_cents: int
    derived_cents: int

    @property
    def is_consistent(self) -> bool:
        return self.stored_cents == self.derived_cents


@dataclass(frozen=True)
class EarningsSummary:
    provider_id: int
    total_cents: int
    pending_cents: int
    last_30_days_cents: int
    last_7_days_cents: int


# ──────────────────────────────────────────────────────────────────────────────
# Helpers (used inside other units of work; never commit)
# ──────────────────────────────────────────────────────────────────────────────

def create_transaction(
    db: Session,
    user_id: int,
    amount_cents: int,
    tx_type: str,
    status: str = "completed",
    booking_id: Optional[int] = None,
    description: Optional[str] = None,
) -> DBTransaction:
    """Create a ledger transaction record."""
    if amount_cents < 0:
        raise ValidationError("Transaction amount cannot be negative")
    tx = DBTransaction(
        user_id=user_id,
        amount_cents=amount_cents,
        type=tx_type,
        status=status,
        booking_id=booking_id,
        description=description,
    )
    db.add(tx)
    return tx


def debit_balance(db: Session, user_id: int, amount_cents: int) -> None:
    """
    Funds check and debit as one conditional UPDATE.

    Two concurrent debits can never both pass the check against the same
    balance.

    Raises:
        NotFoundError: user does not exist
        InsufficientFundsError: balance < amount (carries the shortfall)
    """
    result = db.execute(
        update(DBUser)
        .where(DBUser.id == user_id, DBUser.balance_cents >= amount_cents)
        .values(balance_cents=DBUser.balance_cents - amount_cents)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    balance = db.query(DBUser.balance_cents).filter(DBUser.id == user_id).scalar()
    if balance is None:
        raise NotFoundError(f"User {user_id} not found")
    raise InsufficientFundsError(amount_cents - balance)


def credit_balance(db: Session, user_id: int, amount_cents: int) -> None:
    result = db.execute(
        update(DBUser)
        .where(DBUser.id == user_id)
        .values(balance_cents=DBUser.balance_cents + amount_cents)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NotFoundError(f"User {user_id} not found")


def get_user(db: Session, user_id: int) -> DBUser:
    user = db.get(DBUser, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


# ──────────────────────────────────────────────────────────────────────────────
# Operations
# ──────────────────────────────────────────────────────────────────────────────

def add_funds(
    db: Session,
    user_id: int,
    amount_cents: int,
    description: Optional[str] = None,
) -> DBTransaction:
    """
    Add funds to a wallet.

    The add_funds transaction and the balance credit commit together.
    Emits funds.added after commit.
    """
    if amount_cents <= 0:
        raise ValidationError("Amount to add must be greater than zero")

    def _unit() -> DBTransaction:
        try:
            get_user(db, user_id)
            tx = create_transaction(
                db=db,
                user_id=user_id,
                amount_cents=amount_cents,
                tx_type="add_funds",
                description=description or "Wallet top-up",
            )
            credit_balance(db, user_id, amount_cents)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(tx)
        return tx

    tx = with_storage_retry(db, _unit)
    user = get_user(db, user_id)
    db.refresh(user)

    logger.info(
        f"Funds added for user={user_id}: +{format_cents(amount_cents)} "
        f"(balance {format_cents(user.balance_cents)})"
    )
    emit_event(FUNDS_ADDED, {
        "user_id": user_id,
        "transaction_id": tx.id,
        "amount": format_cents(amount_cents, symbol=False),
        "balance": format_cents(user.balance_cents, symbol=False),
    })
    return tx


def list_transactions(
    db: Session,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
    status: Optional[str] = None,
) -> list[DBTransaction]:
    """
    Transaction history.
    Ordered newest first.
    """
    get_user(db, user_id)
    query = db.query(DBTransaction).filter(DBTransaction.user_id == user_id)
    if status:
        query = query.filter(DBTransaction.status == status)
    return (
        query
        .order_by(DBTransaction.created_at.desc(), DBTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def derived_balance_cents(db: Session, user_id: int) -> int:
    signed = case(
        (DBTransaction.type.in_(CREDIT_TYPES), DBTransaction.amount_cents),
        (DBTransaction.type.in_(DEBIT_TYPES), -DBTransaction.amount_cents),
        else_=0,
    )
    total = (
        db.query(func.coalesce(func.sum(signed), 0))
        .filter(
            DBTransaction.user_id == user_id,
            DBTransaction.status == "completed",
        )
        .scalar()
    )
    return int(total)


def reconcile_balance(db: Session, user_id: int) -> Reconciliation:
    """Compare the cached balance with the sum of completed transactions."""
    user = get_user(db, user_id)
    db.refresh(user)
    result = Reconciliation(
        user_id=user_id,
        stored_cents=user.balance_cents,
        derived_cents=derived_balance_cents(db, user_id),
    )
    if not result.is_consistent:
        logger.error(
            f"Balance drift for user={user_id}: stored={result.stored_cents} "
            f"derived={result.derived_cents}"
        )
    return result


def earnings_summary(
    db: Session,
    provider_id: int,
    now: Optional[datetime] = None,
) -> EarningsSummary:
    """Provider payouts: settled total, pending total, last 30 and 7 days."""
    get_user(db, provider_id)
    now = now or storage_now(db)
    # created_at is stored as naive UTC
    now_utc = now.astimezone(timezone.utc).replace(tzinfo=None) if now.tzinfo else now

    def _sum(status: str, since: Optional[datetime] = None) -> int:
        query = db.query(func.coalesce(func.sum(DBTransaction.amount_cents), 0)).filter(
            DBTransaction.user_id == provider_id,
            DBTransaction.type == "payout",
            DBTransaction.status == status,
        )
        if since is not None:
            query = query.filter(DBTransaction.created_at >= since)
        return int(query.scalar())

    return EarningsSummary(
        provider_id=provider_id,
        total_cents=_sum("completed"),
        pending_cents=_sum("pending"),
        last_30_days_cents=_sum("completed", now_utc - timedelta(days=30)),
        last_7_days_cents=_sum("completed", now_utc - timedelta(days=7)),
    )
