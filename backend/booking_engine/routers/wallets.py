# backend/booking_engine/routers/wallets.py
"""
Wallet API: balances, history, top-ups and provider earnings.

Every balance change is paired with a ledger_transactions row; there is no
endpoint that edits a balance directly.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import ensure_self_or_admin, get_actor
from ..money import cents_to_decimal, decimal_to_cents
from ..schemas.wallets import (
    AddFunds,
    EarningsRead,
    LedgerTransactionRead,
    ReconciliationRead,
    WalletOperationResponse,
    WalletRead,
)
from ..services import wallet
from ..services.identity import Actor

router = APIRouter(prefix="/wallets", tags=["wallets"])


# ──────────────────────────────────────────────────────────────────────────────
# GET Endpoints
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/{user_id}", response_model=WalletRead)
def get_wallet(
    user_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Get current balance of a user."""
    ensure_self_or_admin(actor, user_id)
    user = wallet.get_user(db, user_id)
    return WalletRead(user_id=user.id, balance=user.balance)


@router.get("/{user_id}/transactions", response_model=list[LedgerTransactionRead])
def get_wallet_transactions(
    user_id: int,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    status: Optional[str] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """
    Transaction history.
    Ordered by created_at DESC.
    """
    ensure_self_or_admin(actor, user_id)
    return wallet.list_transactions(db, user_id, limit=limit, offset=offset, status=status)


@router.get("/{user_id}/reconcile", response_model=ReconciliationRead)
def reconcile_wallet(
    user_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Stored balance vs. sum of completed transactions."""
    ensure_self_or_admin(actor, user_id)
    result = wallet.reconcile_balance(db, user_id)
    return ReconciliationRead(
        user_id=user_id,
        stored_balance=cents_to_decimal(result.stored_cents),
        derived_balance=cents_to_decimal(result.derived_cents),
        is_consistent=result.is_consistent,
    )


@router.get("/providers/{provider_id}/earnings", response_model=EarningsRead)
def get_earnings(
    provider_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(actor, provider_id)
    summary = wallet.earnings_summary(db, provider_id)
    return EarningsRead(
        provider_id=provider_id,
        total=cents_to_decimal(summary.total_cents),
        pending=cents_to_decimal(summary.pending_cents),
        last_30_days=cents_to_decimal(summary.last_30_days_cents),
        last_7_days=cents_to_decimal(summary.last_7_days_cents),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Operations
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/{user_id}/add-funds", response_model=WalletOperationResponse, status_code=status.HTTP_201_CREATED)
def add_funds(
    user_id: int,
    data: AddFunds,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Top up a wallet."""
    ensure_self_or_admin(actor, user_id)
    tx = wallet.add_funds(db, user_id, decimal_to_cents(data.amount), data.description)
    user = wallet.get_user(db, user_id)
    return WalletOperationResponse(
        wallet=WalletRead(user_id=user.id, balance=user.balance),
        transaction=LedgerTransactionRead.model_validate(tx),
    )
