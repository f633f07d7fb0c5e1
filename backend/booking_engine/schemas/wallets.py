# backend/booking_engine/schemas/wallets.py

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


# ──────────────────────────────────────────────────────────────────────────────
# Read Schemas
# ──────────────────────────────────────────────────────────────────────────────

class WalletRead(BaseModel):
    """Response for GET /wallets/{user_id}"""
    user_id: int
    balance: Decimal


class LedgerTransactionRead(BaseModel):
    """Transaction item in history list"""
    id: int
    user_id: int
    booking_id: Optional[int] = None
    amount: Decimal
    type: str  # payment, payout, add_funds, refund
    status: str  # pending, completed, failed
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReconciliationRead(BaseModel):
    user_id: int
    stored_balance: Decimal
    derived_balance: Decimal
    is_consistent: bool


class EarningsRead(BaseModel):
    provider_id: int
    total: Decimal
    pending: Decimal
    last_30_days: Decimal
    last_7_days: Decimal


# ──────────────────────────────────────────────────────────────────────────────
# Operation Request Schemas
# ──────────────────────────────────────────────────────────────────────────────

class AddFunds(BaseModel):
    """Request body for POST /wallets/{user_id}/add-funds"""
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Amount to add (must be > 0)")
    description: Optional[str] = None


class WalletOperationResponse(BaseModel):
    """Response for wallet operations"""
    wallet: WalletRead
    transaction: LedgerTransactionRead
