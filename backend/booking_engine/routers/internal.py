# backend/booking_engine/routers/internal.py
"""
Internal API endpoints for trusted consumers.

These endpoints are NOT exposed to end users.
They are called directly by trusted services:
- the scheduler (completion sweep)
- the settlement process (payouts)
- the identity provider webhook

Access: private network only (the public proxy does not route /internal/*)
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.users import IdentitySync, UserRead
from ..schemas.wallets import LedgerTransactionRead
from ..services.booking_ledger import settle_payout
from ..services.completion_checker import complete_due_bookings
from ..services.identity import sync_identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


# ──────────────────────────────────────────────────────────────────────────────
# Request/Response schemas
# ──────────────────────────────────────────────────────────────────────────────

class CompletionSweepResponse(BaseModel):
    completed: list[int]
    count: int


# ──────────────────────────────────────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/bookings/complete-due", response_model=CompletionSweepResponse)
def run_completion_sweep(db: Session = Depends(get_db)):
    """Mark every confirmed booking whose session has ended as completed."""
    completed = complete_due_bookings(db)
    return CompletionSweepResponse(completed=completed, count=len(completed))


@router.post("/payouts/{transaction_id}/settle", response_model=LedgerTransactionRead)
def settle(transaction_id: int, db: Session = Depends(get_db)):
    """Called by the settlement process once money has moved."""
    return settle_payout(db, transaction_id)


@router.post("/identity/sync", response_model=UserRead)
def identity_webhook(data: IdentitySync, db: Session = Depends(get_db)):
    """Identity provider webhook: user created or updated upstream."""
    user = sync_identity(
        db,
        external_id=data.external_id,
        email=data.email,
        name=data.name,
        role=data.role,
    )
    logger.info(f"Identity webhook processed for {data.external_id} -> user={user.id}")
    return user
