# backend/booking_engine/routers/verification.py
"""
Provider verification requests.

Seekers submit; admins decide.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_actor, require_admin
from ..schemas.verification import VerificationCreate, VerificationDecision, VerificationRead
from ..services import verification
from ..services.identity import Actor

router = APIRouter(prefix="/verification", tags=["verification"])


@router.post("", response_model=VerificationRead, status_code=status.HTTP_201_CREATED)
def submit_verification(
    data: VerificationCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return verification.submit_verification(db, actor.user_id, **data.model_dump())


@router.post("/{request_id}/decide", response_model=VerificationRead)
def decide_verification(
    request_id: int,
    data: VerificationDecision,
    admin: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return verification.decide_verification(
        db,
        request_id,
        admin_id=admin.user_id,
        approve=data.approve,
        feedback=data.feedback,
    )
