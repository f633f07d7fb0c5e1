# backend/booking_engine/routers/reviews.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_actor
from ..schemas.reviews import ReviewCreate, ReviewRead
from ..services import ratings
from ..services.identity import Actor

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("", response_model=ReviewRead, status_code=status.HTTP_201_CREATED)
def submit_review(
    data: ReviewCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return ratings.submit_review(
        db,
        booking_id=data.booking_id,
        seeker_id=actor.user_id,
        rating=data.rating,
        comment=data.comment,
    )


@router.get("", response_model=list[ReviewRead])
def list_reviews(
    provider_id: int,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return ratings.list_reviews(db, provider_id, limit=limit)
