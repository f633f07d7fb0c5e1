# backend/booking_engine/services/ratings.py
"""
Reviews and the provider's rating aggregate.

The aggregate is recomputed from all reviews in SQL on every submission and
written in the same transaction as the review, so it never drifts under
concurrent reviews.
"""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import with_storage_retry
from ..errors import NotEligibleError, NotFoundError, ValidationError
from ..models.tables import (
    Bookings as DBBooking,
    ProviderProfiles as DBProviderProfile,
    Reviews as DBReview,
)

logger = logging.getLogger(__name__)


def submit_review(
    db: Session,
    booking_id: int,
    seeker_id: int,
    rating: int,
    comment: Optional[str] = None,
) -> DBReview:
    """
    Review a completed booking.

    Raises:
        ValidationError: rating outside 1..5
        NotFoundError: unknown booking
        NotEligibleError: not the seeker's booking, not completed, or already reviewed
    """
    if not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be a whole number between 1 and 5")

    booking = db.get(DBBooking, booking_id)
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    if booking.seeker_id != seeker_id:
        raise NotEligibleError("Only the seeker of a booking can review it")
    if booking.status != "completed":
        raise NotEligibleError("Only completed sessions can be reviewed")

    provider_id = booking.provider_id

    def _unit() -> DBReview:
        try:
            # Row lock: concurrent reviews of one provider aggregate in turn
            (
                db.query(DBProviderProfile.id)
                .filter(DBProviderProfile.user_id == provider_id)
                .with_for_update()
                .one()
            )
            review = DBReview(
                booking_id=booking_id,
                seeker_id=seeker_id,
                provider_id=provider_id,
                rating=rating,
                comment=comment,
            )
            db.add(review)
            db.flush()

            average, count = db.execute(
                select(func.avg(DBReview.rating), func.count(DBReview.id))
                .where(DBReview.provider_id == provider_id)
            ).one()
            db.execute(
                update(DBProviderProfile)
                .where(DBProviderProfile.user_id == provider_id)
                .values(
                    average_rating=round(float(average or 0), 2),
                    total_reviews=count,
                )
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise NotEligibleError("This booking has already been reviewed") from e
        except Exception:
            db.rollback()
            raise
        db.refresh(review)
        return review

    review = with_storage_retry(db, _unit)
    logger.info(
        f"Review {review.id} for booking={booking_id}: provider={provider_id} rating={rating}"
    )
    return review


def list_reviews(db: Session, provider_id: int, limit: int = 50) -> list[DBReview]:
    return (
        db.query(DBReview)
        .filter(DBReview.provider_id == provider_id)
        .order_by(DBReview.created_at.desc(), DBReview.id.desc())
        .limit(limit)
        .all()
    )
