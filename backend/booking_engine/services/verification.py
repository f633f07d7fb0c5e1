# backend/booking_engine/services/verification.py
"""
Provider verification workflow.

A seeker submits credentials; an admin approves (a verified provider profile
is created) or rejects with feedback. The decision is pushed as an event so
the identity provider and the notification side can follow up.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..config import settings
from ..database import with_storage_retry
from ..errors import DuplicateError, NotEligibleError, NotFoundError, ValidationError
from ..models.tables import (
    ProviderProfiles as DBProviderProfile,
    Users as DBUser,
    VerificationRequests as DBVerification,
)
from .events import VERIFICATION_DECIDED, emit_event

logger = logging.getLogger(__name__)


def submit_verification(
    db: Session,
    user_id: int,
    professional_title: str,
    credentials: str,
    category: str = "general",
    experience_years: int = 0,
    bio: Optional[str] = None,
    portfolio_url: Optional[str] = None,
    linkedin_url: Optional[str] = None,
) -> DBVerification:
    if not db.get(DBUser, user_id):
        raise NotFoundError(f"User {user_id} not found")
    if not professional_title or not credentials:
        raise ValidationError("Professional title and credentials are required")
    if experience_years < 0:
        raise ValidationError("Experience cannot be negative")

    pending = (
        db.query(DBVerification.id)
        .filter(DBVerification.user_id == user_id, DBVerification.status == "pending")
        .first()
    )
    if pending:
        raise DuplicateError("You already have a verification request under review")

    request = DBVerification(
        user_id=user_id,
        professional_title=professional_title,
        category=category,
        credentials=credentials,
        experience_years=experience_years,
        bio=bio,
        portfolio_url=portfolio_url,
        linkedin_url=linkedin_url,
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info(f"Verification request {request.id} submitted by user={user_id}")
    return request


def decide_verification(
    db: Session,
    request_id: int,
    admin_id: int,
    approve: bool,
    feedback: Optional[str] = None,
    default_rate_cents: Optional[int] = None,
) -> DBVerification:
    """
    Approve or reject a pending request.

    Approval creates (or re-verifies) the provider profile and switches the
    user's role to provider. Rejection requires feedback.
    """
    request = db.get(DBVerification, request_id)
    if not request:
        raise NotFoundError(f"Verification request {request_id} not found")
    if not approve and not (feedback and feedback.strip()):
        raise ValidationError("Feedback is required when rejecting a request")
    if default_rate_cents is None:
        default_rate_cents = settings.default_rate_per_15min_cents

    status = "approved" if approve else "rejected"

    def _unit() -> None:
        try:
            result = db.execute(
                update(DBVerification)
                .where(DBVerification.id == request_id, DBVerification.status == "pending")
                .values(
                    status=status,
                    feedback=feedback,
                    reviewed_by=admin_id,
                    reviewed_at=datetime.now(timezone.utc).replace(tzinfo=None),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotEligibleError(f"Verification request {request_id} was already decided")

            if approve:
                _upsert_profile(db, request, default_rate_cents)
                db.execute(
                    update(DBUser)
                    .where(DBUser.id == request.user_id)
                    .values(role="provider")
                    .execution_options(synchronize_session=False)
                )
            db.commit()
        except Exception:
            db.rollback()
            raise

    with_storage_retry(db, _unit)
    db.refresh(request)

    logger.info(
        f"Verification request {request_id} {status} by admin={admin_id} "
        f"for user={request.user_id}"
    )
    emit_event(VERIFICATION_DECIDED, {
        "request_id": request_id,
        "user_id": request.user_id,
        "status": status,
        "role": "provider" if approve else None,
        "feedback": feedback,
    })
    return request


def _upsert_profile(db: Session, request: DBVerification, default_rate_cents: int) -> DBProviderProfile:
    profile = db.query(DBProviderProfile).filter(DBProviderProfile.user_id == request.user_id).first()
    if profile is None:
        profile = DBProviderProfile(
            user_id=request.user_id,
            rate_per_15min_cents=default_rate_cents,
        )
        db.add(profile)

    profile.title = request.professional_title
    profile.category = request.category
    profile.bio = request.bio
    profile.credentials = request.credentials
    profile.experience = f"{request.experience_years} years"
    profile.is_verified = True
    return profile
