# backend/booking_engine/routers/bookings.py
"""
Bookings API.

POST /bookings                      - seeker books a slot (payment taken at once)
GET  /bookings/{id}                 - seeker, provider or admin
POST /bookings/{id}/accept          - provider confirms a pending request
POST /bookings/{id}/cancel          - seeker, provider or admin
POST /bookings/{id}/complete        - provider or admin, after the session ended
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_actor
from ..errors import NotEligibleError
from ..money import cents_to_decimal
from ..schemas.bookings import BookingCancel, BookingCancelResponse, BookingCreate, BookingRead
from ..services import booking_ledger
from ..services.identity import Actor

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _ensure_party(actor: Actor, booking) -> None:
    if actor.user_id not in (booking.seeker_id, booking.provider_id) and not actor.is_admin:
        raise NotEligibleError("You are not a party to this booking")


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    if actor.role != "seeker" and not actor.is_admin:
        raise NotEligibleError("Only seekers can book sessions")
    return booking_ledger.create_booking(
        db,
        seeker_id=actor.user_id,
        provider_id=data.provider_id,
        scheduled_date=data.scheduled_date,
        start_time=data.start_time,
        duration_minutes=data.duration_minutes,
        notes=data.notes,
    )


@router.get("/{booking_id}", response_model=BookingRead)
def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    booking = booking_ledger.get_booking(db, booking_id)
    _ensure_party(actor, booking)
    return booking


@router.post("/{booking_id}/accept", response_model=BookingRead)
def accept_booking(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return booking_ledger.accept_booking(db, booking_id, actor)


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
def cancel_booking(
    booking_id: int,
    data: BookingCancel | None = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    result = booking_ledger.cancel_booking(
        db, booking_id, actor, reason=data.reason if data else None
    )
    return BookingCancelResponse(
        booking=BookingRead.model_validate(result.booking),
        refund=cents_to_decimal(result.refund_cents),
        retained=cents_to_decimal(result.retained_cents),
    )


@router.post("/{booking_id}/complete", response_model=BookingRead)
def complete_booking(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    booking = booking_ledger.get_booking(db, booking_id)
    if actor.user_id != booking.provider_id and not actor.is_admin:
        raise NotEligibleError("Only the provider can complete this booking")
    return booking_ledger.complete_booking(db, booking_id)
