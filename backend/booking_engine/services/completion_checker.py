"""
Booking completion checker.

Finds confirmed bookings whose session has ended
(start + duration_minutes <= now, provider timezone) and marks them completed.

There is no in-process loop: an external scheduler calls
POST /internal/bookings/complete-due, which runs one sweep.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..database import as_utc, storage_now
from ..errors import NotEligibleError
from ..models.tables import Bookings
from .booking_ledger import complete_booking, session_end

logger = logging.getLogger(__name__)


def complete_due_bookings(db: Session, now: Optional[datetime] = None) -> list[int]:
    """
    Run one completion sweep.

    Returns:
        IDs of the bookings completed by this sweep.
    """
    now = as_utc(now or storage_now(db))

    # Dates are provider-local, so look one day past UTC today
    bookings = (
        db.query(Bookings)
        .filter(
            Bookings.status == "confirmed",
            Bookings.scheduled_date <= (now + timedelta(days=1)).date(),
        )
        .order_by(Bookings.scheduled_date, Bookings.start_time)
        .all()
    )

    completed = []
    for booking in bookings:
        if session_end(db, booking) > now:
            continue
        try:
            complete_booking(db, booking.id, now=now)
        except NotEligibleError as e:
            # Cancelled or completed by someone else since the query
            logger.info(f"Skipping booking {booking.id}: {e}")
            continue
        completed.append(booking.id)

    if completed:
        logger.info(f"Completion sweep: {len(completed)} booking(s) completed")
    return completed
