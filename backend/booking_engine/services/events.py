"""
backend/booking_engine/services/events.py

Event emitter: pushes events to a Redis list for the notification dispatcher.

Emission is fire-and-forget. A failure is logged and swallowed so it can
never roll back or block the operation that triggered it.

Event types:
- booking.confirmed
- booking.requested (provider must accept)
- booking.cancelled
- verification.decided
- funds.added
"""

import json
import time
import logging

from ..config import settings
from ..redis_client import redis_client

logger = logging.getLogger(__name__)

BOOKING_CONFIRMED = "booking.confirmed"
BOOKING_REQUESTED = "booking.requested"
BOOKING_CANCELLED = "booking.cancelled"
VERIFICATION_DECIDED = "verification.decided"
FUNDS_ADDED = "funds.added"


def emit_event(event_type: str, payload: dict) -> bool:
    """
    Emit an event for the notification collaborator.

    Pushed to the Redis list `settings.events_queue`.

    Returns:
        True if the event was queued, False if delivery failed.
    """
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis_client.rpush(settings.events_queue, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {settings.events_queue}")
        return True
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
        return False
