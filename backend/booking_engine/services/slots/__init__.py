# backend/booking_engine/services/slots/__init__.py
"""
Slot generation module.

Turns weekly rules, blocked dates and the session policy of a provider into
concrete bookable start times, net of buffer time and live bookings.
"""

from .config import EngineConfig, get_engine_config
from .calculator import generate_slots, is_slot_available, available_days

__all__ = [
    "EngineConfig",
    "get_engine_config",
    "generate_slots",
    "is_slot_available",
    "available_days",
]
