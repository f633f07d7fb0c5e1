# backend/booking_engine/services/slots/config.py
"""
Engine configuration for slot generation and booking.
"""

from dataclasses import dataclass
from datetime import date, time
from functools import lru_cache


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for the availability/booking engine.

    Attributes:
        slot_step_minutes: Grid step for candidate start times
        default_buffer_minutes: Gap after a session when no policy row exists
        default_max_advance_days: Booking horizon when no policy row exists
        default_min_advance_hours: Minimum notice when no policy row exists
        default_auto_accept: Initial booking status is confirmed when True
        default_timezone: Provider timezone when no policy row exists
    """
    slot_step_minutes: int = 15
    default_buffer_minutes: int = 15
    default_max_advance_days: int = 30
    default_min_advance_hours: int = 24
    default_auto_accept: bool = True
    default_timezone: str = "UTC"

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes <= 0 or 60 % self.slot_step_minutes:
            raise ValueError(
                f"slot_step_minutes must divide 60, got {self.slot_step_minutes}"
            )

    def is_valid_duration(self, duration_minutes: int) -> bool:
        return duration_minutes > 0 and duration_minutes % self.slot_step_minutes == 0

    def is_on_grid(self, value: time) -> bool:
        return value.second == 0 and value.microsecond == 0 and (
            value.minute % self.slot_step_minutes == 0
        )


@lru_cache
def get_engine_config() -> EngineConfig:
    """
    Get engine configuration (singleton).
    """
    return EngineConfig()


def time_to_minutes(value: time) -> int:
    """Convert a time of day to minutes since midnight."""
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    """Convert minutes since midnight to a time of day (must be < 24h)."""
    return time(minutes // 60, minutes % 60)


def day_of_week(target_date: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (target_date.weekday() + 1) % 7


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open overlap: [a, b) and [c, d) overlap iff a < d and c < b."""
    return a_start < b_end and b_start < a_end
