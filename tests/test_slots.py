"""Slot generation: rules, buffer, advance window, blocked dates, bookings."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from booking_engine.errors import SlotUnavailableError, ValidationError
from booking_engine.services import availability_store as store
from booking_engine.services import booking_ledger
from booking_engine.services.identity import Actor
from booking_engine.services.slots import available_days, generate_slots, is_slot_available
from booking_engine.services.slots.config import day_of_week

from conftest import NOW, TARGET, book, make_provider, make_user


def hours(*values: str) -> list[time]:
    return [time.fromisoformat(v) for v in values]


class TestDayOfWeek:

    def test_sunday_is_zero(self):
        assert day_of_week(date(2030, 1, 6)) == 0  # Sunday
        assert day_of_week(date(2030, 1, 7)) == 1  # Monday
        assert day_of_week(date(2030, 1, 12)) == 6  # Saturday


class TestBuffer:

    def test_buffer_must_fit_before_rule_end(self, db):
        """09:00-10:00, 30 min sessions, 15 min buffer: 09:30 + 30 + 15 = 10:15 > 10:00."""
        provider = make_provider(db, weekly=None, buffer_minutes=15)
        store.add_rule(db, provider.id, day_of_week(TARGET), time(9, 0), time(10, 0))

        slots = generate_slots(db, provider.id, TARGET, 30, now=NOW)

        assert slots == hours("09:00", "09:15")
        assert time(9, 30) not in slots

    def test_no_buffer(self, db):
        provider = make_provider(db, weekly=None, buffer_minutes=0)
        store.add_rule(db, provider.id, day_of_week(TARGET), time(9, 0), time(10, 0))

        assert generate_slots(db, provider.id, TARGET, 30, now=NOW) == hours(
            "09:00", "09:15", "09:30"
        )

    def test_session_longer_than_rule(self, db):
        provider = make_provider(db, weekly=None)
        store.add_rule(db, provider.id, day_of_week(TARGET), time(9, 0), time(10, 0))

        assert generate_slots(db, provider.id, TARGET, 60, now=NOW) == []

    def test_several_rules_sorted(self, db):
        provider = make_provider(db, weekly=None, buffer_minutes=0)
        weekday = day_of_week(TARGET)
        store.add_rule(db, provider.id, weekday, time(14, 0), time(15, 0))
        store.add_rule(db, provider.id, weekday, time(9, 0), time(10, 0))

        assert generate_slots(db, provider.id, TARGET, 60, now=NOW) == hours("09:00", "14:00")

    def test_other_weekday_has_no_slots(self, db):
        provider = make_provider(db, weekly=None)
        store.add_rule(db, provider.id, day_of_week(TARGET), time(9, 0), time(12, 0))

        assert generate_slots(db, provider.id, TARGET + timedelta(days=1), 30, now=NOW) == []


class TestExistingBookings:

    def test_booked_interval_and_buffers_removed(self, db, provider, seeker):
        book(db, seeker, provider, start=time(12, 0), duration=60)

        slots = generate_slots(db, provider.id, TARGET, 60, now=NOW)

        # 10:45 ends 11:45, buffer to 12:00: still fits
        assert time(10, 45) in slots
        for blocked in hours("11:00", "11:45", "12:00", "12:45", "13:00"):
            assert blocked not in slots
        # 12:00-13:00 plus buffer ends 13:15
        assert time(13, 15) in slots

    def test_cancelled_booking_frees_slot(self, db, provider, seeker):
        booking = book(db, seeker, provider, start=time(12, 0))
        assert time(12, 0) not in generate_slots(db, provider.id, TARGET, 60, now=NOW)

        booking_ledger.cancel_booking(db, booking.id, Actor(seeker.id, "seeker"), now=NOW)

        assert time(12, 0) in generate_slots(db, provider.id, TARGET, 60, now=NOW)


class TestAdvanceWindow:

    def test_slot_23_hours_ahead_not_offered(self, db, provider, seeker):
        now = datetime(2030, 1, 7, 10, 0, tzinfo=timezone.utc)
        tomorrow = date(2030, 1, 8)

        slots = generate_slots(db, provider.id, tomorrow, 60, now=now)

        assert time(9, 0) not in slots
        assert slots[0] == time(10, 0)  # exactly 24 hours ahead

        with pytest.raises(SlotUnavailableError):
            book(db, seeker, provider, start=time(9, 0), on=tomorrow, now=now)

    def test_past_and_today_dates(self, db, provider):
        assert generate_slots(db, provider.id, date(2030, 1, 6), 60, now=NOW) == []
        assert generate_slots(db, provider.id, date(2030, 1, 7), 60, now=NOW) == []

    def test_beyond_max_advance_days(self, db):
        provider = make_provider(db, max_advance_days=7)
        assert generate_slots(db, provider.id, date(2030, 1, 14), 60, now=NOW) != []
        assert generate_slots(db, provider.id, date(2030, 1, 15), 60, now=NOW) == []

    def test_window_uses_provider_timezone(self, db):
        """18:00 in Tokyo at NOW; earliest start is 18:00 local the next day."""
        provider = make_provider(db, weekly=None, timezone="Asia/Tokyo")
        store.add_rule(db, provider.id, day_of_week(date(2030, 1, 8)), time(9, 0), time(20, 0))

        slots = generate_slots(db, provider.id, date(2030, 1, 8), 60, now=NOW)

        assert slots == hours("18:00", "18:15", "18:30", "18:45")


class TestBlockedDate:

    def test_blocked_date_has_no_slots(self, db, provider):
        store.block_date(db, provider.id, TARGET)
        assert generate_slots(db, provider.id, TARGET, 60, now=NOW) == []
        assert not is_slot_available(db, provider.id, TARGET, time(10, 0), 60, now=NOW)


class TestValidation:

    @pytest.mark.parametrize("duration", [0, -15, 20, 50])
    def test_bad_duration(self, db, provider, duration):
        with pytest.raises(ValidationError):
            generate_slots(db, provider.id, TARGET, duration, now=NOW)


class TestCalendar:

    def test_counts_per_day(self, db):
        provider = make_provider(db, weekly=None, buffer_minutes=0)
        store.add_rule(db, provider.id, day_of_week(TARGET), time(9, 0), time(11, 0))

        days = available_days(db, provider.id, date(2030, 1, 8), date(2030, 1, 10), 60, now=NOW)

        assert days == [
            (date(2030, 1, 8), 0),
            (date(2030, 1, 9), 5),
            (date(2030, 1, 10), 0),
        ]
