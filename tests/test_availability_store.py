"""Weekly rules, blocked dates and session policy."""

from datetime import date, time

import pytest

from booking_engine.errors import (
    DuplicateError,
    NotFoundError,
    OverlapError,
    ValidationError,
)
from booking_engine.services import availability_store as store

from conftest import make_provider, make_user


@pytest.fixture
def bare_provider(db):
    return make_provider(db, weekly=None)


class TestWeeklyRules:

    def test_add_and_list(self, db, bare_provider):
        store.add_rule(db, bare_provider.id, 1, time(13, 0), time(17, 0))
        store.add_rule(db, bare_provider.id, 1, time(9, 0), time(12, 0))
        store.add_rule(db, bare_provider.id, 0, time(10, 0), time(11, 0))

        rules = store.list_rules(db, bare_provider.id)
        assert [(r.day_of_week, r.start_time) for r in rules] == [
            (0, time(10, 0)),
            (1, time(9, 0)),
            (1, time(13, 0)),
        ]

    def test_overlapping_rule_rejected(self, db, bare_provider):
        store.add_rule(db, bare_provider.id, 2, time(9, 0), time(12, 0))
        with pytest.raises(OverlapError):
            store.add_rule(db, bare_provider.id, 2, time(11, 0), time(13, 0))
        with pytest.raises(OverlapError):
            store.add_rule(db, bare_provider.id, 2, time(9, 30), time(10, 0))

    def test_adjacent_rules_allowed(self, db, bare_provider):
        store.add_rule(db, bare_provider.id, 3, time(9, 0), time(12, 0))
        store.add_rule(db, bare_provider.id, 3, time(12, 0), time(14, 0))
        assert len(store.get_day_rules(db, bare_provider.id, 3)) == 2

    def test_same_hours_on_other_day_allowed(self, db, bare_provider):
        store.add_rule(db, bare_provider.id, 4, time(9, 0), time(12, 0))
        store.add_rule(db, bare_provider.id, 5, time(9, 0), time(12, 0))
        assert len(store.list_rules(db, bare_provider.id)) == 2

    @pytest.mark.parametrize("day, start, end", [
        (1, time(12, 0), time(12, 0)),
        (1, time(13, 0), time(12, 0)),
        (1, time(9, 10), time(12, 0)),
        (7, time(9, 0), time(12, 0)),
        (-1, time(9, 0), time(12, 0)),
    ])
    def test_invalid_rule(self, db, bare_provider, day, start, end):
        with pytest.raises(ValidationError):
            store.add_rule(db, bare_provider.id, day, start, end)

    def test_unknown_provider(self, db):
        seeker = make_user(db)
        with pytest.raises(NotFoundError):
            store.add_rule(db, seeker.id, 1, time(9, 0), time(10, 0))

    def test_remove_rule(self, db, bare_provider):
        rule = store.add_rule(db, bare_provider.id, 1, time(9, 0), time(10, 0))
        store.remove_rule(db, bare_provider.id, rule.id)
        assert store.list_rules(db, bare_provider.id) == []
        with pytest.raises(NotFoundError):
            store.remove_rule(db, bare_provider.id, rule.id)

    def test_cannot_remove_other_providers_rule(self, db, bare_provider):
        other = make_provider(db, weekly=None)
        rule = store.add_rule(db, other.id, 1, time(9, 0), time(10, 0))
        with pytest.raises(NotFoundError):
            store.remove_rule(db, bare_provider.id, rule.id)


class TestBlockedDates:

    def test_block_and_unblock(self, db, bare_provider):
        day = date(2030, 2, 14)
        store.block_date(db, bare_provider.id, day, reason="Conference")
        assert store.is_date_blocked(db, bare_provider.id, day)

        store.unblock_date(db, bare_provider.id, day)
        assert not store.is_date_blocked(db, bare_provider.id, day)

    def test_duplicate_rejected(self, db, bare_provider):
        day = date(2030, 2, 14)
        store.block_date(db, bare_provider.id, day)
        with pytest.raises(DuplicateError):
            store.block_date(db, bare_provider.id, day)

    def test_unblock_missing(self, db, bare_provider):
        with pytest.raises(NotFoundError):
            store.unblock_date(db, bare_provider.id, date(2030, 2, 14))

    def test_list_from_date(self, db, bare_provider):
        for day in (date(2030, 1, 1), date(2030, 3, 1), date(2030, 2, 1)):
            store.block_date(db, bare_provider.id, day)

        listed = store.list_blocked_dates(db, bare_provider.id, from_date=date(2030, 1, 15))
        assert [b.blocked_date for b in listed] == [date(2030, 2, 1), date(2030, 3, 1)]


class TestSessionPolicy:

    def test_defaults_without_policy(self, db, bare_provider):
        policy = store.get_policy(db, bare_provider.id)
        assert policy.buffer_minutes == 15
        assert policy.max_advance_days == 30
        assert policy.min_advance_hours == 24
        assert policy.auto_accept is True
        assert policy.timezone == "UTC"
        assert policy.rate_per_15min_cents == 1000

    def test_partial_update_keeps_other_fields(self, db, bare_provider):
        store.set_policy(db, bare_provider.id, buffer_minutes=0, timezone="Europe/Berlin")
        policy = store.set_policy(db, bare_provider.id, min_advance_hours=2)

        assert policy.buffer_minutes == 0
        assert policy.timezone == "Europe/Berlin"
        assert policy.min_advance_hours == 2
        assert policy.max_advance_days == 30

    def test_rate_lives_on_profile(self, db, bare_provider):
        policy = store.set_policy(db, bare_provider.id, rate_per_15min_cents=2500)
        assert policy.rate_per_15min_cents == 2500
        assert store.get_profile(db, bare_provider.id).rate_per_15min_cents == 2500

    @pytest.mark.parametrize("fields", [
        {"buffer_minutes": -5},
        {"max_advance_days": 0},
        {"min_advance_hours": -1},
        {"timezone": "Mars/Olympus_Mons"},
        {"colour": "blue"},
        {"rate_per_15min_cents": -100},
    ])
    def test_invalid_policy(self, db, bare_provider, fields):
        with pytest.raises(ValidationError):
            store.set_policy(db, bare_provider.id, **fields)
