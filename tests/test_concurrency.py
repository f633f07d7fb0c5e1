"""Races between concurrent writers, each on its own session."""

import threading
from datetime import time

from booking_engine.errors import (
    InsufficientFundsError,
    NotCancellableError,
    OverlapError,
    SlotUnavailableError,
)
from booking_engine.models.tables import Bookings, WeeklyAvailabilityRules
from booking_engine.services import availability_store, booking_ledger, wallet
from booking_engine.services.identity import Actor

from conftest import NOW, TARGET, book, make_provider, make_user


def run_concurrently(session_factory, jobs):
    """Start every job at once; each gets a fresh session. Returns outcomes in order."""
    barrier = threading.Barrier(len(jobs))
    outcomes = [None] * len(jobs)

    def worker(index, job):
        session = session_factory()
        try:
            barrier.wait()
            outcomes[index] = job(session)
        except Exception as e:
            outcomes[index] = e
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(i, job)) for i, job in enumerate(jobs)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


class TestDoubleBooking:

    def test_one_winner_per_slot(self, db, session_factory, provider):
        seekers = [make_user(db, funds_cents=100_00) for _ in range(8)]
        provider_id = provider.id

        def attempt(seeker_id):
            return lambda session: booking_ledger.create_booking(
                session, seeker_id, provider_id, TARGET, time(10, 0), 60, now=NOW
            ).id

        outcomes = run_concurrently(session_factory, [attempt(s.id) for s in seekers])
        db.expire_all()

        winners = [o for o in outcomes if isinstance(o, int)]
        losers = [o for o in outcomes if isinstance(o, SlotUnavailableError)]
        assert len(winners) == 1, outcomes
        assert len(losers) == len(seekers) - 1, outcomes

        assert db.query(Bookings).filter(Bookings.status != "cancelled").count() == 1
        paid = [s for s in seekers if wallet.get_user(db, s.id).balance_cents == 100_00 - 4000]
        assert len(paid) == 1
        for s in seekers:
            assert wallet.reconcile_balance(db, s.id).is_consistent

    def test_overlapping_starts_one_winner(self, db, session_factory, provider):
        seekers = [make_user(db, funds_cents=100_00) for _ in range(4)]
        starts = [time(10, 0), time(10, 15), time(10, 30), time(10, 45)]
        provider_id = provider.id

        def attempt(seeker_id, start):
            return lambda session: booking_ledger.create_booking(
                session, seeker_id, provider_id, TARGET, start, 60, now=NOW
            ).id

        outcomes = run_concurrently(
            session_factory, [attempt(s.id, start) for s, start in zip(seekers, starts)]
        )

        assert len([o for o in outcomes if isinstance(o, int)]) == 1, outcomes
        assert all(isinstance(o, (int, SlotUnavailableError)) for o in outcomes), outcomes


class TestFundsRace:

    def test_balance_never_negative(self, db, session_factory):
        seeker = make_user(db, funds_cents=50_00)
        providers = [make_provider(db) for _ in range(3)]
        seeker_id = seeker.id

        def attempt(provider_id):
            return lambda session: booking_ledger.create_booking(
                session, seeker_id, provider_id, TARGET, time(10, 0), 60, now=NOW
            ).id

        outcomes = run_concurrently(session_factory, [attempt(p.id) for p in providers])

        assert len([o for o in outcomes if isinstance(o, int)]) == 1, outcomes
        assert len([o for o in outcomes if isinstance(o, InsufficientFundsError)]) == 2, outcomes
        db.refresh(seeker)
        assert seeker.balance_cents == 1000
        assert wallet.reconcile_balance(db, seeker.id).is_consistent


class TestCancelRace:

    def test_single_refund(self, db, session_factory, provider, seeker):
        booking = book(db, seeker, provider)
        parties = [Actor(seeker.id, "seeker"), Actor(provider.id, "provider")] * 2
        booking_id = booking.id

        def attempt(actor):
            return lambda session: booking_ledger.cancel_booking(
                session, booking_id, actor, now=NOW
            ).refund_cents

        outcomes = run_concurrently(session_factory, [attempt(a) for a in parties])

        assert outcomes.count(4000) == 1, outcomes
        assert len([o for o in outcomes if isinstance(o, NotCancellableError)]) == 3, outcomes
        db.refresh(seeker)
        assert seeker.balance_cents == 100_00
        assert wallet.reconcile_balance(db, seeker.id).is_consistent


class TestRuleRace:

    def test_overlapping_rules_one_winner(self, db, session_factory):
        provider = make_provider(db, weekly=None)
        provider_id = provider.id
        ranges = [(time(9, 0), time(12, 0)), (time(10, 0), time(13, 0)),
                  (time(11, 0), time(14, 0)), (time(8, 0), time(10, 0))]

        def attempt(start, end):
            return lambda session: availability_store.add_rule(
                session, provider_id, 3, start, end
            ).id

        outcomes = run_concurrently(session_factory, [attempt(s, e) for s, e in ranges])
        db.expire_all()

        rules = (
            db.query(WeeklyAvailabilityRules)
            .filter(WeeklyAvailabilityRules.provider_id == provider_id)
            .all()
        )
        assert rules
        assert all(isinstance(o, (int, OverlapError)) for o in outcomes), outcomes
        assert len([o for o in outcomes if isinstance(o, int)]) == len(rules)
        for i, a in enumerate(rules):
            for b in rules[i + 1:]:
                assert not (a.start_time < b.end_time and b.start_time < a.end_time), rules
