"""Event emission, storage retries, money helpers and error payloads."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from booking_engine.database import storage_now, with_storage_retry
from booking_engine.errors import InsufficientFundsError, StorageUnavailableError
from booking_engine.money import decimal_to_cents, format_cents, session_price_cents
from booking_engine.services.events import emit_event


class TestEvents:

    def test_event_shape(self, event_log):
        assert emit_event("booking.confirmed", {"booking_id": 7}) is True

        key, event = event_log.pushed[-1]
        assert key == "events:p2p"
        assert event["type"] == "booking.confirmed"
        assert event["booking_id"] == 7
        assert isinstance(event["ts"], int)

    def test_failure_is_swallowed(self, event_log):
        event_log.fail = True
        assert emit_event("funds.added", {"user_id": 1}) is False


class TestStorageRetry:

    @staticmethod
    def _transient():
        return OperationalError("UPDATE provider_profiles", {}, Exception("database is locked"))

    def test_recovers_from_transient_failures(self, db):
        calls = []

        def unit():
            calls.append(1)
            if len(calls) < 3:
                raise self._transient()
            return "done"

        assert with_storage_retry(db, unit, attempts=3, backoff_seconds=0) == "done"
        assert len(calls) == 3

    def test_gives_up_with_storage_unavailable(self, db):
        calls = []

        def unit():
            calls.append(1)
            raise self._transient()

        with pytest.raises(StorageUnavailableError):
            with_storage_retry(db, unit, attempts=2, backoff_seconds=0)
        assert len(calls) == 2

    def test_integrity_errors_are_not_retried(self, db):
        calls = []

        def unit():
            calls.append(1)
            raise IntegrityError("INSERT INTO bookings", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(IntegrityError):
            with_storage_retry(db, unit, attempts=3, backoff_seconds=0)
        assert len(calls) == 1


class TestStoreClock:

    def test_aware_utc(self, db):
        now = storage_now(db)
        assert now.tzinfo is not None
        assert abs((datetime.now(timezone.utc) - now).total_seconds()) < 120


class TestMoney:

    def test_price(self):
        assert session_price_cents(1500, 60) == 6000
        assert session_price_cents(1250, 45) == 3750

    def test_conversions(self):
        assert decimal_to_cents(Decimal("12.345")) == 1235
        assert format_cents(1250) == "$12.50"
        assert format_cents(7, symbol=False) == "0.07"

    def test_insufficient_funds_payload(self):
        error = InsufficientFundsError(1250)
        assert error.to_dict() == {
            "error": "insufficient_funds",
            "detail": "Insufficient balance: needs $12.50 more",
            "shortfall": "12.50",
        }
