# backend/booking_engine/money.py
"""
Money helpers.

Amounts are stored as integer cents and exposed as two-place Decimals.
"""

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def decimal_to_cents(amount: Decimal) -> int:
    """Convert a Decimal amount to cents, rounding half up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(cents: int, symbol: bool = True) -> str:
    """
    Human readable amount.

    >>> format_cents(1250)
    '$12.50'
    """
    text = f"{cents_to_decimal(cents):.2f}"
    return f"${text}" if symbol else text


def session_price_cents(rate_per_15min_cents: int, duration_minutes: int) -> int:
    """Price of a session: rate x duration / 15, exact for 15-minute multiples."""
    return rate_per_15min_cents * duration_minutes // 15
