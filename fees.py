"""Rental and late fee arithmetic.

All amounts are ``Decimal`` and rounded to cents with half-up rounding, so
15.99 * 0.15 * 3 = 7.1955 becomes 7.20.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")
LATE_FEE_RATE = Decimal("0.15")


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def total_fee(daily_rate: Decimal, rental_days: int) -> Decimal:
    """Fee for the whole rental period: daily rate times rental days."""
    return round_money(Decimal(daily_rate) * rental_days)


def late_days(expected_return_date: date, return_date: date) -> int:
    """Whole days past the expected return date, never negative."""
    return max(0, (return_date - expected_return_date).days)


def late_fee(daily_rate: Decimal, days_late: int, rate: Decimal | None = None) -> Decimal:
    """Penalty of ``rate`` times the daily rate for each late day."""
    if days_late <= 0:
        return round_money(Decimal("0"))
    rate = LATE_FEE_RATE if rate is None else Decimal(rate)
    return round_money(Decimal(daily_rate) * rate * days_late)
