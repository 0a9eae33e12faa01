"""Decimal helpers for money and hour quantities."""

from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HOUR_PRECISION = Decimal("0.0001")
MINUTES_PER_HOUR = Decimal("60")


def to_decimal(value: Decimal | float | int | str | None) -> Decimal:
    """Coerce a numeric input to Decimal without going through binary floats."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Decimal | float | int | str | None) -> Decimal:
    """Round to cents, half-up. Applied wherever an amount leaves the core."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_hours(duration_minutes: int) -> Decimal:
    return (Decimal(duration_minutes) / MINUTES_PER_HOUR).quantize(HOUR_PRECISION, rounding=ROUND_HALF_UP)


def time_value(duration_minutes: int, hourly_rate: Decimal | float | int | str) -> Decimal:
    """Billable value of a time entry: (minutes / 60) x rate, rounded once."""
    rate = to_decimal(hourly_rate)
    return to_money(Decimal(duration_minutes) * rate / MINUTES_PER_HOUR)


def money_sum(values) -> Decimal:
    return to_money(sum((to_decimal(v) for v in values), ZERO))
