import calendar
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

CENT = Decimal('0.01')
ZERO = Decimal('0.00')
HUNDRED = Decimal('100')


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    if value is None or value == '':
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Invalid monetary value: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid monetary value: {value!r}")
    return result


def round_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_non_negative(value: Decimal) -> Decimal:
    return value if value > ZERO else ZERO


def is_settled(total: Decimal, paid: Decimal, tolerance: Decimal = CENT) -> bool:
    """An invoice is fully paid once what remains is within the tolerance."""
    return to_decimal(total) - to_decimal(paid) <= tolerance


def percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    return to_decimal(amount) * to_decimal(rate) / HUNDRED


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day(value: date, day_of_month: int) -> date:
    day = min(day_of_month, last_day_of_month(value.year, value.month))
    return value.replace(day=day)


def add_months(value: date, months: int, day_of_month: Optional[int] = None) -> date:
    # relativedelta already clamps the 31st to the end of shorter months
    shifted = value + relativedelta(months=months)
    if day_of_month:
        shifted = clamp_day(shifted, day_of_month)
    return shifted


def js_weekday(value: date) -> int:
    """Weekday numbered 0 (Sunday) through 6 (Saturday)."""
    return value.isoweekday() % 7


def next_weekday_on_or_after(value: date, day_of_week: int) -> date:
    shift = (day_of_week - js_weekday(value)) % 7
    return value + timedelta(days=shift)


def days_between(start: date, end: date) -> int:
    return (end - start).days
