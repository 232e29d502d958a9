"""
Schedule arithmetic for recurring templates.
"""

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from core_ledger.models.enums import Frequency

MONTHS_PER_PERIOD: dict[Frequency, int] = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}


def add_months(start: date, months: int, day_of_month: int | None = None) -> date:
    """
    Move ``start`` forward by whole calendar months.

    The day lands on ``day_of_month`` (or the start's own day when no
    anchor is set), clamped to the length of the target month:
    an anchor of 31 gives Feb 29 in a leap year and Apr 30 in April.
    """
    return start + relativedelta(months=months, day=day_of_month or start.day)


def advance(current: date, frequency: Frequency, day_of_month: int | None = None) -> date:
    """Return the run date that follows ``current``."""
    if frequency == Frequency.DAILY:
        return current + timedelta(days=1)
    if frequency == Frequency.WEEKLY:
        return current + timedelta(days=7)
    return add_months(current, MONTHS_PER_PERIOD[frequency], day_of_month)
