"""
Tests for schedule arithmetic.
"""

from datetime import date

import pytest

from core_ledger.models.enums import Frequency
from core_ledger.services.schedule import add_months, advance


class TestAdvance:

    def test_daily(self):
        assert advance(date(2024, 2, 28), Frequency.DAILY) == date(2024, 2, 29)

    def test_weekly(self):
        assert advance(date(2024, 12, 28), Frequency.WEEKLY) == date(2025, 1, 4)

    def test_monthly_clamps_and_recovers(self):
        first = advance(date(2024, 1, 31), Frequency.MONTHLY, day_of_month=31)
        second = advance(first, Frequency.MONTHLY, day_of_month=31)
        assert first == date(2024, 2, 29)
        assert second == date(2024, 3, 31)

    def test_monthly_without_anchor_keeps_current_day(self):
        assert advance(date(2024, 1, 15), Frequency.MONTHLY) == date(2024, 2, 15)

    def test_monthly_without_anchor_drifts_after_clamp(self):
        # With no anchor the clamped day becomes the new day.
        first = advance(date(2024, 1, 31), Frequency.MONTHLY)
        assert first == date(2024, 2, 29)
        assert advance(first, Frequency.MONTHLY) == date(2024, 3, 29)

    def test_quarterly(self):
        assert advance(date(2024, 11, 30), Frequency.QUARTERLY, 30) == date(2025, 2, 28)

    def test_yearly_from_leap_day(self):
        assert advance(date(2024, 2, 29), Frequency.YEARLY, 29) == date(2025, 2, 28)

    @pytest.mark.parametrize("months,expected", [
        (1, date(2023, 12, 31)),
        (2, date(2024, 1, 31)),
        (13, date(2024, 12, 31)),
    ])
    def test_add_months_across_years(self, months, expected):
        assert add_months(date(2023, 11, 30), months, day_of_month=31) == expected

    def test_quarterly_anchor_lands_on_short_month_end(self):
        assert add_months(date(2024, 1, 31), 3, day_of_month=31) == date(2024, 4, 30)

    def test_anchor_earlier_than_current_day(self):
        assert advance(date(2024, 3, 28), Frequency.MONTHLY, day_of_month=5) == date(2024, 4, 5)
