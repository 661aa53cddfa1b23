"""Tests for st_payout.domain.schedule and calendar-month arithmetic."""

from datetime import UTC, datetime

import pytest

from src.st_common.datetime_utils import add_months
from src.st_common.enums import PayoutSchedule
from src.st_payout.domain.schedule import next_payout_date

T = datetime(2026, 1, 31, 9, 30, tzinfo=UTC)


class TestNextPayoutDate:
    def test_daily(self) -> None:
        assert next_payout_date("daily", T) == datetime(2026, 2, 1, 9, 30, tzinfo=UTC)

    def test_weekly(self) -> None:
        assert next_payout_date(PayoutSchedule.WEEKLY, T) == datetime(2026, 2, 7, 9, 30, tzinfo=UTC)

    def test_monthly_clamps_day(self) -> None:
        assert next_payout_date("monthly", T) == datetime(2026, 2, 28, 9, 30, tzinfo=UTC)

    def test_unknown_schedule_raises(self) -> None:
        with pytest.raises(ValueError):
            next_payout_date("hourly", T)


class TestAddMonths:
    def test_leap_year(self) -> None:
        assert add_months(datetime(2028, 1, 31, tzinfo=UTC), 1).day == 29

    def test_year_rollover(self) -> None:
        moved = add_months(datetime(2026, 12, 15, tzinfo=UTC), 1)
        assert (moved.year, moved.month, moved.day) == (2027, 1, 15)
