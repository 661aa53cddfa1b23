"""Next payout date for a wallet's payout schedule."""

from datetime import datetime, timedelta

from src.st_common.datetime_utils import add_months
from src.st_common.enums import PayoutSchedule


def next_payout_date(schedule: str, moment: datetime) -> datetime:
    """daily +1 day, weekly +7 days, monthly +1 calendar month (day clamped)."""
    schedule = PayoutSchedule(str(getattr(schedule, "value", schedule)))
    if schedule == PayoutSchedule.DAILY:
        return moment + timedelta(days=1)
    if schedule == PayoutSchedule.WEEKLY:
        return moment + timedelta(days=7)
    return add_months(moment, 1)
