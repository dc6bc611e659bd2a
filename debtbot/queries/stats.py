"""
Period statistics over a party's own CONFIRMED entries.

Weeks start on Monday. "Last" periods end where the current one starts.
All boundaries are computed in the timezone of `now`.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from pydantic import BaseModel

from debtbot.models.intent import StatsPeriod
from debtbot.models.ledger import Transaction, TransactionKind


class PeriodStats(BaseModel):
    period: StatsPeriod
    start: datetime
    end: Optional[datetime] = None
    count: int = 0
    total_debt: int = 0
    total_paid: int = 0

    @property
    def difference(self) -> int:
        return self.total_debt - self.total_paid


def period_window(period: StatsPeriod, now: datetime) -> tuple[datetime, Optional[datetime]]:
    """[start, end) of `period` around `now`; `end` is None for open periods."""
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)

    if period == StatsPeriod.TODAY:
        return today, None
    if period == StatsPeriod.THIS_WEEK:
        return week_start, None
    if period == StatsPeriod.LAST_WEEK:
        return week_start - timedelta(days=7), week_start
    if period == StatsPeriod.THIS_MONTH:
        return month_start, None
    if period == StatsPeriod.LAST_MONTH:
        if month_start.month == 1:
            previous = month_start.replace(year=month_start.year - 1, month=12)
        else:
            previous = month_start.replace(month=month_start.month - 1)
        return previous, month_start
    raise ValueError(f"Unknown period: {period}")


def compute_stats(
    party_id: str,
    transactions: Iterable[Transaction],
    period: StatsPeriod,
    now: datetime,
) -> PeriodStats:
    """Count and sum `party_id`'s own CONFIRMED entries inside `period`."""
    start, end = period_window(period, now)
    stats = PeriodStats(period=period, start=start, end=end)

    for tx in transactions:
        if tx.creator_id != party_id or not tx.counts_toward_balance:
            continue
        when = tx.timestamp.astimezone(now.tzinfo) if now.tzinfo else tx.timestamp
        if when < start or (end is not None and when >= end):
            continue
        stats.count += 1
        if tx.kind == TransactionKind.DEBT:
            stats.total_debt += tx.amount
        else:
            stats.total_paid += tx.amount

    return stats
