"""Read-side queries: balances and period statistics."""

from debtbot.queries.balances import BalanceReport, CounterpartyBalance, compute_balances
from debtbot.queries.stats import PeriodStats, compute_stats, period_window

__all__ = [
    "BalanceReport",
    "CounterpartyBalance",
    "PeriodStats",
    "compute_balances",
    "compute_stats",
    "period_window",
]
