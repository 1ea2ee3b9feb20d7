"""Aggregation and forecasting engine for a personal finance tracker.

Pure functions over snapshots of transactions, debts and recurring
obligations; "now" and reference dates are always passed in.
"""

from finseries.cache import ResultCache
from finseries.dashboard import compute_dashboard_metrics
from finseries.debts import UNBOUNDED, compute_debt_stats, simulate_payoff
from finseries.logic import compute_series
from finseries.models import Debt, RecurringObligation, Transaction

__all__ = [
    "Debt",
    "RecurringObligation",
    "ResultCache",
    "Transaction",
    "UNBOUNDED",
    "compute_dashboard_metrics",
    "compute_debt_stats",
    "compute_series",
    "simulate_payoff",
]
