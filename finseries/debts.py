"""Debt progress, aggregate totals and a flat payoff projection.

The payoff projection divides the outstanding balance by the monthly payment
and does not compound interest.
"""
from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, List, Literal, Union

from finseries.logging_setup import get_logger
from finseries.models import Debt

UNBOUNDED = "unbounded"
Months = Union[float, Literal["unbounded"]]
SortKey = Literal["priority", "amount", "progress", "date"]
SORT_KEYS = ("priority", "amount", "progress", "date")
UNRANKED_PRIORITY = 999

_logger = get_logger("finseries.debts")


def _initial(debt: Debt) -> float:
    return debt.initial_amount if debt.initial_amount is not None else debt.amount


def get_progress(debt: Debt) -> float:
    init = _initial(debt)
    if not (math.isfinite(init) and math.isfinite(debt.amount)):
        return 0.0
    if init <= 0:
        return 100.0 if debt.amount <= 0 else 0.0
    progress = (init - debt.amount) / init * 100
    return min(100.0, max(0.0, progress))


@dataclass
class DebtStats:
    active_debts: List[Debt]
    total_debt: float
    total_original: float
    total_paid: float
    total_progress: int
    get_progress: Callable[[Debt], float] = field(default=get_progress, repr=False)


def compute_debt_stats(debts: Iterable[Debt]) -> DebtStats:
    """Current balance of active debts against the lifetime liability.

    ``total_debt`` only counts debts still owed while ``total_original`` counts
    every debt, settled ones included.
    """
    debts = list(debts)
    active = [d for d in debts if d.amount > 0]

    total_debt = sum(d.amount for d in active)
    total_original = sum(_initial(d) for d in debts)
    total_paid = total_original - total_debt

    if total_original > 0 and math.isfinite(total_paid):
        total_progress = min(100, max(0, int(math.floor(total_paid * 100 / total_original + 0.5))))
    else:
        total_progress = 0

    return DebtStats(
        active_debts=active,
        total_debt=total_debt,
        total_original=total_original,
        total_paid=total_paid,
        total_progress=total_progress,
    )


@dataclass
class PayoffProjection:
    total_balance: float
    total_min_payment: float
    extra_payment: float
    months_to_payoff: Months
    baseline_months: Months
    months_saved: Months

    @property
    def is_unbounded(self) -> bool:
        return self.months_to_payoff == UNBOUNDED


def _months(balance: float, monthly: float) -> Months:
    if monthly <= 0:
        return UNBOUNDED
    return balance / monthly


def simulate_payoff(active_debts: Iterable[Debt], extra_payment: float = 0.0) -> PayoffProjection:
    """Months to clear the active balance at minimum payments plus ``extra_payment``.

    A negative ``extra_payment`` is treated as 0: the surplus can only add to the
    minimum payments, never reduce them.
    """
    active_debts = [d for d in active_debts if d.amount > 0]
    total_balance = sum(d.amount for d in active_debts)
    total_min_payment = sum(d.minimum_payment or 0.0 for d in active_debts)
    extra_payment = max(0.0, float(extra_payment or 0.0))

    months_to_payoff = _months(total_balance, total_min_payment + extra_payment)
    baseline_months = _months(total_balance, total_min_payment)

    if extra_payment <= 0:
        months_saved: Months = 0.0
    elif baseline_months == UNBOUNDED:
        months_saved = UNBOUNDED if months_to_payoff != UNBOUNDED else 0.0
    else:
        months_saved = baseline_months - months_to_payoff

    if months_to_payoff == UNBOUNDED and total_balance > 0:
        _logger.debug("Payoff unbounded: balance %.2f with no monthly payment", total_balance)

    return PayoffProjection(
        total_balance=total_balance,
        total_min_payment=total_min_payment,
        extra_payment=extra_payment,
        months_to_payoff=months_to_payoff,
        baseline_months=baseline_months,
        months_saved=months_saved,
    )


def format_months(value: Months, rounding: Callable[[float], int] = math.ceil) -> str:
    if value == UNBOUNDED:
        return "∞"
    return str(rounding(value))


def sort_debts(debts: Iterable[Debt], by: SortKey = "priority") -> List[Debt]:
    if by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key '{by}', use: {'/'.join(SORT_KEYS)}")

    debts = list(debts)
    if by == "amount":
        return sorted(debts, key=lambda d: d.amount, reverse=True)
    if by == "progress":
        return sorted(debts, key=get_progress, reverse=True)
    if by == "date":
        return sorted(debts, key=lambda d: d.date or date.min, reverse=True)
    return sorted(debts, key=lambda d: d.priority if d.priority is not None else UNRANKED_PRIORITY)
