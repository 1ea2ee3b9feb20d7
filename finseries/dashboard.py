"""Dashboard metrics: month-to-date figures, comparisons, forecast and lookahead.

Every function takes ``now`` explicitly; nothing here reads the system clock.
"""
from __future__ import annotations
import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Literal, Optional, Union

from dateutil.relativedelta import relativedelta

from finseries.logging_setup import get_logger
from finseries.models import RecurringObligation, Transaction

LOOKAHEAD_DAYS = 7
RECENT_LIMIT = 5

Trend = Literal["up", "down", "flat"]

_logger = get_logger("finseries.dashboard")


@dataclass
class Comparison:
    percent: int
    trend: Trend
    is_good: bool


@dataclass
class Forecast:
    projected: float
    daily_average: float
    days_remaining: int
    is_over_income: bool
    progress: float


@dataclass
class UpcomingObligation:
    obligation: RecurringObligation
    next_due: date
    days_until_due: int


@dataclass
class CategoryShare:
    name: str
    amount: float
    percent: int


@dataclass
class DashboardMetrics:
    income: float
    expenses: float
    net: float
    comparison: Dict[str, Comparison]
    forecast: Forecast
    upcoming_obligations: List[UpcomingObligation]
    main_balance: float
    spent_percent: int = 0
    month_label: str = ""
    recent_transactions: List[Transaction] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _as_date(now: Union[date, datetime]) -> date:
    return now.date() if isinstance(now, datetime) else now


def comparison(current: float, previous: float, lower_is_better: bool = False) -> Comparison:
    if previous == 0:
        return Comparison(
            percent=100 if current > 0 else 0,
            trend="up" if current > 0 else "flat",
            is_good=(not lower_is_better) if current > 0 else True,
        )

    diff = current - previous
    percent = round_half_up(abs(diff) * 100 / abs(previous))
    trend = "up" if diff > 0 else "down" if diff < 0 else "flat"
    is_good = diff <= 0 if lower_is_better else diff >= 0
    return Comparison(percent=percent, trend=trend, is_good=is_good)


def month_totals(transactions: Iterable[Transaction], year: int, month: int) -> Dict[str, float]:
    totals = {"income": 0.0, "expense": 0.0}
    for t in transactions:
        if t.date is None or t.kind not in totals:
            continue
        if t.date.year == year and t.date.month == month:
            totals[t.kind] += t.amount
    return totals


def forecast(expense_so_far: float, income: float, today: date) -> Forecast:
    days_in_month = calendar.monthrange(today.year, today.month)[1]
    daily_average = expense_so_far / max(1, today.day)
    projected = daily_average * days_in_month
    return Forecast(
        projected=projected,
        daily_average=daily_average,
        days_remaining=days_in_month - today.day,
        is_over_income=projected > income and income > 0,
        progress=(expense_so_far / projected * 100) if projected > 0 else 0.0,
    )


def _interval(frequency: str, steps: int) -> relativedelta:
    if frequency == "daily":
        return relativedelta(days=steps)
    if frequency == "weekly":
        return relativedelta(weeks=steps)
    if frequency == "monthly":
        return relativedelta(months=steps)
    if frequency == "yearly":
        return relativedelta(years=steps)
    raise ValueError(f"Invalid frequency '{frequency}', use: daily/weekly/monthly/yearly")


def _estimate_steps(frequency: str, anchor: date, today: date) -> int:
    if frequency == "daily":
        return (today - anchor).days
    if frequency == "weekly":
        return (today - anchor).days // 7
    months = (today.year - anchor.year) * 12 + (today.month - anchor.month)
    if frequency == "monthly":
        return months - 1
    return months // 12 - 1


def next_due_date(obligation: RecurringObligation, today: date) -> Optional[date]:
    """First occurrence on or after ``today``.

    Occurrences are ``anchor + n * interval`` computed from the anchor each
    time, so a month-end start clamps per month instead of drifting.
    """
    if obligation.last_processed is not None:
        anchor, steps = obligation.last_processed, 1
    elif obligation.start_date is not None:
        anchor, steps = obligation.start_date, 0
    else:
        return None

    steps = max(steps, _estimate_steps(obligation.frequency, anchor, today))
    due = anchor + _interval(obligation.frequency, steps)
    while due < today:
        steps += 1
        due = anchor + _interval(obligation.frequency, steps)
    return due


def upcoming_obligations(
        obligations: Iterable[RecurringObligation],
        now: Union[date, datetime],
        window_days: int = LOOKAHEAD_DAYS,
) -> List[UpcomingObligation]:
    today = _as_date(now)
    upcoming = []
    for obligation in obligations:
        try:
            due = next_due_date(obligation, today)
        except (ValueError, OverflowError) as e:
            _logger.warning("Skipping recurring obligation %s: %s", obligation.id, e)
            continue
        if due is None:
            _logger.warning("Skipping recurring obligation %s: no parseable start date", obligation.id)
            continue
        days = (due - today).days
        if 0 <= days <= window_days:
            upcoming.append(UpcomingObligation(obligation=obligation, next_due=due, days_until_due=days))

    upcoming.sort(key=lambda u: u.days_until_due)
    return upcoming


def main_balance(transactions: Iterable[Transaction]) -> float:
    return sum(t.signed_amount for t in transactions if t.date is not None)


def spent_percent(expenses: float, income: float) -> int:
    if income > 0:
        return round_half_up(expenses * 100 / income)
    return 100 if expenses > 0 else 0


def month_label(today: date) -> str:
    return f"{today.day} {calendar.month_abbr[today.month].upper()} {today.year % 100:02d}"


def recent_transactions(transactions: Iterable[Transaction], limit: int = RECENT_LIMIT) -> List[Transaction]:
    dated = [t for t in transactions if t.date is not None]
    return sorted(dated, key=lambda t: t.date, reverse=True)[:limit]


def category_breakdown(transactions: Iterable[Transaction], now: Union[date, datetime]) -> List[CategoryShare]:
    """This month's expenses per category, largest first."""
    today = _as_date(now)
    totals: Dict[str, float] = {}
    for t in transactions:
        if t.kind != "expense" or t.date is None:
            continue
        if t.date.year == today.year and t.date.month == today.month:
            name = t.category or "Uncategorized"
            totals[name] = totals.get(name, 0.0) + t.amount

    grand_total = sum(totals.values())
    shares = [
        CategoryShare(
            name=name,
            amount=amount,
            percent=round_half_up(amount * 100 / grand_total) if grand_total > 0 else 0,
        ) for name, amount in totals.items()
    ]
    shares.sort(key=lambda s: s.amount, reverse=True)
    return shares


def compute_dashboard_metrics(
        transactions: Iterable[Transaction],
        obligations: Iterable[RecurringObligation],
        now: Union[date, datetime],
) -> DashboardMetrics:
    today = _as_date(now)
    transactions = list(transactions)
    skipped = [t.id for t in transactions if t.date is None]
    if skipped:
        _logger.warning("Ignoring %d transaction(s) with unparseable dates: %s",
                        len(skipped), ", ".join(map(str, skipped)))

    current = month_totals(transactions, today.year, today.month)
    prev_month = today.replace(day=1) - timedelta(days=1)
    previous = month_totals(transactions, prev_month.year, prev_month.month)

    income, expenses = current["income"], current["expense"]
    net = income - expenses
    prev_net = previous["income"] - previous["expense"]

    return DashboardMetrics(
        income=income,
        expenses=expenses,
        net=net,
        comparison={
            "income": comparison(income, previous["income"], False),
            "expenses": comparison(expenses, previous["expense"], True),
            "net": comparison(net, prev_net, False),
        },
        forecast=forecast(expenses, income, today),
        upcoming_obligations=upcoming_obligations(obligations, today),
        main_balance=main_balance(transactions),
        spent_percent=spent_percent(expenses, income),
        month_label=month_label(today),
        recent_transactions=recent_transactions(transactions),
        skipped=skipped,
    )
