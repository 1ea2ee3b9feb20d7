from __future__ import annotations
import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Iterator, List, Optional

from dateutil.relativedelta import relativedelta

from finseries.logging_setup import get_logger
from finseries.models import Bucket, Granularity, Period, Transaction, GRANULARITIES

DAY_BUCKET_INDEX = 12
WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_logger = get_logger("finseries.logic")


@dataclass
class Series:
    """Bucketed income/expense/balance for one calendar period.

    Iterating a Series yields its buckets in order.
    """
    period: Period
    baseline: float = 0.0
    skipped: List[str] = field(default_factory=list)

    @property
    def buckets(self) -> List[Bucket]:
        return self.period.buckets

    @property
    def total_income(self) -> float:
        return sum(b.income for b in self.buckets)

    @property
    def total_expense(self) -> float:
        return sum(b.expense for b in self.buckets)

    @property
    def closing_balance(self) -> float:
        return self.buckets[-1].balance if self.buckets else self.baseline

    def __iter__(self) -> Iterator[Bucket]:
        return iter(self.buckets)

    def __len__(self) -> int:
        return len(self.buckets)

    def __getitem__(self, index):
        return self.buckets[index]


def _check_granularity(granularity: str) -> None:
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity '{granularity}', use: {'/'.join(GRANULARITIES)}")


def period_bounds(granularity: Granularity, reference: date) -> tuple[date, date]:
    _check_granularity(granularity)
    if granularity == "day":
        return reference, reference
    if granularity == "week":
        # date.weekday() is Mon=0, weeks here start on Sunday
        start = reference - timedelta(days=(reference.weekday() + 1) % 7)
        return start, start + timedelta(days=6)
    if granularity == "month":
        last_day = calendar.monthrange(reference.year, reference.month)[1]
        return reference.replace(day=1), reference.replace(day=last_day)
    return date(reference.year, 1, 1), date(reference.year, 12, 31)


def build_period(granularity: Granularity, reference: date) -> Period:
    start, end = period_bounds(granularity, reference)
    buckets: List[Bucket] = []

    if granularity == "day":
        buckets = [Bucket(label=f"{hour}:00") for hour in range(24)]
    elif granularity in ("week", "month"):
        c_date = start
        while c_date <= end:
            label = WEEKDAY_LABELS[(c_date.weekday() + 1) % 7] if granularity == "week" else str(c_date.day)
            buckets.append(Bucket(label=label, date=c_date))
            c_date += timedelta(days=1)
    else:
        buckets = [
            Bucket(label=MONTH_LABELS[m - 1], month=m, year=reference.year)
            for m in range(1, 13)
        ]

    return Period(granularity=granularity, reference=reference, start=start, end=end, buckets=buckets)


def previous_reference(granularity: Granularity, reference: date) -> date:
    _check_granularity(granularity)
    if granularity == "day":
        return reference - timedelta(days=1)
    if granularity == "week":
        return reference - timedelta(days=7)
    if granularity == "month":
        return reference - relativedelta(months=1)
    return reference - relativedelta(years=1)


def _bucket_index(period: Period, t_date: date) -> Optional[int]:
    if not period.contains(t_date):
        return None
    if period.granularity == "day":
        return DAY_BUCKET_INDEX
    if period.granularity == "year":
        return t_date.month - 1
    return (t_date - period.start).days


def baseline_balance(transactions: Iterable[Transaction], before: date) -> float:
    balance = 0.0
    for t in transactions:
        if t.date is not None and t.date < before:
            balance += t.signed_amount
    return balance


def update_running_balance(buckets: List[Bucket], baseline: float) -> None:
    balance = baseline
    for bucket in buckets:
        balance += bucket.income - bucket.expense
        bucket.balance = balance


def compute_series(
        transactions: Iterable[Transaction],
        granularity: Granularity,
        reference: date,
) -> Series:
    period = build_period(granularity, reference)
    series = Series(period=period)
    dated = []

    for t in transactions:
        if t.date is None:
            series.skipped.append(t.id)
            continue
        dated.append(t)

    if series.skipped:
        _logger.warning(
            "Excluded %d transaction(s) with unparseable dates from %s series: %s",
            len(series.skipped), granularity, ", ".join(map(str, series.skipped))
        )

    series.baseline = baseline_balance(dated, period.start)

    for t in dated:
        index = _bucket_index(period, t.date)
        if index is None:
            continue
        if t.kind == "income":
            period.buckets[index].income += t.amount
        elif t.kind == "expense":
            period.buckets[index].expense += t.amount

    update_running_balance(period.buckets, series.baseline)
    _logger.debug(
        "Computed %s series %s..%s: baseline=%.2f income=%.2f expense=%.2f",
        granularity, period.start, period.end, series.baseline, series.total_income, series.total_expense
    )
    return series


def compute_comparison_series(
        transactions: Iterable[Transaction],
        granularity: Granularity,
        reference: date,
) -> tuple[Series, Series]:
    """Current and previous period series, computed independently."""
    transactions = list(transactions)
    current = compute_series(transactions, granularity, reference)
    previous = compute_series(transactions, granularity, previous_reference(granularity, reference))
    return current, previous
