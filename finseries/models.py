from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, List, Literal, Any

from dateutil import parser as date_parser
from dateutil import tz


TransactionKind = Literal["income", "expense", "transfer"]
Frequency = Literal["daily", "weekly", "monthly", "yearly"]
Granularity = Literal["day", "week", "month", "year"]

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
GRANULARITIES = ("day", "week", "month", "year")


def to_local_date(value: Any) -> Optional[date]:
    """Interpret a raw date value as a local calendar date.

    Plain ``YYYY-MM-DD`` strings are calendar dates and are never shifted.
    Timestamps carrying an offset are converted to the local zone first.
    Returns None when the value can't be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz.tzlocal())
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        parsed = date_parser.isoparse(text)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz.tzlocal())
    return parsed.date()


def _to_amount(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    amount = float(value)
    if not math.isfinite(amount):
        raise ValueError(f"Amount must be a finite number, got {value!r}")
    return amount


@dataclass(frozen=True)
class Transaction:
    id: str
    kind: TransactionKind
    amount: float
    date: Optional[date]
    category: Optional[str] = None
    is_recurring: bool = False
    desc: str = ""

    def __post_init__(self):
        object.__setattr__(self, "amount", _to_amount(self.amount))
        object.__setattr__(self, "date", to_local_date(self.date))

    @property
    def signed_amount(self) -> float:
        if self.kind == "income":
            return self.amount
        if self.kind == "expense":
            return -self.amount
        return 0.0


@dataclass(frozen=True)
class Debt:
    id: str
    name: str
    amount: float
    initial_amount: Optional[float] = None
    interest_rate: Optional[float] = None
    minimum_payment: Optional[float] = None
    due_date: Optional[date] = None
    priority: Optional[int] = None
    date: Optional[date] = None
    notes: str = ""
    category: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "amount", _to_amount(self.amount))
        if self.initial_amount is not None:
            object.__setattr__(self, "initial_amount", _to_amount(self.initial_amount))
        if self.minimum_payment is not None:
            object.__setattr__(self, "minimum_payment", _to_amount(self.minimum_payment))
        object.__setattr__(self, "due_date", to_local_date(self.due_date))
        object.__setattr__(self, "date", to_local_date(self.date))


@dataclass(frozen=True)
class RecurringObligation:
    id: str
    desc: str
    amount: float
    kind: TransactionKind
    frequency: Frequency
    start_date: Optional[date]
    category: Optional[str] = None
    last_processed: Optional[date] = None

    def __post_init__(self):
        object.__setattr__(self, "amount", _to_amount(self.amount))
        object.__setattr__(self, "start_date", to_local_date(self.start_date))
        object.__setattr__(self, "last_processed", to_local_date(self.last_processed))


@dataclass
class Bucket:
    label: str
    income: float = 0.0
    expense: float = 0.0
    balance: float = 0.0
    date: Optional[date] = None
    month: Optional[int] = None
    year: Optional[int] = None

    @property
    def net(self) -> float:
        return self.income - self.expense


@dataclass
class Period:
    granularity: Granularity
    reference: date
    start: date
    end: date
    buckets: List[Bucket] = field(default_factory=list)

    @property
    def start_at(self) -> datetime:
        return datetime(self.start.year, self.start.month, self.start.day)

    @property
    def end_at(self) -> datetime:
        return datetime(self.end.year, self.end.month, self.end.day, 23, 59, 59, 999000)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end
