import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from finseries.logging_setup import get_logger
from finseries.models import Debt, RecurringObligation, Transaction, FREQUENCIES


SNAPSHOTS_DIR = Path(os.getenv("FINSERIES_SNAPSHOTS_DIR", "snapshots"))

_logger = get_logger("finseries.storage")


@dataclass
class Snapshot:
    transactions: List[Transaction] = field(default_factory=list)
    debts: List[Debt] = field(default_factory=list)
    obligations: List[RecurringObligation] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def list_snapshots(directory: Path = None) -> List[str]:
    directory = directory or SNAPSHOTS_DIR
    if not directory.exists():
        return []
    return sorted(f.stem for f in directory.glob("*.json"))


def transaction_from_dict(t_data: Dict[str, Any]) -> Transaction:
    kind = t_data.get("type") or t_data.get("kind")
    if kind not in ("income", "expense", "transfer"):
        raise ValueError(f"Type must be 'income', 'expense' or 'transfer', got {kind!r}")
    return Transaction(
        id=str(t_data["id"]),
        kind=kind,
        amount=t_data.get("amount"),
        date=t_data.get("date"),
        category=t_data.get("category") or None,
        is_recurring=bool(t_data.get("isRecurring", t_data.get("is_recurring", False))),
        desc=t_data.get("desc", ""),
    )


def debt_from_dict(d_data: Dict[str, Any]) -> Debt:
    return Debt(
        id=str(d_data["id"]),
        name=d_data.get("name", ""),
        amount=d_data.get("amount"),
        initial_amount=d_data.get("initialAmount", d_data.get("initial_amount")),
        interest_rate=d_data.get("interestRate", d_data.get("interest_rate")),
        minimum_payment=d_data.get("minimumPayment", d_data.get("minimum_payment")),
        due_date=d_data.get("dueDate", d_data.get("due_date")),
        priority=d_data.get("priority"),
        date=d_data.get("date"),
        notes=d_data.get("notes", ""),
        category=d_data.get("category"),
    )


def obligation_from_dict(r_data: Dict[str, Any]) -> RecurringObligation:
    frequency = r_data.get("frequency")
    if frequency not in FREQUENCIES:
        raise ValueError(f"Invalid interval {frequency!r}, use: daily/weekly/monthly/yearly")
    return RecurringObligation(
        id=str(r_data["id"]),
        desc=r_data.get("desc", ""),
        amount=r_data.get("amount"),
        kind=r_data.get("type") or r_data.get("kind") or "expense",
        frequency=frequency,
        start_date=r_data.get("startDate", r_data.get("start_date")),
        category=r_data.get("category"),
        last_processed=r_data.get("lastProcessed", r_data.get("last_processed")),
    )


def snapshot_from_dict(data: Dict[str, Any]) -> Snapshot:
    """Build engine records from a snapshot document.

    Malformed records are skipped with a warning; the rest still load.
    """
    snapshot = Snapshot()
    sections = (
        ("transactions", transaction_from_dict, snapshot.transactions),
        ("debts", debt_from_dict, snapshot.debts),
        ("recurringTransactions", obligation_from_dict, snapshot.obligations),
    )
    for key, build, target in sections:
        for raw in data.get(key, []):
            try:
                target.append(build(raw))
            except (KeyError, TypeError, ValueError) as e:
                record_id = raw.get("id") if isinstance(raw, dict) else None
                _logger.warning("Skipping invalid %s record %s: %s", key, record_id, e)
                snapshot.skipped.append(f"{key}:{record_id}")

    undated = [t.id for t in snapshot.transactions if t.date is None]
    if undated:
        _logger.warning("%d transaction(s) have unparseable dates and will be excluded: %s",
                        len(undated), ", ".join(undated))
    return snapshot


def load_snapshot(name: str = "default", directory: Path = None) -> Snapshot:
    directory = directory or SNAPSHOTS_DIR
    filepath = directory / f"{name}.json"
    if not filepath.exists():
        raise FileNotFoundError(f"Snapshot '{name}' not found in {directory}")

    snapshot = snapshot_from_dict(json.loads(filepath.read_text()))
    _logger.info(
        "Loaded %d transactions, %d debts, %d recurring obligations from '%s'",
        len(snapshot.transactions), len(snapshot.debts), len(snapshot.obligations), name
    )
    return snapshot
