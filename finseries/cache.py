"""Caller-controlled memoization for engine results.

Nothing in the engine caches implicitly. A host that recomputes often over a
large history can wrap calls in a ``ResultCache``; entries are keyed by a
SHA-256 fingerprint over the canonical JSON form of the inputs, so a changed
record produces a new key.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from collections import OrderedDict
from collections.abc import Callable
from datetime import date
from typing import Any

from .logging_setup import get_logger

_logger = get_logger("finseries.cache")


def _canonical(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            "__type__": type(value).__name__,
            **{f.name: _canonical(getattr(value, f.name)) for f in dataclasses.fields(value)},
        }
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _canonical(v) for k, v in value.items()}
    return value


def compute_fingerprint(*args: Any, **kwargs: Any) -> str:
    payload = {"args": _canonical(list(args)), "kwargs": _canonical(kwargs)}
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


class ResultCache:
    """Bounded LRU cache of engine results keyed by input fingerprint."""

    def __init__(self, maxsize: int = 128):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self._entries: OrderedDict[str, Any] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        key = compute_fingerprint(fn.__module__, fn.__qualname__, *args, **kwargs)
        if key in self._entries:
            self.hits += 1
            self._entries.move_to_end(key)
            return self._entries[key]

        self.misses += 1
        result = fn(*args, **kwargs)
        self._entries[key] = result
        if len(self._entries) > self.maxsize:
            evicted, _ = self._entries.popitem(last=False)
            _logger.debug("Evicted cache entry %s", evicted[:12])
        return result
