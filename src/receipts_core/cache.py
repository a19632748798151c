"""Versioned memoization for calculations and mart results.

Caching is only an optimization: a stale result is a bug. Every cache here
is tied to a :class:`DataVersion`. Bumping the version (new upload, filter
change) clears every attached cache before ``bump`` returns, so the next
aggregation pass can never see an old entry.

Examples:
    >>> version = DataVersion()
    >>> cache = VersionedCache(version)
    >>> cache.get_or_compute("double", (2,), lambda: 4)
    4
    >>> version.bump("new upload")
    1
    >>> len(cache)
    0

"""

from __future__ import annotations

import copy
import json
import logging
from collections import OrderedDict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import asdict, is_dataclass
from datetime import date
from typing import Any

import numpy as np
import pandas as pd

from receipts_core import calculations

logger = logging.getLogger(__name__)


class DataVersion:
    """Monotonic counter of the data a session aggregates."""

    def __init__(self) -> None:
        self._value = 0
        self._listeners: list[Callable[[int], None]] = []

    @property
    def value(self) -> int:
        return self._value

    def on_change(self, listener: Callable[[int], None]) -> None:
        """Register a callback run synchronously on every bump."""
        self._listeners.append(listener)

    def bump(self, reason: str = "") -> int:
        self._value += 1
        logger.debug("Data version -> %d (%s)", self._value, reason or "unspecified")
        for listener in list(self._listeners):
            listener(self._value)
        return self._value


def _default(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (np.ndarray, pd.Series, pd.Index)):
        return value.tolist()
    if hasattr(value, "get_config"):
        return value.get_config()
    raise TypeError(f"Cannot build a cache key from {type(value).__name__}")


def make_key(args: Any) -> str:
    """Serialize call arguments into a cache key.

    Raises:
        TypeError: If an argument has no stable JSON form.
    """
    return json.dumps(args, sort_keys=True, default=_default)


def materialize(value: Any) -> Any:
    """Turn arrays and one-shot iterables into lists.

    A generator can only be read once and its ``repr`` says nothing about
    its contents, so it is drained here and the list is handed to both the
    key and the wrapped function.
    """
    if isinstance(value, (np.ndarray, pd.Series, pd.Index)):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (list, tuple)):
        return [materialize(v) for v in value]
    if isinstance(value, (str, bytes, Mapping, set, frozenset)):
        return value
    if isinstance(value, Iterable):
        return [materialize(v) for v in value]
    return value


class VersionedCache:
    """Result cache keyed by ``(name, serialized args)``.

    Args:
        version: Clearing happens whenever this version is bumped.
        max_entries: Least recently used entries are evicted beyond this
            size. None means unbounded.
    """

    def __init__(self, version: DataVersion | None = None, max_entries: int | None = None) -> None:
        self.version = version or DataVersion()
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple[str, str], Any] = OrderedDict()
        self._stamp = self.version.value
        self.hits = 0
        self.misses = 0
        self.version.on_change(lambda _: self.clear())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: tuple[str, Any]) -> bool:
        name, args = key
        try:
            return (name, make_key(args)) in self._entries
        except TypeError:
            return False

    def clear(self) -> None:
        if self._entries:
            logger.debug("Clearing %d cached result(s)", len(self._entries))
        self._entries.clear()
        self._stamp = self.version.value

    def get_or_compute(self, name: str, args: Any, compute: Callable[[], Any]) -> Any:
        """Return the cached result for ``(name, args)`` or compute it.

        Results are deep-copied on the way in and out so callers cannot
        mutate a cached value. Arguments without a stable key are computed
        every time and never stored.
        """
        if self._stamp != self.version.value:
            self.clear()

        try:
            key = (name, make_key(args))
        except TypeError as exc:
            logger.debug("Not caching %s: %s", name, exc)
            self.misses += 1
            return compute()

        if key in self._entries:
            self.hits += 1
            self._entries.move_to_end(key)
            return copy.deepcopy(self._entries[key])

        self.misses += 1
        result = compute()
        self._entries[key] = copy.deepcopy(result)
        if self.max_entries is not None and len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return result

    def get_stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "version": self.version.value,
        }


class _MemoizedFunction:
    def __init__(self, func: Callable[..., Any], cache: VersionedCache) -> None:
        self.func = func
        self.cache = cache
        self.__name__ = func.__name__
        self.__doc__ = func.__doc__

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        args = tuple(materialize(a) for a in args)
        kwargs = {k: materialize(v) for k, v in kwargs.items()}
        return self.cache.get_or_compute(
            self.__name__, [list(args), kwargs], lambda: self.func(*args, **kwargs)
        )

    def clear(self) -> None:
        self.cache.clear()

    def size(self) -> int:
        return len(self.cache)


class MemoizedCalculations:
    """Cached versions of the pure calculation functions.

    Every wrapped function gets its own cache attached to ``version``. The
    statistics helpers, called with many distinct datasets, use a bounded
    LRU cache.

    Examples:
        >>> calcs = MemoizedCalculations()
        >>> calcs.calculate_rewards(25000)
        500.0
        >>> calcs.get_cache_stats()["calculate_rewards"]
        1
    """

    UNBOUNDED: tuple[str, ...] = (
        "calculate_rewards",
        "calculate_refund_rate",
        "calculate_average_purchase",
        "calculate_gas_metrics",
        "calculate_discount_effectiveness",
    )
    BOUNDED: tuple[str, ...] = ("calculate_standard_deviation", "calculate_percentile")
    LRU_SIZE = 100

    def __init__(self, version: DataVersion | None = None) -> None:
        self.version = version or DataVersion()
        self._functions: dict[str, _MemoizedFunction] = {}
        for name in self.UNBOUNDED + self.BOUNDED:
            max_entries = self.LRU_SIZE if name in self.BOUNDED else None
            memoized = _MemoizedFunction(
                getattr(calculations, name), VersionedCache(self.version, max_entries)
            )
            self._functions[name] = memoized
            setattr(self, name, memoized)
        logger.debug("MemoizedCalculations initialized with %d cached function(s)", len(self._functions))

    def clear_caches(self) -> None:
        """Drop every cached result without moving the data version."""
        for memoized in self._functions.values():
            memoized.clear()
        logger.debug("All calculation caches cleared")

    def get_cache_stats(self) -> dict[str, int]:
        return {name: memoized.size() for name, memoized in self._functions.items()}
