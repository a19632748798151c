"""Observable key/value store for session state.

Consumers subscribe to a key and are called with ``(new_value, old_value,
key)`` whenever it changes. Subscribing to a key that already holds a value
calls the observer once, immediately, with ``(current_value, None, key)``,
so late subscribers never miss the current state. Pass ``immediate=False``
to opt out.

Observer exceptions are logged and never stop the remaining observers.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable, Mapping
from typing import Any

from receipts_core.exceptions import DataValidationError

logger = logging.getLogger(__name__)

Observer = Callable[[Any, Any, str], None]
GlobalObserver = Callable[[str, Any], None]

_MISSING = object()


def _check_key(key: Any) -> str:
    if not key or not isinstance(key, str):
        raise DataValidationError("State key must be a non-empty string", {"key": key})
    return key


class StateStore:
    """Key/value state with per-key and global observers.

    Args:
        initial: Initial state. Copied.
        max_history: Number of changes kept by :meth:`get_history`.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None, max_history: int = 50) -> None:
        self._state: dict[str, Any] = dict(initial or {})
        self._observers: dict[str, list[Observer]] = {}
        self._global_observers: list[GlobalObserver] = []
        self._history: deque[dict[str, Any]] = deque(maxlen=max_history)
        self._paused = False
        logger.debug("StateStore initialized with keys: %s", sorted(self._state))

    def get(self, key: str, default: Any = None) -> Any:
        return self._state.get(_check_key(key), default)

    def has(self, key: str) -> bool:
        return _check_key(key) in self._state

    def keys(self) -> list[str]:
        return list(self._state)

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy of the whole state."""
        return dict(self._state)

    def set(self, key: str, value: Any) -> StateStore:
        """Store a value and notify observers.

        Setting the very same object again is a no-op.
        """
        key = _check_key(key)
        old = self._state.get(key, _MISSING)
        if old is value:
            logger.debug("State unchanged for key: %s", key)
            return self

        old_value = None if old is _MISSING else old
        self._state = {**self._state, key: value}
        if not self._paused:
            self._history.append(
                {"key": key, "value": value, "old_value": old_value, "timestamp": time.time()}
            )
            self._notify(key, value, old_value)
        logger.debug("State updated: %s", key)
        return self

    def update(self, key_or_updates: str | Mapping[str, Any], value: Any = None) -> StateStore:
        """Merge into one key, or set several keys at once.

        ``update("filters", {"year": "2024"})`` merges the mapping into the
        current mapping at ``filters``; a callable value receives the current
        value and returns the new one. ``update({"a": 1, "b": 2})`` sets each
        key in turn.
        """
        if isinstance(key_or_updates, Mapping):
            for key, new_value in key_or_updates.items():
                self.set(key, new_value)
            return self

        key = _check_key(key_or_updates)
        current = self._state.get(key)
        if callable(value):
            return self.set(key, value(current))
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            return self.set(key, {**current, **value})
        return self.set(key, value)

    def delete(self, key: str) -> bool:
        key = _check_key(key)
        if key not in self._state:
            return False
        old_value = self._state[key]
        self._state = {k: v for k, v in self._state.items() if k != key}
        if not self._paused:
            self._notify(key, None, old_value)
        return True

    def subscribe(self, key: str, observer: Observer, immediate: bool = True) -> Callable[[], bool]:
        """Observe one key.

        Args:
            key: State key.
            observer: Called with ``(new_value, old_value, key)``.
            immediate: When the key already has a value, call the observer
                right away with ``(current_value, None, key)``.

        Returns:
            A function that unsubscribes the observer.
        """
        key = _check_key(key)
        if not callable(observer):
            raise DataValidationError("Observer must be callable", {"key": key})

        self._observers.setdefault(key, []).append(observer)
        logger.debug("Observer subscribed to key: %s (%d)", key, len(self._observers[key]))

        if immediate and key in self._state:
            self._call(observer, key, self._state[key], None)

        return lambda: self.unsubscribe(key, observer)

    def unsubscribe(self, key: str, observer: Observer) -> bool:
        observers = self._observers.get(key)
        if not observers or observer not in observers:
            return False
        observers.remove(observer)
        if not observers:
            del self._observers[key]
        return True

    def subscribe_all(self, observer: GlobalObserver) -> Callable[[], bool]:
        """Observe every key. The observer receives ``(key, new_value)``."""
        if not callable(observer):
            raise DataValidationError("Observer must be callable")
        self._global_observers.append(observer)
        return lambda: self.unsubscribe_all(observer)

    def unsubscribe_all(self, observer: GlobalObserver) -> bool:
        if observer not in self._global_observers:
            return False
        self._global_observers.remove(observer)
        return True

    def _call(self, observer: Observer, key: str, new_value: Any, old_value: Any) -> None:
        try:
            observer(new_value, old_value, key)
        except Exception:
            logger.exception("Error in observer for key: %s", key)

    def _notify(self, key: str, new_value: Any, old_value: Any) -> None:
        for observer in list(self._observers.get(key, [])):
            self._call(observer, key, new_value, old_value)
        for observer in list(self._global_observers):
            try:
                observer(key, new_value)
            except Exception:
                logger.exception("Error in global observer for key: %s", key)

    def pause(self) -> None:
        """Stop notifications and history until :meth:`resume`."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def get_history(self, key: str | None = None, limit: int = 10) -> list[dict[str, Any]]:
        """Most recent changes, oldest first, optionally for one key."""
        entries = [e for e in self._history if key is None or e["key"] == key]
        return [dict(e) for e in entries[-limit:]] if limit > 0 else []

    def clear_history(self) -> None:
        self._history.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            "state_keys": len(self._state),
            "observed_keys": len(self._observers),
            "key_observers": sum(len(o) for o in self._observers.values()),
            "global_observers": len(self._global_observers),
            "history_size": len(self._history),
            "paused": self._paused,
        }
