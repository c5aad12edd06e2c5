"""
Observable value cells.

Rules:
- A cell holds exactly one current value.
- Subscribers are called synchronously, in subscription order, each time
  a different object is assigned (identity, not equality: a freshly
  decoded message equal to the previous one still notifies).
- A subscriber that raises is logged and skipped; it never breaks the
  caller that assigned the value.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Generic, TypeVar

from observability.logger import log_event


T = TypeVar("T")

Unsubscribe = Callable[[], None]


class ObservableValue(Generic[T]):
    """Single current value plus change subscribers."""

    def __init__(self, initial: T, *, name: str = "") -> None:
        self._value = initial
        self._name = name
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        if value is self._value:
            return
        self._value = value
        self._notify(value)

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """
        Register a change callback.

        Returns a zero-argument function that removes it (idempotent).
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, value: T) -> None:
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": int(time.time() * 1000),
                    "event_type": "OBSERVER_ERROR",
                    "observable": self._name,
                    "error": str(exc),
                    "type": type(exc).__name__,
                })


class LatestValueCell(ObservableValue[Any]):
    """
    Single-slot latest-value cell.

    Not a queue: a newer value overwrites an older one that was never read.
    """

    def __init__(self, *, name: str = "") -> None:
        super().__init__(None, name=name)
        self._unread = False

    @property
    def unread(self) -> bool:
        return self._unread

    def set(self, value: Any) -> None:
        if value is self._value:
            return
        self._unread = value is not None
        super().set(value)

    def peek(self) -> Any:
        """Current value; does not mark it read."""
        return self._value

    def take(self) -> Any:
        """
        Return the latest unread value and mark it read.

        Returns None if nothing new arrived since the last take().
        """
        if not self._unread:
            return None
        self._unread = False
        return self._value
