"""
Observable State Primitives.

``StateValue`` is the read-only current-value-plus-subscription surface a
controller exposes per state field.  ``EventQueue`` carries one-shot
signals (e.g. "login succeeded") that stay pending until the consumer
explicitly takes them, so re-subscribing never replays a consumed event.

Both are single-writer and meant to be mutated from the event loop that
owns the controller.
"""

from __future__ import annotations

from collections import deque
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class StateValue(Generic[T]):
    """Read-only view of a value that notifies subscribers on change."""

    def __init__(self, initial: T) -> None:
        self._value: T = initial
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, callback: Callable[[T], None], *, replay: bool = True) -> Unsubscribe:
        """Register *callback*; with *replay* it immediately receives the current value.

        Returns
        -------
        Callable
            Call it to stop receiving updates.
        """
        self._subscribers.append(callback)
        if replay:
            callback(self._value)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self._value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"


class MutableStateValue(StateValue[T]):
    """Writable ``StateValue``; only the owning controller holds this type."""

    def set(self, value: T) -> None:
        """Store *value*; subscribers are notified only when it changed."""
        if value == self._value:
            return
        self._value = value
        self._notify()


class EventQueue(Generic[T]):
    """Queue of one-shot events drained by the consumer.

    Subscribers hear about new events as they are emitted but the event
    stays pending until ``consume``/``drain`` is called.
    """

    def __init__(self) -> None:
        self._pending: deque[T] = deque()
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def pending(self) -> bool:
        return bool(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def emit(self, event: T) -> None:
        self._pending.append(event)
        for callback in list(self._subscribers):
            callback(event)

    def peek(self) -> Optional[T]:
        return self._pending[0] if self._pending else None

    def consume(self) -> Optional[T]:
        """Take the oldest pending event, or ``None``."""
        return self._pending.popleft() if self._pending else None

    def drain(self) -> list[T]:
        events = list(self._pending)
        self._pending.clear()
        return events

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe
