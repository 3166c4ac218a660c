"""
Push-based streams: subscriptions, a callback-to-async-iterator bridge and an
observable state holder used by the stores and view-models.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import threading
from contextlib import aclosing
from typing import Any, AsyncIterator, Callable, Generic, List, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription(Protocol):
    """Handle returned by every listener registration."""

    def unsubscribe(self) -> None:
        ...


class CallbackSubscription:
    """Subscription that runs `remove` once, on the first unsubscribe."""

    def __init__(self, remove: Callable[[], None]):
        self._remove = remove
        self._lock = threading.Lock()
        self.active = True

    def unsubscribe(self) -> None:
        with self._lock:
            if not self.active:
                return
            self.active = False
        self._remove()


class CallbackRegistry(Generic[T]):
    """Thread-safe list of callbacks."""

    def __init__(self):
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[T], None]] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def add(self, callback: Callable[[T], None]) -> CallbackSubscription:
        with self._lock:
            self._callbacks.append(callback)
        return CallbackSubscription(lambda: self._discard(callback))

    def _discard(self, callback: Callable[[T], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    def emit(self, value: T) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(value)
            except Exception:
                logger.exception("Listener callback failed")


async def callback_stream(
    register: Callable[[Callable[[Any], None]], Subscription],
) -> AsyncIterator[Any]:
    """
    Adapts a callback registration into an async iterator.

    Registration happens on the first iteration. Callbacks may fire on any
    thread; values are handed to the consuming event loop in order. The
    registration is removed when the consumer stops iterating, closes the
    iterator or is cancelled.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def _push(value: Any) -> None:
        try:
            loop.call_soon_threadsafe(queue.put_nowait, value)
        except RuntimeError:
            # Event loop already closed; the consumer is gone.
            logger.debug("Dropping stream value after loop shutdown")

    subscription = register(_push)
    try:
        while True:
            yield await queue.get()
    finally:
        subscription.unsubscribe()


class MutableState(Generic[T]):
    """
    Holds the latest value of some state and notifies subscribers on change.

    Setting a value equal to the current one is a no-op, so subscribers only
    see distinct states.
    """

    def __init__(self, initial: T):
        self._value = initial
        self._lock = threading.Lock()
        self._listeners: CallbackRegistry[T] = CallbackRegistry()

    @property
    def value(self) -> T:
        with self._lock:
            return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        with self._lock:
            if new_value == self._value:
                return
            self._value = new_value
        self._listeners.emit(new_value)

    def update(self, **changes: Any) -> T:
        """Replaces fields of a dataclass state and returns the new state."""
        with self._lock:
            new_value = dataclasses.replace(self._value, **changes)
            if new_value == self._value:
                return self._value
            self._value = new_value
        self._listeners.emit(new_value)
        return new_value

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        """Registers `callback` and calls it right away with the current value."""
        subscription = self._listeners.add(callback)
        callback(self.value)
        return subscription

    def updates(self) -> AsyncIterator[T]:
        return callback_stream(self.subscribe)


async def first(stream: AsyncIterator[T]) -> T:
    """Takes the current value of a stream and closes it."""
    async with aclosing(stream) as values:
        async for value in values:
            return value
    raise LookupError("Stream ended without a value")
