"""
State Store - Key-Value Storage with Fine-Grained Subscriptions

Field values live outside the parsed content, in a store owned by the
hosting session. Values are keyed by StorageKey. Writers notify only the
subscribers of the exact key that changed, synchronously, in
subscription order.

Usage:
    store = InMemoryStateStore()
    unsubscribe = store.subscribe(key, lambda k, v: print(k, v))
    store.set(key, "hello")
    store.get(key)  # "hello"
    unsubscribe()
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

import structlog

from blockgraph.state.keys import StorageKey

logger = structlog.get_logger(__name__)

Subscriber = Callable[[StorageKey, Any], None]
Unsubscribe = Callable[[], None]


class StateStore(Protocol):
    """What the state accessors need from a store."""

    def get(self, key: StorageKey, default: Any = None) -> Any: ...

    def set(self, key: StorageKey, value: Any) -> None: ...

    def has(self, key: StorageKey) -> bool: ...

    def subscribe(self, key: StorageKey, callback: Subscriber) -> Unsubscribe: ...


class InMemoryStateStore:
    """
    In-memory state store for sessions and tests.

    Single-threaded by contract: mutation happens inside one event
    handler at a time.
    """

    def __init__(self):
        self._values: dict[StorageKey, Any] = {}
        self._subscribers: dict[StorageKey, list[Subscriber]] = {}

    def get(self, key: StorageKey, default: Any = None) -> Any:
        return self._values.get(key, default)

    def has(self, key: StorageKey) -> bool:
        return key in self._values

    def set(self, key: StorageKey, value: Any) -> None:
        """Store a value and notify subscribers of this key only."""
        self._values[key] = value

        # Copy so callbacks may unsubscribe while being notified
        for callback in list(self._subscribers.get(key, ())):
            callback(key, value)

    def subscribe(self, key: StorageKey, callback: Subscriber) -> Unsubscribe:
        """
        Register a callback for writes to `key`.

        Returns:
            A function that removes the subscription. Calling it twice is
            harmless.
        """
        self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[key]

        return unsubscribe

    def subscriber_count(self, key: StorageKey) -> int:
        return len(self._subscribers.get(key, ()))

    def keys(self) -> list[StorageKey]:
        return sorted(self._values)

    def snapshot(self) -> dict[str, Any]:
        """Flat {str(key): value} view, for debugging panels and logs."""
        return {str(key): self._values[key] for key in sorted(self._values)}

    def count(self) -> int:
        return len(self._values)

    def clear(self) -> int:
        """Drop all values. Subscriptions are kept."""
        count = len(self._values)
        self._values.clear()
        logger.warning("state_store_cleared", count=count)
        return count
