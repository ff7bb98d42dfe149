"""
Request Tracker - Discard Stale Asynchronous Writes

A plain write() is last-write-wins. When two overlapping asynchronous
operations (e.g. two generation requests for the same target) complete
out of order, the older one would overwrite the newer result.

RequestTracker hands out a monotonic ticket per storage key when an
operation starts. On completion, commit() writes only if the ticket is
still the newest one for that key.

Usage:
    tracker = RequestTracker()
    ticket = tracker.begin(ctx, fields.value, id="summary")
    ...  # later, in the completion callback
    tracker.commit(ctx, fields.value, result, ticket)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from blockgraph.state.access import RuntimeContext, key_for, write
from blockgraph.state.fields import FieldInfo
from blockgraph.state.keys import StorageKey

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RequestTicket:
    """Identifies one in-flight writer of one key."""

    key: StorageKey
    serial: int
    target: str | None


class RequestTracker:
    """Per-key request counters. One tracker per session."""

    def __init__(self):
        self._latest: dict[StorageKey, int] = {}

    def begin(
        self,
        context: RuntimeContext,
        field: FieldInfo,
        id: str | None = None,
    ) -> RequestTicket:
        """Start a request; any earlier ticket for the same key becomes stale."""
        key = key_for(context, field, id)
        serial = self._latest.get(key, 0) + 1
        self._latest[key] = serial

        logger.debug("request_started", key=str(key), serial=serial)
        return RequestTicket(key=key, serial=serial, target=id)

    def is_current(self, ticket: RequestTicket) -> bool:
        return self._latest.get(ticket.key) == ticket.serial

    def commit(
        self,
        context: RuntimeContext,
        field: FieldInfo,
        value: Any,
        ticket: RequestTicket,
    ) -> bool:
        """
        Write `value` if `ticket` is still the newest request for its key.

        Returns:
            True if written, False if discarded as stale.
        """
        key = key_for(context, field, ticket.target)
        if key != ticket.key:
            raise ValueError(f"Ticket for {ticket.key} used to write {key}")

        if not self.is_current(ticket):
            logger.info(
                "stale_write_discarded",
                key=str(key),
                serial=ticket.serial,
                latest=self._latest.get(key),
            )
            return False

        write(context, field, value, id=ticket.target)
        return True
