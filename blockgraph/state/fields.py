"""
Field Registry - Declarative State Field Descriptors

Blocks declare the state they own by name:

    fields = register_fields(["value", {"name": "loading", "default": False}])
    fields.value      # FieldInfo(name="value", event="UPDATE_VALUE", ...)

Each name becomes a FieldInfo carrying its scope, default value and the
mutation event logged whenever it is written. Names and events are
globally unique within a registry: registering either a second time is
a FieldConflictError. Reuse an existing table with FieldTable.extend()
instead of registering again.

A process-wide registry backs the module-level `fields()` helper and is
what read/write validate against unless a context supplies its own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping

import structlog

from blockgraph.exceptions import FieldConflictError, UnregisteredFieldError
from blockgraph.state.scopes import Scope

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FieldInfo:
    """Descriptor for one named piece of block state."""

    name: str
    event: str
    scope: Scope = Scope.COMPONENT
    default: Any = None


def field_name_to_event(name: str) -> str:
    """
    Derive the default mutation event name for a field.

    Example:
        field_name_to_event("submitCount")   -> "UPDATE_SUBMIT_COUNT"
        field_name_to_event("show_answer")   -> "UPDATE_SHOW_ANSWER"
    """
    snake = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return "UPDATE_" + snake.upper()


class FieldTable(Mapping[str, FieldInfo]):
    """
    Read-only name -> FieldInfo mapping returned by registration.

    Fields are also reachable as attributes (`table.value`).
    """

    def __init__(self, infos: Iterable[FieldInfo] = ()):
        self._by_name: dict[str, FieldInfo] = {}
        for info in infos:
            self._by_name[info.name] = info

    def __getitem__(self, name: str) -> FieldInfo:
        return self._by_name[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)

    def __getattr__(self, name: str) -> FieldInfo:
        try:
            return self.__dict__["_by_name"][name]
        except KeyError:
            raise AttributeError(f"No field named {name!r} in this table") from None

    def __repr__(self) -> str:
        return f"FieldTable({list(self._by_name)})"

    @property
    def by_event(self) -> dict[str, FieldInfo]:
        return {info.event: info for info in self._by_name.values()}

    def extend(self, *others: "FieldTable") -> "FieldTable":
        """Merge already-registered tables. Later tables win on name clashes."""
        merged = dict(self._by_name)
        for other in others:
            merged.update(other._by_name)
        return FieldTable(merged.values())


class FieldRegistry:
    """
    Table of every registered field, keyed by name and by event.

    Created once at startup; registration is the only mutation.
    """

    def __init__(self):
        self._by_name: dict[str, FieldInfo] = {}
        self._by_event: dict[str, FieldInfo] = {}

    def _to_info(self, item: str | Mapping[str, Any] | FieldInfo) -> FieldInfo:
        if isinstance(item, FieldInfo):
            return item
        if isinstance(item, str):
            return FieldInfo(name=item, event=field_name_to_event(item))
        if isinstance(item, Mapping):
            name = item["name"]
            return FieldInfo(
                name=name,
                event=item.get("event") or field_name_to_event(name),
                scope=Scope(item.get("scope", Scope.COMPONENT)),
                default=item.get("default"),
            )
        raise TypeError(f"Cannot build a field from {item!r}")

    def register_fields(self, items: Iterable[str | Mapping[str, Any] | FieldInfo]) -> FieldTable:
        """
        Register a batch of fields.

        Args:
            items: Field names, or dicts with name and optional event,
                   scope and default.

        Returns:
            FieldTable of the new descriptors.

        Raises:
            FieldConflictError: If a name or event is already registered,
                                or repeated within the batch.
        """
        infos = [self._to_info(item) for item in items]

        seen_names: set[str] = set()
        seen_events: set[str] = set()
        for info in infos:
            if info.name in self._by_name or info.name in seen_names:
                existing = self._by_name.get(info.name)
                raise FieldConflictError(
                    f"Field {info.name!r} is already registered"
                    + (f" as {existing!r}" if existing else " in this batch")
                )
            if info.event in self._by_event or info.event in seen_events:
                owner = self._by_event.get(info.event)
                raise FieldConflictError(
                    f"Event {info.event!r} for field {info.name!r} is already used"
                    + (f" by field {owner.name!r}" if owner else " in this batch")
                )
            seen_names.add(info.name)
            seen_events.add(info.event)

        for info in infos:
            self._by_name[info.name] = info
            self._by_event[info.event] = info

        logger.debug("fields_registered", fields=[info.name for info in infos])
        return FieldTable(infos)

    def get(self, name: str) -> FieldInfo | None:
        return self._by_name.get(name)

    def by_event(self, event: str) -> FieldInfo | None:
        return self._by_event.get(event)

    def names(self) -> list[str]:
        return list(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def assert_valid(self, field: FieldInfo | str) -> FieldInfo:
        """
        Fail fast unless `field` is exactly what was registered.

        Raises:
            UnregisteredFieldError: Unknown name, or a descriptor that
                                    differs from the registered one.
        """
        name = field if isinstance(field, str) else getattr(field, "name", None)
        registered = self._by_name.get(name) if isinstance(name, str) else None
        if registered is None:
            raise UnregisteredFieldError(f"Field {name!r} is not registered")
        if isinstance(field, FieldInfo) and field != registered:
            raise UnregisteredFieldError(
                f"Field {name!r} does not match its registration: "
                f"got {field!r}, registered {registered!r}"
            )
        return registered


# Global field registry
FIELD_REGISTRY = FieldRegistry()


def fields(items: Iterable[str | Mapping[str, Any] | FieldInfo]) -> FieldTable:
    """Register fields in the process-wide registry."""
    return FIELD_REGISTRY.register_fields(items)


def field_by_name(name: str) -> FieldInfo | None:
    """Look up a field in the process-wide registry (for target="id.field" style lookups)."""
    return FIELD_REGISTRY.get(name)


# Fields shared across block types, e.g. an orchestrator reading a
# grader's `correct` field.
COMMON_FIELDS = fields(["value", "correct", "message", "submit_count", "show_answer"])

value = COMMON_FIELDS.value
correct = COMMON_FIELDS.correct
message = COMMON_FIELDS.message
submit_count = COMMON_FIELDS.submit_count
show_answer = COMMON_FIELDS.show_answer
