"""
State Access - Read, Write and Subscribe to Block Fields

All state access goes through a RuntimeContext: the store, the calling
block's id and instantiation prefix, and the field registry used to
validate descriptors. Accessing a field the registry does not know is a
registration bug and raises UnregisteredFieldError immediately.

Usage:
    ctx = RuntimeContext(store=InMemoryStateStore(), id="q1")
    read(ctx, fields.value, fallback="")        # "" until written
    write(ctx, fields.value, "42")
    write(ctx, fields.correct, True, id="grader1")
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable

import structlog

from blockgraph.state.fields import FIELD_REGISTRY, FieldInfo, FieldRegistry
from blockgraph.state.keys import StorageKey, storage_key
from blockgraph.state.store import StateStore, Unsubscribe

if TYPE_CHECKING:
    from blockgraph.blocks.dom import RuntimeNode

logger = structlog.get_logger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass
class RuntimeContext:
    """
    Per-call view of the runtime a block executes in.

    Attributes:
        store: External state store.
        id: Raw id of the calling block (default target of reads/writes).
        id_prefix: Instantiation prefix of the calling instance.
        tag: Tag of the calling block.
        node_info: Runtime node of the calling block, needed for inference.
        fields: Registry descriptors are validated against.
    """

    store: StateStore
    id: str | None = None
    id_prefix: str | None = None
    tag: str | None = None
    node_info: RuntimeNode | None = None
    fields: FieldRegistry = field(default=FIELD_REGISTRY, repr=False)

    @classmethod
    def for_node(
        cls,
        node_info: RuntimeNode,
        store: StateStore,
        fields: FieldRegistry | None = None,
    ) -> "RuntimeContext":
        """Context for code running on behalf of `node_info`."""
        return cls(
            store=store,
            id=node_info.id,
            id_prefix=node_info.id_prefix,
            tag=node_info.tag,
            node_info=node_info,
            fields=fields or FIELD_REGISTRY,
        )

    def with_node(self, node_info: RuntimeNode) -> "RuntimeContext":
        """Same store and registry, re-targeted at another runtime node."""
        return replace(
            self,
            id=node_info.id,
            id_prefix=node_info.id_prefix,
            tag=node_info.tag,
            node_info=node_info,
        )


def key_for(context: RuntimeContext, field: FieldInfo, id: str | None = None) -> StorageKey:
    """
    Validate `field` and compute the key it resolves to for this context.

    Raises:
        UnregisteredFieldError: If the field is not registered.
    """
    info = context.fields.assert_valid(field)
    target = id if id is not None else context.id
    return storage_key(info.scope, target, info.name, context.id_prefix)


def read(
    context: RuntimeContext,
    field: FieldInfo,
    id: str | None = None,
    fallback: Any = MISSING,
) -> Any:
    """
    Read a field value.

    Args:
        context: Runtime context.
        field: Registered field descriptor.
        id: Target raw id. Defaults to the calling block's id.
        fallback: Returned when nothing was written yet. Defaults to the
                  field's default.

    Returns:
        The stored value, or the fallback.
    """
    key = key_for(context, field, id)
    if context.store.has(key):
        return context.store.get(key)
    return field.default if fallback is MISSING else fallback


def write(
    context: RuntimeContext,
    field: FieldInfo,
    value: Any,
    id: str | None = None,
) -> StorageKey:
    """
    Write a field value and notify subscribers of that exact key.

    Returns:
        The key written to.
    """
    key = key_for(context, field, id)
    context.store.set(key, value)

    logger.debug("field_updated", field_event=field.event, key=str(key))

    return key


def subscribe(
    context: RuntimeContext,
    field: FieldInfo,
    callback: Callable[[StorageKey, Any], None],
    id: str | None = None,
) -> Unsubscribe:
    """Subscribe to writes of one field on one target."""
    key = key_for(context, field, id)
    return context.store.subscribe(key, callback)


def update_field(
    context: RuntimeContext,
    field: FieldInfo,
    fn: Callable[[Any], Any],
    id: str | None = None,
    fallback: Any = MISSING,
) -> Any:
    """
    Read-modify-write helper, e.g. incrementing a submit counter.

    Returns:
        The new value.
    """
    new_value = fn(read(context, field, id=id, fallback=fallback))
    write(context, field, new_value, id=id)
    return new_value
