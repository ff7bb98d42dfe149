"""
State Module - Field Registry and Scoped State Addressing

Responsible for:
1. Field descriptors (name, scope, default, mutation event)
2. Deterministic storage keys with instance isolation
3. Read / write / subscribe over an external key-value store
4. Aggregated reads across many targets
5. Guarding against stale asynchronous writers
"""

from blockgraph.state.access import (
    MISSING,
    RuntimeContext,
    key_for,
    read,
    subscribe,
    update_field,
    write,
)
from blockgraph.state.aggregate import aggregate
from blockgraph.state.fields import (
    COMMON_FIELDS,
    FIELD_REGISTRY,
    FieldInfo,
    FieldRegistry,
    FieldTable,
    field_by_name,
    field_name_to_event,
    fields,
)
from blockgraph.state.keys import SCOPE_SEPARATOR, StorageKey, resolve_key, storage_key
from blockgraph.state.requests import RequestTicket, RequestTracker
from blockgraph.state.scopes import Scope
from blockgraph.state.store import InMemoryStateStore, StateStore

__all__ = [
    # Fields
    "FieldInfo",
    "FieldRegistry",
    "FieldTable",
    "FIELD_REGISTRY",
    "COMMON_FIELDS",
    "fields",
    "field_by_name",
    "field_name_to_event",
    # Addressing
    "Scope",
    "StorageKey",
    "SCOPE_SEPARATOR",
    "resolve_key",
    "storage_key",
    # Store
    "StateStore",
    "InMemoryStateStore",
    # Access
    "MISSING",
    "RuntimeContext",
    "key_for",
    "read",
    "write",
    "subscribe",
    "update_field",
    "aggregate",
    # Async writers
    "RequestTicket",
    "RequestTracker",
]
