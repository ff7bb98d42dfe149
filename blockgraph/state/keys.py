"""
Storage Keys - Deterministic State Addressing

Every (node id, field) pair maps to one StorageKey. The key is a
structured tuple rather than a concatenated string, so a prefixed id
("list1" + "item") can never collide with a literal id that happens to
contain the separator ("list1:item").

Scope rules:
    component  qualified by the instantiation prefix, so two live
               instances of one repeated template get separate slots
    system     raw id only; every instance shares the slot
    global     neither prefix nor id; one slot per session

Reference forms (component scope):
    "foo"     relative, prefix applied
    "./foo"   explicit relative, prefix applied
    "/foo"    absolute, prefix bypassed
"""

from __future__ import annotations

from dataclasses import dataclass

from blockgraph.state.scopes import Scope

# Separator for instance prefixes, as in "list1:0:item"
SCOPE_SEPARATOR = ":"


@dataclass(frozen=True)
class StorageKey:
    """Hashable, ordered address of one field value."""

    scope: Scope
    prefix: str | None
    id: str | None
    field: str

    def sort_key(self) -> tuple[str, str, str, str]:
        return (self.scope.value, self.prefix or "", self.id or "", self.field)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, StorageKey):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    @property
    def qualified_id(self) -> str | None:
        """Display form of the id part, e.g. "list1:item"."""
        if self.id is None:
            return None
        if self.prefix:
            return f"{self.prefix}{SCOPE_SEPARATOR}{self.id}"
        return self.id

    def __str__(self) -> str:
        qualified = self.qualified_id
        where = f"{qualified}." if qualified else ""
        return f"{self.scope.value}:{where}{self.field}"


def _split_reference(raw_id: str) -> tuple[str, bool]:
    """Strip path markers. Returns (base id, is_absolute)."""
    if raw_id.startswith("/"):
        return raw_id[1:], True
    if raw_id.startswith("./"):
        return raw_id[2:], False
    return raw_id, False


def _key_parts(
    scope: Scope | str,
    raw_id: str | None,
    prefix: str | None,
) -> tuple[Scope, str | None, str | None]:
    scope = Scope(scope)

    if scope is Scope.GLOBAL:
        return scope, None, None

    if not raw_id:
        raise ValueError(f"{scope.value}-scoped state requires an id")

    base, absolute = _split_reference(raw_id)
    if not base:
        raise ValueError(f"Reference {raw_id!r} has a path marker but no id")

    if scope is Scope.SYSTEM or absolute:
        return scope, None, base

    return scope, (prefix or None), base


def resolve_key(
    scope: Scope | str,
    raw_id: str | None,
    prefix: str | None = None,
) -> str | None:
    """
    Compute the qualified id a field value is stored under.

    Args:
        scope: Field scope.
        raw_id: Node id as written in the markup (may be "/abs" or "./rel").
        prefix: Instantiation prefix of the live instance, if any.

    Returns:
        "prefix:id" or "id" for component scope, the bare id for system
        scope, None for global scope.

    Example:
        resolve_key("component", "item", "list1")  -> "list1:item"
        resolve_key("component", "/item", "list1") -> "item"
        resolve_key("system", "item", "list1")     -> "item"
        resolve_key("global", "item", "list1")     -> None
    """
    scope, key_prefix, key_id = _key_parts(scope, raw_id, prefix)
    if key_id is None:
        return None
    return f"{key_prefix}{SCOPE_SEPARATOR}{key_id}" if key_prefix else key_id


def storage_key(
    scope: Scope | str,
    raw_id: str | None,
    field: str,
    prefix: str | None = None,
) -> StorageKey:
    """Build the structured key for (scope, id, field, prefix). Pure."""
    scope, key_prefix, key_id = _key_parts(scope, raw_id, prefix)
    return StorageKey(scope=scope, prefix=key_prefix, id=key_id, field=field)
