"""
ID Resolution - Converting Between Reference, Key and Instance Forms

Content is a DAG: one definition can appear several times on a page,
either reused (sharing state) or instantiated under different prefixes
(separate state, e.g. items of a repeated list).

    ref         as written in markup     "/foo", "./foo", "foo"
    key         idMap lookup             "foo"
    state key   per live instance        "list1:0:foo"   (see state.keys)
    sibling key unique per position      "foo", "foo:1"

Ids should only contain letters, digits, "_" and "-". The characters
".", "/", ":" and whitespace are reserved as path and scope delimiters.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from blockgraph.exceptions import InvalidReferenceError
from blockgraph.state.keys import SCOPE_SEPARATOR

VALID_ID_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")
PATH_PREFIX = re.compile(r"^(\.\.?/|/)")


def to_reference(value: str, context: str = "ID") -> str:
    """
    Validate a user-authored id reference.

    Args:
        value: Raw reference from an id= or target= attribute.
        context: Description used in error messages.

    Returns:
        The trimmed reference.

    Raises:
        InvalidReferenceError: Empty, prefix-only or containing reserved
                               characters.
    """
    if not isinstance(value, str) or not value:
        raise InvalidReferenceError(f"{context}: ID is required but got {value!r}")

    trimmed = value.strip()
    if not trimmed:
        raise InvalidReferenceError(f"{context}: ID cannot be empty or whitespace")

    match = PATH_PREFIX.match(trimmed)
    id_part = trimmed[match.end():] if match else trimmed
    if not id_part:
        raise InvalidReferenceError(f"{context}: ID {value!r} has path prefix but no ID")

    if not VALID_ID_SEGMENT.match(id_part):
        invalid = sorted({c for c in id_part if not re.match(r"[A-Za-z0-9_-]", c)})
        raise InvalidReferenceError(
            f"{context}: ID {value!r} contains invalid characters: {' '.join(invalid)}\n"
            "IDs should only contain letters, numbers, underscores, and hyphens."
        )

    return trimmed


def ref_to_key(ref: str) -> str:
    """
    Reduce a reference to the plain id used for idMap lookup.

    Example:
        ref_to_key("/foo")          -> "foo"
        ref_to_key("./foo")         -> "foo"
        ref_to_key("list:0:child")  -> "child"
    """
    result = ref
    if result.startswith("/"):
        result = result[1:]
    elif result.startswith("./"):
        result = result[2:]

    # Instance prefixes come before the base id
    return result.rsplit(SCOPE_SEPARATOR, 1)[-1]


def extend_id_prefix(prefix: str | None, scope: str | int | Iterable[str | int]) -> str:
    """
    Extend an instantiation prefix for children rendered in a new scope.

    Example:
        extend_id_prefix(None, ["list1", 0])     -> "list1:0"
        extend_id_prefix("page", "attempt_2")    -> "page:attempt_2"
    """
    if isinstance(scope, (str, int)):
        scope_str = str(scope)
    else:
        scope_str = SCOPE_SEPARATOR.join(str(part) for part in scope)

    return f"{prefix}{SCOPE_SEPARATOR}{scope_str}" if prefix else scope_str


def assign_sibling_keys(children: list[Any]) -> list[Any]:
    """
    Give each child dict a key unique among its siblings.

    A reused id gets ":1", ":2", ... appended. Children without an id
    are keyed by position. Non-dict children pass through unchanged.

    Raises:
        ValueError: If a child already carries a key.
    """
    counts: dict[str, int] = {}
    result = []
    for index, child in enumerate(children):
        if not isinstance(child, dict):
            result.append(child)
            continue
        if "key" in child:
            raise ValueError(f"Child at index {index} already has a 'key'; don't double-key children")

        child_id = child.get("id")
        if child_id is None:
            key = f"__idx__{index}"
        elif child_id not in counts:
            counts[child_id] = 1
            key = child_id
        else:
            key = f"{child_id}{SCOPE_SEPARATOR}{counts[child_id]}"
            counts[child_id] += 1

        result.append({**child, "key": key})
    return result
