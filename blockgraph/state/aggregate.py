"""Read one field across many targets."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Literal

from blockgraph.state.access import MISSING, RuntimeContext, read
from blockgraph.state.fields import FieldInfo

AggregateMode = Literal["list", "object"] | Callable[[list[Any]], Any]


def aggregate(
    context: RuntimeContext,
    field: FieldInfo,
    ids: Iterable[str],
    fallback: Any = MISSING,
    mode: AggregateMode = "list",
) -> Any:
    """
    Read `field` for every id in `ids`.

    Values are read live; nothing is cached, so call again after the
    target set or the values change.

    Args:
        context: Runtime context (store, prefix, registry).
        field: Registered field descriptor.
        ids: Target raw ids, e.g. from infer_related_nodes().
        fallback: Value for targets never written.
        mode: "list" for values in input order (duplicates kept),
              "object" for an id-keyed dict (last duplicate wins), or a
              function applied to the list of values.

    Example:
        aggregate(ctx, fields.value, ["a", "b"])                 # ["x", None]
        aggregate(ctx, fields.value, ["a", "b"], mode="object")  # {"a": "x", "b": None}
        aggregate(ctx, fields.value, ["a", "b"], fallback="", mode="-".join)
    """
    ids = list(ids)
    values = [read(context, field, id=target, fallback=fallback) for target in ids]

    if mode == "list":
        return values
    if mode == "object":
        return dict(zip(ids, values))
    if callable(mode):
        return mode(values)

    raise ValueError(f"Unknown aggregate mode: {mode!r}")
