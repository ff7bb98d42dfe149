"""
Runtime DOM - Traversal and Relationship Inference

The idMap is a flat arena: entries reference their children by id only.
A runtime tree is built on demand from a root id by following each
blueprint's static_kids, producing ephemeral RuntimeNode wrappers with
parent/child links. Nothing here is persisted; rebuild the tree after a
re-parse.

The same entry can appear several times in one tree (content is a DAG,
and <Use ref="..."/> reuses a definition). Each appearance gets its own
RuntimeNode.

Relationship inference answers questions such as "which grader governs
this input" from a starting node and a selector over RuntimeNodes:

    parents   nearest matching ancestor only
    kids      every matching descendant, preorder
    targets   explicit ids; overrides selector and infer entirely

Usage:
    root = build_runtime_tree(result.id_map, registry, result.root)
    node = root.find("answer1")
    ctx = RuntimeContext.for_node(node, store)

    grader_id = get_grader(ctx)
    input_ids = infer_related_nodes(ctx, is_input, infer="kids")
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator

import structlog

from blockgraph.blocks.blueprint import BlockBlueprint
from blockgraph.blocks.ids import ref_to_key, to_reference
from blockgraph.blocks.registry import BlockRegistry
from blockgraph.exceptions import (
    AmbiguousGraderError,
    GraderNotFoundError,
    InvalidInferError,
    InvalidReferenceError,
)
from blockgraph.models import IdMap, NodeEntry
from blockgraph.state.access import RuntimeContext, read
from blockgraph.state.fields import COMMON_FIELDS

logger = structlog.get_logger(__name__)

INFER_DIRECTIONS = ("parents", "kids")

_DELIMITERS = re.compile(r"[,\s]+")


# =============================================================================
# Runtime Nodes
# =============================================================================


@dataclass(eq=False)
class RuntimeNode:
    """
    One appearance of an entry in a runtime tree.

    Attributes:
        entry: The parsed idMap entry.
        blueprint: Resolved blueprint, or None for unregistered tags.
        parent: Enclosing node (None at the root).
        kids: Child nodes in declaration order.
        id_prefix: Instantiation prefix state is addressed under.
    """

    entry: NodeEntry
    blueprint: BlockBlueprint | None = None
    parent: RuntimeNode | None = field(default=None, repr=False)
    kids: list[RuntimeNode] = field(default_factory=list, repr=False)
    id_prefix: str | None = None

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def tag(self) -> str:
        return self.entry.tag

    @property
    def attributes(self) -> dict[str, str]:
        return self.entry.attributes

    def root(self) -> RuntimeNode:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def ancestors(self) -> Iterator[RuntimeNode]:
        """Yield enclosing nodes, closest first."""
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def walk(self) -> Iterator[RuntimeNode]:
        """Yield this node and its descendants in preorder."""
        yield self
        for kid in self.kids:
            yield from kid.walk()

    def find(self, node_id: str) -> RuntimeNode | None:
        """First node (preorder, from the tree root) with the given id or reference."""
        key = ref_to_key(node_id)
        for node in self.root().walk():
            if node.id == key:
                return node
        return None

    def path(self) -> list[str]:
        """Ids from the root down to this node."""
        ids = [node.id for node in self.ancestors()]
        ids.reverse()
        ids.append(self.id)
        return ids

    def event_context(self) -> str:
        """Dot-joined path, e.g. "course.quiz.problem_5"."""
        return ".".join(self.path())


def build_runtime_tree(
    id_map: IdMap,
    registry: BlockRegistry,
    root_id: str,
    id_prefix: str | None = None,
) -> RuntimeNode:
    """
    Expand the static DAG under `root_id` into RuntimeNodes.

    Children come from each blueprint's static_kids(). Child ids missing
    from the idMap are skipped with a warning. A reference back to an
    ancestor would recurse forever, so it is cut with a warning.

    Args:
        id_map: Parsed entries.
        registry: Blueprints to resolve tags with.
        root_id: Id (or reference) of the tree root.
        id_prefix: Instantiation prefix applied to every node.

    Raises:
        KeyError: If root_id is not in the idMap.
    """
    root_key = ref_to_key(root_id)
    if root_key not in id_map:
        raise KeyError(f"Root id {root_id!r} is not in the idMap")

    def expand(entry: NodeEntry, parent: RuntimeNode | None, active: set[str]) -> RuntimeNode:
        blueprint = registry.resolve(entry.tag)
        node = RuntimeNode(entry=entry, blueprint=blueprint, parent=parent, id_prefix=id_prefix)
        if blueprint is None:
            return node

        active = active | {entry.id}
        for kid_ref in blueprint.static_kids(entry):
            kid_key = ref_to_key(kid_ref)
            if kid_key in active:
                logger.warning(
                    "reference_cycle",
                    id=kid_key,
                    path=".".join(node.path()),
                )
                continue
            kid_entry = id_map.get(kid_key)
            if kid_entry is None:
                logger.warning("missing_child", parent=entry.id, child=kid_key)
                continue
            node.kids.append(expand(kid_entry, node, active))
        return node

    return expand(id_map[root_key], None, set())


# =============================================================================
# Traversal
# =============================================================================

Selector = Callable[[RuntimeNode], bool]


def _always(_: RuntimeNode) -> bool:
    return True


def is_grader(node: RuntimeNode) -> bool:
    return node.blueprint is not None and node.blueprint.is_grader


def is_input(node: RuntimeNode) -> bool:
    return node.blueprint is not None and node.blueprint.is_input


def get_parents(
    node: RuntimeNode,
    selector: Selector = _always,
    include_self: bool = False,
) -> list[RuntimeNode]:
    """Matching ancestors, closest first."""
    candidates: Iterable[RuntimeNode] = node.ancestors()
    if include_self:
        candidates = [node, *candidates]
    return [candidate for candidate in candidates if selector(candidate)]


def get_kids_dfs(
    node: RuntimeNode,
    selector: Selector = _always,
    include_self: bool = False,
) -> list[RuntimeNode]:
    """Matching descendants in preorder."""
    walk = node.walk()
    if not include_self:
        next(walk)
    return [candidate for candidate in walk if selector(candidate)]


def get_kids_bfs(
    node: RuntimeNode,
    selector: Selector = _always,
    include_self: bool = False,
) -> list[RuntimeNode]:
    """Matching descendants, level by level."""
    results = []
    queue = deque([node] if include_self else node.kids)
    while queue:
        current = queue.popleft()
        if selector(current):
            results.append(current)
        queue.extend(current.kids)
    return results


def get_all_nodes(node: RuntimeNode, selector: Selector = _always) -> list[RuntimeNode]:
    """Every matching node in the tree `node` belongs to."""
    return get_kids_dfs(node.root(), selector, include_self=True)


# =============================================================================
# Relationship Inference
# =============================================================================


def normalize_targets(targets: Any) -> list[str] | None:
    """
    Convert a target= value into a list of validated references.

    Accepts a list, or a comma/whitespace-delimited string. None, False
    and blank strings mean no targets were given.

    Example:
        normalize_targets("x, y x")   -> ["x", "y", "x"]
        normalize_targets(["/a"])     -> ["/a"]
        normalize_targets(None)       -> None

    Raises:
        InvalidReferenceError: For True, other non-string types, or a
                               malformed id.
    """
    if targets is None or targets is False or (isinstance(targets, str) and not targets.strip()):
        return None
    if targets is True:
        raise InvalidReferenceError("Boolean true is not a valid target")

    if isinstance(targets, str):
        items = [item for item in _DELIMITERS.split(targets) if item]
    elif isinstance(targets, (list, tuple)):
        items = [str(item).strip() for item in targets]
    else:
        raise InvalidReferenceError(f"Unsupported target type: {type(targets).__name__}")

    return [to_reference(item, "target attribute") for item in items]


def normalize_infer(infer: Any) -> list[str]:
    """
    Convert an infer= value into a list of directions.

    Example:
        normalize_infer(None)            -> ["parents", "kids"]
        normalize_infer("true")          -> ["parents", "kids"]
        normalize_infer(False)           -> []
        normalize_infer("kids")          -> ["kids"]
        normalize_infer("parents, kids") -> ["parents", "kids"]

    Raises:
        InvalidInferError: For any direction other than parents / kids.
    """
    if infer is None or infer is True:
        return list(INFER_DIRECTIONS)
    if infer is False:
        return []

    if isinstance(infer, (list, tuple)):
        items = [str(item).strip().lower() for item in infer]
    elif isinstance(infer, str):
        text = infer.strip().lower()
        if text == "true":
            return list(INFER_DIRECTIONS)
        if text == "false":
            return []
        items = [item for item in _DELIMITERS.split(text) if item]
    else:
        raise InvalidInferError(f"Invalid infer value: {infer!r}")

    for item in items:
        if item not in INFER_DIRECTIONS:
            raise InvalidInferError(
                f"Invalid infer value: {item!r} (expected one of {', '.join(INFER_DIRECTIONS)})"
            )
    return list(dict.fromkeys(items))


def _node_of(context: RuntimeContext | RuntimeNode) -> RuntimeNode:
    if isinstance(context, RuntimeNode):
        return context
    if context.node_info is None:
        raise ValueError("Relationship inference requires a context with node_info")
    return context.node_info


def infer_related_nodes(
    context: RuntimeContext | RuntimeNode,
    selector: Selector,
    infer: Any = None,
    targets: Any = None,
    closest: bool = False,
) -> list[str]:
    """
    Find ids related to the context's node.

    Args:
        context: Runtime context carrying node_info, or a RuntimeNode.
        selector: Predicate over RuntimeNodes, e.g. is_grader.
        infer: Directions to search (see normalize_infer).
        targets: Explicit ids. When given, selector and infer are ignored.
        closest: Only keep the first matching descendant.

    Returns:
        Deduplicated ids in discovery order. Empty when nothing matches.
    """
    explicit = normalize_targets(targets)
    if explicit is not None:
        return list(dict.fromkeys(ref_to_key(ref) for ref in explicit))

    node = _node_of(context)
    directions = normalize_infer(infer)

    found: list[str] = []
    if "parents" in directions:
        for ancestor in node.ancestors():
            if selector(ancestor):
                found.append(ancestor.id)
                break

    if "kids" in directions:
        for descendant in get_kids_dfs(node, selector):
            found.append(descendant.id)
            if closest:
                break

    return list(dict.fromkeys(found))


def get_grader(context: RuntimeContext | RuntimeNode, infer: Any = None) -> str:
    """
    Id of the single grader governing the context's node.

    An explicit target= attribute on the node takes priority.

    Raises:
        GraderNotFoundError: No grader found.
        AmbiguousGraderError: A grader above and another below (or
                              several explicit targets).
    """
    node = _node_of(context)
    ids = infer_related_nodes(
        node,
        is_grader,
        infer=infer,
        targets=node.attributes.get("target"),
        closest=True,
    )
    if not ids:
        raise GraderNotFoundError(
            f"No grader found for {node.id!r}. Place it inside a grader, or add target=\"grader_id\"."
        )
    if len(ids) > 1:
        raise AmbiguousGraderError(
            f"Ambiguous grader reference for {node.id!r}: found {len(ids)} graders "
            f"({', '.join(ids)}). Add target=\"grader_id\" to pick one."
        )
    return ids[0]


def get_inputs(context: RuntimeContext | RuntimeNode, infer: Any = None) -> list[str]:
    """Ids of the inputs related to the context's node (possibly empty)."""
    node = _node_of(context)
    return infer_related_nodes(node, is_input, infer=infer, targets=node.attributes.get("target"))


# =============================================================================
# Value Resolution
# =============================================================================


def get_value_by_id(context: RuntimeContext, node_id: str) -> Any:
    """
    Current value of a block.

    Uses the target blueprint's get_value() when the target is in the
    runtime tree and defines one; otherwise reads its `value` field.
    """
    target = context.node_info.find(node_id) if context.node_info is not None else None
    if target is not None and target.blueprint is not None and target.blueprint.get_value:
        return target.blueprint.get_value(context.with_node(target), target.id)

    return read(context, COMMON_FIELDS.value, id=node_id, fallback=None)


def extract_child_text(context: RuntimeContext, kids: Iterable[Any]) -> str:
    """
    Flatten mixed content to text, substituting block values.

    Strings and {"type": "text"} items contribute their text; block
    placeholders contribute get_value_by_id() when truthy.
    """
    parts = []
    for kid in kids:
        if isinstance(kid, str):
            parts.append(kid)
            continue

        kid_type = kid.get("type") if isinstance(kid, dict) else getattr(kid, "type", None)
        if kid_type == "text":
            parts.append(kid["text"] if isinstance(kid, dict) else kid.text)
        elif kid_type in ("block", "reference"):
            kid_id = kid["id"] if isinstance(kid, dict) else kid.id
            value = get_value_by_id(context, kid_id)
            if value:
                parts.append(str(value))
        else:
            logger.warning("unknown_kid_type", kid=repr(kid))

    return "".join(parts).strip()
