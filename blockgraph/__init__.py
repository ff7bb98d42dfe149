"""
blockgraph - Content Graph Runtime

Turns block markup documents into a flat, uniquely identified graph of
content nodes, answers relationship queries over it and binds each node
to scoped, observable state.

Key Features:
- XML markup with per-tag parser plugins and <Use ref="..."/> reuse
- idMap with duplicate-id detection and soft issue reporting
- Relationship inference (nearest grader, related inputs, explicit targets)
- Field registry with component / system / global scopes
- Instance isolation for repeated templates via id prefixes
- Aggregated reads across many targets

Usage:
    from blockgraph import (
        InMemoryStateStore, RuntimeContext, build_runtime_tree,
        default_registry, get_grader, parse_document,
    )

    registry = default_registry()
    result = parse_document(markup, "course/intro.xml", registry)
    tree = build_runtime_tree(result.id_map, registry, result.root)

    ctx = RuntimeContext.for_node(tree.find("answer1"), InMemoryStateStore())
    grader_id = get_grader(ctx)

Configuration:
    BLOCKGRAPH_LOG_LEVEL, BLOCKGRAPH_LOG_JSON and
    BLOCKGRAPH_VALIDATE_ATTRIBUTES (see blockgraph.config).
"""

__version__ = "0.1.0"

from blockgraph.config import Settings, configure_logging, get_settings
from blockgraph.exceptions import (
    BlockGraphError,
    ParseError,
    RegistrationError,
    ResolutionError,
)
from blockgraph.models import BlockReference, NodeEntry, ParseIssue, ParseResult
from blockgraph.state import (
    FIELD_REGISTRY,
    FieldRegistry,
    InMemoryStateStore,
    RequestTracker,
    RuntimeContext,
    Scope,
    aggregate,
    fields,
    read,
    resolve_key,
    subscribe,
    write,
)
from blockgraph.blocks import (
    BlockRegistry,
    RuntimeNode,
    build_runtime_tree,
    create_block,
    get_grader,
    get_inputs,
    infer_related_nodes,
)
from blockgraph.content import DocumentParser, build_static_graph, parse_document, parse_documents
from blockgraph.blocks.builtin import default_registry

__all__ = [
    "__version__",
    # Config
    "Settings",
    "get_settings",
    "configure_logging",
    # Errors
    "BlockGraphError",
    "ParseError",
    "RegistrationError",
    "ResolutionError",
    # Models
    "NodeEntry",
    "BlockReference",
    "ParseIssue",
    "ParseResult",
    # Parsing
    "DocumentParser",
    "parse_document",
    "parse_documents",
    "build_static_graph",
    # Blocks
    "BlockRegistry",
    "create_block",
    "default_registry",
    "RuntimeNode",
    "build_runtime_tree",
    "infer_related_nodes",
    "get_grader",
    "get_inputs",
    # State
    "Scope",
    "FieldRegistry",
    "FIELD_REGISTRY",
    "fields",
    "resolve_key",
    "InMemoryStateStore",
    "RuntimeContext",
    "read",
    "write",
    "subscribe",
    "aggregate",
    "RequestTracker",
]
