"""
Blocks Module - Blueprints, Registry and Runtime Relationships

Responsible for:
1. Blueprint definitions (parser plugin, fields, capabilities)
2. Tag -> blueprint dispatch with soft fallbacks
3. Id reference validation and instance prefixes
4. Runtime trees and relationship inference (graders, inputs)

Built-in blueprints live in blockgraph.blocks.builtin.
"""

from blockgraph.blocks.blueprint import (
    BlockBlueprint,
    ParserPlugin,
    block_factory,
    create_block,
)
from blockgraph.blocks.dom import (
    RuntimeNode,
    build_runtime_tree,
    extract_child_text,
    get_all_nodes,
    get_grader,
    get_inputs,
    get_kids_bfs,
    get_kids_dfs,
    get_parents,
    get_value_by_id,
    infer_related_nodes,
    is_grader,
    is_input,
    normalize_infer,
    normalize_targets,
)
from blockgraph.blocks.ids import (
    assign_sibling_keys,
    extend_id_prefix,
    ref_to_key,
    to_reference,
)
from blockgraph.blocks.registry import BlockRegistry

__all__ = [
    # Blueprints
    "BlockBlueprint",
    "ParserPlugin",
    "create_block",
    "block_factory",
    "BlockRegistry",
    # Ids
    "to_reference",
    "ref_to_key",
    "extend_id_prefix",
    "assign_sibling_keys",
    # Runtime tree
    "RuntimeNode",
    "build_runtime_tree",
    "get_parents",
    "get_kids_dfs",
    "get_kids_bfs",
    "get_all_nodes",
    # Inference
    "is_grader",
    "is_input",
    "normalize_targets",
    "normalize_infer",
    "infer_related_nodes",
    "get_grader",
    "get_inputs",
    "get_value_by_id",
    "extract_child_text",
]
