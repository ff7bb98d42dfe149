"""
Static Graph - Nodes and Edges of an idMap

Flattens a parsed idMap into a node/edge listing using each blueprint's
static_kids(). Intended for graph views and debugging, so problems are
reported as issue strings rather than raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from blockgraph.blocks.ids import ref_to_key
from blockgraph.blocks.registry import BlockRegistry
from blockgraph.models import IdMap

logger = structlog.get_logger(__name__)


@dataclass
class GraphNode:
    id: str
    tag: str
    label: str
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass
class GraphEdge:
    source: str
    target: str

    @property
    def id(self) -> str:
        return f"{self.source}->{self.target}"


@dataclass
class StaticGraph:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    def roots(self) -> list[str]:
        """Ids with no incoming edge, in idMap order."""
        targets = {edge.target for edge in self.edges}
        return [node.id for node in self.nodes if node.id not in targets]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [
                {"id": n.id, "tag": n.tag, "label": n.label, "attributes": n.attributes}
                for n in self.nodes
            ],
            "edges": [{"id": e.id, "source": e.source, "target": e.target} for e in self.edges],
            "issues": list(self.issues),
        }


def build_static_graph(id_map: IdMap, registry: BlockRegistry) -> StaticGraph:
    """
    Build the static graph of an idMap.

    Edges point from a parent to each id its static_kids() lists, with
    references reduced to plain ids. Unknown tags, dangling child ids and
    failing static_kids() calls are recorded as issues.
    """
    graph = StaticGraph()

    for node_id, entry in id_map.items():
        graph.nodes.append(
            GraphNode(
                id=node_id,
                tag=entry.tag,
                label=f"{entry.tag}\n({node_id})",
                attributes=dict(entry.attributes),
            )
        )

        blueprint = registry.resolve(entry.tag)
        if blueprint is None:
            graph.issues.append(f"Node {node_id} has unregistered tag <{entry.tag}>")
            continue

        try:
            kid_ids = blueprint.static_kids(entry) or []
        except Exception as e:
            logger.warning("static_kids_failed", id=node_id, tag=entry.tag, error=str(e))
            graph.issues.append(f"Error processing kids for node {node_id}: {e}")
            continue

        for kid_ref in kid_ids:
            kid_id = ref_to_key(kid_ref)
            if kid_id not in id_map:
                graph.issues.append(f"Node {node_id} references missing id {kid_id}")
            graph.edges.append(GraphEdge(source=node_id, target=kid_id))

    return graph
