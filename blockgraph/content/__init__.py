"""
Content Module - Markup Parsing and the idMap

Responsible for:
1. Parser plugins (blocks, text, xml, ...)
2. Per-node parsing with Use validation and id assignment
3. Front-matter metadata
4. Building the idMap from one or many documents
5. Static node/edge graphs for tooling

Primary Entry Point:
    parse_document(markup, provenance, registry) -> ParseResult
"""

from blockgraph.content import parsers
from blockgraph.content.metadata import NodeMetadata, extract_sibling_metadata
from blockgraph.content.parser import DocumentParser, ParseContext, structural_id
from blockgraph.content.builder import parse_document, parse_documents
from blockgraph.content.graph import StaticGraph, build_static_graph

__all__ = [
    "parsers",
    "DocumentParser",
    "ParseContext",
    "structural_id",
    "NodeMetadata",
    "extract_sibling_metadata",
    "parse_document",
    "parse_documents",
    "StaticGraph",
    "build_static_graph",
]
