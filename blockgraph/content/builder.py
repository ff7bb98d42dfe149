"""
ID Graph Builder - Documents to idMap

Drives the DocumentParser over one or more documents and assembles the
final idMap, the ids in document order, the root id and the soft issues.

Fatal errors (duplicate ids, malformed Use nodes, bad markup) propagate.
Soft issues are returned on the result and summarised in one log event.

Usage:
    from blockgraph.content import parse_document

    result = parse_document(markup, "course/intro.xml")
    entry = result.id_map[result.root]
"""

from __future__ import annotations

from typing import Iterable, Sequence

import structlog

from blockgraph.blocks import builtin
from blockgraph.blocks.registry import BlockRegistry
from blockgraph.config import Settings
from blockgraph.content.parser import DocumentParser, to_provenance
from blockgraph.exceptions import DuplicateIdError
from blockgraph.models import ParseResult, Provenance, format_provenance

logger = structlog.get_logger(__name__)

Source = tuple[str, Provenance | Sequence[str] | str | None]


def _log_result(result: ParseResult, provenance: str) -> None:
    counts: dict[str, int] = {}
    for issue in result.issues:
        counts[issue.type] = counts.get(issue.type, 0) + 1

    logger.info(
        "document_parsed",
        provenance=provenance,
        nodes=len(result.id_map),
        root=result.root,
        issues=len(result.issues),
        issue_types=counts,
    )


def parse_document(
    markup: str,
    provenance: Provenance | Sequence[str] | str | None = None,
    registry: BlockRegistry | None = None,
    settings: Settings | None = None,
) -> ParseResult:
    """
    Parse one document into an idMap.

    Args:
        markup: XML text.
        provenance: Source descriptor(s) for error messages.
        registry: Blueprints to resolve tags with. Defaults to the
                  built-in registry.
        settings: Parser settings. Defaults to get_settings().

    Returns:
        ParseResult(id_map, ids, root, issues).

    Raises:
        ParseError: For malformed markup, a malformed Use node or a
                    duplicate id.
    """
    parser = DocumentParser(registry or builtin.default_registry(), settings)
    result = parser.parse(markup, provenance)

    _log_result(result, format_provenance(to_provenance(provenance)))
    return result


def parse_documents(
    sources: Iterable[Source],
    registry: BlockRegistry | None = None,
    settings: Settings | None = None,
) -> ParseResult:
    """
    Parse several documents into one shared idMap.

    Ids are concatenated in source order and the root is the first
    document's root.

    Args:
        sources: (markup, provenance) pairs.
        registry: Blueprints to resolve tags with.
        settings: Parser settings.

    Raises:
        DuplicateIdError: If two documents define the same id.
        ParseError: For any per-document fatal error.
    """
    parser = DocumentParser(registry or builtin.default_registry(), settings)
    combined = ParseResult()

    for markup, provenance in sources:
        result = parser.parse(markup, provenance)

        for node_id, entry in result.id_map.items():
            existing = combined.id_map.get(node_id)
            if existing is not None:
                raise DuplicateIdError(
                    f"Duplicate ID {node_id!r}: <{existing.tag}> in "
                    f"{format_provenance(existing.provenance)} and <{entry.tag}> in "
                    f"{format_provenance(entry.provenance)}",
                    node_id=node_id,
                    existing_tag=existing.tag,
                    duplicate_tag=entry.tag,
                )
            combined.id_map[node_id] = entry

        combined.ids.extend(result.ids)
        combined.issues.extend(result.issues)
        if combined.root is None:
            combined.root = result.root

        _log_result(result, format_provenance(to_provenance(provenance)))

    return combined
