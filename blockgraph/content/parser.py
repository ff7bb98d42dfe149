"""
Document Parser - Markup to Node Entries

Parses one XML document and walks it node by node:

1. <Use ref="..."/> nodes are validated and become reference
   placeholders. They never store an entry.
2. Every other node gets an id (id attribute, legacy url_name, or a
   structural hash), a blueprint (exact, Capitalised or case-insensitive
   tag match) and optional front-matter metadata.
3. The blueprint's parser plugin is invoked with a ParseContext and
   stores the node's entry via ctx.store_entry().

Fatal problems (malformed markup, malformed Use, duplicate ids) raise
ParseError subclasses. Soft problems (unregistered tags, invalid
attributes, broken metadata, bad content) are collected as ParseIssue
records and parsing continues.

Usage:
    parser = DocumentParser(default_registry())
    result = parser.parse('<Vertical id="v"><TextBlock id="t">Hi</TextBlock></Vertical>', ("demo.xml",))
"""

from __future__ import annotations

import hashlib
import json
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Sequence

import structlog
from pydantic import ValidationError

from blockgraph.blocks.blueprint import BlockBlueprint
from blockgraph.blocks.ids import to_reference
from blockgraph.blocks.registry import BlockRegistry
from blockgraph.config import Settings, get_settings
from blockgraph.content import parsers
from blockgraph.content.metadata import extract_sibling_metadata
from blockgraph.exceptions import (
    BlockRegistrationError,
    ContentError,
    DuplicateIdError,
    InvalidReferenceError,
    MarkupSyntaxError,
    ReferenceNodeError,
)
from blockgraph.models import (
    BlockReference,
    IdMap,
    NodeEntry,
    ParseIssue,
    ParseResult,
    Provenance,
    format_provenance,
)

logger = structlog.get_logger(__name__)

# Synthetic container so documents may hold several top-level elements
_WRAPPER_TAG = "blockgraph-document"
_WRAPPER_OPEN = f"<{_WRAPPER_TAG}>"

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")

# CDATA is matched only so that comment-like text inside it is left alone
_COMMENT_OR_CDATA = re.compile(r"<!\[CDATA\[.*?\]\]>|<!--(.*?)-->", re.DOTALL)

# Tag stored for nodes whose content a plugin rejected
ERROR_TAG = "ErrorNode"

RAW_PLUGIN = parsers.raw()

EntryOrUpdater = NodeEntry | dict[str, Any] | Callable[[NodeEntry | None], Any]


@dataclass
class ParseContext:
    """
    Everything a parser plugin gets for one node.

    Attributes:
        id: Node id (declared or generated).
        raw: The raw ElementTree element.
        tag: Tag name as written.
        attributes: Raw string attributes.
        provenance: Source chain of the document.
        parse_node: Recursive callback for child elements:
                    parse_node(element, siblings, index) -> BlockReference | None
        store_entry: Store callback: store_entry(id, entry | dict | updater).
        metadata: Front-matter metadata for this node.
        issues: Soft issues of the current parse (append-only).
        generated: True if `id` came from a structural hash.
    """

    id: str
    raw: ET.Element
    tag: str
    attributes: dict[str, str]
    provenance: Provenance
    parse_node: Callable[..., BlockReference | None]
    store_entry: Callable[[str, EntryOrUpdater], None]
    metadata: dict[str, Any] = field(default_factory=dict)
    issues: list[ParseIssue] = field(default_factory=list)
    generated: bool = False

    def entry(self, kids: Any, **overrides: Any) -> NodeEntry:
        """Build this node's entry with the given kids."""
        values = {
            "id": self.id,
            "tag": self.tag,
            "attributes": self.attributes,
            "kids": kids,
            "provenance": self.provenance,
            "generated": self.generated,
            "metadata": self.metadata,
        }
        values.update(overrides)
        return NodeEntry(**values)

    def issue(self, issue_type: str, message: str, **technical: Any) -> ParseIssue:
        """Record a soft issue for this node."""
        issue = ParseIssue(
            type=issue_type,
            message=message,
            provenance=self.provenance,
            id=self.id,
            tag=self.tag,
            technical=technical,
        )
        self.issues.append(issue)
        return issue


def to_provenance(provenance: Provenance | Sequence[str] | str | None) -> Provenance:
    if provenance is None:
        return ()
    if isinstance(provenance, str):
        return (provenance,)
    return tuple(provenance)


def _canonical(element: ET.Element) -> dict[str, Any]:
    content: list[Any] = []
    for item in parsers.iter_content(element):
        if isinstance(item, str):
            content.append(item)
        elif parsers.is_comment(item):
            content.append({"comment": item.text or ""})
        elif parsers.is_element(item):
            content.append(_canonical(item))
    return {"tag": element.tag, "attributes": dict(sorted(element.attrib.items())), "content": content}


def structural_id(element: ET.Element) -> str:
    """
    Id derived from a SHA-1 of the element's canonical structure.

    Structurally identical anonymous elements share an id.
    """
    canonical = json.dumps(_canonical(element), sort_keys=True, separators=(",", ":"))
    return "_" + hashlib.sha1(canonical.encode("utf-8")).hexdigest()


class DocumentParser:
    """
    Parses markup documents into idMap entries.

    A parser is stateless between calls; parse() may be called repeatedly.
    """

    def __init__(self, registry: BlockRegistry, settings: Settings | None = None):
        self.registry = registry
        self.settings = settings or get_settings()

    def parse(self, markup: str, provenance: Provenance | Sequence[str] | str | None = None) -> ParseResult:
        """
        Parse one document.

        Args:
            markup: XML text. May hold several top-level elements.
            provenance: Source descriptor(s), e.g. ("file:///course/intro.xml",).

        Returns:
            ParseResult with the idMap, ids in document order, the root id
            and soft issues.

        Raises:
            MarkupSyntaxError: If the markup is not well-formed.
            ReferenceNodeError: For a malformed <Use> node.
            DuplicateIdError: If two nodes claim the same id.
        """
        provenance = to_provenance(provenance)
        container = self._load(markup, provenance)
        run = _DocumentRun(self, provenance)

        items = list(parsers.iter_content(container))
        root: str | None = None
        for index, item in enumerate(items):
            if not parsers.is_element(item):
                continue
            placeholder = run.parse_node(item, items, index)
            if root is None and placeholder is not None:
                root = placeholder.id

        return ParseResult(id_map=run.id_map, ids=run.ids, root=root, issues=run.issues)

    def _load(self, markup: str, provenance: Provenance) -> ET.Element:
        # Blank out the declaration so line/column positions are unchanged
        body = _XML_DECLARATION.sub(lambda m: re.sub(r"[^\n]", " ", m.group()), markup, count=1)
        body, comments = _mask_comment_dashes(body)
        wrapped = f"{_WRAPPER_OPEN}{body}</{_WRAPPER_TAG}>"

        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        try:
            parser.feed(wrapped)
            container = parser.close()
        except ET.ParseError as e:
            line, column = e.position
            if line == 1:
                column -= len(_WRAPPER_OPEN)
            column = max(column, 0) + 1
            reason = str(e).split(":")[0]

            raise MarkupSyntaxError(
                f"XML syntax error in {format_provenance(provenance)} at line {line}, column {column}:\n"
                f"{reason}\n\n"
                f"Context:\n{_error_context(markup, line)}\n\n"
                "Check for: unclosed quotes, missing closing tags, or invalid characters.",
                line=line,
                column=column,
            ) from e

        for comment, text in zip(_iter_comments(container), comments):
            comment.text = text
        return container


def _mask_comment_dashes(markup: str) -> tuple[str, list[str]]:
    """
    Blank out "-" inside comment bodies so front-matter fences ("---")
    pass the XML parser.

    Each dash becomes one space, keeping line/column positions. Returns
    the masked markup and the original comment bodies in document order.
    """
    originals: list[str] = []

    def mask(match: re.Match) -> str:
        text = match.group(1)
        if text is None:
            return match.group()
        originals.append(text)
        return "<!--" + text.replace("-", " ") + "-->"

    return _COMMENT_OR_CDATA.sub(mask, markup), originals


def _iter_comments(element: ET.Element) -> Iterator[ET.Element]:
    return (item for item in element.iter() if parsers.is_comment(item))


def _error_context(markup: str, line: int) -> str:
    lines = markup.split("\n")
    start = max(0, line - 3)
    end = min(len(lines), line + 2)
    rendered = []
    for number in range(start + 1, end + 1):
        marker = ">>>" if number == line else "   "
        rendered.append(f"{marker} {number}: {lines[number - 1]}")
    return "\n".join(rendered)


class _DocumentRun:
    """Mutable state of one parse() call."""

    def __init__(self, parser: DocumentParser, provenance: Provenance):
        self.registry = parser.registry
        self.settings = parser.settings
        self.provenance = provenance
        self.id_map: IdMap = {}
        self.ids: list[str] = []
        self.issues: list[ParseIssue] = []

    # -------------------------------------------------------------------------
    # Callbacks handed to plugins
    # -------------------------------------------------------------------------

    def parse_node(
        self,
        element: ET.Element,
        siblings: Sequence[Any] | None = None,
        index: int = -1,
    ) -> BlockReference | None:
        if not parsers.is_element(element):
            return None

        tag = element.tag
        attributes = dict(element.attrib)
        metadata = extract_sibling_metadata(siblings, index, self.provenance, self.issues)

        if "ref" in attributes:
            return self._parse_reference(element, tag, attributes)

        node_id = attributes.get("id") or attributes.get("url_name")
        generated = not node_id
        if generated:
            node_id = structural_id(element)

        # Document order is preorder: a parent precedes its children
        self.ids.append(node_id)

        blueprint = self.registry.resolve(tag)
        if blueprint is None:
            logger.warning(
                "unregistered_tag",
                tag=tag,
                id=node_id,
                provenance=format_provenance(self.provenance),
            )
            self.issues.append(
                ParseIssue(
                    type="unregistered_tag",
                    message=f"No blueprint registered for <{tag}> in {format_provenance(self.provenance)}",
                    provenance=self.provenance,
                    id=node_id,
                    tag=tag,
                )
            )
            parse_fn = RAW_PLUGIN.parse
        else:
            parse_fn = blueprint.parser

        ctx = ParseContext(
            id=node_id,
            raw=element,
            tag=tag,
            attributes=attributes,
            provenance=self.provenance,
            parse_node=self.parse_node,
            store_entry=self._store_for(node_id, tag),
            metadata=metadata,
            issues=self.issues,
            generated=generated,
        )

        if blueprint is not None and self.settings.validate_attributes:
            self._validate_attributes(ctx, blueprint)

        previous = self.id_map.get(node_id)
        try:
            parse_fn(ctx)
        except ContentError as e:
            logger.warning("content_error", tag=tag, id=node_id, error=str(e))
            ctx.issue("content_error", f"{e} in {format_provenance(self.provenance)}")
            if previous is not None or node_id not in self.id_map:
                ctx.store_entry(
                    node_id,
                    ctx.entry({"message": str(e), "original_tag": tag}, tag=ERROR_TAG),
                )

        if previous is not None:
            raise self._duplicate(node_id, previous.tag, tag)
        if node_id not in self.id_map:
            raise BlockRegistrationError(
                f"Parser for <{tag}> did not store an entry for id {node_id!r}"
            )

        return BlockReference(type="block", id=node_id)

    def store_entry(self, store_id: str, entry_or_updater: EntryOrUpdater) -> None:
        """
        Insert an entry, or update one with `store_entry(id, fn)`.

        Raises:
            DuplicateIdError: If a new entry reuses an existing id.
        """
        if callable(entry_or_updater):
            entry = self._coerce(store_id, entry_or_updater(self.id_map.get(store_id)))
            self.id_map[store_id] = entry
            return

        entry = self._coerce(store_id, entry_or_updater)
        existing = self.id_map.get(store_id)
        if existing is not None:
            raise self._duplicate(store_id, existing.tag, entry.tag)
        self.id_map[store_id] = entry

    def _store_for(self, node_id: str, tag: str) -> Callable[[str, EntryOrUpdater], None]:
        """store_entry for one node. The node may not touch an entry an earlier node owns."""
        previous = self.id_map.get(node_id)

        def store(store_id: str, entry_or_updater: EntryOrUpdater) -> None:
            if previous is not None and store_id == node_id:
                raise self._duplicate(node_id, previous.tag, tag)
            self.store_entry(store_id, entry_or_updater)

        return store

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _duplicate(self, node_id: str, existing_tag: str, duplicate_tag: str) -> DuplicateIdError:
        return DuplicateIdError(
            f"Duplicate ID {node_id!r} in {format_provenance(self.provenance)}: "
            f"already used by <{existing_tag}>, claimed again by <{duplicate_tag}>. "
            "Each element must have a unique id.",
            node_id=node_id,
            existing_tag=existing_tag,
            duplicate_tag=duplicate_tag,
        )

    def _coerce(self, store_id: str, entry: Any) -> NodeEntry:
        if isinstance(entry, dict):
            entry = NodeEntry(**{"id": store_id, "provenance": self.provenance, **entry})
        if not isinstance(entry, NodeEntry):
            raise TypeError(f"store_entry({store_id!r}) expects a NodeEntry or dict, got {entry!r}")
        if entry.id != store_id:
            entry = entry.model_copy(update={"id": store_id})
        return entry

    def _parse_reference(self, element: ET.Element, tag: str, attributes: dict[str, str]) -> BlockReference:
        ref = attributes["ref"]
        where = format_provenance(self.provenance)

        if tag != "Use":
            raise ReferenceNodeError(
                f"Invalid 'ref' attribute on <{tag} ref=\"{ref}\"> in {where}. "
                "Only <Use> elements may have 'ref'."
            )

        kids = [child.tag for child in element if parsers.is_element(child)]
        if kids:
            raise ReferenceNodeError(
                f"<Use ref=\"{ref}\"> in {where} must not have kid elements. Found: {', '.join(kids)}"
            )
        # Text after a comment sits in the comment's tail
        text = "".join(item for item in parsers.iter_content(element) if isinstance(item, str)).strip()
        if text:
            raise ReferenceNodeError(
                f"<Use ref=\"{ref}\"> in {where} must not have content. Found text: {text!r}"
            )

        extra = sorted(name for name in attributes if name != "ref")
        if extra:
            raise ReferenceNodeError(
                f"<Use ref=\"{ref}\"> in {where} must only have a 'ref' attribute. Found: {', '.join(extra)}"
            )

        try:
            target = to_reference(ref, f"<Use> in {where}")
        except InvalidReferenceError as e:
            raise ReferenceNodeError(str(e)) from e

        return BlockReference(type="reference", id=target)

    def _validate_attributes(self, ctx: ParseContext, blueprint: BlockBlueprint) -> None:
        problems: list[str] = []
        checked: dict[str, Any] = ctx.attributes

        if blueprint.attributes is not None:
            try:
                model = blueprint.attributes.model_validate(ctx.attributes)
                checked = model.model_dump(by_alias=True, exclude_none=True)
            except ValidationError as e:
                problems = [
                    f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                    for err in e.errors()
                ]

        if not problems and blueprint.validate_attributes is not None:
            problems = list(blueprint.validate_attributes(checked) or [])

        if problems:
            listing = "\n".join(f"  - {problem}" for problem in problems)
            ctx.issue(
                "attribute_validation",
                f"Invalid attributes for <{ctx.tag} id=\"{ctx.id}\"> in "
                f"{format_provenance(self.provenance)}:\n{listing}",
                attributes=dict(ctx.attributes),
                problems=problems,
            )
