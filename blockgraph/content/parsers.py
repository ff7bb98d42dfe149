"""
Parser Plugins - Composable Per-Tag Content Parsers

Every blueprint carries a parser plugin: a `parse(ctx)` function that
stores one or more entries through `ctx.store_entry`, paired with a
`static_kids(entry)` function listing the child ids an entry references.

Available plugins:
    blocks()              Children are blocks (Capitalised tags); text,
                          comments and lowercase tags are dropped
    blocks.allow_html()   Blocks plus HTML and text as mixed content
    text()                Text only, trimmed
    text.raw()            Text only, untouched
    text.strip_indent()   Text only, common indentation removed (Markdown)
    ignore()              No children
    xml()                 Inner XML kept as a string
    raw()                 Whole element kept as a string (fallback for
                          unregistered tags)

Most plugins only care about children. child_parser() turns a function
of (ctx, **options) returning the entry's kids into a plugin factory:

    @child_parser
    def upper_text(ctx):
        return "".join(t for t in iter_content(ctx.raw) if isinstance(t, str)).upper()

    Shout = create_block("Shout", parser=upper_text())
"""

from __future__ import annotations

import copy
import textwrap
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Any, Callable, Iterator, Union
from xml.sax.saxutils import escape

from blockgraph.blocks.blueprint import ParserPlugin
from blockgraph.exceptions import ContentError
from blockgraph.models import BlockReference, NodeEntry

if TYPE_CHECKING:
    from blockgraph.content.parser import ParseContext

ContentItem = Union[str, ET.Element]


# =============================================================================
# Element Helpers
# =============================================================================


def is_comment(item: Any) -> bool:
    return isinstance(item, ET.Element) and item.tag is ET.Comment


def is_element(item: Any) -> bool:
    """True for real elements (not text, comments or processing instructions)."""
    return isinstance(item, ET.Element) and isinstance(item.tag, str)


def iter_content(element: ET.Element) -> Iterator[ContentItem]:
    """
    Yield an element's content in document order.

    Text runs are yielded as strings; child elements (including comments)
    as Elements. Empty text runs are skipped.
    """
    if element.text:
        yield element.text
    for child in element:
        yield child
        if child.tail:
            yield child.tail


def inner_xml(element: ET.Element) -> str:
    """Serialise an element's content without its own tag."""
    parts = [escape(element.text or "")]
    for child in element:
        parts.append(ET.tostring(child, encoding="unicode"))
    return "".join(parts)


def outer_xml(element: ET.Element) -> str:
    """Serialise an element with its own tag, without trailing text."""
    clone = copy.copy(element)
    clone.tail = None
    return ET.tostring(clone, encoding="unicode")


def strip_indent(text: str) -> str:
    """
    Remove common leading indentation and surrounding blank lines.

    Raises:
        TypeError: If text is not a string.
    """
    if not isinstance(text, str):
        raise TypeError("strip_indent expects a string input")

    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()

    return textwrap.dedent("\n".join(lines))


# =============================================================================
# Static Kids
# =============================================================================


def no_kids(entry: NodeEntry) -> list[str]:
    return []


def block_kid_ids(entry: NodeEntry) -> list[str]:
    """Ids of block / reference placeholders in an entry's kids, recursing into HTML."""
    ids: list[str] = []

    def collect(kids: Any) -> None:
        if not isinstance(kids, list):
            return
        for kid in kids:
            if isinstance(kid, BlockReference):
                ids.append(kid.id)
            elif isinstance(kid, dict):
                if kid.get("type") in ("block", "reference") and kid.get("id"):
                    ids.append(kid["id"])
                elif kid.get("type") == "html":
                    collect(kid.get("kids"))

    collect(entry.kids)
    return ids


# =============================================================================
# child_parser
# =============================================================================

KidsFn = Callable[..., Any]


def child_parser(
    fn: KidsFn | None = None,
    *,
    static_kids: Callable[[NodeEntry], list[str]] = no_kids,
    name: str | None = None,
):
    """
    Decorator turning a kids function into a plugin factory.

    The wrapped function receives the ParseContext plus any options the
    factory was called with and returns the entry's kids. The plugin
    builds the entry (id, tag, attributes, provenance, metadata) and
    stores it.

    Can be used bare (`@child_parser`) or with arguments
    (`@child_parser(static_kids=block_kid_ids)`).
    """

    def decorate(kids_fn: KidsFn) -> Callable[..., ParserPlugin]:
        plugin_name = name or kids_fn.__name__

        def factory(**options: Any) -> ParserPlugin:
            def parse(ctx: "ParseContext") -> None:
                ctx.store_entry(ctx.id, ctx.entry(kids_fn(ctx, **options)))

            parse.__name__ = f"child_parser({plugin_name})"
            return ParserPlugin(parse=parse, static_kids=static_kids, name=plugin_name)

        factory.__name__ = plugin_name
        factory.__doc__ = kids_fn.__doc__
        factory.static_kids = static_kids
        return factory

    if fn is not None:
        return decorate(fn)
    return decorate


# =============================================================================
# Plugins
# =============================================================================


@child_parser
def ignore(ctx: "ParseContext") -> list:
    return []


def _parse_block_content(ctx: "ParseContext", items: list[ContentItem], allow_html: bool) -> list:
    results: list[Any] = []

    for index, item in enumerate(items):
        if isinstance(item, str):
            if allow_html and item.strip():
                results.append({"type": "text", "text": item})
            continue

        if not is_element(item):
            continue

        if item.tag[:1].isupper():
            placeholder = ctx.parse_node(item, items, index)
            if placeholder is None:
                continue
            results.append(placeholder.model_dump() if allow_html else placeholder)
        elif allow_html:
            results.append(
                {
                    "type": "html",
                    "tag": item.tag,
                    "attributes": dict(item.attrib),
                    "id": item.attrib.get("id"),
                    "kids": _parse_block_content(ctx, list(iter_content(item)), allow_html),
                }
            )

    return results


@child_parser(static_kids=block_kid_ids)
def blocks(ctx: "ParseContext", allow_html: bool = False) -> list:
    """
    Children are blocks.

    Returns BlockReference placeholders, or with allow_html a mixed list
    of {"type": "block" | "reference", "id"}, {"type": "html", ...} and
    {"type": "text", "text"} dicts.
    """
    return _parse_block_content(ctx, list(iter_content(ctx.raw)), allow_html)


blocks.allow_html = lambda: blocks(allow_html=True)


def _extract_text(ctx: "ParseContext") -> str:
    parts = []
    for item in iter_content(ctx.raw):
        if isinstance(item, str):
            parts.append(item)
        elif is_element(item):
            raise ContentError(
                f"<{ctx.tag} id=\"{ctx.id}\"> accepts text only, found nested <{item.tag}>"
            )
    return "".join(parts)


@child_parser
def text(ctx: "ParseContext", postprocess: str | Callable[[str], str] = "trim") -> str:
    """Text-only content. Nested elements are a ContentError."""
    content = _extract_text(ctx)

    if postprocess == "trim":
        return content.strip() + "\n"
    if postprocess == "raw":
        return content
    if postprocess == "strip_indent":
        return strip_indent(content)
    if callable(postprocess):
        return postprocess(content)

    raise ValueError(f"Unknown postprocess option: {postprocess!r}")


text.raw = lambda: text(postprocess="raw")
text.strip_indent = lambda: text(postprocess="strip_indent")


@child_parser
def xml(ctx: "ParseContext") -> str:
    """Inner XML as a string. Lossy for comments and whitespace inside tags."""
    return inner_xml(ctx.raw)


@child_parser
def raw(ctx: "ParseContext") -> dict:
    return {"type": "xml", "xml": outer_xml(ctx.raw)}
