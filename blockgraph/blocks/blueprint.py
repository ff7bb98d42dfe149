"""
Block Blueprints - Static Definitions of Tags

A blueprint is everything the core knows about a tag: how to parse it,
which children it statically references, which state fields it owns and
which capabilities it has (grader, input, ...). Blueprints are created
once at startup and never mutated.

The `component` slot is opaque. Rendering code stores whatever it needs
there; this package only forwards it.

Usage:
    from blockgraph.blocks import create_block
    from blockgraph.content import parsers

    Vertical = create_block("Vertical", parser=parsers.blocks())
    StringGrader = create_block("StringGrader", parser=parsers.blocks(), is_grader=True)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable

from pydantic import BaseModel

from blockgraph.exceptions import BlockRegistrationError
from blockgraph.state.fields import COMMON_FIELDS, FieldTable

if TYPE_CHECKING:
    from blockgraph.content.parser import ParseContext
    from blockgraph.models import NodeEntry
    from blockgraph.state.access import RuntimeContext

ParserFn = Callable[["ParseContext"], Any]
StaticKidsFn = Callable[["NodeEntry"], list[str]]
GetValueFn = Callable[["RuntimeContext", str], Any]

# Standard fields every grader owns
GRADER_FIELDS = ("correct", "message", "show_answer", "submit_count")


@dataclass(frozen=True)
class ParserPlugin:
    """A per-tag parser paired with its static child lister."""

    parse: ParserFn
    static_kids: StaticKidsFn
    name: str = ""

    def __call__(self, ctx: "ParseContext") -> Any:
        return self.parse(ctx)


@dataclass(frozen=True)
class BlockBlueprint:
    """Registered definition of one tag."""

    name: str
    parser: ParserFn
    static_kids: StaticKidsFn
    fields: FieldTable = field(default_factory=FieldTable)
    get_value: GetValueFn | None = None
    is_grader: bool = False
    is_input: bool = False
    flags: frozenset[str] = frozenset()
    attributes: type[BaseModel] | None = None
    validate_attributes: Callable[[dict[str, Any]], list[str]] | None = None
    description: str = ""
    namespace: str = ""
    component: Any = None

    def has(self, flag: str) -> bool:
        """Check a capability flag (is_grader / is_input count as "grader" / "input")."""
        if flag == "grader":
            return self.is_grader
        if flag == "input":
            return self.is_input
        return flag in self.flags


def _with_grader_fields(fields: FieldTable) -> FieldTable:
    missing = [name for name in GRADER_FIELDS if name not in fields]
    if not missing:
        return fields
    return fields.extend(FieldTable(COMMON_FIELDS[name] for name in missing))


def create_block(
    name: str,
    parser: ParserPlugin | ParserFn,
    *,
    static_kids: StaticKidsFn | None = None,
    fields: FieldTable | None = None,
    get_value: GetValueFn | None = None,
    is_grader: bool = False,
    is_input: bool | None = None,
    flags: Iterable[str] = (),
    attributes: type[BaseModel] | None = None,
    validate_attributes: Callable[[dict[str, Any]], list[str]] | None = None,
    description: str = "",
    namespace: str = "",
    component: Any = None,
) -> BlockBlueprint:
    """
    Build a blueprint.

    Graders gain the common correct / message / show_answer /
    submit_count fields. A block is an input when it can report a value
    (get_value given) unless is_input says otherwise.

    Raises:
        BlockRegistrationError: Missing name, or no way to list static kids.
    """
    if not isinstance(name, str) or not name.strip():
        raise BlockRegistrationError("create_block: a non-empty name is required")

    # "_Foo" is the conventional private name of the Foo tag
    tag_name = name[1:] if name.startswith("_") else name

    if isinstance(parser, ParserPlugin):
        parse_fn = parser.parse
        static_kids = static_kids or parser.static_kids
    elif callable(parser):
        parse_fn = parser
    else:
        raise BlockRegistrationError(f"create_block: parser for {tag_name} is not callable")

    if static_kids is None:
        raise BlockRegistrationError(
            f"create_block: {tag_name} needs static_kids (pass a ParserPlugin or static_kids=)"
        )

    table = fields if fields is not None else FieldTable()
    if is_grader:
        table = _with_grader_fields(table)

    return BlockBlueprint(
        name=tag_name,
        parser=parse_fn,
        static_kids=static_kids,
        fields=table,
        get_value=get_value,
        is_grader=is_grader,
        is_input=(get_value is not None) if is_input is None else is_input,
        flags=frozenset(flags),
        attributes=attributes,
        validate_attributes=validate_attributes,
        description=description,
        namespace=namespace,
        component=component,
    )


def block_factory(namespace: str) -> Callable[..., BlockBlueprint]:
    """Bind create_block to a namespace, e.g. `core = block_factory("org.example.core")`."""

    def create(name: str, parser: ParserPlugin | ParserFn, **kwargs: Any) -> BlockBlueprint:
        return create_block(name, parser, namespace=namespace, **kwargs)

    return create
