"""
Built-in Blueprints and Attribute Schemas

Structural blocks every document can use, plus the attribute models
other blueprints build on:

    BaseAttributes     id, title, class, url_name, lang (unknown attributes rejected)
    InputAttributes    + slot
    GraderAttributes   + answer, displayAnswer, target

default_registry() returns a frozen registry of the structural blocks.
Applications that define their own blocks start from builtin_blueprints()
instead and freeze the registry themselves.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from blockgraph.blocks.blueprint import BlockBlueprint, create_block
from blockgraph.blocks.ids import VALID_ID_SEGMENT
from blockgraph.blocks.registry import BlockRegistry
from blockgraph.content import parsers


class BaseAttributes(BaseModel):
    """Attributes shared by every block."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str | None = None
    url_name: str | None = None
    title: str | None = None
    class_: str | None = Field(default=None, alias="class")
    lang: str | None = None

    @field_validator("id")
    @classmethod
    def check_id(cls, value: str | None) -> str | None:
        if value is not None and not VALID_ID_SEGMENT.match(value):
            raise ValueError(
                f"ID {value!r} is invalid. IDs may only contain letters, digits, underscores and hyphens."
            )
        return value


class InputAttributes(BaseAttributes):
    slot: str | None = None


class GraderAttributes(BaseAttributes):
    answer: str | None = None
    display_answer: str | None = Field(default=None, alias="displayAnswer")
    target: str | None = None


Vertical = create_block(
    "Vertical",
    parser=parsers.blocks.allow_html(),
    attributes=BaseAttributes,
    description="Stacks children vertically; HTML and text are kept as mixed content.",
)

Sequential = create_block(
    "Sequential",
    parser=parsers.blocks(),
    attributes=BaseAttributes,
    description="Shows children one at a time.",
)

TextBlock = create_block(
    "TextBlock",
    parser=parsers.text(),
    attributes=BaseAttributes,
    description="Plain text.",
)

Markdown = create_block(
    "Markdown",
    parser=parsers.text.strip_indent(),
    attributes=BaseAttributes,
    description="Markdown source with common indentation removed.",
)

# Stored in place of nodes whose content could not be parsed
ErrorNode = create_block(
    "ErrorNode",
    parser=parsers.ignore(),
    description="Shows a parse problem in place of the failed block.",
)


def builtin_blueprints() -> list[BlockBlueprint]:
    return [Vertical, Sequential, TextBlock, Markdown, ErrorNode]


def default_registry() -> BlockRegistry:
    """Frozen registry holding only the built-in blueprints."""
    return BlockRegistry(builtin_blueprints()).freeze()
