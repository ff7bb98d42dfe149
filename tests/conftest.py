"""Pytest configuration and shared fixtures."""

import pytest

from blockgraph.blocks import BlockRegistry, create_block
from blockgraph.blocks.builtin import GraderAttributes, InputAttributes, builtin_blueprints
from blockgraph.config import Settings
from blockgraph.content import parsers
from blockgraph.state import COMMON_FIELDS, FieldRegistry, InMemoryStateStore, RuntimeContext, read


def text_input_value(ctx, node_id):
    return read(ctx, COMMON_FIELDS.value, id=node_id, fallback="")


def check_answer(attributes):
    if attributes.get("answer") == "":
        return ["answer must not be empty"]
    return []


StringGrader = create_block(
    "StringGrader",
    parser=parsers.blocks(),
    is_grader=True,
    attributes=GraderAttributes,
    validate_attributes=check_answer,
)

TextInput = create_block(
    "TextInput",
    parser=parsers.ignore(),
    get_value=text_input_value,
    attributes=InputAttributes,
)


@pytest.fixture
def settings():
    """Parser settings with attribute validation on."""
    return Settings(validate_attributes=True)


@pytest.fixture
def registry():
    """Frozen registry with the built-ins plus a grader and an input."""
    return BlockRegistry([*builtin_blueprints(), StringGrader, TextInput]).freeze()


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def field_registry():
    """A fresh field registry, isolated from the process-wide one."""
    registry = FieldRegistry()
    registry.register_fields(
        [
            "value",
            {"name": "counter", "default": 0},
            {"name": "progress", "scope": "system"},
            {"name": "theme", "scope": "global", "default": "light"},
        ]
    )
    return registry


@pytest.fixture
def ctx(store, field_registry):
    """Context for a block "q1" with no instance prefix."""
    return RuntimeContext(store=store, id="q1", fields=field_registry)


@pytest.fixture
def quiz_markup():
    """A page with two graders and three inputs."""
    return """
<Vertical id="page">
  <StringGrader id="g1" answer="42">
    <TextInput id="in1"/>
    <TextInput id="in2"/>
  </StringGrader>
  <StringGrader id="g2" target="in3"/>
  <TextInput id="in3"/>
</Vertical>
"""
