"""
Block Registry - Tag Name to Blueprint Dispatch

Populated once at startup, then frozen. Resolution is a dictionary
lookup with two soft fallbacks:

1. Exact tag ("Vertical")
2. Capitalised tag ("vertical" -> "Vertical")
3. Case-insensitive match ("VERTICAL" -> "Vertical")

resolve() returns None when nothing matches (the parser then falls back
to its raw plugin). get() is the hard path and raises.
"""

from __future__ import annotations

from typing import Iterable, Iterator

import structlog

from blockgraph.blocks.blueprint import BlockBlueprint
from blockgraph.exceptions import BlockRegistrationError

logger = structlog.get_logger(__name__)


class BlockRegistry:
    """Mapping of tag name -> BlockBlueprint."""

    def __init__(self, blueprints: Iterable[BlockBlueprint] = ()):
        self._blueprints: dict[str, BlockBlueprint] = {}
        self._folded: dict[str, str] = {}
        self._frozen = False

        for blueprint in blueprints:
            self.register(blueprint)

    def register(self, blueprint: BlockBlueprint) -> BlockBlueprint:
        """
        Add a blueprint.

        Raises:
            BlockRegistrationError: If frozen, or the name (case-insensitively)
                                    is taken.
        """
        if self._frozen:
            raise BlockRegistrationError(
                f"Cannot register {blueprint.name}: registry is frozen"
            )
        if not isinstance(blueprint, BlockBlueprint):
            raise BlockRegistrationError(f"Not a BlockBlueprint: {blueprint!r}")

        folded = blueprint.name.casefold()
        if blueprint.name in self._blueprints or folded in self._folded:
            existing = self._folded.get(folded, blueprint.name)
            raise BlockRegistrationError(
                f"Tag {blueprint.name!r} is already registered (as {existing!r})"
            )

        self._blueprints[blueprint.name] = blueprint
        self._folded[folded] = blueprint.name

        logger.debug("block_registered", tag=blueprint.name, grader=blueprint.is_grader)
        return blueprint

    def freeze(self) -> "BlockRegistry":
        """Disallow further registration."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, tag: str) -> BlockBlueprint | None:
        """Look up a tag with the soft fallbacks; None if unknown."""
        blueprint = self._blueprints.get(tag)
        if blueprint is not None:
            return blueprint

        if tag:
            blueprint = self._blueprints.get(tag[0].upper() + tag[1:])
            if blueprint is not None:
                return blueprint

        name = self._folded.get(tag.casefold())
        return self._blueprints[name] if name else None

    def get(self, tag: str) -> BlockBlueprint:
        """
        Look up a tag that must exist.

        Raises:
            BlockRegistrationError: If the tag is unknown.
        """
        blueprint = self.resolve(tag)
        if blueprint is None:
            raise BlockRegistrationError(f"No blueprint registered for tag {tag!r}")
        return blueprint

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and self.resolve(tag) is not None

    def __iter__(self) -> Iterator[BlockBlueprint]:
        return iter(self._blueprints.values())

    def __len__(self) -> int:
        return len(self._blueprints)

    def names(self) -> list[str]:
        return list(self._blueprints)

    def graders(self) -> list[BlockBlueprint]:
        return [bp for bp in self._blueprints.values() if bp.is_grader]

    def inputs(self) -> list[BlockBlueprint]:
        return [bp for bp in self._blueprints.values() if bp.is_input]
