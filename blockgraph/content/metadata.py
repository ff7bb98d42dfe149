"""
Node Metadata - YAML Front-Matter in Preceding Comments

A comment directly before an element (whitespace and plain comments
in between are skipped) may carry YAML front-matter:

    <!--
    ---
    description: A brief description of this activity
    category: psychology
    ---
    -->
    <Vertical id="my_activity">...</Vertical>

The YAML is validated by NodeMetadata. Problems are soft: they become
metadata_error issues and the node gets empty metadata.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from blockgraph.content.parsers import is_comment
from blockgraph.models import ParseIssue, Provenance

logger = structlog.get_logger(__name__)

FRONT_MATTER = re.compile(r"^---\s*\n(.*?)\n\s*---\s*$", re.DOTALL)


class NodeMetadata(BaseModel):
    """Validated front-matter fields."""

    model_config = ConfigDict(extra="forbid")

    description: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    lang: str | None = None


def _excerpt(text: str) -> str:
    lines = text.split("\n")
    shown = "\n   ".join(lines[:5])
    return shown + ("\n   ..." if len(lines) > 5 else "")


def parse_front_matter(
    comment_text: str,
    provenance: Provenance,
) -> NodeMetadata | ParseIssue | None:
    """
    Parse one comment's text.

    Returns:
        None if the comment has no front-matter, a ParseIssue if it has
        broken front-matter, otherwise the validated NodeMetadata.
    """
    trimmed = comment_text.strip()
    match = FRONT_MATTER.match(trimmed)
    if not match:
        return None

    yaml_content = match.group(1)
    try:
        loaded = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        return ParseIssue(
            type="metadata_error",
            message=f"Metadata YAML syntax error: {e}\n\nFound in:\n   {_excerpt(trimmed)}",
            provenance=provenance,
            technical={"yaml_content": yaml_content, "yaml_error": str(e)},
        )

    try:
        return NodeMetadata.model_validate(loaded or {})
    except ValidationError as e:
        problems = "\n".join(
            f"  - {'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        return ParseIssue(
            type="metadata_error",
            message=f"Metadata format error:\n{problems}\n\nFound in:\n   {_excerpt(trimmed)}",
            provenance=provenance,
            technical={"yaml_content": yaml_content, "errors": e.errors(include_url=False)},
        )


def extract_sibling_metadata(
    siblings: Sequence[Any] | None,
    index: int,
    provenance: Provenance,
    issues: list[ParseIssue],
) -> dict[str, Any]:
    """
    Metadata from the nearest preceding front-matter comment.

    Scans backwards from `index`, skipping whitespace text and comments
    without front-matter, and stops at anything else.

    Args:
        siblings: Content items of the parent (strings and Elements).
        index: Position of the current node in `siblings`.
        provenance: For issue reporting.
        issues: Broken front-matter is appended here.

    Returns:
        Metadata fields that were set (empty dict if none).
    """
    if not siblings or index <= 0:
        return {}

    for position in range(index - 1, -1, -1):
        sibling = siblings[position]

        if isinstance(sibling, str):
            if sibling.strip():
                break
            continue

        if not is_comment(sibling):
            break

        result = parse_front_matter(sibling.text or "", provenance)
        if result is None:
            continue
        if isinstance(result, ParseIssue):
            logger.warning("metadata_error", provenance=list(provenance))
            issues.append(result)
            return {}
        return result.model_dump(exclude_none=True)

    return {}
