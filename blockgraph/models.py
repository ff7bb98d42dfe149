"""
blockgraph Data Models

Pydantic models for parsed content: node entries, child placeholders,
parse issues and the result of one parse pass.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


Provenance = tuple[str, ...]


def format_provenance(provenance: Provenance | list[str] | str | None) -> str:
    """Render a provenance chain for error messages."""
    if not provenance:
        return "<unknown source>"
    if isinstance(provenance, str):
        return provenance
    return " -> ".join(provenance)


# =============================================================================
# Parse Models
# =============================================================================


class NodeEntry(BaseModel):
    """One parsed node, as stored in the idMap. Immutable once stored."""

    model_config = ConfigDict(frozen=True)

    id: str
    tag: str
    attributes: dict[str, str] = Field(default_factory=dict)
    kids: Any = None  # Parser-specific payload
    provenance: Provenance = ()
    generated: bool = False  # True when the id was derived from a structural hash
    metadata: dict[str, Any] = Field(default_factory=dict)


class BlockReference(BaseModel):
    """
    Placeholder a parent keeps in its child list.

    type="block" points at an entry stored by this parse; type="reference"
    comes from <Use ref="..."/> and points at an id defined elsewhere.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["block", "reference"] = "block"
    id: str


IssueType = Literal[
    "unregistered_tag",
    "attribute_validation",
    "metadata_error",
    "content_error",
]


class ParseIssue(BaseModel):
    """A soft, per-node problem. Parsing continues past these."""

    type: IssueType
    message: str
    provenance: Provenance = ()
    id: str | None = None
    tag: str | None = None
    technical: dict[str, Any] = Field(default_factory=dict)


IdMap = dict[str, NodeEntry]


class ParseResult(BaseModel):
    """Result of parsing one (or several) documents."""

    id_map: dict[str, NodeEntry] = Field(default_factory=dict)
    ids: list[str] = Field(default_factory=list)  # Document order (preorder)
    root: str | None = None
    issues: list[ParseIssue] = Field(default_factory=list)

    def issues_of_type(self, issue_type: str) -> list[ParseIssue]:
        return [issue for issue in self.issues if issue.type == issue_type]
