"""Tests for the parse data models."""

import pytest
from pydantic import ValidationError

from blockgraph.models import BlockReference, NodeEntry, ParseIssue, ParseResult, format_provenance


class TestFormatProvenance:
    """Tests for format_provenance."""

    def test_chain(self):
        assert format_provenance(("course", "unit1.xml")) == "course -> unit1.xml"

    def test_string(self):
        assert format_provenance("a.xml") == "a.xml"

    @pytest.mark.parametrize("value", [None, (), []])
    def test_unknown(self, value):
        assert format_provenance(value) == "<unknown source>"


class TestNodeEntry:
    """Tests for NodeEntry."""

    def test_defaults(self):
        entry = NodeEntry(id="x", tag="Vertical")

        assert entry.attributes == {}
        assert entry.kids is None
        assert entry.provenance == ()
        assert entry.generated is False
        assert entry.metadata == {}

    def test_frozen(self):
        entry = NodeEntry(id="x", tag="Vertical")

        with pytest.raises(ValidationError):
            entry.tag = "Sequential"

    def test_model_copy_for_updates(self):
        entry = NodeEntry(id="x", tag="Vertical", kids=[BlockReference(id="a")])

        updated = entry.model_copy(update={"kids": []})

        assert updated.kids == []
        assert entry.kids == [BlockReference(id="a")]


class TestBlockReference:
    """Tests for BlockReference."""

    def test_default_type(self):
        assert BlockReference(id="a").model_dump() == {"type": "block", "id": "a"}

    def test_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            BlockReference(type="link", id="a")


class TestParseResult:
    """Tests for ParseResult."""

    def test_issues_of_type(self):
        result = ParseResult(
            issues=[
                ParseIssue(type="unregistered_tag", message="a"),
                ParseIssue(type="metadata_error", message="b"),
                ParseIssue(type="unregistered_tag", message="c"),
            ]
        )

        assert [i.message for i in result.issues_of_type("unregistered_tag")] == ["a", "c"]
        assert result.issues_of_type("content_error") == []

    def test_rejects_unknown_issue_type(self):
        with pytest.raises(ValidationError):
            ParseIssue(type="oops", message="x")
