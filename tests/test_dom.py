"""Tests for runtime trees and relationship inference."""

import pytest
from structlog.testing import capture_logs

from blockgraph.blocks import (
    BlockRegistry,
    build_runtime_tree,
    create_block,
    extract_child_text,
    get_grader,
    get_inputs,
    get_kids_bfs,
    get_kids_dfs,
    get_parents,
    get_value_by_id,
    infer_related_nodes,
    is_grader,
    normalize_infer,
    normalize_targets,
)
from blockgraph.blocks.builtin import builtin_blueprints
from blockgraph.content import DocumentParser, parsers
from blockgraph.exceptions import (
    AmbiguousGraderError,
    GraderNotFoundError,
    InvalidInferError,
    InvalidReferenceError,
    ResolutionError,
)
from blockgraph.models import BlockReference, NodeEntry
from blockgraph.state import COMMON_FIELDS, RuntimeContext, write

A = create_block("A", parser=parsers.blocks(), is_grader=True)
B = create_block("B", parser=parsers.ignore())


@pytest.fixture
def ab_registry():
    return BlockRegistry([*builtin_blueprints(), A, B]).freeze()


def tree_for(markup, registry, settings, prefix=None):
    result = DocumentParser(registry, settings).parse(markup, "test.xml")
    return build_runtime_tree(result.id_map, registry, result.root, id_prefix=prefix)


@pytest.fixture
def quiz(registry, settings, quiz_markup):
    return tree_for(quiz_markup, registry, settings)


class TestRuntimeTree:
    """Tests for build_runtime_tree and RuntimeNode."""

    def test_structure(self, quiz):
        assert quiz.id == "page"
        assert [kid.id for kid in quiz.kids] == ["g1", "g2", "in3"]
        assert [kid.id for kid in quiz.kids[0].kids] == ["in1", "in2"]

    def test_find_and_path(self, quiz):
        node = quiz.find("in2")

        assert node.tag == "TextInput"
        assert node.parent.id == "g1"
        assert node.root() is quiz
        assert node.path() == ["page", "g1", "in2"]
        assert node.event_context() == "page.g1.in2"

    def test_find_accepts_references(self, quiz):
        assert quiz.find("/in1").id == "in1"
        assert quiz.find("missing") is None

    def test_reused_definition_appears_twice(self, registry, settings):
        tree = tree_for(
            '<Vertical id="page"><TextInput id="shared"/><Use ref="shared"/></Vertical>',
            registry,
            settings,
        )

        assert [kid.id for kid in tree.kids] == ["shared", "shared"]
        assert tree.kids[0] is not tree.kids[1]

    def test_prefix_is_applied(self, quiz_markup, registry, settings):
        tree = tree_for(quiz_markup, registry, settings, prefix="list1:0")

        assert tree.find("in1").id_prefix == "list1:0"

    def test_cycle_is_cut(self, registry):
        id_map = {
            "a": NodeEntry(id="a", tag="Sequential", kids=[BlockReference(id="b")]),
            "b": NodeEntry(id="b", tag="Sequential", kids=[BlockReference(type="reference", id="a")]),
        }

        with capture_logs() as logs:
            tree = build_runtime_tree(id_map, registry, "a")

        assert tree.kids[0].id == "b"
        assert tree.kids[0].kids == []
        assert any(log["event"] == "reference_cycle" for log in logs)

    def test_missing_child_is_skipped(self, registry):
        id_map = {"a": NodeEntry(id="a", tag="Sequential", kids=[BlockReference(id="gone")])}

        tree = build_runtime_tree(id_map, registry, "a")

        assert tree.kids == []

    def test_unknown_root(self, registry):
        with pytest.raises(KeyError):
            build_runtime_tree({}, registry, "nope")

    def test_unregistered_tag_has_no_blueprint(self, registry):
        id_map = {"m": NodeEntry(id="m", tag="Mystery")}

        tree = build_runtime_tree(id_map, registry, "m")

        assert tree.blueprint is None
        assert not is_grader(tree)


class TestTraversal:
    """Tests for ancestor and descendant walks."""

    def test_get_parents_closest_first(self, quiz):
        node = quiz.find("in1")

        assert [n.id for n in get_parents(node)] == ["g1", "page"]
        assert [n.id for n in get_parents(node, include_self=True)] == ["in1", "g1", "page"]

    def test_dfs_is_preorder(self, quiz):
        assert [n.id for n in get_kids_dfs(quiz)] == ["g1", "in1", "in2", "g2", "in3"]

    def test_bfs_is_level_order(self, quiz):
        assert [n.id for n in get_kids_bfs(quiz)] == ["g1", "g2", "in3", "in1", "in2"]


class TestInferRelatedNodes:
    """Tests for infer_related_nodes."""

    def test_nearest_grader_parent(self, ab_registry, settings):
        tree = tree_for('<A id="a1"><B id="b1"/></A>', ab_registry, settings)

        ids = infer_related_nodes(tree.find("b1"), is_grader, infer=["parents"])

        assert ids == ["a1"]

    def test_only_the_nearest_ancestor(self, ab_registry, settings):
        tree = tree_for('<A id="outer"><A id="inner"><B id="b"/></A></A>', ab_registry, settings)

        assert infer_related_nodes(tree.find("b"), is_grader, infer="parents") == ["inner"]

    def test_all_matching_kids(self, ab_registry, settings):
        tree = tree_for(
            '<Vertical id="v"><A id="x"><A id="y"/></A><B id="b"/><A id="z"/></Vertical>',
            ab_registry,
            settings,
        )

        assert infer_related_nodes(tree, is_grader, infer="kids") == ["x", "y", "z"]

    def test_closest_kid(self, ab_registry, settings):
        tree = tree_for('<Vertical id="v"><A id="x"/><A id="y"/></Vertical>', ab_registry, settings)

        assert infer_related_nodes(tree, is_grader, infer="kids", closest=True) == ["x"]

    def test_both_directions_deduplicated(self, ab_registry, settings):
        tree = tree_for('<A id="top"><Vertical id="mid"><A id="bottom"/></Vertical></A>', ab_registry, settings)

        ids = infer_related_nodes(tree.find("mid"), is_grader)

        assert ids == ["top", "bottom"]

    def test_targets_override_everything(self, ab_registry, settings):
        tree = tree_for('<A id="a1"><B id="b1"/></A>', ab_registry, settings)

        ids = infer_related_nodes(tree.find("b1"), is_grader, infer="parents", targets="x, y, x")

        assert ids == ["x", "y"]

    def test_targets_list_and_paths(self, quiz):
        ids = infer_related_nodes(quiz, is_grader, targets=["/a", "./b", "a"])

        assert ids == ["a", "b"]

    def test_blank_targets_fall_back_to_inference(self, ab_registry, settings):
        tree = tree_for('<A id="a1"><B id="b1"/></A>', ab_registry, settings)

        assert infer_related_nodes(tree.find("b1"), is_grader, targets=" ") == ["a1"]

    def test_no_match_is_empty(self, ab_registry, settings):
        tree = tree_for('<Vertical id="v"><B id="b"/></Vertical>', ab_registry, settings)

        assert infer_related_nodes(tree.find("b"), is_grader) == []

    def test_infer_false(self, ab_registry, settings):
        tree = tree_for('<A id="a1"><B id="b1"/></A>', ab_registry, settings)

        assert infer_related_nodes(tree.find("b1"), is_grader, infer=False) == []

    def test_context_without_node(self, store):
        with pytest.raises(ValueError):
            infer_related_nodes(RuntimeContext(store=store), is_grader)

    def test_accepts_runtime_context(self, quiz, store):
        ctx = RuntimeContext.for_node(quiz.find("in1"), store)

        assert infer_related_nodes(ctx, is_grader, infer="parents") == ["g1"]


class TestNormalization:
    """Tests for target and infer normalisation."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, ["parents", "kids"]),
            (True, ["parents", "kids"]),
            ("true", ["parents", "kids"]),
            ("TRUE", ["parents", "kids"]),
            (False, []),
            ("false", []),
            ("kids", ["kids"]),
            ("parents, kids", ["parents", "kids"]),
            (["kids", "parents", "kids"], ["kids", "parents"]),
        ],
    )
    def test_normalize_infer(self, value, expected):
        assert normalize_infer(value) == expected

    @pytest.mark.parametrize("value", ["siblings", ["parents", "up"], 3])
    def test_invalid_infer(self, value):
        with pytest.raises(InvalidInferError):
            normalize_infer(value)

    def test_invalid_infer_is_value_error(self):
        with pytest.raises(ValueError):
            normalize_infer("sideways")

    def test_normalize_targets(self):
        assert normalize_targets(None) is None
        assert normalize_targets(False) is None
        assert normalize_targets("") is None
        assert normalize_targets("  ") is None
        assert normalize_targets("x, y x") == ["x", "y", "x"]
        assert normalize_targets(["/a", " b "]) == ["/a", "b"]

    def test_true_target_is_invalid(self):
        with pytest.raises(InvalidReferenceError):
            normalize_targets(True)

    def test_malformed_target(self):
        with pytest.raises(InvalidReferenceError, match="invalid characters"):
            normalize_targets("a.b")


class TestGraderAndInputs:
    """Tests for get_grader and get_inputs."""

    def test_grader_of_input(self, quiz):
        assert get_grader(quiz.find("in1")) == "g1"

    def test_no_grader(self, quiz):
        with pytest.raises(GraderNotFoundError):
            get_grader(quiz.find("in3"))

    def test_ambiguous_grader(self, ab_registry, settings):
        tree = tree_for('<A id="top"><Vertical id="mid"><A id="bottom"/></Vertical></A>', ab_registry, settings)

        with pytest.raises(AmbiguousGraderError) as excinfo:
            get_grader(tree.find("mid"))

        assert isinstance(excinfo.value, ResolutionError)
        assert "top" in str(excinfo.value) and "bottom" in str(excinfo.value)

    def test_grader_infer_override(self, ab_registry, settings):
        tree = tree_for('<A id="top"><Vertical id="mid"><A id="bottom"/></Vertical></A>', ab_registry, settings)

        assert get_grader(tree.find("mid"), infer="kids") == "bottom"

    def test_inputs_of_grader(self, quiz):
        assert get_inputs(quiz.find("g1")) == ["in1", "in2"]

    def test_target_attribute_wins(self, quiz):
        assert get_inputs(quiz.find("g2")) == ["in3"]


class TestValues:
    """Tests for value resolution."""

    def test_value_through_get_value(self, quiz, store):
        ctx = RuntimeContext.for_node(quiz.find("g1"), store)
        write(ctx, COMMON_FIELDS.value, "42", id="in1")

        assert get_value_by_id(ctx, "in1") == "42"
        assert get_value_by_id(ctx, "in2") == ""

    def test_value_field_fallback(self, quiz, store):
        ctx = RuntimeContext.for_node(quiz, store)

        assert get_value_by_id(ctx, "g1") is None

        write(ctx, COMMON_FIELDS.value, "set", id="g1")
        assert get_value_by_id(ctx, "g1") == "set"

    def test_prefixed_instances_are_isolated(self, quiz_markup, registry, settings, store):
        first = tree_for(quiz_markup, registry, settings, prefix="list1:0")
        second = tree_for(quiz_markup, registry, settings, prefix="list1:1")
        first_ctx = RuntimeContext.for_node(first.find("in1"), store)
        second_ctx = RuntimeContext.for_node(second.find("in1"), store)

        write(first_ctx, COMMON_FIELDS.value, "first")

        assert get_value_by_id(first_ctx, "in1") == "first"
        assert get_value_by_id(second_ctx, "in1") == ""

    def test_extract_child_text(self, quiz, store):
        ctx = RuntimeContext.for_node(quiz, store)
        write(ctx, COMMON_FIELDS.value, "42", id="in1")

        kids = [{"type": "text", "text": "Answer: "}, {"type": "block", "id": "in1"}, " "]

        assert extract_child_text(ctx, kids) == "Answer: 42"
