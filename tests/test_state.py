"""Tests for reading, writing and subscribing to field state."""

import pytest
from structlog.testing import capture_logs

from blockgraph.exceptions import UnregisteredFieldError
from blockgraph.state import (
    FieldInfo,
    InMemoryStateStore,
    RuntimeContext,
    key_for,
    read,
    storage_key,
    subscribe,
    update_field,
    write,
)


class TestReadWrite:
    """Tests for read and write."""

    def test_fallback_then_value(self, ctx, field_registry):
        value = field_registry.get("value")

        assert read(ctx, value, id="foo", fallback="bar") == "bar"

        write(ctx, value, "baz", id="foo")

        assert read(ctx, value, id="foo", fallback="bar") == "baz"

    def test_defaults_to_own_id(self, ctx, field_registry):
        value = field_registry.get("value")

        key = write(ctx, value, "mine")

        assert key.id == "q1"
        assert read(ctx, value, id="q1") == "mine"

    def test_field_default(self, ctx, field_registry):
        assert read(ctx, field_registry.get("counter")) == 0
        assert read(ctx, field_registry.get("value")) is None

    def test_falsy_values_are_stored(self, ctx, field_registry):
        value = field_registry.get("value")
        write(ctx, value, "")

        assert read(ctx, value, fallback="unset") == ""

    def test_write_logs_event(self, ctx, field_registry):
        with capture_logs() as logs:
            write(ctx, field_registry.get("counter"), 1)

        updates = [log for log in logs if log["event"] == "field_updated"]
        assert updates[0]["key"] == "component:q1.counter"
        assert updates[0]["log_level"] == "debug"

    def test_update_field(self, ctx, field_registry):
        counter = field_registry.get("counter")

        assert update_field(ctx, counter, lambda n: n + 1) == 1
        assert update_field(ctx, counter, lambda n: n + 1) == 2
        assert read(ctx, counter) == 2


class TestUnregisteredFields:
    """Unregistered fields fail immediately."""

    ghost = FieldInfo(name="ghost", event="UPDATE_GHOST")

    def test_read(self, ctx):
        with pytest.raises(UnregisteredFieldError):
            read(ctx, self.ghost, fallback="x")

    def test_write(self, ctx, store):
        with pytest.raises(UnregisteredFieldError):
            write(ctx, self.ghost, "x")

        assert store.count() == 0

    def test_subscribe(self, ctx):
        with pytest.raises(UnregisteredFieldError):
            subscribe(ctx, self.ghost, lambda key, value: None)

    def test_forged_descriptor(self, ctx):
        forged = FieldInfo(name="value", event="UPDATE_VALUE", scope="global")

        with pytest.raises(UnregisteredFieldError):
            write(ctx, forged, "x")


class TestScopes:
    """Tests for scope isolation."""

    def test_component_instances_are_isolated(self, store, field_registry):
        value = field_registry.get("value")
        first = RuntimeContext(store=store, id="item", id_prefix="list1", fields=field_registry)
        second = RuntimeContext(store=store, id="item", id_prefix="list2", fields=field_registry)

        write(first, value, "one")

        assert read(first, value) == "one"
        assert read(second, value) is None

    def test_absolute_id_is_shared(self, store, field_registry):
        value = field_registry.get("value")
        first = RuntimeContext(store=store, id="x", id_prefix="list1", fields=field_registry)
        second = RuntimeContext(store=store, id="x", id_prefix="list2", fields=field_registry)

        write(first, value, "shared", id="/summary")

        assert read(second, value, id="/summary") == "shared"

    def test_system_scope_ignores_prefix(self, store, field_registry):
        progress = field_registry.get("progress")
        first = RuntimeContext(store=store, id="item", id_prefix="list1", fields=field_registry)
        second = RuntimeContext(store=store, id="item", id_prefix="list2", fields=field_registry)

        write(first, progress, 0.5)

        assert read(second, progress) == 0.5

    def test_global_scope_ignores_id(self, store, field_registry):
        theme = field_registry.get("theme")
        first = RuntimeContext(store=store, id="a", fields=field_registry)
        second = RuntimeContext(store=store, id="b", id_prefix="p", fields=field_registry)

        assert read(first, theme) == "light"

        write(first, theme, "dark")

        assert read(second, theme) == "dark"
        assert key_for(second, theme) == storage_key("global", None, "theme")


class TestSubscriptions:
    """Tests for fine-grained notification."""

    def test_only_exact_key_is_notified(self, ctx, field_registry):
        value = field_registry.get("value")
        seen = []
        subscribe(ctx, value, lambda key, v: seen.append(v), id="a")

        write(ctx, value, "to b", id="b")
        write(ctx, field_registry.get("counter"), 5, id="a")
        write(ctx, value, "to a", id="a")

        assert seen == ["to a"]

    def test_notification_is_synchronous(self, ctx, field_registry):
        value = field_registry.get("value")
        seen = []
        subscribe(ctx, value, lambda key, v: seen.append((str(key), v)))

        write(ctx, value, 1)
        assert seen == [("component:q1.value", 1)]

    def test_unsubscribe(self, ctx, field_registry, store):
        value = field_registry.get("value")
        seen = []
        unsubscribe = subscribe(ctx, value, lambda key, v: seen.append(v))

        unsubscribe()
        unsubscribe()
        write(ctx, value, "ignored")

        assert seen == []
        assert store.subscriber_count(key_for(ctx, value)) == 0

    def test_unsubscribe_during_notification(self, ctx, field_registry):
        value = field_registry.get("value")
        seen = []
        unsubscribers = []

        def once(key, v):
            seen.append(("once", v))
            unsubscribers[0]()

        unsubscribers.append(subscribe(ctx, value, once))
        subscribe(ctx, value, lambda key, v: seen.append(("always", v)))

        write(ctx, value, 1)
        write(ctx, value, 2)

        assert seen == [("once", 1), ("always", 1), ("always", 2)]


class TestRuntimeContext:
    """Tests for RuntimeContext helpers."""

    def test_with_node_keeps_store(self, registry, settings, store, quiz_markup):
        from blockgraph.blocks import build_runtime_tree
        from blockgraph.content import DocumentParser

        result = DocumentParser(registry, settings).parse(quiz_markup)
        tree = build_runtime_tree(result.id_map, registry, result.root, id_prefix="p")

        ctx = RuntimeContext.for_node(tree, store)
        moved = ctx.with_node(tree.find("in1"))

        assert moved.store is store
        assert (moved.id, moved.id_prefix, moved.tag) == ("in1", "p", "TextInput")


class TestInMemoryStateStore:
    """Tests for the in-memory store."""

    def test_snapshot_and_clear(self):
        store = InMemoryStateStore()
        store.set(storage_key("component", "b", "value"), 2)
        store.set(storage_key("component", "a", "value"), 1)

        assert store.snapshot() == {"component:a.value": 1, "component:b.value": 2}
        assert store.keys()[0].id == "a"

        assert store.clear() == 2
        assert store.count() == 0

    def test_get_default(self):
        store = InMemoryStateStore()

        assert store.get(storage_key("global", None, "x"), "d") == "d"
        assert store.has(storage_key("global", None, "x")) is False
