"""Tests for ObservableView, ObservableDict, and ObservableList."""

import logging

import pytest

from bindx import (
    BatchQueue,
    ManualTick,
    PathError,
    SubscriptionRegistry,
    is_reactive,
    unwrap,
    with_tracking,
    wrap,
)


def _store(data, **kwargs):
    """wrap() with a private registry and batch queue; returns all three."""
    registry = SubscriptionRegistry()
    delivered = []
    batch = BatchQueue(lambda path, value: delivered.append((path, value)), ManualTick())
    view = wrap(data, registry=registry, batch=batch, **kwargs)
    return view, registry, batch, delivered


def _listen(registry, path):
    seen = []
    registry.subscribe(path, lambda p: seen.append(p))
    return seen


class TestWrap:
    def test_idempotent(self):
        v = wrap({"a": 1})
        assert wrap(v) is v

    def test_primitives_pass_through(self):
        assert wrap(5) == 5
        assert wrap("text") == "text"
        assert wrap(None) is None

    def test_original_preserved(self):
        data = {"a": 1}
        v = wrap(data)
        assert is_reactive(v)
        assert not is_reactive(data)
        assert unwrap(v) is data
        assert v.raw is data

    def test_list_root(self):
        v = wrap([1, 2, 3])
        assert len(v) == 3
        assert list(v) == [1, 2, 3]

    def test_child_view_cached(self):
        v = wrap({"user": {"name": "Ann"}})
        assert is_reactive(v.user)
        assert v.user is v["user"]
        assert v.user.path == "user"

    def test_child_cache_dropped_on_overwrite(self):
        v = wrap({"user": {"name": "Ann"}})
        first = v.user
        v.user = {"name": "Bea"}
        assert v.user is not first
        assert v.user.name == "Bea"

    def test_child_rewrapped_when_backing_object_replaced(self):
        data = {"user": {"name": "Ann"}}
        v = wrap(data)
        first = v.user
        data["user"] = {"name": "Cat"}  # behind the view's back
        assert v.user is not first
        assert v.user.name == "Cat"

    def test_list_item_path(self):
        v = wrap({"items": [{"id": 1}]})
        assert v["items"][0].path == "items.0"


class TestReads:
    def test_reads_are_tracked(self):
        v = wrap({"user": {"name": "Ann"}})
        tracked = with_tracking(lambda: v.user.name)
        assert tracked.result == "Ann"
        assert tracked.dependencies == {"user", "user.name"}

    def test_untracked_read_records_nothing(self):
        v = wrap({"a": 1})
        assert v.a == 1
        assert with_tracking(lambda: 1).dependencies == frozenset()

    def test_get_path(self):
        v = wrap({"user": {"name": "Ann"}})
        assert v.get("user.name") == "Ann"
        assert v.get("") is v

    def test_get_through_primitive_returns_default(self):
        v = wrap({"user": {"name": "Ann"}})
        assert v.get("user.name.first") is None
        assert v.get("missing.key", "fallback") == "fallback"

    def test_get_list_index(self):
        v = wrap({"items": [10, 20]})
        assert v.get("items.1") == 20
        assert v.get("items.5") is None
        assert v.get("items.x") is None

    def test_item_access_keeps_container_semantics(self):
        v = wrap({"a": 1, "items": [1]})
        with pytest.raises(KeyError):
            v["missing"]
        with pytest.raises(IndexError):
            v["items"][3]
        assert not hasattr(v, "missing")

    def test_keys_values_items(self):
        v = wrap({"a": 1, "b": {"c": 2}})
        tracked = with_tracking(lambda: list(v.keys()))
        assert tracked.result == ["a", "b"]
        assert tracked.dependencies == {""}
        assert is_reactive(dict(v.items())["b"])
        assert v.values()[0] == 1

    def test_equality_compares_raw(self):
        v = wrap({"a": [1, 2]})
        assert v["a"] == [1, 2]
        assert v == {"a": [1, 2]}


class TestWrites:
    def test_write_notifies_sync_then_batches(self):
        v, registry, batch, delivered = _store({"a": 1})
        seen = _listen(registry, "a")
        v.a = 2
        assert seen == ["a"]
        assert batch.pending() == {"a": 2}
        assert delivered == []
        batch.flush()
        assert delivered == [("a", 2)]

    def test_equal_write_is_noop(self):
        v, registry, batch, _ = _store({"a": 1, "user": {"name": "Ann"}})
        seen = _listen(registry, "a")
        user_seen = _listen(registry, "user")
        v.a = v.a
        v.user = v.user
        v["a"] = 1
        assert seen == []
        assert user_seen == []
        assert batch.pending() == {}

    def test_equal_value_of_other_type_is_written(self):
        data = {"flag": True, "n": 1}
        v, registry, _, _ = _store(data)
        flag_seen = _listen(registry, "flag")
        n_seen = _listen(registry, "n")
        v.flag = 1
        v.set("n", 1.0)
        assert type(data["flag"]) is int
        assert type(v.get("n")) is float
        assert flag_seen == ["flag"]
        assert n_seen == ["n"]

    def test_equal_new_container_is_written(self):
        data = {"user": {"name": "Ann"}}
        v, registry, _, _ = _store(data)
        seen = _listen(registry, "user")
        replacement = {"name": "Ann"}
        v.user = replacement
        assert data["user"] is replacement
        assert seen == ["user"]

    def test_nested_write(self):
        data = {"user": {"name": "Ann"}}
        v, registry, _, _ = _store(data)
        seen = _listen(registry, "user.name")
        v.user.name = "Bea"
        assert seen == ["user.name"]
        assert data["user"]["name"] == "Bea"

    def test_set_get_round_trip(self):
        v, _, batch, delivered = _store({"user": {"name": "Bea"}})
        v.set("user.name", "Ann")
        assert v.get("user.name") == "Ann"
        assert delivered == []
        assert batch.is_scheduled

    def test_set_through_missing_parent_raises(self):
        v, _, _, _ = _store({"a": 1})
        with pytest.raises(PathError):
            v.set("missing.key", 1)
        with pytest.raises(KeyError):
            v.set("a.b", 1)

    def test_views_stored_raw(self):
        data = {"user": {"name": "Ann"}}
        v, _, _, _ = _store(data)
        v.other = v.user
        assert data["other"] is data["user"]

    def test_delete_notifies_none(self):
        data = {"a": 1, "b": 2}
        changes = []
        v, registry, batch, _ = _store(data, on_change=lambda path, value: changes.append((path, value)))
        seen = _listen(registry, "a")
        del v.a
        assert "a" not in data
        assert seen == ["a"]
        assert changes == [("a", None)]
        assert batch.pending() == {"a": None}

    def test_delete_absent_is_noop(self):
        v, registry, batch, _ = _store({"a": 1})
        seen = _listen(registry, "zzz")
        del v["zzz"]
        v.delete("zzz")
        assert seen == []
        assert batch.pending() == {}

    def test_delete_path(self):
        data = {"user": {"name": "Ann", "age": 3}}
        v, registry, _, _ = _store(data)
        seen = _listen(registry, "user.age")
        v.delete("user.age")
        assert data == {"user": {"name": "Ann"}}
        assert seen == ["user.age"]

    def test_on_change(self):
        changes = []
        v, _, _, _ = _store({"a": 1}, on_change=lambda path, value: changes.append((path, value)))
        v.a = 2
        v.a = 2
        assert changes == [("a", 2)]

    def test_on_change_failure_is_isolated(self, caplog):
        def _boom(path, value):
            raise RuntimeError("boom")

        v, registry, _, _ = _store({"a": 1}, on_change=_boom)
        seen = _listen(registry, "a")
        with caplog.at_level(logging.ERROR, logger="bindx.observable"):
            v.a = 2
        assert seen == ["a"]
        assert "on_change callback failed" in caplog.text

    def test_dict_helpers(self):
        data = {"a": 1}
        v, registry, _, _ = _store(data)
        seen = _listen(registry, "b")
        v.update({"b": 2}, c=3)
        assert data == {"a": 1, "b": 2, "c": 3}
        assert seen == ["b"]
        assert v.setdefault("d", 4) == 4
        assert v.pop("a") == 1
        assert v.pop("a", None) is None
        v.clear()
        assert data == {}

    def test_view_attribute_names_need_item_syntax(self):
        data = {"path": "/home"}
        v, registry, _, _ = _store(data)
        seen = _listen(registry, "path")
        with pytest.raises(AttributeError):
            v.path = "/tmp"
        with pytest.raises(AttributeError):
            del v.raw
        assert v.path == ""
        v["path"] = "/tmp"
        assert v["path"] == "/tmp"
        assert seen == ["path"]


class TestLists:
    def test_index_write(self):
        data = {"items": [1, 2]}
        v, registry, _, _ = _store(data)
        seen = _listen(registry, "items.0")
        v["items"][0] = 5
        assert data["items"] == [5, 2]
        assert seen == ["items.0"]

    def test_structural_mutation_notifies_container(self):
        data = {"items": [1, 2]}
        v, registry, batch, _ = _store(data)
        seen = _listen(registry, "items")
        v["items"].append(3)
        v["items"].insert(0, 0)
        assert v["items"].pop() == 3
        v["items"].remove(0)
        v["items"].extend([7, 8])
        assert data["items"] == [1, 2, 7, 8]
        assert seen == ["items"] * 5
        assert batch.pending() == {"items": [1, 2, 7, 8]}

    def test_len_tracks_container(self):
        v = wrap({"items": [1, 2]})
        tracked = with_tracking(lambda: len(v["items"]))
        assert tracked.result == 2
        assert tracked.dependencies == {"items"}

    def test_negative_index_uses_canonical_path(self):
        v = wrap({"items": [1, 2]})
        tracked = with_tracking(lambda: v["items"][-1])
        assert tracked.result == 2
        assert tracked.dependencies == {"items", "items.1"}

    def test_iteration_wraps_children(self):
        v = wrap({"items": [{"id": 1}, {"id": 2}]})
        children = list(v["items"])
        assert all(is_reactive(c) for c in children)
        assert [c.id for c in children] == [1, 2]
        assert children[1].path == "items.1"

    def test_slice_is_plain(self):
        v = wrap({"items": [1, 2, 3]})
        assert v["items"][1:] == [2, 3]

    def test_set_by_path_index(self):
        data = {"items": [1, 2]}
        v, registry, _, _ = _store(data)
        seen = _listen(registry, "items.1")
        v.set("items.1", 9)
        assert data["items"] == [1, 9]
        assert seen == ["items.1"]


class TestShallow:
    def test_nested_values_stay_raw(self):
        data = {"user": {"name": "Ann"}, "a": 1}
        v, registry, _, _ = _store(data, deep=False)
        nested = _listen(registry, "user.name")
        top = _listen(registry, "a")
        assert not is_reactive(v.user)
        v.user["name"] = "Bea"
        v.a = 2
        assert nested == []
        assert top == ["a"]

    def test_set_path_writes_without_notifying(self):
        data = {"user": {"name": "Ann"}}
        v, registry, _, _ = _store(data, deep=False)
        seen = _listen(registry, "user.name")
        v.set("user.name", "Bea")
        assert data["user"]["name"] == "Bea"
        assert seen == []


class TestCycles:
    def _cycle_warnings(self, caplog):
        return [r for r in caplog.records if "Circular reference" in r.getMessage()]

    def test_self_reference(self, caplog):
        data = {"name": "root"}
        data["self"] = data
        with caplog.at_level(logging.WARNING, logger="bindx.observable"):
            v = wrap(data)
            first = v["self"]
            second = v["self"]
        assert first is data
        assert second is data
        assert not is_reactive(first)
        assert len(self._cycle_warnings(caplog)) == 1

    def test_indirect_cycle(self, caplog):
        parent = {"name": "p"}
        child = {"name": "c", "parent": parent}
        parent["child"] = child
        with caplog.at_level(logging.WARNING, logger="bindx.observable"):
            v = wrap(parent)
            assert v.child.name == "c"
            assert v.child.parent is parent
        assert len(self._cycle_warnings(caplog)) == 1

    def test_cycle_created_by_write(self, caplog):
        v = wrap({"child": {}})
        with caplog.at_level(logging.WARNING, logger="bindx.observable"):
            v.child.parent = v
            assert v.child.parent is unwrap(v)
            assert v.child.parent is unwrap(v)
        assert len(self._cycle_warnings(caplog)) == 1

    def test_shared_subtree_is_not_a_cycle(self, caplog):
        shared = {"x": 1}
        with caplog.at_level(logging.WARNING, logger="bindx.observable"):
            v = wrap({"a": shared, "b": shared})
            assert is_reactive(v.a)
            assert is_reactive(v.b)
            assert v.b.path == "b"
        assert self._cycle_warnings(caplog) == []
