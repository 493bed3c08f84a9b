"""Tests for the record mutation and notification API."""
import pytest

from liteclass import ChangeEvent, Record, UnknownFieldError


class Item(Record, properties={
    "done": {"default_value": False, "validator": bool},
    "title": {"default_value": "", "validator": str},
}):
    pass


class TodoList(Record,
               properties={"name": {"default_value": "todo", "validator": str}},
               aggregations={"items": {"validator": Item}, "labels": {"validator": str}}):
    pass


ALL_CHANGE = ("change", "change:labels", "change:items")


class TestReads:
    """Read accessors and the lenient/strict asymmetry."""

    def test_defaults(self):
        item = Item()
        assert item.get_property("done") is False
        assert item.get_property("title") == ""

    def test_fresh_aggregation_is_empty(self):
        todo = TodoList()
        assert todo.get_aggregation("items") == []
        assert todo.get_aggregation("labels") == []

    def test_undeclared_reads_return_none(self):
        todo = TodoList()
        assert todo.get_property("missing") is None
        assert todo.get_aggregation("missing") is None
        assert todo.get("missing") is None

    def test_get_aggregation_is_live(self):
        todo = TodoList()
        labels = todo.get_aggregation("labels")
        todo.add_aggregation("labels", "a")
        assert labels == ["a"]
        assert todo.get_aggregation("labels") is labels

    def test_get_dispatches_by_kind(self):
        todo = TodoList({"labels": ["x"]})
        assert todo.get("name") == "todo"
        assert todo.get("labels") == ["x"]

    @pytest.mark.parametrize("call", [
        lambda todo: todo.get_aggregation_at("missing", 0),
        lambda todo: todo.index_of_aggregation("missing", "x"),
        lambda todo: todo.aggregation_as_set("missing"),
        lambda todo: todo.add_aggregation("missing", "x"),
        lambda todo: todo.remove_all_aggregation("missing"),
        lambda todo: todo.set_property("missing", 1),
        lambda todo: todo.set_property("labels", 1),
        lambda todo: todo.add_aggregation("name", "x"),
    ])
    def test_strict_operations_raise(self, call):
        with pytest.raises(UnknownFieldError):
            call(TodoList())

    def test_unknown_field_error_details(self):
        with pytest.raises(UnknownFieldError) as excinfo:
            Item().set_property("name", "test")
        error = excinfo.value
        assert error.field_name == "name"
        assert error.kind == "property"
        assert error.record_type is Item
        assert isinstance(error, KeyError)
        assert "name" in str(error)

    def test_get_aggregation_at(self):
        todo = TodoList({"labels": ["a", "b"]})
        assert todo.get_aggregation_at("labels", 1) == "b"
        assert todo.get_aggregation_at("labels", 2) is None
        assert todo.get_aggregation_at("labels", -1) is None
        assert todo.get_aggregation_at("labels", "0") is None

    def test_index_of_aggregation(self):
        todo = TodoList({"labels": ["a", "b", "a"]})
        assert todo.index_of_aggregation("labels", "a") == 0
        assert todo.index_of_aggregation("labels", "b") == 1
        assert todo.index_of_aggregation("labels", "z") == -1

    def test_aggregation_as_set(self):
        todo = TodoList({"labels": ["a", "b", "a"]})
        assert todo.aggregation_as_set("labels") == frozenset({"a", "b"})
        assert "a" in todo.to_set("labels")

    def test_aggregation_as_set_with_unhashable_items(self):
        Bag = Record.extend(aggregations={"things": None})
        pair = [1, 2]
        bag = Bag({"things": [{"a": 1}, pair, {"a": 1}, "x"]})
        view = bag.aggregation_as_set("things")
        assert len(view) == 3
        assert {"a": 1} in view
        assert pair in view
        assert "x" in view
        assert {"b": 2} not in view
        assert list(view) == [{"a": 1}, [1, 2], "x"]


class TestSetProperty:
    """set_property validation, equality and events."""

    def test_returns_self_for_chaining(self):
        item = Item()
        assert item.set_property("done", True) is item
        assert item.set_property("title", "a").set_property("done", False).get_property("title") == "a"

    def test_scenario_done_flag(self, recorder):
        item = Item()
        recorder.listen(item, "change:done:set")
        item.set_property("done", True)
        assert item.get_property("done") is True
        assert len(recorder.calls) == 1
        event = recorder.events[0]
        assert event.old_value is False
        assert event.new_value is True
        assert event.property == "done"
        assert event.action == "set"
        assert event.source is item

    def test_idempotent_set_emits_once(self, recorder):
        item = Item()
        recorder.listen(item, "change")
        item.set_property("done", True)
        item.set_property("done", True)
        assert len(recorder.calls) == 1

    def test_setting_default_value_is_a_noop(self, recorder):
        item = Item()
        recorder.listen(item, "change")
        item.set_property("done", False)
        assert recorder.calls == []

    def test_equal_values_of_different_type_still_change(self):
        Loose = Record.extend(properties={"value": {"default_value": 0}})
        record = Loose()
        record.set_property("value", False)
        assert record.get_property("value") is False

    def test_rejected_value(self, recorder):
        item = Item()
        recorder.listen(item, "change", "change:done", "change:done:set")
        item.set_property("done", "yes")
        assert item.get_property("done") is False
        assert recorder.calls == []

    def test_three_tier_order(self, recorder):
        item = Item()
        recorder.listen(item, "change:title:set", "change:title", "change")
        item.set_property("title", "buy milk")
        assert recorder.names == ["change", "change:title", "change:title:set"]
        first = recorder.events[0]
        assert all(event is first for event in recorder.events)

    def test_suppress_event(self, recorder):
        item = Item()
        recorder.listen(item, "change")
        item.set_property("done", True, suppress_event=True)
        assert item.get_property("done") is True
        assert recorder.calls == []

    def test_set_alias(self):
        item = Item()
        item.set("title", "x")
        assert item.get("title") == "x"

    def test_falsy_values_are_returned(self):
        Counter = Record.extend(properties={"count": {"default_value": 5}})
        counter = Counter()
        counter.set_property("count", 0)
        assert counter.get_property("count") == 0


class TestAggregationWrites:
    """Positional editing of aggregations."""

    def test_add_and_remove_at_scenario(self):
        todo = TodoList()
        item = Item()
        todo.add_aggregation("items", item)
        assert todo.remove_aggregation_at("items", 0) is item
        assert todo.get_aggregation("items") == []

    def test_invalid_item_ignored(self, recorder):
        todo = TodoList()
        recorder.listen(todo, *ALL_CHANGE)
        todo.add_aggregation("items", None)
        todo.add_first_aggregation("items", "not an item")
        todo.insert_aggregation_at("items", 0, 3)
        assert todo.get_aggregation("items") == []
        assert recorder.calls == []

    def test_add_appends_duplicates(self):
        todo = TodoList()
        todo.add_aggregation("labels", "a").add_aggregation("labels", "a")
        assert todo.get_aggregation("labels") == ["a", "a"]

    def test_add_event(self, recorder):
        todo = TodoList()
        recorder.listen(todo, "change", "change:labels", "change:labels:add")
        todo.add_aggregation("labels", "x")
        assert recorder.names == ["change", "change:labels", "change:labels:add"]
        event = recorder.events[0]
        assert (event.aggregation, event.value, event.index) == ("labels", "x", None)

    def test_add_first(self, recorder):
        todo = TodoList({"labels": ["one"]})
        recorder.listen(todo, "change:labels:addFirst")
        assert todo.add_first_aggregation("labels", "zero").get_aggregation_at("labels", 0) == "zero"
        assert todo.get_aggregation("labels") == ["zero", "one"]
        assert recorder.events[0].value == "zero"

    def test_insert_at(self, recorder):
        todo = TodoList({"labels": ["a", "c"]})
        recorder.listen(todo, "change:labels:insertAt")
        todo.insert_aggregation_at("labels", 1, "b")
        assert todo.get_aggregation("labels") == ["a", "b", "c"]
        assert recorder.events[0].index == 1

    def test_insert_at_zero_prepends(self):
        todo = TodoList({"labels": ["b"]})
        todo.insert_aggregation_at("labels", 0, "a")
        assert todo.get_aggregation("labels") == ["a", "b"]

    @pytest.mark.parametrize("index", [2, 99, -1, "1", None, 1.5])
    def test_insert_out_of_range_appends(self, index, recorder):
        todo = TodoList({"labels": ["a", "b"]})
        recorder.listen(todo, "change:labels:insertAt")
        todo.insert_aggregation_at("labels", index, "z")
        assert todo.get_aggregation("labels") == ["a", "b", "z"]
        assert recorder.events[0].index == 2

    def test_remove_first_and_last(self):
        todo = TodoList({"labels": ["a", "b", "c"]})
        assert todo.remove_first_aggregation("labels") == "a"
        assert todo.remove_last_aggregation("labels") == "c"
        assert todo.get_aggregation("labels") == ["b"]

    @pytest.mark.parametrize("method,action", [
        ("remove_first_aggregation", "removeFirst"),
        ("remove_last_aggregation", "removeLast"),
    ])
    def test_remove_ends_on_empty_still_emit(self, method, action, recorder):
        todo = TodoList()
        recorder.listen(todo, f"change:labels:{action}")
        assert getattr(todo, method)("labels") is None
        assert len(recorder.calls) == 1
        assert recorder.events[0].value is None

    def test_remove_ends_suppressed(self, recorder):
        todo = TodoList()
        recorder.listen(todo, "change")
        todo.remove_first_aggregation("labels", suppress_event=True)
        todo.remove_last_aggregation("labels", suppress_event=True)
        assert recorder.calls == []

    def test_remove_by_equality(self, recorder):
        todo = TodoList({"labels": ["one", "two", "three", "two"]})
        recorder.listen(todo, "change:labels:remove")
        assert todo.remove_aggregation("labels", "two") == "two"
        assert todo.get_aggregation("labels") == ["one", "three", "two"]
        event = recorder.events[0]
        assert (event.value, event.index) == ("two", 1)

    def test_remove_missing_item(self, recorder):
        todo = TodoList({"labels": ["one"]})
        recorder.listen(todo, "change")
        assert todo.remove_aggregation("labels", "five") is None
        assert todo.get_aggregation("labels") == ["one"]
        assert recorder.calls == []

    def test_remove_at(self, recorder):
        todo = TodoList({"labels": ["a", "b", "c"]})
        recorder.listen(todo, "change:labels:removeAt")
        assert todo.remove_aggregation_at("labels", 1) == "b"
        assert todo.get_aggregation("labels") == ["a", "c"]
        assert recorder.events[0].index == 1

    def test_remove_at_index_zero(self):
        todo = TodoList({"labels": ["a", "b"]})
        assert todo.remove_aggregation_at("labels", 0) == "a"
        assert todo.get_aggregation("labels") == ["b"]

    @pytest.mark.parametrize("index", [5, 2, -1, "0", None])
    def test_remove_at_invalid_index(self, index, recorder):
        todo = TodoList({"labels": ["a", "b"]})
        recorder.listen(todo, "change")
        assert todo.remove_aggregation_at("labels", index) is None
        assert todo.get_aggregation("labels") == ["a", "b"]
        assert recorder.calls == []

    def test_remove_all(self, recorder):
        todo = TodoList({"labels": ["a", "b"]})
        labels = todo.get_aggregation("labels")
        recorder.listen(todo, "change:labels:removeAll")
        removed = todo.remove_all_aggregation("labels")
        assert removed == ["a", "b"]
        assert labels == []
        assert todo.get_aggregation("labels") is labels
        assert recorder.events[0].value == ("a", "b")

    def test_remove_all_result_is_detached_from_event(self, recorder):
        todo = TodoList({"labels": ["a", "b"]})
        recorder.listen(todo, "change:labels:removeAll")
        removed = todo.remove_all_aggregation("labels")
        removed.append("c")
        assert recorder.events[0].value == ("a", "b")

    def test_aliases(self):
        todo = TodoList()
        todo.add("labels", "b").add_first("labels", "a").insert_at("labels", 1, "x")
        assert todo.at("labels", 1) == "x"
        assert todo.index_of("labels", "b") == 2
        assert todo.remove("labels", "x") == "x"
        assert todo.remove_at("labels", 1) == "b"
        todo.add("labels", "c")
        assert todo.remove_first("labels") == "a"
        assert todo.remove_last("labels") == "c"
        assert todo.remove_all("labels") == []


class TestChangeEvent:
    """Event payload immutability and projection."""

    def test_event_is_frozen(self, recorder):
        item = Item()
        recorder.listen(item, "change")
        item.set_property("done", True)
        event = recorder.events[0]
        with pytest.raises(Exception):
            event.new_value = False
        assert event.new_value is True

    def test_timestamp_and_name(self, recorder):
        todo = TodoList()
        recorder.listen(todo, "change")
        todo.add_aggregation("labels", "x")
        event = recorder.events[0]
        assert event.timestamp > 0
        assert event.name == "labels"
        assert event.event_names == ("change", "change:labels", "change:labels:add")

    def test_to_dict(self):
        item = Item()
        event = ChangeEvent(source=item, action="set", property="done", old_value=False, new_value=True)
        data = event.to_dict()
        assert data["source"] == item.uid
        assert data["property"] == "done"
        assert data["new_value"] is True
        assert "aggregation" not in data
