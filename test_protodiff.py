"""Tests for ProtoDiff comparison engine."""

import math

import pytest
from protodiff import (
    DiffEngine,
    DiffPolicy,
    EngineConfig,
    InvalidScopeError,
    MaxDepthExceededError,
    Message,
    RepeatedFieldDiff,
    SchemaMismatchError,
    SchemaRegistry,
    ValidationError,
    Verdict,
    allowing_field_descriptors,
    allowing_fields,
    diff,
    from_set_fields,
    ignoring_field_descriptors,
    ignoring_fields,
)

SCHEMA = {
    "package": "test",
    "syntax": "proto2",
    "messages": {
        "Item": {
            "fields": [
                {"name": "name", "number": 1, "type": "string"},
                {"name": "price", "number": 2, "type": "double"},
            ]
        },
        "Header": {
            "fields": [
                {"name": "timestamp", "number": 1, "type": "int64"},
                {"name": "source", "number": 2, "type": "string"},
            ]
        },
        "Order": {
            "fields": [
                {"name": "id", "number": 1, "type": "string"},
                {"name": "total", "number": 2, "type": "double"},
                {"name": "weight", "number": 3, "type": "float"},
                {"name": "values", "number": 4, "type": "int32", "label": "repeated"},
                {"name": "tags", "number": 5, "type": "string", "label": "repeated"},
                {"name": "items", "number": 6, "type": "Item", "label": "repeated"},
                {"name": "counts", "number": 7, "type": "map", "key_type": "string", "value_type": "int32"},
                {"name": "header", "number": 8, "type": "Header"},
                {"name": "item_map", "number": 9, "type": "map", "key_type": "string", "value_type": "Item"},
                {"name": "note", "number": 10, "type": "string"},
            ]
        },
        "Node": {
            "fields": [
                {"name": "value", "number": 1, "type": "int32"},
                {"name": "next", "number": 2, "type": "Node"},
            ]
        },
        "Counter": {
            "syntax": "proto3",
            "fields": [
                {"name": "count", "number": 1, "type": "int32"},
                {"name": "ratio", "number": 2, "type": "double"},
            ]
        },
    },
}

REGISTRY = SchemaRegistry.from_dict(SCHEMA)


def make(type_name, payload):
    return Message.from_dict(REGISTRY.get(type_name), payload)


def order(**payload):
    return make("Order", payload)


def chain(depth, leaf_value):
    node = {"value": leaf_value}
    for i in range(depth):
        node = {"value": i, "next": node}
    return make("Node", node)


def linked_chain(depth):
    """Build a chain without recursing, for depths past the interpreter's recursion limit."""
    node_type = REGISTRY.get("Node")
    value_fd = node_type.find_field_by_name("value")
    next_fd = node_type.find_field_by_name("next")
    node = Message(node_type, {value_fd: 0})
    for i in range(depth):
        node = Message(node_type, {value_fd: i, next_fd: node})
    return node


class TestBasicComparison:
    """Test basic comparison functionality."""

    def test_identical_messages_match(self):
        """Test that a message always matches itself."""
        message = order(
            id="1",
            total=12.5,
            values=[1, 2, 3],
            items=[{"name": "a", "price": 1.0}],
            counts={"a": 1},
            header={"timestamp": 10, "source": "web"},
            **{"$unknown": {100: {"varint": [7]}}},
        )

        result = diff(message, message)
        assert result.is_matched() is True
        assert result.is_ignored() is False

    def test_empty_messages_match(self):
        assert diff(order(), order()).is_matched() is True

    def test_different_values(self):
        """Test that different values are detected."""
        result = diff(order(id="1"), order(id="2"))

        assert result.is_matched() is False
        assert result["id"].verdict == Verdict.MODIFIED
        assert result["id"].actual == "1"
        assert result["id"].expected == "2"

    def test_field_added(self):
        """Test a field set only on the actual message."""
        result = diff(order(id="1", note="x"), order(id="1"))

        assert result.is_matched() is False
        assert result["note"].verdict == Verdict.ADDED
        assert result["id"].verdict == Verdict.MATCHED

    def test_field_removed(self):
        """Test a field set only on the expected message."""
        result = diff(order(id="1"), order(id="1", note="x"))

        assert result["note"].verdict == Verdict.REMOVED

    def test_nested_message_breakdown(self):
        """Test submessage differences are reported inside a breakdown."""
        result = diff(
            order(header={"timestamp": 1, "source": "web"}),
            order(header={"timestamp": 2, "source": "web"}),
        )

        header = result["header"]
        assert header.verdict == Verdict.MODIFIED
        assert header.breakdown["timestamp"].verdict == Verdict.MODIFIED
        assert header.breakdown["source"].verdict == Verdict.MATCHED

    def test_fields_ordered_by_number(self):
        result = diff(order(note="x", id="1", total=1.0), order(id="1"))

        assert [f.name for f in result.fields] == ["id", "total", "note"]


class TestSchemaMismatch:
    """Test errors raised before any comparison."""

    def test_different_message_types(self):
        with pytest.raises(SchemaMismatchError) as exc_info:
            diff(order(id="1"), make("Header", {"timestamp": 1}))

        assert exc_info.value.actual_type == "test.Order"
        assert exc_info.value.expected_type == "test.Header"

    def test_not_a_message(self):
        with pytest.raises(ValidationError):
            diff({"id": "1"}, order(id="1"))


class TestMapFields:
    """Test map comparison by key."""

    def test_map_order_invariance(self):
        """Test that map entry order does not matter."""
        result = diff(order(counts={"a": 1, "b": 2}), order(counts={"b": 2, "a": 1}))
        assert result.is_matched() is True

    def test_map_entry_list_order_invariance(self):
        actual = order(counts=[{"key": "a", "value": 1}, {"key": "b", "value": 2}])
        expected = order(counts=[{"key": "b", "value": 2}, {"key": "a", "value": 1}])

        assert diff(actual, expected).is_matched() is True

    def test_map_value_modified(self):
        result = diff(order(counts={"a": 1, "b": 2}), order(counts={"a": 1, "b": 3}))

        assert result.is_matched() is False
        assert result["counts['a']"].verdict == Verdict.MATCHED
        assert result["counts['b']"].verdict == Verdict.MODIFIED

    def test_map_key_missing(self):
        result = diff(order(counts={"a": 1}), order(counts={"a": 1, "b": 2}))

        assert result["counts['b']"].verdict == Verdict.REMOVED

    def test_map_extra_key_ignored(self):
        """Test extra actual keys are ignored when extra elements are allowed."""
        policy = DiffPolicy().ignoring_extra_repeated_field_elements()
        result = diff(order(counts={"a": 1, "b": 2}), order(counts={"a": 1}), policy=policy)

        assert result.is_matched() is True
        assert result["counts['b']"].verdict == Verdict.IGNORED

    def test_map_extra_key_reported_against_empty_expected(self):
        policy = DiffPolicy().ignoring_extra_repeated_field_elements()
        result = diff(order(counts={"a": 1}), order(), policy=policy)

        assert result["counts['a']"].verdict == Verdict.ADDED

    def test_map_message_values(self):
        result = diff(
            order(item_map={"x": {"name": "a"}}),
            order(item_map={"x": {"name": "b"}}),
        )

        entry = result["item_map['x']"]
        assert entry.verdict == Verdict.MODIFIED
        assert entry.breakdown["name"].verdict == Verdict.MODIFIED

    def test_map_message_value_on_one_side(self):
        result = diff(
            order(item_map={"x": {"name": "a"}}),
            order(item_map={"x": {"name": "a"}, "y": {"name": "b"}}),
        )

        assert result.is_matched() is False
        assert result["item_map['x']"].verdict == Verdict.MATCHED
        entry = result["item_map['y']"]
        assert entry.verdict == Verdict.REMOVED
        assert entry.actual is None
        assert entry.breakdown["name"].verdict == Verdict.REMOVED

    def test_map_message_value_on_one_side_out_of_scope(self):
        result = diff(
            order(total=1.0, item_map={"x": {"name": "a"}}),
            order(total=1.0, item_map={"y": {"name": "b"}}),
            scope=allowing_fields(2),
        )

        assert result.is_matched() is True
        assert result["item_map"].verdict == Verdict.IGNORED


class TestFloatingPointTolerance:
    """Test double and float tolerances."""

    def test_within_tolerance(self):
        policy = DiffPolicy().using_double_tolerance(0.01)
        result = diff(order(total=1.00), order(total=1.005), policy=policy)
        assert result.is_matched() is True

    def test_exceeds_tolerance(self):
        policy = DiffPolicy().using_double_tolerance(0.01)
        result = diff(order(total=1.00), order(total=1.02), policy=policy)

        assert result.is_matched() is False
        assert result["total"].verdict == Verdict.MODIFIED

    def test_nan_never_matches(self):
        """Test NaN does not match NaN, with or without tolerance."""
        nan = float("nan")
        policy = DiffPolicy().using_double_tolerance(0.01)

        assert diff(order(total=nan), order(total=nan), policy=policy).is_matched() is False
        assert diff(order(total=nan), order(total=nan)).is_matched() is False

    def test_infinity_never_matches_with_tolerance(self):
        policy = DiffPolicy().using_double_tolerance(0.01)
        result = diff(order(total=math.inf), order(total=math.inf), policy=policy)
        assert result.is_matched() is False

    def test_exact_without_tolerance(self):
        assert diff(order(total=1.0), order(total=1.0000001)).is_matched() is False

    def test_tolerance_for_one_field(self):
        policy = DiffPolicy().using_double_tolerance_for_fields(0.5, 2)
        assert diff(order(total=1.0), order(total=1.4), policy=policy).is_matched() is True

    def test_later_tolerance_overrides(self):
        policy = DiffPolicy().using_double_tolerance(0.001).using_double_tolerance_for_fields(0.5, 2)
        assert diff(order(total=1.0), order(total=1.3), policy=policy).is_matched() is True

    def test_float_tolerance(self):
        policy = DiffPolicy().using_float_tolerance(0.1)
        assert diff(order(weight=2.0), order(weight=2.05), policy=policy).is_matched() is True

    def test_double_tolerance_does_not_apply_to_float(self):
        policy = DiffPolicy().using_double_tolerance(0.1)
        assert diff(order(weight=2.0), order(weight=2.05), policy=policy).is_matched() is False

    def test_float_tolerance_on_double_field_is_invalid(self):
        policy = DiffPolicy().using_float_tolerance_for_fields(0.1, 2)
        with pytest.raises(InvalidScopeError):
            diff(order(total=1.0), order(total=1.0), policy=policy)

    def test_tolerance_in_repeated_messages(self):
        policy = DiffPolicy().using_double_tolerance(0.01)
        result = diff(
            order(items=[{"name": "a", "price": 1.001}]),
            order(items=[{"name": "a", "price": 1.0}]),
            policy=policy,
        )
        assert result.is_matched() is True


class TestRepeatedFields:
    """Test repeated field comparison modes."""

    def test_by_index(self):
        """Test positional comparison is the default."""
        result = diff(order(values=[1, 2, 3]), order(values=[3, 2, 1]))

        assert result.is_matched() is False
        assert result["values[0]"].verdict == Verdict.MODIFIED
        assert result["values[1]"].verdict == Verdict.MATCHED
        assert result["values[2]"].verdict == Verdict.MODIFIED

    def test_by_index_different_lengths(self):
        result = diff(order(values=[1, 2]), order(values=[1]))

        assert result["values[0]"].verdict == Verdict.MATCHED
        assert result["values[1]"].verdict == Verdict.ADDED

    def test_by_index_messages_different_lengths(self):
        """Test a missing element is compared against the default instance."""
        result = diff(order(items=[{"name": "a"}]), order(items=[{"name": "a"}, {"name": "b"}]))

        assert result.is_matched() is False
        assert result["items[0]"].verdict == Verdict.MATCHED
        missing = result["items[1]"]
        assert missing.verdict == Verdict.REMOVED
        assert missing.actual is None
        assert missing.breakdown["name"].verdict == Verdict.REMOVED

    def test_by_index_messages_extra_element(self):
        result = diff(order(items=[{"name": "a"}, {"name": "b"}]), order(items=[{"name": "a"}]))

        assert result["items[1]"].verdict == Verdict.ADDED
        assert result["items[1]"].breakdown["name"].verdict == Verdict.ADDED

    def test_ignoring_order(self):
        policy = DiffPolicy().ignoring_repeated_field_order()
        result = diff(order(values=[1, 2, 3]), order(values=[3, 2, 1]), policy=policy)

        assert result.is_matched() is True
        assert isinstance(result["values"], RepeatedFieldDiff)

    def test_ignoring_order_reports_leftovers(self):
        policy = DiffPolicy().ignoring_repeated_field_order()
        result = diff(order(values=[1, 2, 2]), order(values=[1, 2, 3]), policy=policy)

        values = result["values"]
        assert result.is_matched() is False
        added = values.pairs_with(Verdict.ADDED)
        removed = values.pairs_with(Verdict.REMOVED)
        assert [(p.actual_index, p.actual) for p in added] == [(2, 2)]
        assert [(p.expected_index, p.expected) for p in removed] == [(2, 3)]

    def test_ignoring_order_and_extra_elements(self):
        policy = DiffPolicy().ignoring_repeated_field_order().ignoring_extra_repeated_field_elements()
        result = diff(order(values=[1, 2, 3]), order(values=[3, 1]), policy=policy)

        assert result.is_matched() is True
        ignored = result["values"].pairs_with(Verdict.IGNORED)
        assert [p.actual_index for p in ignored] == [1]

    def test_ignoring_order_of_messages(self):
        policy = DiffPolicy().ignoring_repeated_field_order()
        result = diff(
            order(items=[{"name": "a"}, {"name": "b", "price": 2.0}]),
            order(items=[{"name": "b", "price": 2.0}, {"name": "a"}]),
            policy=policy,
        )

        assert result.is_matched() is True
        pairs = result["items"].pairs
        assert [(p.actual_index, p.expected_index) for p in pairs] == [(0, 1), (1, 0)]

    def test_subsequence(self):
        """Test expected elements found in order among extra actual elements."""
        policy = DiffPolicy().ignoring_extra_repeated_field_elements()
        result = diff(order(tags=["a", "b", "c", "d"]), order(tags=["a", "c"]), policy=policy)

        assert result.is_matched() is True
        tags = result["tags"]
        assert [p.actual_index for p in tags.pairs_with(Verdict.MATCHED)] == [0, 2]
        assert [p.actual_index for p in tags.pairs_with(Verdict.IGNORED)] == [1, 3]

    def test_subsequence_out_of_order(self):
        policy = DiffPolicy().ignoring_extra_repeated_field_elements()
        result = diff(order(tags=["a", "b", "c", "d"]), order(tags=["c", "a"]), policy=policy)

        assert result.is_matched() is False
        moved = result["tags"].pairs_with(Verdict.MOVED_OUT_OF_ORDER)
        assert len(moved) == 1
        assert moved[0].actual == "a"
        assert (moved[0].actual_index, moved[0].expected_index) == (0, 1)

    def test_subsequence_missing_element(self):
        policy = DiffPolicy().ignoring_extra_repeated_field_elements()
        result = diff(order(tags=["a", "b"]), order(tags=["a", "z", "b"]), policy=policy)

        tags = result["tags"]
        assert result.is_matched() is False
        assert [p.expected for p in tags.pairs_with(Verdict.REMOVED)] == ["z"]
        assert [p.actual_index for p in tags.pairs_with(Verdict.MATCHED)] == [0, 1]

    def test_extra_elements_against_empty_expected(self):
        policy = DiffPolicy().ignoring_extra_repeated_field_elements()
        result = diff(order(values=[1]), order(), policy=policy)

        assert result["values[0]"].verdict == Verdict.ADDED

    def test_order_ignored_for_one_field(self):
        policy = DiffPolicy().ignoring_repeated_field_order_of_fields(4)

        assert diff(order(values=[1, 2]), order(values=[2, 1]), policy=policy).is_matched() is True
        assert diff(order(tags=["a", "b"]), order(tags=["b", "a"]), policy=policy).is_matched() is False

    def test_order_of_singular_field_is_invalid(self):
        policy = DiffPolicy().ignoring_repeated_field_order_of_fields(1)
        with pytest.raises(InvalidScopeError):
            diff(order(), order(), policy=policy)

    def test_order_of_map_field_is_invalid(self):
        policy = DiffPolicy().ignoring_repeated_field_order_of_fields(7)
        with pytest.raises(InvalidScopeError):
            diff(order(), order(), policy=policy)


class TestFieldScopes:
    """Test comparisons restricted by field scopes."""

    def test_ignoring_field(self):
        result = diff(order(id="1", total=1.0), order(id="2", total=1.0), scope=ignoring_fields(1))

        assert result.is_matched() is True
        assert result["id"].verdict == Verdict.IGNORED
        assert result.is_any_child_ignored() is True

    def test_ignoring_nested_field_descriptor(self):
        timestamp = REGISTRY.get("Header").find_field_by_name("timestamp")
        result = diff(
            order(header={"timestamp": 1, "source": "web"}),
            order(header={"timestamp": 2, "source": "web"}),
            scope=ignoring_field_descriptors(timestamp),
        )

        assert result.is_matched() is True
        assert result["header"].verdict == Verdict.MATCHED
        assert result["header"].breakdown["timestamp"].verdict == Verdict.IGNORED

    def test_allowing_fields(self):
        scope = allowing_fields(2)

        assert diff(order(id="1", total=1.0), order(id="2", total=1.0), scope=scope).is_matched() is True
        assert diff(order(id="1", total=1.0), order(id="1", total=2.0), scope=scope).is_matched() is False

    def test_excluded_submessage_collapses_to_ignored(self):
        result = diff(
            order(total=1.0, header={"timestamp": 1}),
            order(total=1.0, header={"timestamp": 2}),
            scope=allowing_fields(2),
        )

        assert result["header"].verdict == Verdict.IGNORED
        assert result["header"].breakdown is None

    def test_excluded_repeated_messages_of_different_lengths(self):
        result = diff(
            order(total=1.0, items=[{"name": "a"}]),
            order(total=1.0, items=[{"name": "a"}, {"name": "b"}]),
            scope=allowing_fields(2),
        )

        assert result.is_matched() is True
        assert result["items"].verdict == Verdict.IGNORED

    def test_excluded_repeated_messages_ignoring_order(self):
        """Test unpaired elements of an excluded field are ignored, not added or removed."""
        policy = DiffPolicy().ignoring_repeated_field_order()
        fewer = order(total=1.0, items=[{"name": "a"}])
        more = order(total=1.0, items=[{"name": "b"}, {"name": "c"}])

        for actual, expected in ((fewer, more), (more, fewer)):
            result = diff(actual, expected, scope=allowing_fields(2), policy=policy)
            assert result.is_matched() is True
            assert result["items"].verdict == Verdict.IGNORED

    def test_excluded_repeated_messages_as_subsequence(self):
        policy = DiffPolicy().ignoring_extra_repeated_field_elements()
        result = diff(
            order(total=1.0, items=[{"name": "a"}]),
            order(total=1.0, items=[{"name": "b"}, {"name": "c"}]),
            scope=allowing_fields(2),
            policy=policy,
        )

        assert result.is_matched() is True
        assert result["items"].verdict == Verdict.IGNORED

    def test_allowed_descendant_of_unpaired_element(self):
        """Test an unpaired element still counts when an allowed field inside it differs."""
        price = REGISTRY.get("Item").find_field_by_name("price")
        policy = DiffPolicy().ignoring_repeated_field_order()
        result = diff(
            order(items=[{"name": "a", "price": 1.0}]),
            order(items=[{"name": "b", "price": 1.0}, {"name": "c", "price": 2.0}]),
            scope=allowing_field_descriptors(price),
            policy=policy,
        )

        assert result.is_matched() is False
        items = result["items"]
        assert [(p.actual_index, p.expected_index) for p in items.pairs_with(Verdict.MATCHED)] == [(0, 0)]
        assert [p.expected_index for p in items.pairs_with(Verdict.REMOVED)] == [1]

    def test_allowed_descendant_of_unpaired_element_as_subsequence(self):
        price = REGISTRY.get("Item").find_field_by_name("price")
        policy = DiffPolicy().ignoring_extra_repeated_field_elements()
        result = diff(
            order(items=[{"name": "a", "price": 1.0}]),
            order(items=[{"name": "b", "price": 1.0}, {"name": "c", "price": 2.0}]),
            scope=allowing_field_descriptors(price),
            policy=policy,
        )

        assert result.is_matched() is False
        assert [p.expected_index for p in result["items"].pairs_with(Verdict.REMOVED)] == [1]

    def test_ignoring_map_field(self):
        result = diff(order(counts={"a": 1}), order(counts={"a": 2}), scope=ignoring_fields(7))

        assert result.is_matched() is True
        assert result["counts"].verdict == Verdict.IGNORED

    def test_invalid_field_number(self):
        with pytest.raises(InvalidScopeError):
            diff(order(), order(), scope=ignoring_fields(99))

    def test_selector_from_other_type(self):
        scope = from_set_fields(make("Header", {"timestamp": 1}))
        with pytest.raises(InvalidScopeError):
            diff(order(), order(), scope=scope)

    def test_comparing_expected_fields_only(self):
        actual = order(id="1", total=2.0, note="x")
        expected = order(id="1")

        assert diff(actual, expected).is_matched() is False
        policy = DiffPolicy().comparing_expected_fields_only()
        result = diff(actual, expected, policy=policy)
        assert result.is_matched() is True
        assert result["note"].verdict == Verdict.IGNORED

    def test_comparing_expected_fields_only_nested(self):
        policy = DiffPolicy().comparing_expected_fields_only()
        result = diff(
            order(header={"timestamp": 5, "source": "a"}),
            order(header={"source": "a"}),
            policy=policy,
        )

        assert result.is_matched() is True
        assert result["header"].breakdown["timestamp"].verdict == Verdict.IGNORED

    def test_comparing_expected_fields_only_still_compares_values(self):
        policy = DiffPolicy().comparing_expected_fields_only()
        assert diff(order(id="1"), order(id="2"), policy=policy).is_matched() is False


class TestCyclicSchema:
    """Test recursion through a self-referencing message type."""

    def test_deep_chain_matches(self):
        assert diff(chain(50, 7), chain(50, 7)).is_matched() is True

    def test_deep_difference_found(self):
        result = diff(chain(50, 7), chain(50, 8))
        assert result.is_matched() is False
        assert result["next"].verdict == Verdict.MODIFIED

    def test_ignoring_recursive_field(self):
        """Test ignoring a field of a cyclic type terminates without descending."""
        result = diff(chain(60, 7), chain(60, 8), scope=ignoring_fields(2))

        assert result.is_matched() is True
        assert result["next"].verdict == Verdict.IGNORED
        assert result["next"].breakdown is None

    def test_max_depth_exceeded(self):
        engine = DiffEngine(config=EngineConfig(max_depth=10))
        with pytest.raises(MaxDepthExceededError) as exc_info:
            engine.diff(chain(20, 1), chain(20, 1))

        assert exc_info.value.depth == 11

    def test_recursion_limit_reported_as_max_depth(self):
        """Test a max_depth beyond the interpreter's recursion limit still raises MaxDepthExceededError."""
        message = linked_chain(5000)
        engine = DiffEngine(config=EngineConfig(max_depth=10 ** 6))

        with pytest.raises(MaxDepthExceededError) as exc_info:
            engine.diff(message, message)

        assert exc_info.value.depth < 5000
        assert exc_info.value.path.startswith("next")


class TestFieldAbsence:
    """Test ignoring the difference between absent and default values."""

    def test_absent_vs_default_reported(self):
        result = diff(order(id="1"), order(id="1", note=""))
        assert result["note"].verdict == Verdict.REMOVED

    def test_ignoring_field_absence(self):
        policy = DiffPolicy().ignoring_field_absence()
        result = diff(order(id="1"), order(id="1", note=""), policy=policy)

        assert result.is_matched() is True
        assert result["note"].verdict == Verdict.MATCHED

    def test_ignoring_absence_still_compares_values(self):
        policy = DiffPolicy().ignoring_field_absence()
        assert diff(order(), order(note="x"), policy=policy).is_matched() is False

    def test_ignoring_absence_of_submessage(self):
        policy = DiffPolicy().ignoring_field_absence()
        assert diff(order(), order(header={}), policy=policy).is_matched() is True

    def test_ignoring_absence_of_one_field(self):
        policy = DiffPolicy().ignoring_field_absence_of_fields(10)

        assert diff(order(), order(note=""), policy=policy).is_matched() is True
        assert diff(order(), order(total=0.0), policy=policy).is_matched() is False

    def test_absence_of_repeated_field_is_invalid(self):
        policy = DiffPolicy().ignoring_field_absence_of_fields(4)
        with pytest.raises(InvalidScopeError):
            diff(order(), order(), policy=policy)

    def test_implicit_presence(self):
        """Test proto3 scalars set to their default are not set at all."""
        counter = REGISTRY.get("Counter")
        actual = Message.from_dict(counter, {"count": 0})
        expected = Message.from_dict(counter, {})

        assert actual.has_field(counter.find_field_by_name("count")) is False
        assert diff(actual, expected).is_matched() is True

    def test_negative_zero_is_not_default(self):
        counter = REGISTRY.get("Counter")
        ratio = counter.find_field_by_name("ratio")

        assert Message.from_dict(counter, {"ratio": -0.0}).has_field(ratio) is True
        assert Message.from_dict(counter, {"ratio": 0.0}).has_field(ratio) is False
        result = diff(Message.from_dict(counter, {"ratio": -0.0}), Message.from_dict(counter, {}))
        assert result["ratio"].verdict == Verdict.ADDED


class TestUnknownFields:
    """Test comparison of unknown fields."""

    def test_matching_unknown_fields(self):
        payload = {"$unknown": {100: {"varint": [1, 2], "length_delimited": ["abc"]}}}
        result = diff(order(**payload), order(**payload))

        assert result.is_matched() is True
        assert result.unknown_fields is not None
        assert len(result.unknown_fields) == 3

    def test_modified_unknown_field(self):
        result = diff(
            order(**{"$unknown": {100: {"varint": [1]}}}),
            order(**{"$unknown": {100: {"varint": [2]}}}),
        )

        assert result.is_matched() is False
        assert result.unknown_fields["100:varint[0]"].verdict == Verdict.MODIFIED

    def test_wire_types_compared_separately(self):
        result = diff(
            order(**{"$unknown": {100: {"varint": [1]}}}),
            order(**{"$unknown": {100: {"fixed32": [1]}}}),
        )

        assert result.unknown_fields["100:varint[0]"].verdict == Verdict.ADDED
        assert result.unknown_fields["100:fixed32[0]"].verdict == Verdict.REMOVED

    def test_unknown_group(self):
        result = diff(
            order(**{"$unknown": {100: {"group": [{1: {"varint": [5]}}]}}}),
            order(**{"$unknown": {100: {"group": [{1: {"varint": [6]}}]}}}),
        )

        group = result.unknown_fields["100:group[0]"]
        assert group.verdict == Verdict.MODIFIED
        assert group.breakdown["1:varint[0]"].verdict == Verdict.MODIFIED

    def test_ignoring_field_absence_skips_unknown_fields(self):
        policy = DiffPolicy().ignoring_field_absence()
        result = diff(
            order(**{"$unknown": {100: {"varint": [1]}}}),
            order(),
            policy=policy,
        )

        assert result.is_matched() is True
        assert result.unknown_fields is None

    def test_comparing_expected_fields_only_ignores_extra_unknown_fields(self):
        policy = DiffPolicy().comparing_expected_fields_only()
        result = diff(order(**{"$unknown": {100: {"varint": [1]}}}), order(), policy=policy)

        assert result.is_matched() is True
        assert result.unknown_fields["100:varint"].verdict == Verdict.IGNORED


class TestDiffEngine:
    """Test engine reuse and result inspection."""

    def setup_method(self):
        self.engine = DiffEngine(
            scope=ignoring_fields(10),
            policy=DiffPolicy().ignoring_repeated_field_order(),
        )

    def test_engine_is_reusable(self):
        assert self.engine.diff(order(values=[1, 2]), order(values=[2, 1])).is_matched() is True
        assert self.engine.diff(order(note="a"), order(note="b")).is_matched() is True
        assert self.engine.diff(order(values=[1]), order(values=[2])).is_matched() is False

    def test_validates_each_type(self):
        self.engine.diff(order(), order())
        with pytest.raises(InvalidScopeError):
            self.engine.diff(make("Item", {}), make("Item", {}))

    def test_to_dict(self):
        result = self.engine.diff(order(id="1", values=[1]), order(id="2", values=[1]))
        data = result.to_dict()

        assert data["matched"] is False
        fields = {f["name"]: f for f in data["fields"]}
        assert fields["id"]["verdict"] == "MODIFIED"
        assert fields["id"]["actual"] == "1"
        assert fields["values"]["pairs"][0]["verdict"] == "MATCHED"

    def test_any_child_predicates(self):
        result = self.engine.diff(order(id="1", note="a"), order(id="2", note="b"))

        assert result.is_matched() is False
        assert result.is_any_child_ignored() is True
        assert result.is_any_child_matched() is False
