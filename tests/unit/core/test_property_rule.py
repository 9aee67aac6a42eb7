"""Unit tests for PropertyRule assignment: arrays, keys, duplicates and setters."""

from __future__ import annotations

import pytest

from hydration import BindingMode, EncoderRule, PropertyRule, SchemaError

from . import Element


class Catalog:
    items: object = None
    label: object = None

    def __init__(self) -> None:
        self.received: list[object] = []

    def receive(self, value: object) -> None:
        self.received.append(value)


@pytest.mark.unit
class TestSimpleRules:
    def test_scalar_assignment(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("label")

        assert rule.assign(catalog, "books") is True
        assert catalog.label == "books"
        assert rule.errors() == []

    def test_array_without_key_is_a_list(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items").key()

        assert rule.assign(catalog, ["a", "b"]) is True
        assert catalog.items == ["a", "b"]

    def test_scalar_in_array_mode_is_wrapped(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items").key()

        assert rule.assign(catalog, "only") is True
        assert catalog.items == ["only"]

    def test_to_array_keeps_mapping_keys(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items").key().to_array()

        assert rule.assign(catalog, {"x": 1, "y": 2}) is True
        assert catalog.items == {"x": 1, "y": 2}

    def test_duplicate_keys_drop_later_elements(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items").key("id")
        elements = [{"id": "a", "v": 1}, {"id": "b", "v": 2}, {"id": "a", "v": 3}, {"id": "a"}]

        assert rule.assign(catalog, elements) is False
        assert catalog.items == {"a": {"id": "a", "v": 1}, "b": {"id": "b", "v": 2}}
        assert rule.errors() == [
            'Duplicate key "a" configuring items in Catalog',
            'Duplicate key "a" configuring items in Catalog',
        ]

    def test_allow_duplicates_keeps_last(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items").key("id").allow_duplicates()

        assert rule.assign(catalog, [{"id": "a", "v": 1}, {"id": "a", "v": 2}]) is True
        assert catalog.items == {"a": {"id": "a", "v": 2}}

    def test_key_function_receives_owner_and_element(self) -> None:
        catalog = Catalog()
        calls: list[tuple[object, object]] = []

        def key_of(owner: object, element: object) -> object:
            calls.append((owner, element))
            return str(element).upper()

        rule = PropertyRule.make("items").key(key_of)

        assert rule.assign(catalog, ["a", "b"]) is True
        assert catalog.items == {"A": "a", "B": "b"}
        assert calls == [(catalog, "a"), (catalog, "b")]

    def test_missing_key_member_drops_element(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items").key("id")

        assert rule.assign(catalog, [{"id": "a"}, {"name": "no id"}]) is False
        assert catalog.items == {"a": {"id": "a"}}
        assert rule.errors() == ['Missing key "id" in element of items']

    def test_invalid_element_aborts_whole_array(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items").key("id").validate(lambda element: "id" in element)

        assert rule.assign(catalog, [{"id": "a"}, {"name": "bad"}, {"id": "c"}]) is False
        assert catalog.items is None
        assert rule.errors() == ["Invalid value for items"]

    def test_error_buffer_is_cleared_per_call(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("label").validate(lambda value: value != "bad")

        assert rule.assign(catalog, "bad") is False
        assert rule.assign(catalog, "good") is True
        assert rule.errors() == []

    def test_setter_receives_value(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("label").setter("receive")

        assert rule.assign(catalog, "via setter") is True
        assert catalog.received == ["via setter"]
        assert catalog.label is None

    def test_missing_setter_is_reported(self) -> None:
        rule = PropertyRule.make("label").setter("absent")

        assert rule.assign(Catalog(), "x") is False
        assert rule.errors() == ["Unable to set label: Catalog has no method absent()"]


@pytest.mark.unit
class TestBoundRules:
    def test_setter_receives_each_instance(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items", Element).setter("receive")

        ok = rule.assign(catalog, [{"name": "a"}, {"name": "b"}], {"source": "object"})

        assert ok is True
        names = [getattr(element, "name", None) for element in catalog.received]
        assert names == ["a", "b"]

    def test_sequence_without_array_mode_yields_list(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items", Element)

        assert rule.assign(catalog, [{"name": "a"}], {"source": "object"}) is True
        assert isinstance(catalog.items, list)
        assert catalog.items[0].name == "a"

    def test_mapping_in_array_mode_is_wrapped(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items", Element).key()

        assert rule.assign(catalog, {"name": "solo"}, {"source": "object"}) is True
        assert isinstance(catalog.items, list)
        assert len(catalog.items) == 1

    def test_key_function_for_bound_rule_gets_instance(self) -> None:
        catalog = Catalog()
        rule = PropertyRule.make("items", Element).key(lambda owner, element: owner.name * 2)

        assert rule.assign(catalog, [{"name": "ab"}], {"source": "object"}) is True
        assert list(catalog.items) == ["abab"]

    def test_resolver_returning_non_class(self) -> None:
        rule = PropertyRule.make("items").with_(lambda value, options: "not-a-class.")

        assert rule.assign(Catalog(), {}, {"source": "object"}) is False
        assert rule.errors() == ["Class not found: not-a-class."]

        rule = PropertyRule.make("items").with_(lambda value, options: 42)
        assert rule.assign(Catalog(), {}, {"source": "object"}) is False
        assert rule.errors() == ["Class resolver for items returned int, expected a class"]


@pytest.mark.unit
class TestRuleConfiguration:
    def test_modes(self) -> None:
        assert PropertyRule.make("a").mode is BindingMode.SIMPLE
        assert PropertyRule.make("a", Element).mode is BindingMode.BOUND_OBJECT
        assert PropertyRule.make("a").construct(Element).mode is BindingMode.CONSTRUCT
        assert PropertyRule.make("a", Element).bind(None).mode is BindingMode.SIMPLE

    def test_make_as(self) -> None:
        rule = PropertyRule.make("x")

        assert PropertyRule.make_as(rule) is rule
        assert PropertyRule.make_as("y").target == "y"
        renamed = PropertyRule.make_as(("source", "target"))
        assert (renamed.source, renamed.target) == ("source", "target")
        with pytest.raises(SchemaError):
            PropertyRule.make_as(("a", "b", "c"))

    def test_apply_calls_fluent_methods(self) -> None:
        rule = PropertyRule.make("items").apply(
            {"key": "id", "require": None, "block": ("Read only.",), "encode": EncoderRule.drop()}
        )

        assert rule.array_mode
        assert rule.required
        assert rule.blocked
        assert rule.block_message == "Read only."
        assert rule.encode_rules == (EncoderRule.drop(),)

    def test_apply_rejects_unknown_option(self) -> None:
        with pytest.raises(SchemaError, match="Invalid property option 'explode'"):
            PropertyRule.make("items").apply({"explode": True})

    def test_blank_names_are_rejected(self) -> None:
        with pytest.raises(SchemaError):
            PropertyRule.make(" ")
        with pytest.raises(SchemaError):
            PropertyRule.make("a").as_("")

    def test_unblock(self) -> None:
        rule = PropertyRule.make("label").block("no").unblock()
        catalog = Catalog()

        assert rule.assign(catalog, "yes") is True
        assert catalog.label == "yes"
