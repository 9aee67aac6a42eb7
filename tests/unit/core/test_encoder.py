"""
hydration — unit tests for encoding

File: tests/unit/core/test_encoder.py

Purpose
- Validate encoder commands, nested encoding and the hydrate/encode round trip.

Non-functional requirements
- Property-based round trip runs deterministically.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath
from types import SimpleNamespace

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from hydration import EncoderRule, Hydrator, PropertyRule, SchemaError
from hydration.encoder import DROPPED, encode_value
from hydration.tree import JSONValue

from . import Element, Form, Node, Profile

OBJECT_SOURCE = {"source": "object"}


class Colour(Enum):
    RED = "red"


class Record:
    name: object = None
    empty: object = None
    flag: object = None
    nothing: object = None
    mapping: object = None
    single: object = None
    secret: object = None


def _record() -> Record:
    record = Record()
    record.name = "r"
    record.empty = []
    record.flag = False
    record.nothing = None
    record.mapping = {"a": 1, "b": 2}
    record.single = ["only"]
    record.secret = "hidden"
    return record


@pytest.mark.unit
class TestEncoderRule:
    def test_unknown_command(self) -> None:
        with pytest.raises(SchemaError, match="Unknown encoder command"):
            EncoderRule.make("explode")

    def test_make_normalizes_command(self) -> None:
        assert EncoderRule.make(" DROP_NULL ") == EncoderRule.drop_null()

    def test_transform_requires_callable(self) -> None:
        with pytest.raises(SchemaError, match="transform requires a callable"):
            EncoderRule("transform", "upper")

    def test_apply(self) -> None:
        assert EncoderRule.drop().apply("x") is DROPPED
        assert EncoderRule.drop_null().apply(None) is DROPPED
        assert EncoderRule.drop_null().apply(0) == 0
        assert EncoderRule.drop_empty().apply({}) is DROPPED
        assert EncoderRule.drop_empty().apply(0) == 0
        assert EncoderRule.drop_false().apply(False) is DROPPED
        assert EncoderRule.drop_false().apply(0) == 0
        assert EncoderRule.transform(str.upper).apply("x") == "X"
        assert EncoderRule.array().apply({"a": 1, "b": 2}) == [1, 2]
        assert EncoderRule.scalar().apply(["x"]) == "x"
        assert EncoderRule.scalar().apply(["x", "y"]) == ["x", "y"]


@pytest.mark.unit
class TestEncoder:
    def _hydrator(self) -> Hydrator:
        return (
            Hydrator()
            .add_property(PropertyRule.make("empty").encode(EncoderRule.drop_empty()))
            .add_property(PropertyRule.make("flag").encode(EncoderRule.drop_false()))
            .add_property(PropertyRule.make("nothing").encode(EncoderRule.drop_null()))
            .add_property(PropertyRule.make("mapping").encode(EncoderRule.array()))
            .add_property(PropertyRule.make("single").encode(EncoderRule.scalar()))
            .add_property(PropertyRule.make("secret").block())
            .bind(Record)
        )

    def test_property_rules(self) -> None:
        assert self._hydrator().encode(_record()) == {
            "mapping": [1, 2],
            "single": "only",
            "name": "r",
        }

    def test_ad_hoc_rules_layer_on_top(self) -> None:
        encoded = self._hydrator().encode(
            _record(),
            {
                "name": [EncoderRule.transform(str.upper), EncoderRule.order(0)],
                "single": EncoderRule.drop(),
            },
        )

        assert list(encoded) == ["name", "mapping"]
        assert encoded["name"] == "R"

    def test_order(self) -> None:
        hydrator = (
            Hydrator()
            .add_property(PropertyRule.make("name").encode(EncoderRule.order(2)))
            .add_property(PropertyRule.make("flag").encode(EncoderRule.order(1)))
            .bind(Record)
        )

        encoded = hydrator.encode(_record())

        assert list(encoded)[:2] == ["flag", "name"]

    def test_renamed_property_encodes_under_source_name(self) -> None:
        hydrator = Hydrator().add_property(PropertyRule.make("label").as_("name")).bind(Record)

        assert hydrator.encode(_record())["label"] == "r"

    def test_unset_fields_are_omitted(self) -> None:
        class Sparse:
            present: int
            absent: int

            def __init__(self) -> None:
                self.present = 1

        assert Hydrator.make(Sparse).encode(Sparse()) == {"present": 1}

    def test_nested_objects(self) -> None:
        form = Form()
        form.hydrate({"title": "t", "elements": [{"name": "a", "size": 1}]}, OBJECT_SOURCE)

        assert form.encode() == {"title": "t", "elements": {"a": {"name": "a", "size": 1}}}

    def test_encode_value_conversions(self) -> None:
        value = {
            "colour": Colour.RED,
            "path": PurePosixPath("/etc/app.yaml"),
            "ids": {3, 1, 2},
            "pair": (1, "a"),
            "ns": SimpleNamespace(x=1),
            "node": Element(),
        }

        assert encode_value(value) == {
            "colour": "red",
            "path": "/etc/app.yaml",
            "ids": [1, 2, 3],
            "pair": [1, "a"],
            "ns": {"x": 1},
            "node": {"name": "", "size": 0},
        }

    def test_plain_objects_encode_public_attributes(self) -> None:
        class Plain:
            def __init__(self) -> None:
                self.shown = 1
                self._hidden = 2

        assert encode_value(Plain()) == {"shown": 1}

    def test_recursive_hydratable(self) -> None:
        root = Node()
        root.hydrate({"name": "root", "child": {"name": "leaf"}}, OBJECT_SOURCE)

        assert root.encode() == {"name": "root", "child": {"name": "leaf", "child": None}}


_SCALAR: st.SearchStrategy[JSONValue] = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-1000, max_value=1000),
    st.text(max_size=12),
)

_JSON_VALUE: st.SearchStrategy[JSONValue] = st.recursive(
    _SCALAR,
    lambda child: st.one_of(
        st.lists(child, max_size=4),
        st.dictionaries(st.text(min_size=1, max_size=6), child, max_size=4),
    ),
    max_leaves=15,
)


@pytest.mark.unit
@given(
    tree=st.fixed_dictionaries(
        {"name": _JSON_VALUE, "count": _JSON_VALUE, "settings": _JSON_VALUE, "tags": _JSON_VALUE}
    )
)
@settings(
    max_examples=50,
    derandomize=True,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
def test_property_hydrate_encode_round_trip(tree: dict[str, JSONValue]) -> None:
    profile = Profile()

    assert profile.hydrate(tree, OBJECT_SOURCE) is True
    assert profile.encode() == tree
