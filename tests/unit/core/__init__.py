"""Sample hydratable models shared by the core hydration tests."""

from __future__ import annotations

from fractions import Fraction

from hydration import HydratableObject, PropertyRule


class Constructable:
    def __init__(self, a: object, b: object) -> None:
        self.a = a
        self.b = b


class ConfigConstruct(HydratableObject):
    an_object: Constructable | None = None
    a_ratio: Fraction | None = None
    bad_construct: object = None
    nope: object = None

    @classmethod
    def hydration_rules(cls) -> list[PropertyRule]:
        return [
            PropertyRule.make("an_object").construct(Constructable, unpack=True),
            PropertyRule.make("a_ratio").construct(Fraction),
            PropertyRule.make("bad_construct").construct(Constructable, unpack=True),
            PropertyRule.make("nope").construct("Nonexistent"),
        ]


class NestedConstruct(HydratableObject):
    sub: ConfigConstruct | None = None


class Element(HydratableObject):
    name: str = ""
    size: int = 0


class Form(HydratableObject):
    title: str = ""
    elements: dict[str, Element] | None = None

    @classmethod
    def hydration_rules(cls) -> list[PropertyRule]:
        return [PropertyRule.make("elements", Element).key("name")]


class Node(HydratableObject):
    name: str = ""
    child: Node | None = None


class Profile(HydratableObject):
    name: object = None
    count: object = None
    settings: object = None
    tags: object = None


__all__ = [
    "ConfigConstruct",
    "Constructable",
    "Element",
    "Form",
    "NestedConstruct",
    "Node",
    "Profile",
]
