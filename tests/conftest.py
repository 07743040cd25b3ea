"""Shared pytest fixtures for schematic-records tests."""

from typing import Literal

import pytest

from schematic_records import NonNegInt, Record, field, literal, oneof


@pytest.fixture
def sub_record() -> type[Record]:
    """Return a record with one required integer field."""

    class Sub(Record):
        first: int

    return Sub


@pytest.fixture
def example_record(sub_record: type[Record]) -> type[Record]:
    """Return a record exercising the common field options."""

    class Example(Record, key_transform=str):
        name: str = field(nullable=False)
        age: NonNegInt = field(nullable=True)
        happy: bool = False
        phone: str
        intlist: list[int | float]
        outcome: Literal["ok"] | tuple[Literal["error"], str]
        nested: sub_record  # type: ignore[valid-type]
        custom: str = field(schema=oneof([literal("a"), literal("b")]))

    return Example


@pytest.fixture
def example_payload() -> dict:
    """Return input accepted by ``example_record``."""
    return {
        "happy": True,
        "name": "test",
        "phone": "woei",
        "age": 123,
        "intlist": [1, 3, 4, 5],
        "enum": 123,
        "outcome": ("error", "test"),
        "nested": {"first": 123},
        "custom": "a",
    }
