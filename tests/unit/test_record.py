"""
Tests for record declaration and the parse runtime.
"""

import dataclasses
import gc
import weakref
from concurrent.futures import ThreadPoolExecutor
from typing import Annotated, Any, ClassVar

import pytest

from schematic_records import (
    ConstructionError,
    DuplicateField,
    Err,
    FieldSpec,
    InvalidFieldName,
    Ok,
    ParseFailed,
    Range,
    Record,
    RecordConfig,
    UnrecognizedType,
    define_record,
    field,
    int_,
    literal,
    oneof,
    parse,
    parse_list,
    reject_unknown,
)
from schematic_records.records import registry


class Point(Record):
    x: int
    y: int = 0


class Tagged(Record):
    label: str
    tags: list[str] = []


# =============================================================================
# Declaration
# =============================================================================


class TestDeclaration:
    """Tests for turning a class statement into a record type."""

    def test_field_names_must_be_unique(self) -> None:
        with pytest.raises(DuplicateField, match="the field 'first' is already set"):
            define_record("Dup", [FieldSpec("first", str), FieldSpec("first", int)])
        assert f"{__name__}.Dup" not in registry

    def test_duplicate_is_an_argument_error(self) -> None:
        with pytest.raises(ValueError):
            define_record("Dup", [FieldSpec("first", str), FieldSpec("first", int)])

    def test_inherited_field_cannot_be_redeclared(self) -> None:
        class Parent(Record):
            first: int

        with pytest.raises(DuplicateField):

            class Child(Parent):
                first: str

    def test_failed_record_is_not_registered(self) -> None:
        before = len(registry)
        with pytest.raises(ConstructionError):

            class Broken(Record, type_fallback=reject_unknown):
                good: int
                bad: complex

        assert len(registry) == before

    def test_reserved_field_name(self) -> None:
        with pytest.raises(InvalidFieldName):

            class Bad(Record):
                parse: int

    def test_invalid_field_name_from_specs(self) -> None:
        with pytest.raises(InvalidFieldName):
            define_record("Bad", [FieldSpec("not a name", int)])

    def test_fields_in_declaration_order(self) -> None:
        assert [resolved.name for resolved in Point.record_fields()] == ["x", "y"]

    def test_class_vars_are_not_fields(self) -> None:
        class Counted(Record):
            limit: ClassVar[int] = 10
            value: int

        assert [resolved.name for resolved in Counted.record_fields()] == ["value"]
        assert Counted.limit == 10

    def test_records_are_frozen_dataclasses(self) -> None:
        point = Point(x=1)
        assert dataclasses.is_dataclass(point)
        assert point == Point(x=1, y=0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            point.x = 2  # type: ignore[misc]

    def test_constructor_is_keyword_only(self) -> None:
        with pytest.raises(TypeError):
            Point(1, 2)  # type: ignore[misc]
        with pytest.raises(TypeError):
            Point()  # type: ignore[call-arg]

    def test_mutable_defaults_are_not_shared(self) -> None:
        first = Tagged.parse({"label": "a"}).unwrap()
        second = Tagged.parse({"label": "b"}).unwrap()
        assert first.tags == [] and second.tags == []
        assert first.tags is not second.tags

    def test_schematic_is_per_class(self) -> None:
        assert Point.schematic().identity == f"{__name__}.Point"
        with pytest.raises(TypeError):
            Record.schematic()

    def test_same_name_gets_distinct_identity(self) -> None:
        def make() -> type[Record]:
            class Twin(Record):
                value: int

            return Twin

        first, second = make(), make()
        assert first.schematic().identity != second.schematic().identity
        assert first.parse({"value": 1}).unwrap() == first(value=1)

    def test_unused_records_are_released(self) -> None:
        throwaway = define_record("Throwaway", [FieldSpec("value", int)])
        identity = throwaway.__record_identity__
        assert identity in registry
        ref = weakref.ref(throwaway)
        del throwaway
        gc.collect()
        assert ref() is None
        assert identity not in registry

    def test_definition_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        class Logged(Record):
            value: int

        assert any(
            "Defined record" in message and "Logged" in message for message in caplog.messages
        )


class TestDefineRecord:
    """Tests for building records from field specs."""

    def test_define_record(self) -> None:
        Pair = define_record(
            "Pair",
            [FieldSpec("left", int), FieldSpec("right", int, nullable=True)],
        )
        assert Pair.__module__ == __name__
        assert Pair.parse({"left": 1}).unwrap() == Pair(left=1, right=None)

    def test_define_record_with_options(self) -> None:
        Loud = define_record("Loud", [FieldSpec("word", str)], key_transform=str.upper)
        assert Loud.parse({"WORD": "hi"}).unwrap().word == "hi"

    def test_define_record_with_default_factory(self) -> None:
        Bag = define_record("Bag", [FieldSpec("items", list[int], default_factory=list)])
        assert Bag.parse({}).unwrap().items == []


class TestConfig:
    """Tests for record options given as class keywords."""

    def test_defaults(self) -> None:
        config = Point.record_config()
        assert isinstance(config, RecordConfig)
        assert config.dump_nulls is False

    def test_unknown_option(self) -> None:
        with pytest.raises(ConstructionError, match="invalid record options"):

            class Bad(Record, unknown_option=True):
                value: int

    def test_option_of_wrong_type(self) -> None:
        with pytest.raises(ConstructionError):

            class Bad(Record, dump_nulls="yes"):
                value: int

    def test_key_transform_must_be_callable(self) -> None:
        with pytest.raises(ConstructionError):

            class Bad(Record, key_transform="upper"):
                value: int

    def test_options_are_inherited(self) -> None:
        class Base(Record, key_transform=str.upper):
            first: int

        class Derived(Base):
            second: int

        assert Derived.record_config().key_transform is str.upper
        assert Derived.parse({"FIRST": 1, "SECOND": 2}).unwrap() == Derived(first=1, second=2)

    def test_default_key_transform_is_camel_case(self) -> None:
        class Person(Record):
            first_name: str

        assert Person.parse({"firstName": "Ada"}).unwrap() == Person(first_name="Ada")
        result = Person.parse({"first_name": "Ada"})
        assert result.error.errors == {"firstName": "is missing"}

    def test_json_key(self) -> None:
        class Contact(Record):
            phone: str = field(json_key="tel")

        assert Contact.parse({"tel": "123"}).unwrap().phone == "123"

    def test_custom_type_fallback(self) -> None:
        def complex_numbers(raw: Any):
            return oneof([int_(), literal("i")])

        class Weird(Record, type_fallback=complex_numbers):
            value: complex

        assert Weird.parse({"value": "i"}).unwrap().value == "i"
        message = 'expected either an integer or "i"'
        assert Weird.parse({"value": 1.5}).error.errors == {"value": message}

    def test_rejecting_fallback(self) -> None:
        with pytest.raises(UnrecognizedType):

            class Strict(Record, type_fallback=reject_unknown):
                value: complex


# =============================================================================
# Parsing
# =============================================================================


class TestParse:
    """Tests for parse()."""

    def test_first(self) -> None:
        class First(Record):
            first: str = field(nullable=False)
            second: int

        assert isinstance(First.parse({"first": "str", "second": 123}), Ok)

    def test_explicit_schema(self) -> None:
        class Custom(Record):
            custom: str = field(schema=oneof([literal("a"), literal("b")]))

        assert isinstance(Custom.parse({"custom": "a"}), Ok)
        errors = {"custom": 'expected either "a" or "b"'}
        assert Custom.parse({"custom": 123}).error.errors == errors
        assert Custom.parse({"custom": "c"}).error.errors == errors

    def test_nested(self, example_record: type[Record], example_payload: dict) -> None:
        result = example_record.parse(example_payload)
        assert isinstance(result, Ok)
        example = result.value
        assert example.name == "test"
        assert example.age == 123
        assert example.happy is True
        assert example.intlist == [1, 3, 4, 5]
        assert example.outcome == ("error", "test")
        assert example.nested.first == 123
        assert not hasattr(example, "enum")

    def test_nested_errors_follow_data(
        self, example_record: type[Record], example_payload: dict
    ) -> None:
        payload = {**example_payload, "age": -1, "intlist": [1, "two"], "nested": {"first": "x"}}
        result = example_record.parse(payload)
        assert result.error.errors == {
            "age": "must be >=0",
            "intlist": {1: "expected either an integer or a float"},
            "nested": {"first": "expected an integer"},
        }

    def test_required_fields_are_missing(self, sub_record: type[Record]) -> None:
        result = sub_record.parse({})
        assert isinstance(result, Err)
        assert isinstance(result.error, ParseFailed)
        assert result.error.errors == {"first": "is missing"}
        assert result.error.data == {}

    def test_error_keeps_original_data(self, sub_record: type[Record]) -> None:
        data = {"first": "1", "other": object()}
        assert sub_record.parse(data).error.data is data

    def test_nullable_fields_are_optional(self) -> None:
        class Maybe(Record):
            first: int = field(nullable=True)

        assert Maybe.parse({}).unwrap().first is None
        assert Maybe.parse({"first": None}).unwrap().first is None

    def test_fields_with_a_default_are_optional(self) -> None:
        class Defaulted(Record):
            first: int = field(default=0)

        assert Defaulted.parse({}).unwrap().first == 0

    def test_default_is_not_validated(self) -> None:
        class Odd(Record):
            first: int = "not an int"  # type: ignore[assignment]

        assert Odd.parse({}).unwrap().first == "not an int"
        assert Odd.parse({"first": "x"}).error.errors == {"first": "expected an integer"}

    def test_range(self) -> None:
        class Ranged(Record):
            value: Annotated[int, Range(1, 10)]

        assert Ranged.parse({"value": 1}).unwrap().value == 1
        assert Ranged.parse({"value": 10}).unwrap().value == 10
        assert Ranged.parse({"value": 11}).error.errors == {"value": "must be in range 1..10"}
        assert Ranged.parse({"value": "5"}).error.errors == {"value": "expected an integer"}

    def test_not_a_map(self, sub_record: type[Record]) -> None:
        assert sub_record.parse([1]).error.errors == "expected a map"

    def test_module_function(self, sub_record: type[Record]) -> None:
        assert parse({"first": 1}, sub_record) == Ok(sub_record(first=1))

    def test_inheritance(self) -> None:
        class Point3(Point):
            z: int

        assert [resolved.name for resolved in Point3.record_fields()] == ["x", "y", "z"]
        assert Point3.parse({"x": 1, "z": 3}).unwrap() == Point3(x=1, y=0, z=3)
        assert Point3.parse({"x": 1}).error.errors == {"z": "is missing"}

    def test_parent_schema_is_unchanged(self) -> None:
        class Point4(Point):
            w: int

        assert Point.parse({"x": 1}).unwrap() == Point(x=1)

    def test_parse_is_thread_safe(self, sub_record: type[Record]) -> None:
        payloads = [{"first": n} if n % 3 else {"first": str(n)} for n in range(60)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(sub_record.parse, payloads))
        for n, result in enumerate(results):
            if n % 3:
                assert result == Ok(sub_record(first=n))
            else:
                assert result.error.errors == {"first": "expected an integer"}

    def test_failure_is_logged(
        self, sub_record: type[Record], caplog: pytest.LogCaptureFixture
    ) -> None:
        sub_record.parse({})
        assert any("failed" in message for message in caplog.messages)

    def test_match(self) -> None:
        match Point.parse({"x": 5}):
            case Ok(Point(x=x, y=y)):
                assert (x, y) == (5, 0)
            case _:
                pytest.fail("expected a point")

        match Point.parse({"x": "5"}):
            case Err(ParseFailed(errors=errors)):
                assert errors == {"x": "expected an integer"}
            case _:
                pytest.fail("expected a parse failure")


class TestParseList:
    """Tests for parse_list()."""

    def test_all_items_parse(self, sub_record: type[Record]) -> None:
        result = sub_record.parse_list([{"first": 1}, {"first": 2}])
        assert result == Ok([sub_record(first=1), sub_record(first=2)])

    def test_empty_list(self, sub_record: type[Record]) -> None:
        assert sub_record.parse_list([]) == Ok([])

    def test_stops_at_first_failure(self, sub_record: type[Record]) -> None:
        items = [{"first": 1}, {"first": "x"}, {}]
        result = sub_record.parse_list(items)
        assert isinstance(result, Err)
        assert result.error.errors == {"first": "expected an integer"}
        assert result.error.data is items[1]

    def test_reports_the_first_of_identical_failures(self, sub_record: type[Record]) -> None:
        items = [{"first": None}, {"first": None}]
        result = sub_record.parse_list(items)
        assert result.error.errors == {"first": "expected an integer"}
        assert result.error.data is items[0]

    def test_not_a_list(self, sub_record: type[Record]) -> None:
        result = parse_list({"first": 1}, sub_record)
        assert result.error.errors == "expected a list"


class TestUnwrap:
    """Tests for result unwrapping."""

    def test_ok(self) -> None:
        assert Ok(1).unwrap() == 1
        assert Ok(1).ok and not Err("x").ok

    def test_err_raises_parse_failed(self, sub_record: type[Record]) -> None:
        with pytest.raises(ParseFailed) as excinfo:
            sub_record.parse({}).unwrap()
        assert excinfo.value.errors == {"first": "is missing"}

    def test_err_with_plain_value(self) -> None:
        with pytest.raises(ValueError):
            Err("boom").unwrap()


@pytest.mark.parametrize(
    "payload,ok",
    [
        ({"x": 1}, True),
        ({"x": 1, "y": -4}, True),
        ({"x": 1.0}, False),
        ({"x": True}, False),
        ({"y": 1}, False),
        (None, False),
    ],
)
def test_point_payloads(payload: Any, ok: bool) -> None:
    assert isinstance(Point.parse(payload), Ok) is ok

