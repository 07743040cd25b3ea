"""
Schema vocabulary and matching engine.

A ``SchemaNode`` wraps a pydantic-core schema tree together with a short
description used to build error messages. Nodes are immutable and are
compiled into a ``SchemaValidator`` on first use, so one node can be shared
by every parse call and by every record that references it.

Errors are shaped like the data that was matched:

    >>> unify(record("Point", {"x": int_(), "y": int_()}), {"x": 1})
    Err(error={'y': 'is missing'})
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from pydantic_core import (
    CoreSchema,
    PydanticCustomError,
    SchemaValidator,
    ValidationError,
    core_schema,
)

from schematic_records.result import Err, Ok

logger = logging.getLogger(__name__)

ATOM_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"
ISO_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

# Messages for errors raised by container schemas, keyed by pydantic-core error type.
# Leaf schemas carry their own message through custom_error_schema.
_CONTAINER_MESSAGES: dict[str, str] = {
    "missing": "is missing",
    "list_type": "expected a list",
    "dict_type": "expected a map",
    "tuple_type": "expected a tuple",
    "too_long": "has too many elements",
    "too_short": "has too few elements",
}


# =============================================================================
# Schema Nodes
# =============================================================================


@dataclass(frozen=True)
class RecordRef:
    """
    Lazy reference to a record schema by identity.

    ``resolve`` is only called when a validator that needs the reference is
    compiled, which allows records to refer to each other in cycles.
    """

    identity: str
    resolve: Callable[[], SchemaNode] = field(compare=False, repr=False)


@dataclass(frozen=True, eq=False)
class SchemaNode:
    """
    Immutable schema tree node.

    Attributes:
        kind: Vocabulary entry that built the node ("int", "list", "record", ...)
        core: pydantic-core schema for this node
        description: Noun phrase used in messages, e.g. "an integer"
        refs: Record references reachable from this node
        identity: Record identity, only set for record schemas
    """

    kind: str
    core: CoreSchema = field(repr=False)
    description: str
    refs: tuple[RecordRef, ...] = field(default=(), repr=False)
    identity: str | None = None

    @cached_property
    def validator(self) -> SchemaValidator:
        """Validator for this node, compiled once with all referenced records."""
        definitions = [
            {**node.core, "ref": identity}
            for identity, node in _collect_definitions(self).items()
        ]
        if self.identity is not None:
            root: CoreSchema = core_schema.definition_reference_schema(self.identity)
        else:
            root = self.core
        if definitions:
            root = core_schema.definitions_schema(root, definitions)  # type: ignore[arg-type]
        logger.debug(
            f"Compiled validator for {self.kind} schema "
            f"{self.identity or self.description!r} ({len(definitions)} definitions)"
        )
        return SchemaValidator(root)

    @property
    def message(self) -> str:
        return f"expected {self.description}"

    def __repr__(self) -> str:
        return f"SchemaNode({self.kind}: {self.description})"


def _collect_definitions(node: SchemaNode) -> dict[str, SchemaNode]:
    """Walk record references breadth first, resolving each identity once."""
    found: dict[str, SchemaNode] = {}
    if node.identity is not None:
        found[node.identity] = node
    pending = list(node.refs)
    while pending:
        ref = pending.pop(0)
        if ref.identity in found:
            continue
        target = ref.resolve()
        found[ref.identity] = target
        pending.extend(target.refs)
    return found


def _merge_refs(nodes: Iterable[SchemaNode]) -> tuple[RecordRef, ...]:
    merged: dict[str, RecordRef] = {}
    for node in nodes:
        for ref in node.refs:
            merged.setdefault(ref.identity, ref)
    return tuple(merged.values())


def _leaf(kind: str, schema: CoreSchema, description: str) -> SchemaNode:
    """Build a scalar node whose every failure reports ``expected <description>``."""
    wrapped = core_schema.custom_error_schema(
        schema,
        custom_error_type=f"schematic_{kind}",
        custom_error_message=f"expected {description}",
    )
    return SchemaNode(kind=kind, core=wrapped, description=description)


# =============================================================================
# Primitives
# =============================================================================


def any_() -> SchemaNode:
    """Accept anything, unchanged."""
    return SchemaNode(kind="any", core=core_schema.any_schema(), description="anything")


def atom() -> SchemaNode:
    """Symbol name: a string shaped like an identifier."""
    return _leaf(
        "atom",
        core_schema.str_schema(strict=True, pattern=ATOM_PATTERN),
        "an atom",
    )


def bool_() -> SchemaNode:
    return _leaf("bool", core_schema.bool_schema(strict=True), "a boolean")


def int_() -> SchemaNode:
    return _leaf("int", core_schema.int_schema(strict=True), "an integer")


def float_() -> SchemaNode:
    """Python floats only; integers are not widened."""
    return _leaf("float", core_schema.is_instance_schema(float), "a float")


def str_() -> SchemaNode:
    return _leaf("string", core_schema.str_schema(strict=True), "a string")


def date() -> SchemaNode:
    """ISO-8601 date string (or ``datetime.date``), parsed into ``datetime.date``."""
    iso_string = core_schema.chain_schema(
        [core_schema.str_schema(strict=True, pattern=ISO_DATE_PATTERN), core_schema.date_schema()]
    )
    return _leaf(
        "date",
        core_schema.union_schema([core_schema.date_schema(strict=True), iso_string]),
        "a date",
    )


def describe_value(value: Any) -> str:
    """Render a literal the way it would appear in JSON input."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return json.dumps(value)
    return repr(value)


def _exact_type(expected: type) -> CoreSchema:
    def check(value: Any) -> Any:
        if type(value) is not expected:
            raise PydanticCustomError("schematic_type", "wrong type")
        return value

    return core_schema.no_info_plain_validator_function(check)


def literal(value: Any) -> SchemaNode:
    """
    Accept exactly ``value``.

    Numbers and booleans also have to match in type: ``literal(1)`` rejects
    ``True`` and ``1.0``.
    """
    if value is None:
        schema = core_schema.none_schema()
    elif isinstance(value, (bool, int, float)):
        schema = core_schema.chain_schema(
            [_exact_type(type(value)), core_schema.literal_schema([value])]
        )
    else:
        schema = core_schema.literal_schema([value])
    return _leaf("literal", schema, describe_value(value))


# =============================================================================
# Combinators
# =============================================================================


def list_of(items: SchemaNode) -> SchemaNode:
    return SchemaNode(
        kind="list",
        core=core_schema.list_schema(items.core, strict=True),
        description="a list",
        refs=items.refs,
    )


def typed_map(keys: SchemaNode, values: SchemaNode) -> SchemaNode:
    return SchemaNode(
        kind="map",
        core=core_schema.dict_schema(keys_schema=keys.core, values_schema=values.core, strict=True),
        description="a map",
        refs=_merge_refs([keys, values]),
    )


def untyped_map() -> SchemaNode:
    return SchemaNode(
        kind="map",
        core=core_schema.dict_schema(strict=True),
        description="a map",
    )


def tuple_of(items: Sequence[SchemaNode]) -> SchemaNode:
    """Fixed-length positional tuple; lists are accepted as input."""
    return SchemaNode(
        kind="tuple",
        core=core_schema.tuple_schema([item.core for item in items]),
        description=f"a tuple of {len(items)} elements",
        refs=_merge_refs(items),
    )


def oneof(options: Sequence[SchemaNode]) -> SchemaNode:
    """
    Accept the first matching alternative.

    A mismatch reports a single message listing every alternative in
    declaration order, e.g. ``expected either "a" or "b"``.
    """
    options = list(options)
    if not options:
        raise ValueError("oneof() needs at least one alternative")

    alternatives = []
    for option in options:
        if option.kind == "oneof":
            alternatives.append(option.description.removeprefix("either "))
        else:
            alternatives.append(option.description)
    description = "either " + " or ".join(alternatives)

    union = core_schema.union_schema([option.core for option in options])
    return SchemaNode(
        kind="oneof",
        core=core_schema.custom_error_schema(
            union,
            custom_error_type="schematic_oneof",
            custom_error_message=f"expected {description}",
        ),
        description=description,
        refs=_merge_refs(options),
    )


def nullable(inner: SchemaNode) -> SchemaNode:
    """Accept ``None`` in addition to whatever ``inner`` accepts."""
    if inner.kind == "nullable":
        return inner
    return SchemaNode(
        kind="nullable",
        core=core_schema.nullable_schema(inner.core),
        description=f"null or {inner.description}",
        refs=inner.refs,
    )


def all_of(schemas: Sequence[SchemaNode], description: str | None = None) -> SchemaNode:
    """
    Conjunction: every schema must accept, checked left to right.

    The first failure is reported. Each step receives the previous step's output.
    """
    schemas = list(schemas)
    if not schemas:
        raise ValueError("all_of() needs at least one schema")
    return SchemaNode(
        kind="all",
        core=core_schema.chain_schema([schema.core for schema in schemas]),
        description=description or schemas[0].description,
        refs=_merge_refs(schemas),
    )


def raw(
    predicate: Callable[[Any], bool], message: str, description: str = "a valid value"
) -> SchemaNode:
    """
    Custom predicate with a fixed failure message.

    A predicate that raises TypeError or ValueError counts as a rejection.
    """

    def check(value: Any) -> Any:
        try:
            accepted = predicate(value)
        except (TypeError, ValueError):
            accepted = False
        if not accepted:
            raise PydanticCustomError("raw", message)
        return value

    return SchemaNode(
        kind="raw",
        core=core_schema.no_info_plain_validator_function(check),
        description=description,
    )


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class OptionalKey:
    """Marks a record key that may be absent from the input."""

    key: str | tuple[str, str]


def optional(key: str | tuple[str, str]) -> OptionalKey:
    return OptionalKey(key)


RecordKey = str | tuple[str, str] | OptionalKey


def record(
    identity: str,
    fields: Mapping[RecordKey, SchemaNode],
    constructor: Callable[[dict[str, Any]], Any] | None = None,
) -> SchemaNode:
    """
    Build a record schema.

    Args:
        identity: Unique name of the record; used for references between records
        fields: Ordered mapping of key to schema. A key is the external name, an
            ``(external, internal)`` pair, or either of those wrapped in ``optional``
        constructor: Called with the validated values keyed by internal name;
            the plain dict is returned when omitted

    Returns:
        Schema node of kind "record". Keys not named in ``fields`` are ignored.
    """
    core_fields: dict[str, core_schema.TypedDictField] = {}
    for key, schema in fields.items():
        required = True
        if isinstance(key, OptionalKey):
            key, required = key.key, False
        external, internal = key if isinstance(key, tuple) else (key, key)
        core_fields[internal] = core_schema.typed_dict_field(
            schema.core,
            required=required,
            validation_alias=external,
            serialization_alias=external,
        )

    typed = core_schema.typed_dict_schema(core_fields)
    core: CoreSchema = typed
    if constructor is not None:
        core = core_schema.no_info_after_validator_function(constructor, typed)

    return SchemaNode(
        kind="record",
        core=core,
        description="a map",
        refs=_merge_refs(fields.values()),
        identity=identity,
    )


def record_ref(identity: str, resolve: Callable[[], SchemaNode]) -> SchemaNode:
    """
    Reference another record's schema by identity.

    The referenced schema is composed unchanged; ``resolve`` is deferred until
    a validator is compiled.
    """
    return SchemaNode(
        kind="record_ref",
        core=core_schema.definition_reference_schema(identity),
        description="a map",
        refs=(RecordRef(identity, resolve),),
    )


# =============================================================================
# Matching
# =============================================================================


def unify(schema: SchemaNode, data: Any) -> Ok[Any] | Err[Any]:
    """
    Match ``data`` against ``schema``.

    Returns:
        ``Ok(value)`` with the parsed value, or ``Err(errors)`` where ``errors``
        mirrors the shape of ``data``: a mapping for records and maps, a mapping
        of index to error for lists and tuples, a message string for scalars.
    """
    try:
        return Ok(schema.validator.validate_python(data))
    except ValidationError as exc:
        return Err(shape_errors(exc.errors(include_url=False)))


_UNSET: Any = object()


def shape_errors(errors: Iterable[Mapping[str, Any]]) -> Any:
    """Fold pydantic-core error records into one structure keyed by location."""
    shaped = _UNSET
    for error in errors:
        path = list(error["loc"])
        message = _CONTAINER_MESSAGES.get(error["type"], error["msg"])
        if path and path[-1] == "[key]":
            path.pop()
            message = f"invalid key: {message}"
        shaped = _insert(shaped, path, message)
    return None if shaped is _UNSET else shaped


def _insert(shaped: Any, path: list[Any], message: str) -> Any:
    if not path:
        return message if shaped is _UNSET else shaped
    if shaped is _UNSET:
        shaped = {}
    elif not isinstance(shaped, dict):
        # A scalar error already covers this location.
        return shaped
    head, rest = path[0], path[1:]
    shaped[head] = _insert(shaped.get(head, _UNSET), rest, message)
    return shaped
