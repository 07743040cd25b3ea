"""
Field declarations and field resolution.

A ``FieldSpec`` is what the author declared; a ``ResolvedField`` is what the
record schema is assembled from: the external key, whether the key is
required, and the effective schema.
"""

from __future__ import annotations

import keyword
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from schematic_records import matcher
from schematic_records.deriver import derive
from schematic_records.errors import ConstructionError, DuplicateField, InvalidFieldName
from schematic_records.matcher import SchemaNode

if TYPE_CHECKING:
    from schematic_records.assembly import RecordAssembly

logger = logging.getLogger(__name__)


class _Missing:
    """Marks an absent default; ``None`` is a valid default."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


# =============================================================================
# Declarations
# =============================================================================


@dataclass(frozen=True)
class FieldOptions:
    """Per-field options captured by ``field()`` inside a class body."""

    default: Any = MISSING
    default_factory: Callable[[], Any] | Any = MISSING
    nullable: bool = False
    json_key: str | None = None
    schema: SchemaNode | None = None


def field(
    *,
    default: Any = MISSING,
    default_factory: Callable[[], Any] | Any = MISSING,
    nullable: bool = False,
    json_key: str | None = None,
    schema: SchemaNode | None = None,
) -> Any:
    """
    Declare options for a record field.

    Args:
        default: Value used when the key is absent from the input
        default_factory: Zero-argument callable producing the default
        nullable: Accept ``None``; the key becomes optional and defaults to ``None``
        json_key: External key, overriding the record's key transform
        schema: Explicit schema, replacing the one derived from the annotation

    Example:
        class Example(Record):
            age: NonNegInt = field(nullable=True)
            phone: str = field(json_key="phoneNumber")
            custom: str = field(schema=oneof([literal("a"), literal("b")]))
    """
    if default is not MISSING and default_factory is not MISSING:
        raise ValueError("cannot specify both default and default_factory")
    return FieldOptions(
        default=default,
        default_factory=default_factory,
        nullable=nullable,
        json_key=json_key,
        schema=schema,
    )


@dataclass(frozen=True)
class FieldSpec:
    """
    Specification for a single record field.

    Attributes:
        name: Field identifier
        type: Type descriptor or annotation
        nullable: Whether ``None`` is accepted
        default: Default value (``MISSING`` when there is none)
        json_key: External key override
        schema: Explicit schema override
        default_factory: Callable producing the default
    """

    name: Any
    type: Any
    nullable: bool = False
    default: Any = MISSING
    json_key: str | None = None
    schema: SchemaNode | None = None
    default_factory: Callable[[], Any] | Any = MISSING

    @classmethod
    def from_options(cls, name: str, type: Any, options: FieldOptions) -> FieldSpec:
        return cls(
            name=name,
            type=type,
            nullable=options.nullable,
            default=options.default,
            json_key=options.json_key,
            schema=options.schema,
            default_factory=options.default_factory,
        )

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING or self.default_factory is not MISSING


@dataclass(frozen=True)
class ResolvedField:
    """A field after merging its derived schema with its declared options."""

    name: str
    external_name: str
    required: bool
    schema: SchemaNode
    nullable: bool = False
    default: Any = MISSING
    default_factory: Callable[[], Any] | Any = MISSING

    @property
    def key(self) -> tuple[str, str]:
        return (self.external_name, self.name)

    @property
    def record_key(self) -> matcher.RecordKey:
        """Key in the record schema, marked optional when not required."""
        return self.key if self.required else matcher.optional(self.key)


# =============================================================================
# Resolution
# =============================================================================


def check_field_name(name: Any, reserved: frozenset[str] = frozenset()) -> str:
    if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
        raise InvalidFieldName(name)
    if name.startswith("__") and name.endswith("__"):
        raise InvalidFieldName(name, "dunder names cannot be fields")
    if name in reserved:
        raise InvalidFieldName(name, "the field name is reserved by the record type")
    return name


def resolve(spec: FieldSpec, assembly: RecordAssembly) -> ResolvedField:
    """
    Resolve a field declaration and register it with the record being built.

    Raises:
        DuplicateField: The name was already resolved for this record
        InvalidFieldName: The name is not a usable identifier
        ConstructionError: The key transform or type fallback misbehaved
    """
    name = check_field_name(spec.name, assembly.reserved_names)
    if assembly.has_field(name):
        raise DuplicateField(name)

    required = not (spec.has_default or spec.nullable)

    if spec.json_key is not None:
        external = spec.json_key
    else:
        external = assembly.config.key_transform(name)
    if not isinstance(external, str):
        raise ConstructionError(f"key transform returned {external!r} for field {name!r}")

    if spec.schema is not None:
        schema = spec.schema
    else:
        schema = derive(spec.type, assembly.config.type_fallback, assembly.reference)
    if not isinstance(schema, SchemaNode):
        raise ConstructionError(f"field {name!r} has no usable schema: {schema!r}")
    if spec.nullable:
        schema = matcher.nullable(schema)

    resolved = ResolvedField(
        name=name,
        external_name=external,
        required=required,
        schema=schema,
        nullable=spec.nullable,
        default=spec.default,
        default_factory=spec.default_factory,
    )
    assembly.add(resolved)
    logger.debug(f"Resolved field {assembly.identity}.{name} as {external!r} ({schema.kind})")
    return resolved
