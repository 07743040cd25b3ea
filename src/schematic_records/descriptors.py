"""
Type descriptors for record fields.

A type descriptor is the declarative description of a field's type that the
deriver turns into a schema. Descriptors can be written directly, but record
classes usually get them from ordinary annotations through ``descriptor_for``:

    - int: PrimitiveType(primitive=INT)
    - list[int | float]: ListType(elem=UnionType(options=(INT, FLOAT)))
    - Literal["a", "b"]: UnionType(options=(LiteralType("a"), LiteralType("b")))
    - Annotated[int, Range(1, 10)]: RangeType(low=1, high=10)
    - dict[str, int]: MapType(key=STRING, value=INT)
    - Sub (a Record): RecordRefType(target=Sub)
    - "Sub" (not defined yet): RecordRefType(target="Sub")
"""

from __future__ import annotations

import types
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Annotated, Any, ForwardRef, Literal, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, model_validator

# =============================================================================
# Descriptor Variants
# =============================================================================


class PrimitiveKind(str, Enum):
    """Primitive field types."""

    ATOM = "atom"
    ANY = "any"
    BOOL = "bool"
    FLOAT = "float"
    INT = "int"
    NEG_INT = "neg_int"
    NON_NEG_INT = "non_neg_int"
    POS_INT = "pos_int"
    NUMBER = "number"
    STRING = "string"
    DATE = "date"


class _Descriptor(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class LiteralType(_Descriptor):
    """Exactly one value, matched by equality (``None`` included)."""

    kind: Literal["literal"] = "literal"
    value: Any = None


class PrimitiveType(_Descriptor):
    kind: Literal["primitive"] = "primitive"
    primitive: PrimitiveKind


class ListType(_Descriptor):
    kind: Literal["list"] = "list"
    elem: TypeDescriptor


class UnionType(_Descriptor):
    """Alternatives in declaration order."""

    kind: Literal["union"] = "union"
    options: tuple[TypeDescriptor, ...] = Field(min_length=1)


class MapType(_Descriptor):
    """Typed map when both ``key`` and ``value`` are set, untyped map when neither is."""

    kind: Literal["map"] = "map"
    key: TypeDescriptor | None = None
    value: TypeDescriptor | None = None

    @model_validator(mode="after")
    def check_key_and_value(self) -> MapType:
        if (self.key is None) != (self.value is None):
            raise ValueError("a typed map needs both a key and a value type")
        return self

    @property
    def is_typed(self) -> bool:
        return self.key is not None


class RangeType(_Descriptor):
    """Inclusive integer range."""

    kind: Literal["range"] = "range"
    low: int
    high: int

    @model_validator(mode="after")
    def check_bounds(self) -> RangeType:
        if self.low > self.high:
            raise ValueError(f"empty range {self.low}..{self.high}")
        return self


class TupleType(_Descriptor):
    """
    Fixed-size tuple.

    Never derived automatically; fields of this type need an explicit schema
    or fall through to the record's type fallback.
    """

    kind: Literal["tuple"] = "tuple"
    elements: tuple[TypeDescriptor, ...] = ()


class RecordRefType(_Descriptor):
    """Reference to another record type, by class or by (possibly dotted) name."""

    kind: Literal["record_ref"] = "record_ref"
    target: Any


class OpaqueType(_Descriptor):
    """Anything else; handed to the record's type fallback as ``raw``."""

    kind: Literal["opaque"] = "opaque"
    raw: Any = None


TypeDescriptor = Annotated[
    Union[
        LiteralType,
        PrimitiveType,
        ListType,
        UnionType,
        MapType,
        RangeType,
        TupleType,
        RecordRefType,
        OpaqueType,
    ],
    Field(discriminator="kind"),
]

for _model in (ListType, UnionType, MapType, TupleType):
    _model.model_rebuild()


# =============================================================================
# Annotation Markers
# =============================================================================


@dataclass(frozen=True)
class Range:
    """Annotation marker: ``Annotated[int, Range(1, 10)]`` accepts 1 through 10."""

    low: int
    high: int


Atom = Annotated[str, PrimitiveKind.ATOM]
NegInt = Annotated[int, PrimitiveKind.NEG_INT]
NonNegInt = Annotated[int, PrimitiveKind.NON_NEG_INT]
PosInt = Annotated[int, PrimitiveKind.POS_INT]
Number = Annotated[Union[int, float], PrimitiveKind.NUMBER]

_PRIMITIVE_ANNOTATIONS: dict[Any, PrimitiveKind] = {
    bool: PrimitiveKind.BOOL,
    int: PrimitiveKind.INT,
    float: PrimitiveKind.FLOAT,
    str: PrimitiveKind.STRING,
    date: PrimitiveKind.DATE,
    Any: PrimitiveKind.ANY,
}


def is_record_type(annotation: Any) -> bool:
    """True for record classes (anything flagged with ``__schematic_record__``)."""
    return isinstance(annotation, type) and getattr(annotation, "__schematic_record__", False)


def is_descriptor(value: Any) -> bool:
    return isinstance(value, _Descriptor)


# =============================================================================
# Annotation Translation
# =============================================================================


def descriptor_for(annotation: Any) -> Any:
    """
    Translate a type annotation into a type descriptor.

    Args:
        annotation: An evaluated annotation, a forward reference, or a descriptor

    Returns:
        The matching descriptor; unknown annotations become ``OpaqueType``
    """
    if is_descriptor(annotation):
        return annotation
    if isinstance(annotation, str):
        return RecordRefType(target=annotation)
    if isinstance(annotation, ForwardRef):
        return RecordRefType(target=annotation.__forward_arg__)
    if annotation is None or annotation is type(None):
        return LiteralType(value=None)

    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Annotated:
        base, *metadata = args
        for marker in metadata:
            if isinstance(marker, PrimitiveKind):
                return PrimitiveType(primitive=marker)
            if isinstance(marker, Range):
                return RangeType(low=marker.low, high=marker.high)
            if is_descriptor(marker):
                return marker
        return descriptor_for(base)

    if origin is Literal:
        literals = [LiteralType(value=value) for value in args]
        return literals[0] if len(literals) == 1 else UnionType(options=tuple(literals))

    if origin is Union or origin is types.UnionType:
        return UnionType(options=tuple(descriptor_for(arg) for arg in args))

    if origin is list:
        elem = descriptor_for(args[0]) if args else PrimitiveType(primitive=PrimitiveKind.ANY)
        return ListType(elem=elem)

    if origin is dict:
        if not args:
            return MapType()
        return MapType(key=descriptor_for(args[0]), value=descriptor_for(args[1]))

    if origin is tuple:
        return TupleType(elements=tuple(descriptor_for(arg) for arg in args if arg is not Ellipsis))

    if annotation is list:
        return ListType(elem=PrimitiveType(primitive=PrimitiveKind.ANY))
    if annotation is dict:
        return MapType()
    if annotation is tuple:
        return TupleType()

    if is_record_type(annotation):
        return RecordRefType(target=annotation)

    try:
        primitive = _PRIMITIVE_ANNOTATIONS.get(annotation)
    except TypeError:
        # unhashable annotation objects
        primitive = None
    if primitive is not None:
        return PrimitiveType(primitive=primitive)

    return OpaqueType(raw=annotation)
