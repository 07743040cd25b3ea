"""
Schema derivation - turns type descriptors into schema nodes.

``derive`` is a pure function of its arguments: the same descriptor and
fallback always give an equivalent schema, and nothing is registered or
cached along the way.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from schematic_records import matcher
from schematic_records.descriptors import (
    ListType,
    LiteralType,
    MapType,
    OpaqueType,
    PrimitiveKind,
    PrimitiveType,
    RangeType,
    RecordRefType,
    TupleType,
    UnionType,
    descriptor_for,
    is_record_type,
)
from schematic_records.errors import UnrecognizedType, UnresolvedReference
from schematic_records.matcher import SchemaNode

logger = logging.getLogger(__name__)

TypeFallback = Callable[[Any], SchemaNode]
ReferenceResolver = Callable[[Any], SchemaNode]


# =============================================================================
# Integer Schemas
# =============================================================================


def neg_integer() -> SchemaNode:
    return matcher.all_of(
        [matcher.int_(), matcher.raw(lambda i: i < 0, "must be <0")],
        description="a negative integer",
    )


def non_neg_integer() -> SchemaNode:
    return matcher.all_of(
        [matcher.int_(), matcher.raw(lambda i: i >= 0, "must be >=0")],
        description="a non-negative integer",
    )


def pos_integer() -> SchemaNode:
    return matcher.all_of(
        [matcher.int_(), matcher.raw(lambda i: i > 0, "must be >0")],
        description="a positive integer",
    )


def int_range(low: int, high: int) -> SchemaNode:
    """Integer between ``low`` and ``high``, both inclusive."""
    return matcher.all_of(
        [
            matcher.int_(),
            matcher.raw(lambda i: low <= i <= high, f"must be in range {low}..{high}"),
        ],
        description=f"an integer in range {low}..{high}",
    )


def number() -> SchemaNode:
    return matcher.oneof([matcher.int_(), matcher.float_()])


_PRIMITIVES: dict[PrimitiveKind, Callable[[], SchemaNode]] = {
    PrimitiveKind.ATOM: matcher.atom,
    PrimitiveKind.ANY: matcher.any_,
    PrimitiveKind.BOOL: matcher.bool_,
    PrimitiveKind.FLOAT: matcher.float_,
    PrimitiveKind.INT: matcher.int_,
    PrimitiveKind.STRING: matcher.str_,
    PrimitiveKind.DATE: matcher.date,
    PrimitiveKind.NEG_INT: neg_integer,
    PrimitiveKind.NON_NEG_INT: non_neg_integer,
    PrimitiveKind.POS_INT: pos_integer,
    PrimitiveKind.NUMBER: number,
}


# =============================================================================
# Fallbacks
# =============================================================================


def accept_any(raw: Any) -> SchemaNode:
    """Default fallback: types without a derivation accept anything."""
    return matcher.any_()


def reject_unknown(raw: Any) -> SchemaNode:
    """Closed fallback: types without a derivation fail record construction."""
    raise UnrecognizedType(raw)


def reference_record_class(target: Any) -> SchemaNode:
    if is_record_type(target):
        return target.schematic_ref()
    raise UnresolvedReference(str(target))


# =============================================================================
# Derivation
# =============================================================================


def derive(
    descriptor: Any,
    fallback: TypeFallback = accept_any,
    references: ReferenceResolver = reference_record_class,
) -> SchemaNode:
    """
    Derive a schema node from a type descriptor.

    Args:
        descriptor: A type descriptor, or an annotation to translate first
        fallback: Called for opaque types and tuples
        references: Turns a record reference target into a schema node

    Returns:
        Schema node for the descriptor (never nullable; the field model wraps it)
    """
    descriptor = descriptor_for(descriptor)

    def recurse(inner: Any) -> SchemaNode:
        return derive(inner, fallback, references)

    if isinstance(descriptor, LiteralType):
        return matcher.literal(descriptor.value)

    if isinstance(descriptor, PrimitiveType):
        return _PRIMITIVES[descriptor.primitive]()

    if isinstance(descriptor, RecordRefType):
        return references(descriptor.target)

    if isinstance(descriptor, ListType):
        return matcher.list_of(recurse(descriptor.elem))

    if isinstance(descriptor, UnionType):
        return matcher.oneof([recurse(option) for option in descriptor.options])

    if isinstance(descriptor, MapType):
        if descriptor.is_typed:
            return matcher.typed_map(recurse(descriptor.key), recurse(descriptor.value))
        return matcher.untyped_map()

    if isinstance(descriptor, RangeType):
        return int_range(descriptor.low, descriptor.high)

    if isinstance(descriptor, TupleType):
        # Tuples are not derived: declare an explicit schema (e.g. tuple_of) instead.
        return fallback(descriptor)

    if isinstance(descriptor, OpaqueType):
        logger.debug(f"No derivation for {descriptor.raw!r}, using type fallback")
        return fallback(descriptor.raw)

    raise TypeError(f"not a type descriptor: {descriptor!r}")
