"""
schematic-records - typed records with schemas derived from one declaration.

Declare a record once and get:
- A schema that validates and parses loosely typed input (e.g. decoded JSON)
- ``parse`` / ``parse_list`` returning ``Ok`` or ``Err(ParseFailed)``
- ``dump`` turning a record back into external data
"""

__version__ = "0.3.0"

from schematic_records.config import RecordConfig
from schematic_records.deriver import (
    accept_any,
    derive,
    int_range,
    neg_integer,
    non_neg_integer,
    number,
    pos_integer,
    reject_unknown,
)
from schematic_records.descriptors import (
    Atom,
    ListType,
    LiteralType,
    MapType,
    NegInt,
    NonNegInt,
    Number,
    OpaqueType,
    PosInt,
    PrimitiveKind,
    PrimitiveType,
    Range,
    RangeType,
    RecordRefType,
    TupleType,
    TypeDescriptor,
    UnionType,
    descriptor_for,
)
from schematic_records.errors import (
    ConstructionError,
    DuplicateField,
    InvalidFieldName,
    ParseFailed,
    SchematicError,
    UnrecognizedType,
    UnresolvedReference,
)
from schematic_records.fields import FieldSpec, ResolvedField, field
from schematic_records.matcher import (
    SchemaNode,
    all_of,
    any_,
    atom,
    bool_,
    date,
    float_,
    int_,
    list_of,
    literal,
    nullable,
    oneof,
    optional,
    raw,
    record,
    str_,
    tuple_of,
    typed_map,
    unify,
    untyped_map,
)
from schematic_records.records import (
    Record,
    define_record,
    dump,
    dump_value,
    parse,
    parse_list,
)
from schematic_records.result import Err, Ok

__all__ = [
    # Records
    "Record",
    "RecordConfig",
    "define_record",
    "field",
    "parse",
    "parse_list",
    "dump",
    "dump_value",
    # Fields
    "FieldSpec",
    "ResolvedField",
    # Type descriptors
    "TypeDescriptor",
    "PrimitiveKind",
    "LiteralType",
    "PrimitiveType",
    "ListType",
    "UnionType",
    "MapType",
    "RangeType",
    "TupleType",
    "RecordRefType",
    "OpaqueType",
    "descriptor_for",
    "Atom",
    "NegInt",
    "NonNegInt",
    "PosInt",
    "Number",
    "Range",
    # Derivation
    "derive",
    "accept_any",
    "reject_unknown",
    "neg_integer",
    "non_neg_integer",
    "pos_integer",
    "int_range",
    "number",
    # Schema vocabulary
    "SchemaNode",
    "any_",
    "atom",
    "bool_",
    "int_",
    "float_",
    "str_",
    "date",
    "literal",
    "list_of",
    "typed_map",
    "untyped_map",
    "tuple_of",
    "oneof",
    "optional",
    "nullable",
    "all_of",
    "raw",
    "record",
    "unify",
    # Results and errors
    "Ok",
    "Err",
    "SchematicError",
    "ConstructionError",
    "DuplicateField",
    "InvalidFieldName",
    "UnrecognizedType",
    "UnresolvedReference",
    "ParseFailed",
]
