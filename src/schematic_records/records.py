"""
Record types - declaration, schema assembly and the parse/dump runtime.

A record type is a class deriving from ``Record``. Its annotated attributes
are the fields; the record schema is derived and frozen when the class
statement completes, and the class becomes a frozen, keyword-only dataclass:

    class Sub(Record):
        first: int

    class Example(Record, key_transform=str):
        name: str
        age: NonNegInt = field(nullable=True)
        happy: bool = False
        nested: Sub

    Example.parse({"name": "x", "nested": {"first": 1}})
    # Ok(value=Example(name='x', age=None, happy=False, nested=Sub(first=1)))

If any field fails to resolve, the class statement raises and the record is
never registered, so no other record can observe a half-built schema.
"""

from __future__ import annotations

import builtins
import copy
import dataclasses
import functools
import inspect
import logging
import re
import sys
import threading
import types
import weakref
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any, ClassVar, ForwardRef, get_origin

from schematic_records import matcher
from schematic_records.assembly import RecordAssembly
from schematic_records.config import RecordConfig, build_config
from schematic_records.deriver import reference_record_class
from schematic_records.descriptors import is_record_type
from schematic_records.errors import ConstructionError, ParseFailed, UnresolvedReference
from schematic_records.fields import MISSING, FieldOptions, FieldSpec, ResolvedField, resolve
from schematic_records.matcher import SchemaNode
from schematic_records.result import Err, Ok

logger = logging.getLogger(__name__)

RESERVED_NAMES = frozenset(
    {"parse", "parse_list", "dump", "schematic", "schematic_ref", "record_fields", "record_config"}
)

_DOTTED_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*")


# =============================================================================
# Registry
# =============================================================================


class RecordRegistry:
    """
    Identity -> record class.

    Records are held weakly: a record type nothing else refers to (a local
    class, a ``define_record`` result) is released with its schema.
    """

    def __init__(self) -> None:
        self._records: weakref.WeakValueDictionary[str, type[Record]] = (
            weakref.WeakValueDictionary()
        )
        self._lock = threading.Lock()

    def claim_identity(self, cls: type) -> str:
        """Identity for a new record class, unique among registered records."""
        base = f"{cls.__module__}.{cls.__qualname__}"
        identity, counter = base, 1
        with self._lock:
            while identity in self._records:
                counter += 1
                identity = f"{base}#{counter}"
        return identity

    def register(self, identity: str, cls: type[Record]) -> None:
        with self._lock:
            self._records[identity] = cls

    def get(self, identity: str) -> type[Record] | None:
        return self._records.get(identity)

    def __contains__(self, identity: str) -> bool:
        return identity in self._records

    def __len__(self) -> int:
        return len(self._records)


registry = RecordRegistry()


# =============================================================================
# References
# =============================================================================


def _defining_namespace() -> Mapping[str, Any]:
    """
    Names visible where the record class statement runs.

    Module and class bodies are used live, so later siblings resolve;
    function locals are copied, since holding the frame would keep it alive.
    """
    frame = sys._getframe(1)
    while frame is not None and frame.f_globals.get("__name__") in (__name__, "types"):
        frame = frame.f_back
    if frame is None:
        return {}
    if frame.f_code.co_flags & inspect.CO_OPTIMIZED:
        return dict(frame.f_locals)
    return frame.f_locals


def _lookup_record(name: str, referrer: type, namespace: Mapping[str, Any]) -> type[Record]:
    """Resolve a (possibly dotted) record name from the referrer's scope."""
    head, *rest = name.split(".")
    module = sys.modules.get(referrer.__module__)
    if head in namespace:
        target: Any = namespace[head]
    else:
        target = getattr(module, head, None)
    for part in rest:
        target = getattr(target, part, None)
    if not is_record_type(target):
        raise UnresolvedReference(name, referrer.__qualname__)
    return target


def _reference_resolver(cls: type, namespace: Mapping[str, Any]) -> Any:
    """Reference resolver for fields of ``cls``; names are looked up lazily."""

    def reference(target: Any) -> SchemaNode:
        if isinstance(target, str):
            name = target
            if name == cls.__name__:
                return cls.schematic_ref()
            return matcher.record_ref(
                f"{cls.__record_identity__}->{name}",
                lambda: _lookup_record(name, cls, namespace).schematic(),
            )
        return reference_record_class(target)

    return reference


# =============================================================================
# Annotation Evaluation
# =============================================================================


class _AnnotationNamespace(dict):
    """Local namespace where undefined names become forward references."""

    def __init__(self, globalns: Mapping[str, Any], localns: Mapping[str, Any]):
        super().__init__(localns)
        self.globalns = globalns

    def __missing__(self, key: str) -> Any:
        if key in self.globalns:
            return self.globalns[key]
        if hasattr(builtins, key):
            return getattr(builtins, key)
        return ForwardRef(key)


def _evaluate(annotation: Any, cls: type, namespace: Mapping[str, Any]) -> Any:
    if not isinstance(annotation, str):
        return annotation
    module = sys.modules.get(cls.__module__)
    globalns = dict(vars(module)) if module is not None else {}
    localns = {**namespace, **cls.__dict__, cls.__name__: cls}
    try:
        return eval(annotation, globalns, _AnnotationNamespace(globalns, localns))  # noqa: S307
    except (NameError, AttributeError, TypeError) as e:
        if _DOTTED_NAME.fullmatch(annotation):
            return ForwardRef(annotation)
        raise ConstructionError(
            f"cannot evaluate annotation {annotation!r} of {cls.__qualname__}: {e}"
        ) from e


def _own_annotations(cls: type) -> dict[str, Any]:
    if sys.version_info >= (3, 14):
        import annotationlib

        return annotationlib.get_annotations(cls, format=annotationlib.Format.FORWARDREF)
    return inspect.get_annotations(cls)


def _is_class_var(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is ClassVar or get_origin(annotation) is ClassVar


def _declared_fields(cls: type, namespace: Mapping[str, Any]) -> list[FieldSpec]:
    """Field specs from ``__field_specs__`` or from the class annotations."""
    declared = cls.__dict__.get("__field_specs__")
    if declared is not None:
        return [
            dataclasses.replace(spec, type=_evaluate(spec.type, cls, namespace))
            for spec in declared
        ]

    specs = []
    for name, annotation in _own_annotations(cls).items():
        if _is_class_var(annotation):
            continue
        value = cls.__dict__.get(name, MISSING)
        if isinstance(value, FieldOptions):
            options = value
        elif value is MISSING:
            options = FieldOptions()
        else:
            options = FieldOptions(default=value)
        specs.append(FieldSpec.from_options(name, _evaluate(annotation, cls, namespace), options))
    return specs


# =============================================================================
# Record Construction
# =============================================================================


def _dataclass_default(resolved: ResolvedField) -> Any:
    """Default handed to ``dataclasses``; ``dataclasses.MISSING`` when the field is required."""
    if resolved.default_factory is not MISSING:
        return dataclasses.field(default_factory=resolved.default_factory)
    if resolved.default is not MISSING:
        default = resolved.default
        if getattr(type(default), "__hash__", None) is None:
            # mutable defaults get a fresh copy per instance
            return dataclasses.field(default_factory=functools.partial(copy.deepcopy, default))
        return default
    if resolved.nullable:
        return None
    return dataclasses.MISSING


def _build_record(cls: type[Record], options: dict[str, Any], namespace: Mapping[str, Any]) -> None:
    parent = next((base for base in cls.__mro__[1:] if "__record_schema__" in base.__dict__), None)
    config = build_config(parent.__record_config__ if parent else None, options)
    identity = registry.claim_identity(cls)
    cls.__record_identity__ = identity

    assembly = RecordAssembly(identity, config, _reference_resolver(cls, namespace), RESERVED_NAMES)
    if parent is not None:
        for inherited in parent.__record_fields__:
            assembly.add(inherited)

    own_fields = [resolve(spec, assembly) for spec in _declared_fields(cls, namespace)]
    schema = assembly.freeze(lambda values: cls(**values))

    # Turn the class into a frozen dataclass over the resolved fields.
    declared = cls.__dict__.get("__field_specs__")
    if declared is not None:
        cls.__annotations__ = {spec.name: spec.type for spec in declared}
    for resolved in own_fields:
        default = _dataclass_default(resolved)
        if default is dataclasses.MISSING:
            if resolved.name in cls.__dict__:
                delattr(cls, resolved.name)
        else:
            setattr(cls, resolved.name, default)
    try:
        dataclasses.dataclass(frozen=True, kw_only=True)(cls)
    except (TypeError, ValueError) as e:
        raise ConstructionError(f"cannot build record {identity}: {e}") from e

    cls.__record_config__ = config
    cls.__record_fields__ = assembly.fields
    cls.__record_schema__ = schema
    registry.register(identity, cls)
    logger.debug(f"Defined record {identity} with {len(assembly.fields)} fields")


class Record:
    """
    Base class for record types.

    Class keywords configure the record type (see ``RecordConfig``):
    ``key_transform``, ``type_fallback`` and ``dump_nulls``.
    """

    __schematic_record__: ClassVar[bool] = True
    __record_identity__: ClassVar[str]
    __record_config__: ClassVar[RecordConfig]
    __record_fields__: ClassVar[tuple[ResolvedField, ...]]
    __record_schema__: ClassVar[SchemaNode]

    def __init_subclass__(cls, **options: Any) -> None:
        super().__init_subclass__()
        _build_record(cls, options, _defining_namespace())

    @classmethod
    def schematic(cls) -> SchemaNode:
        """The frozen record schema."""
        try:
            return cls.__dict__["__record_schema__"]
        except KeyError:
            raise TypeError(f"{cls.__qualname__} is not a record type") from None

    @classmethod
    def schematic_ref(cls) -> SchemaNode:
        """A lazy reference to this record's schema, for use inside other schemas."""
        identity = cls.__record_identity__
        return matcher.record_ref(identity, cls.schematic)

    @classmethod
    def record_fields(cls) -> tuple[ResolvedField, ...]:
        return cls.__record_fields__

    @classmethod
    def record_config(cls) -> RecordConfig:
        return cls.__record_config__

    @classmethod
    def parse(cls, data: Any) -> Ok[Any] | Err[ParseFailed]:
        return parse(data, cls)

    @classmethod
    def parse_list(cls, items: Any) -> Ok[list[Any]] | Err[ParseFailed]:
        return parse_list(items, cls)

    def dump(self) -> Ok[dict[str, Any]]:
        return dump(self)


def define_record(
    name: str,
    fields: Sequence[FieldSpec],
    *,
    bases: tuple[type, ...] = (Record,),
    module: str | None = None,
    **options: Any,
) -> type[Record]:
    """
    Build a record type from field specs instead of a class statement.

    Args:
        name: Class name of the record
        fields: Field specs in declaration order
        bases: Base classes, ``Record`` or other record types
        module: Module the record belongs to (default: the caller's)
        **options: Record configuration (see ``RecordConfig``)

    Returns:
        The new record class
    """
    if module is None:
        module = sys._getframe(1).f_globals.get("__name__", "__main__")

    def body(namespace: dict[str, Any]) -> None:
        namespace["__module__"] = module
        namespace["__field_specs__"] = tuple(fields)

    return types.new_class(name, bases, options, body)


# =============================================================================
# Runtime
# =============================================================================


def parse(data: Any, record: type[Record]) -> Ok[Any] | Err[ParseFailed]:
    """
    Parse loosely typed input into a record.

    Returns:
        ``Ok(instance)``, or ``Err(ParseFailed(errors, data))`` where ``data``
        is the input, unchanged
    """
    result = matcher.unify(record.schematic(), data)
    if isinstance(result, Err):
        logger.debug(f"Parsing {record.__record_identity__} failed: {result.error!r}")
        return Err(ParseFailed(result.error, data))
    return result


def parse_list(items: Any, record: type[Record]) -> Ok[list[Any]] | Err[ParseFailed]:
    """
    Parse every item of a sequence, stopping at the first failure.

    The error holds only the first failing item's errors and that item's data.
    """
    if not isinstance(items, (list, tuple)):
        return Err(ParseFailed("expected a list", items))
    parsed = []
    for item in items:
        result = parse(item, record)
        if isinstance(result, Err):
            return Err(ParseFailed(result.error.errors, item))
        parsed.append(result.value)
    return Ok(parsed)


def dump(instance: Record) -> Ok[dict[str, Any]]:
    """
    Turn a record back into external data, keyed by external key.

    Fields holding None are left out unless the record type sets ``dump_nulls``.
    """
    return Ok(_dump_record(instance))


def _dump_record(instance: Record) -> dict[str, Any]:
    config = instance.record_config()
    dumped = {}
    for resolved in instance.record_fields():
        value = getattr(instance, resolved.name)
        if value is None and not config.dump_nulls:
            continue
        dumped[resolved.external_name] = dump_value(value)
    return dumped


def dump_value(value: Any) -> Any:
    """External representation of a single value."""
    if isinstance(value, Record):
        return _dump_record(value)
    if isinstance(value, Mapping):
        return {key: dump_value(item) for key, item in value.items()}
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
        return [dump_value(item) for item in value]
    return value
