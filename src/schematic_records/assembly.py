"""
Record schema assembly.

Collects resolved fields in declaration order and freezes them into one
record schema. A frozen assembly rejects further fields.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from schematic_records import matcher
from schematic_records.config import RecordConfig
from schematic_records.errors import ConstructionError
from schematic_records.fields import ResolvedField
from schematic_records.matcher import SchemaNode


class RecordAssembly:
    """
    Mutable accumulation of one record type's fields.

    Args:
        identity: Unique record identity
        config: The record type's configuration
        reference: Resolves a record reference target to a schema node
        reserved_names: Names that cannot be used for fields
    """

    def __init__(
        self,
        identity: str,
        config: RecordConfig,
        reference: Callable[[Any], SchemaNode],
        reserved_names: frozenset[str] = frozenset(),
    ):
        self.identity = identity
        self.config = config
        self.reference = reference
        self.reserved_names = reserved_names
        self._fields: dict[str, ResolvedField] = {}
        self._schema: SchemaNode | None = None

    @property
    def frozen(self) -> bool:
        return self._schema is not None

    @property
    def fields(self) -> tuple[ResolvedField, ...]:
        return tuple(self._fields.values())

    def has_field(self, name: str) -> bool:
        return name in self._fields

    def add(self, resolved: ResolvedField) -> None:
        if self.frozen:
            raise ConstructionError(f"record {self.identity} is already frozen")
        self._fields[resolved.name] = resolved

    def freeze(self, constructor: Callable[[dict[str, Any]], Any] | None = None) -> SchemaNode:
        """Build the record schema; may be called once."""
        if self.frozen:
            raise ConstructionError(f"record {self.identity} is already frozen")
        self._schema = matcher.record(
            self.identity,
            {resolved.record_key: resolved.schema for resolved in self._fields.values()},
            constructor,
        )
        return self._schema
