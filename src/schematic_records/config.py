"""
Per-record-type configuration.

Options are given as class keywords when a record is declared and are
inherited by subclasses:

    class Payload(Record, key_transform=str, dump_nulls=True):
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from schematic_records.deriver import accept_any
from schematic_records.errors import ConstructionError


class RecordConfig(BaseModel):
    """
    Configuration captured once, when a record type is defined.

    Attributes:
        key_transform: Maps a field name to its external key (default: camelCase)
        type_fallback: Builds a schema for types the deriver does not know;
            may raise to reject them
        dump_nulls: Include fields whose value is None when dumping
    """

    key_transform: Callable[[str], str] = Field(default=to_camel)
    type_fallback: Callable[[Any], Any] = Field(default=accept_any)
    dump_nulls: bool = False

    model_config = ConfigDict(frozen=True, strict=True, extra="forbid")


def build_config(parent: RecordConfig | None, options: dict[str, Any]) -> RecordConfig:
    """
    Merge class keyword options over the inherited configuration.

    Raises:
        ConstructionError: Unknown option or option of the wrong type
    """
    base = dict(parent) if parent is not None else {}
    try:
        return RecordConfig.model_validate({**base, **options})
    except ValidationError as e:
        raise ConstructionError(f"invalid record options: {e}") from e
