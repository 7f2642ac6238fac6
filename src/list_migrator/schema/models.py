"""Pydantic models describing a target schema.

This module contains the schema-domain models:
- Snapshot models: FieldSnapshot, AssociationSnapshot, ListSchema
- History model: SchemaSnapshotRecord, SchemaContent (JSON adapter for a snapshot)
- Option comparison: deep_equal

All snapshot models are frozen: a snapshot is built once per run and never
mutated afterwards.
"""

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def deep_equal(left: Any, right: Any) -> bool:
    """Structural equality for option values.

    Mappings are equal when they have identical key sets and every value is
    deep-equal; sequences compare element-wise.  Booleans never equal
    numbers, so ``{"default_value": True}`` differs from ``{"default_value": 1}``.

    Example:
        >>> deep_equal({"a": {"b": [1, 2]}}, {"a": {"b": [1, 2]}})
        True
        >>> deep_equal({"a": 1}, {"a": 1, "b": None})
        False
    """
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if set(left.keys()) != set(right.keys()):
            return False
        return all(deep_equal(left[key], right[key]) for key in left)

    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return False
        return all(deep_equal(a, b) for a, b in zip(left, right))

    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right

    return left == right


class Cardinality(str, Enum):
    """Relationship multiplicity, read from the declaring side."""

    ONE_TO_ONE = "1:1"
    ONE_TO_MANY = "1:N"
    MANY_TO_ONE = "N:1"
    MANY_TO_MANY = "N:N"


class FieldSnapshot(BaseModel):
    """Schema-relevant part of one scalar field.

    Example:
        >>> f = FieldSnapshot(type="Text", name="email", options={"is_required": True})
        >>> f.same_shape(FieldSnapshot(type="Text", name="mail", options={"is_required": True}))
        True
    """

    model_config = ConfigDict(frozen=True)

    type: str
    name: str
    options: dict[str, Any] = Field(default_factory=dict)

    def same_shape(self, other: "FieldSnapshot") -> bool:
        """True if type and options match, ignoring the name."""
        return self.type == other.type and deep_equal(self.options, other.options)


class AssociationSnapshot(BaseModel):
    """A relationship field, promoted out of the list's scalar fields.

    ``target_field`` is set when the relationship is declared on both sides.
    Table names are recorded alongside list names so a placement can still be
    computed after the list itself has been removed.
    """

    model_config = ConfigDict(frozen=True)

    source_list: str
    source_field: str
    cardinality: Cardinality
    target_list: str
    target_field: str | None = None
    source_table: str
    target_table: str

    @property
    def is_bidirectional(self) -> bool:
        return self.target_field is not None

    @property
    def key(self) -> tuple[str, str]:
        return (self.source_list, self.source_field)

    @property
    def pair_key(self) -> tuple[str, str] | None:
        if self.target_field is None:
            return None
        return (self.target_list, self.target_field)

    def same_relation(self, other: "AssociationSnapshot") -> bool:
        """Equal except for the table names, which follow list renames."""
        exclude = {"source_table", "target_table"}
        return self.model_dump(exclude=exclude) == other.model_dump(exclude=exclude)


class ListSchema(BaseModel):
    """Target structure of one list."""

    model_config = ConfigDict(frozen=True)

    list_name: str
    table_options: dict[str, Any] = Field(default_factory=dict)
    fields: list[FieldSnapshot] = Field(default_factory=list)
    associations: list[AssociationSnapshot] = Field(default_factory=list)

    @property
    def table_name(self) -> str:
        return self.table_options.get("table_name") or self.list_name


class SchemaSnapshotRecord(BaseModel):
    """One row of the schema-history table."""

    content: list[ListSchema]
    created_at: datetime
    active: bool = True


SchemaContent: TypeAdapter[list[ListSchema]] = TypeAdapter(list[ListSchema])
