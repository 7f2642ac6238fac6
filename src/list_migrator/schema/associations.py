"""Association classification and placement.

Relationship fields never become plain columns of their list.  Instead:

1. ``classify()`` turns a relationship field into an ``AssociationSnapshot``
   with a cardinality read from both sides of the relationship.
2. ``AssociationResolver.resolve()`` decides where the physical structure
   lives -- a foreign-key column (``ForeignKeyPlacement``) or a join table
   (``JoinTablePlacement``) -- and makes sure a relationship declared on both
   sides is materialized exactly once.

Placement rules:

==============  ===========  ====================================================
Declared        Cardinality  Placement
==============  ===========  ====================================================
standalone      N:1          FK column on the declaring table
standalone      N:N          join table ``<table>_<field>_many``
bidirectional   N:1          FK column on the declaring table
bidirectional   1:1          FK column on the side with the smaller (list, field)
bidirectional   1:N          FK column on the target ("many") table
bidirectional   N:N          join table named from both sides
==============  ===========  ====================================================

Usage:
    resolver = AssociationResolver(a for a in associations)
    for association in associations:
        placement = resolver.resolve(association)
        if placement is None:
            continue  # the other side already placed it
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from sqlalchemy import Integer

from list_migrator.adapters.ddl import TableBuilder, truncate_identifier
from list_migrator.errors import ConfigurationError
from list_migrator.schema.models import AssociationSnapshot, Cardinality

if TYPE_CHECKING:
    from list_migrator.lists.fields import FieldDescriptor
    from list_migrator.lists.registry import ListDescriptor


# ------------------------------------------------------------------
# Classification
# ------------------------------------------------------------------


def classify(
    list_descriptor: "ListDescriptor",
    field_descriptor: "FieldDescriptor",
    lists: Mapping[str, "ListDescriptor"],
) -> AssociationSnapshot:
    """Build the ``AssociationSnapshot`` for one relationship field.

    Raises:
        ConfigurationError: If the referenced list is not declared, or the
            back-reference field is missing or does not point back.
    """
    attrs = field_descriptor.field
    where = f"{list_descriptor.key}.{field_descriptor.path}"
    target_key = attrs["ref_list_key"]
    target_path = attrs["ref_list_path"]

    if target_key not in lists:
        raise ConfigurationError(f"Relationship {where} refers to undeclared list '{target_key}'")
    target = lists[target_key]

    many = bool(attrs["many"])
    if target_path is None:
        cardinality = Cardinality.MANY_TO_MANY if many else Cardinality.MANY_TO_ONE
    else:
        back = target.fields_by_path.get(target_path)
        if back is None or not back.is_relationship:
            raise ConfigurationError(
                f"Relationship {where} refers to '{target_key}.{target_path}', "
                "which is not a relationship field"
            )
        if (
            back.field["ref_list_key"] != list_descriptor.key
            or back.field["ref_list_path"] != field_descriptor.path
        ):
            raise ConfigurationError(
                f"Relationship {where} and {target_key}.{target_path} do not refer to each other"
            )
        other_many = bool(back.field["many"])
        if many and other_many:
            cardinality = Cardinality.MANY_TO_MANY
        elif many:
            cardinality = Cardinality.ONE_TO_MANY
        elif other_many:
            cardinality = Cardinality.MANY_TO_ONE
        else:
            cardinality = Cardinality.ONE_TO_ONE

    return AssociationSnapshot(
        source_list=list_descriptor.key,
        source_field=field_descriptor.path,
        cardinality=cardinality,
        target_list=target_key,
        target_field=target_path,
        source_table=list_descriptor.table_name,
        target_table=target.table_name,
    )


# ------------------------------------------------------------------
# Placements
# ------------------------------------------------------------------


@dataclass(frozen=True)
class ForeignKeyPlacement:
    """An indexed FK column on ``table_name`` referencing ``ref_table.id``."""

    table_name: str
    column: str
    ref_table: str

    @property
    def linked_tables(self) -> tuple[str, str]:
        return (self.table_name, self.ref_table)

    def apply(self, table: TableBuilder) -> None:
        table.add_column(self.column, Integer())
        table.add_foreign_key(self.column, self.ref_table, on_delete="SET NULL")
        table.add_index(self.column)

    def remove(self, table: TableBuilder) -> None:
        table.drop_column(self.column)


@dataclass(frozen=True)
class JoinTablePlacement:
    """A join table with one indexed FK column per side."""

    table_name: str
    left_column: str
    left_table: str
    right_column: str
    right_table: str

    @property
    def linked_tables(self) -> tuple[str, str]:
        return (self.left_table, self.right_table)

    def apply(self, table: TableBuilder) -> None:
        for column, ref_table in (
            (self.left_column, self.left_table),
            (self.right_column, self.right_table),
        ):
            table.add_column(column, Integer(), nullable=False)
            table.add_foreign_key(column, ref_table, on_delete="CASCADE")
            table.add_index(column)


Placement = ForeignKeyPlacement | JoinTablePlacement


def _join_table(association: AssociationSnapshot) -> JoinTablePlacement:
    a = association
    if a.target_field is None:
        return JoinTablePlacement(
            table_name=truncate_identifier(f"{a.source_table}_{a.source_field}_many"),
            left_column=f"{a.source_list}_left_id",
            left_table=a.source_table,
            right_column=f"{a.target_list}_right_id",
            right_table=a.target_table,
        )

    # Sorted so both halves of the pair compute the same table.
    left, right = sorted(
        [
            (a.source_table, a.source_field, a.source_list),
            (a.target_table, a.target_field, a.target_list),
        ]
    )
    return JoinTablePlacement(
        table_name=truncate_identifier(f"{left[0]}_{left[1]}_{right[0]}_{right[1]}"),
        left_column=f"{left[2]}_left_id",
        left_table=left[0],
        right_column=f"{right[2]}_right_id",
        right_table=right[0],
    )


def placement_for(association: AssociationSnapshot) -> Placement:
    """Where the physical structure of ``association`` lives.

    Pure: does not consult or change any resolution state.
    """
    a = association
    if a.cardinality is Cardinality.MANY_TO_MANY:
        return _join_table(a)
    if a.cardinality is Cardinality.ONE_TO_MANY:
        if a.target_field is None:
            raise ConfigurationError(
                f"Association {a.source_list}.{a.source_field} is 1:N but has no back-reference"
            )
        # The "many" side always holds the FK.
        return ForeignKeyPlacement(
            table_name=a.target_table,
            column=a.target_field,
            ref_table=a.source_table,
        )
    if (
        a.cardinality is Cardinality.ONE_TO_ONE
        and a.target_field is not None
        and (a.target_list, a.target_field) < (a.source_list, a.source_field)
    ):
        return ForeignKeyPlacement(
            table_name=a.target_table,
            column=a.target_field,
            ref_table=a.source_table,
        )
    return ForeignKeyPlacement(
        table_name=a.source_table,
        column=a.source_field,
        ref_table=a.target_table,
    )


def retable(placement: Placement, renamed_tables: Mapping[str, str]) -> Placement:
    """``placement`` with its list tables mapped through ``old -> new`` renames.

    A join table keeps its own name: it is not renamed with its lists.
    """
    if not renamed_tables:
        return placement
    if isinstance(placement, ForeignKeyPlacement):
        return replace(
            placement,
            table_name=renamed_tables.get(placement.table_name, placement.table_name),
            ref_table=renamed_tables.get(placement.ref_table, placement.ref_table),
        )
    return replace(
        placement,
        left_table=renamed_tables.get(placement.left_table, placement.left_table),
        right_table=renamed_tables.get(placement.right_table, placement.right_table),
    )


def join_table_move(
    previous: JoinTablePlacement, current: JoinTablePlacement
) -> list[tuple[str, str]] | None:
    """Column renames that turn join table ``previous`` into ``current``.

    Both placements must use current table names (see ``retable``).  Returns
    None when they link different tables, so the old rows cannot be kept.
    """
    old = [
        (previous.left_table, previous.left_column),
        (previous.right_table, previous.right_column),
    ]
    new = [
        (current.left_table, current.left_column),
        (current.right_table, current.right_column),
    ]
    if sorted(t for t, _ in old) != sorted(t for t, _ in new):
        return None
    if old[0][0] != new[0][0]:
        old.reverse()
    return [(o, n) for (_, o), (_, n) in zip(old, new) if o != n]


# ------------------------------------------------------------------
# Resolver
# ------------------------------------------------------------------


class AssociationResolver:
    """Resolution state for one pass over a batch of associations.

    Holds a ``(list, field) -> resolved`` flag for every bidirectional
    association in the batch.  The same resolver must be used for the whole
    pass; resolution is keyed by logical identity, never by position, so the
    outcome does not depend on which side is processed first.
    """

    def __init__(self, associations: Iterable[AssociationSnapshot]) -> None:
        self._resolved: dict[tuple[str, str], bool] = {
            a.key: False for a in associations if a.is_bidirectional
        }

    def is_resolved(self, key: tuple[str, str]) -> bool:
        return self._resolved.get(key, False)

    def resolve(self, association: AssociationSnapshot) -> Placement | None:
        """Return the placement to materialize, or None if already materialized."""
        if not association.is_bidirectional:
            return placement_for(association)

        if self.is_resolved(association.pair_key) or self.is_resolved(association.key):
            return None

        placement = placement_for(association)
        self._resolved[association.key] = True
        return placement
