"""Diff planner: current schema vs. cached snapshot -> modifications.

Pure logic -- no I/O.  The output is in discovery order; pass it through
``order_modifications()`` before applying.

Field identity is inferred structurally, because field descriptors carry no
stable identifier across renames:

1. Fields with the same name are matched; a different type or options
   is a ``field/update``.
2. The remaining (residual) fields are paired by position in their list.  A
   cached residual and a current residual at the same position with the same
   type and options are a ``field/rename``.
3. Every other cached residual is a ``field/remove``; every other current
   residual is a ``field/create``.

Usage:
    from list_migrator.schema.planner import plan_modifications

    modifications = plan_modifications(current, record.content if record else None)
"""

import logging
from collections import Counter
from collections.abc import Sequence

from list_migrator.schema.associations import placement_for
from list_migrator.schema.models import AssociationSnapshot, Cardinality, ListSchema
from list_migrator.schema.modifications import (
    CreateAssociation,
    CreateField,
    CreateList,
    Modification,
    RemoveAssociation,
    RemoveField,
    RemoveList,
    RenameField,
    RenameList,
    UpdateAssociation,
    UpdateField,
)

logger = logging.getLogger(__name__)


def _create_list(list_schema: ListSchema) -> list[Modification]:
    modifications: list[Modification] = [CreateList(list_schema=list_schema)]
    modifications.extend(CreateAssociation(association=a) for a in list_schema.associations)
    return modifications


def _remove_list(list_schema: ListSchema) -> list[Modification]:
    modifications: list[Modification] = [
        RemoveList(list_name=list_schema.list_name, table_name=list_schema.table_name)
    ]
    modifications.extend(RemoveAssociation(association=a) for a in list_schema.associations)
    return modifications


def diff_fields(cached: ListSchema, current: ListSchema) -> list[Modification]:
    """Classify every field of one list into update / rename / remove / create."""
    list_name = current.list_name
    table_name = current.table_name
    cached_fields = cached.fields
    current_fields = current.fields
    cached_by_name = {f.name: f for f in cached_fields}
    current_by_name = {f.name: f for f in current_fields}

    modifications: list[Modification] = []

    # 1. Exact-name matches
    for field in current_fields:
        previous = cached_by_name.get(field.name)
        if previous is not None and not field.same_shape(previous):
            modifications.append(
                UpdateField(list_name=list_name, table_name=table_name, field=field, previous=previous)
            )

    # 2-3. Residuals, paired by position
    renamed: set[str] = set()
    for index, previous in enumerate(cached_fields):
        if previous.name in current_by_name:
            continue
        candidate = current_fields[index] if index < len(current_fields) else None
        if (
            candidate is not None
            and candidate.name not in cached_by_name
            and candidate.same_shape(previous)
        ):
            modifications.append(
                RenameField(
                    list_name=list_name,
                    table_name=table_name,
                    field=candidate,
                    previous_name=previous.name,
                )
            )
            renamed.add(candidate.name)
        else:
            modifications.append(
                RemoveField(list_name=list_name, table_name=table_name, field=previous)
            )

    for field in current_fields:
        if field.name not in cached_by_name and field.name not in renamed:
            modifications.append(CreateField(list_name=list_name, table_name=table_name, field=field))

    return modifications


def _join_table_moved(previous: AssociationSnapshot, current: AssociationSnapshot) -> bool:
    # FK columns follow a table rename; join table names are derived from table names.
    if current.cardinality is not Cardinality.MANY_TO_MANY:
        return False
    return placement_for(previous).table_name != placement_for(current).table_name


def diff_associations(cached: ListSchema, current: ListSchema) -> list[Modification]:
    """Match associations by declaring field: create, update or remove.

    A table rename on either side is not an association change by itself,
    except for join tables, whose names are derived from the table names.
    """
    cached_by_field = {a.source_field: a for a in cached.associations}
    current_fields = {a.source_field for a in current.associations}

    modifications: list[Modification] = []
    for association in current.associations:
        previous = cached_by_field.get(association.source_field)
        if previous is None:
            modifications.append(CreateAssociation(association=association))
        elif not previous.same_relation(association) or _join_table_moved(previous, association):
            modifications.append(UpdateAssociation(association=association, previous=previous))

    for previous in cached.associations:
        if previous.source_field not in current_fields:
            modifications.append(RemoveAssociation(association=previous))

    return modifications


def plan_modifications(
    current: Sequence[ListSchema],
    cached: Sequence[ListSchema] | None,
) -> list[Modification]:
    """Compute the modifications that turn ``cached`` into ``current``.

    Args:
        current: Schema built from the declared lists.
        cached: Content of the latest schema snapshot, or None on first run.

    Returns:
        Flat list of modifications in discovery order.

    Examples:
        >>> plan_modifications([], None)
        []
    """
    modifications: list[Modification] = []

    if cached is None:
        for list_schema in current:
            modifications.extend(_create_list(list_schema))
        _log_plan(modifications, bootstrap=True)
        return modifications

    cached_by_name = {s.list_name: s for s in cached}
    current_names = {s.list_name for s in current}

    for list_schema in current:
        previous = cached_by_name.get(list_schema.list_name)
        if previous is None:
            modifications.extend(_create_list(list_schema))
            continue
        if previous.table_name != list_schema.table_name:
            modifications.append(
                RenameList(
                    list_name=list_schema.list_name,
                    table_name=list_schema.table_name,
                    previous_table_name=previous.table_name,
                )
            )
        modifications.extend(diff_fields(previous, list_schema))
        modifications.extend(diff_associations(previous, list_schema))

    for previous in cached:
        if previous.list_name not in current_names:
            modifications.extend(_remove_list(previous))

    _log_plan(modifications, bootstrap=False)
    return modifications


def _log_plan(modifications: list[Modification], bootstrap: bool) -> None:
    counts = Counter(m.kind for m in modifications)
    logger.info(
        "Planned %d modification(s)%s: %s",
        len(modifications),
        " (bootstrap)" if bootstrap else "",
        ", ".join(f"{kind}={count}" for kind, count in sorted(counts.items())) or "none",
    )
