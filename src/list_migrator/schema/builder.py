"""Snapshot builder: declared lists -> target schema.

Walks the application's list descriptors and produces one ``ListSchema``
per list.  Pure -- no I/O.

Usage:
    from list_migrator.schema.builder import build_schema

    current = build_schema(registry)
"""

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic_core import to_jsonable_python

from list_migrator.errors import ConfigurationError
from list_migrator.lists.registry import HISTORY_LIST_KEY
from list_migrator.schema.associations import classify
from list_migrator.schema.models import AssociationSnapshot, FieldSnapshot, ListSchema

if TYPE_CHECKING:
    from list_migrator.lists.fields import FieldDescriptor
    from list_migrator.lists.registry import ListDescriptor

logger = logging.getLogger(__name__)

# Attributes that change the physical shape of a column.
SCHEMA_OPTION_KEYS = (
    "is_primary_key",
    "is_required",
    "is_unique",
    "is_indexed",
    "default_value",
    "max_length",
    "precision",
    "scale",
    "options",
)


def _build_options(field_descriptor: "FieldDescriptor") -> dict[str, Any]:
    # Normalized to JSON-compatible values so a snapshot read back from the
    # history table compares equal to a freshly built one.
    options = {
        key: field_descriptor.field[key]
        for key in SCHEMA_OPTION_KEYS
        if field_descriptor.field.get(key) is not None
    }
    return to_jsonable_python(options)


def build_list_schema(
    list_descriptor: "ListDescriptor",
    lists: Mapping[str, "ListDescriptor"],
) -> ListSchema:
    """Build the ``ListSchema`` of one declared list."""
    fields: list[FieldSnapshot] = []
    associations: list[AssociationSnapshot] = []

    for field_descriptor in list_descriptor.fields:
        if field_descriptor.is_relationship:
            associations.append(classify(list_descriptor, field_descriptor, lists))
            continue
        fields.append(
            FieldSnapshot(
                type=field_descriptor.kind_name,
                name=field_descriptor.path,
                options=_build_options(field_descriptor),
            )
        )

    table_options = to_jsonable_python(
        {"table_name": list_descriptor.table_name, **list_descriptor.config}
    )
    return ListSchema(
        list_name=list_descriptor.key,
        table_options=table_options,
        fields=fields,
        associations=associations,
    )


def build_schema(
    lists: Mapping[str, "ListDescriptor"],
    history_list: str = HISTORY_LIST_KEY,
) -> list[ListSchema]:
    """Build the current target schema of every declared list.

    Args:
        lists: Ordered mapping of list key to descriptor (e.g. a ``ListRegistry``).
        history_list: Key of the list that stores schema snapshots.

    Returns:
        One ``ListSchema`` per list, in declaration order.

    Raises:
        ConfigurationError: If the history list is not declared or a
            relationship is misconfigured.
    """
    if history_list not in lists:
        raise ConfigurationError(
            f"Schema history list '{history_list}' is not declared. "
            "Call declare_history_list(registry) when declaring your lists."
        )

    schema = [build_list_schema(descriptor, lists) for descriptor in lists.values()]
    logger.debug(
        "Built schema: %d lists, %d associations",
        len(schema),
        sum(len(s.associations) for s in schema),
    )
    return schema
