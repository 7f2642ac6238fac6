"""List declarations.

A ``ListRegistry`` is the ordered set of lists an application declares.
It is what the ``--entry`` option of the CLI points at.

Usage:
    from list_migrator.lists import ListRegistry, declare_history_list
    from list_migrator.lists.fields import Text, Relationship

    registry = ListRegistry()
    declare_history_list(registry)
    registry.create_list("User", fields={"email": Text(is_unique=True)})
    registry.create_list(
        "Todo",
        fields={"name": Text(), "created_by": Relationship(ref="User")},
    )
"""

from collections.abc import Iterator, Mapping
from typing import Any

from list_migrator.lists.fields import AutoIncrement, Checkbox, DateTime, FieldDescriptor, Text

HISTORY_LIST_KEY = "SchemaHistory"
HISTORY_TABLE_NAME = "schema_history"


class ListDescriptor:
    """A declared list: its key, table name, config and ordered fields."""

    def __init__(
        self,
        key: str,
        fields: Mapping[str, FieldDescriptor],
        table_name: str | None = None,
        **config: Any,
    ) -> None:
        self.key = key
        self.table_name = table_name or key
        self.config = config

        declared = dict(fields)
        if not any(f.field.get("is_primary_key") for f in declared.values()):
            declared = {"id": AutoIncrement(), **declared}

        self.fields: list[FieldDescriptor] = []
        self.fields_by_path: dict[str, FieldDescriptor] = {}
        for path, descriptor in declared.items():
            descriptor.bind(key, path)
            self.fields.append(descriptor)
            self.fields_by_path[path] = descriptor

    def __repr__(self) -> str:
        return f"ListDescriptor(key={self.key!r}, table_name={self.table_name!r})"


class ListRegistry(Mapping[str, ListDescriptor]):
    """Ordered mapping of list key to ``ListDescriptor``."""

    def __init__(self) -> None:
        self._lists: dict[str, ListDescriptor] = {}

    def create_list(
        self,
        key: str,
        fields: Mapping[str, FieldDescriptor],
        **config: Any,
    ) -> ListDescriptor:
        """Declare a list.

        Raises:
            ValueError: If a list with the same key is already declared.
        """
        if key in self._lists:
            raise ValueError(f"List '{key}' is already declared")
        descriptor = ListDescriptor(key, fields, **config)
        self._lists[key] = descriptor
        return descriptor

    def __getitem__(self, key: str) -> ListDescriptor:
        return self._lists[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._lists)

    def __len__(self) -> int:
        return len(self._lists)


def declare_history_list(
    registry: ListRegistry,
    table_name: str = HISTORY_TABLE_NAME,
) -> ListDescriptor:
    """Declare the reserved list that stores applied schema snapshots."""
    return registry.create_list(
        HISTORY_LIST_KEY,
        fields={
            "content": Text(is_required=True),
            "created_at": DateTime(is_required=True, is_indexed=True),
            "active": Checkbox(default_value=True),
        },
        table_name=table_name,
    )
