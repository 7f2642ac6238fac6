"""Shared fixtures: sample list registries and a recording database client."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import pytest
from sqlalchemy.dialects import postgresql

from list_migrator.adapters.ddl import TableBuilder
from list_migrator.lists import (
    Checkbox,
    Integer,
    ListRegistry,
    Relationship,
    Select,
    Text,
    declare_history_list,
)
from list_migrator.schema.models import ListSchema

DIALECT = postgresql.dialect()


# ============================================================================
# Registries
# ============================================================================


def make_registry() -> ListRegistry:
    """User <-> Todo (1:N both sides) and a standalone N:N from Tag to Todo."""
    registry = ListRegistry()
    declare_history_list(registry)
    registry.create_list(
        "User",
        fields={
            "email": Text(is_required=True, is_unique=True),
            "name": Text(max_length=120),
            "todos": Relationship(ref="Todo.assignee", many=True),
        },
        table_name="users",
    )
    registry.create_list(
        "Todo",
        fields={
            "title": Text(is_required=True),
            "done": Checkbox(default_value=False),
            "priority": Select(options=["low", "high"], default_value="low"),
            "assignee": Relationship(ref="User.todos"),
        },
        table_name="todos",
    )
    registry.create_list(
        "Tag",
        fields={
            "label": Text(),
            "todos": Relationship(ref="Todo", many=True),
        },
        table_name="tags",
    )
    return registry


def make_category_registry() -> ListRegistry:
    """Self-referential 1:N: Category.children <-> Category.parent."""
    registry = ListRegistry()
    declare_history_list(registry)
    registry.create_list(
        "Category",
        fields={
            "title": Text(),
            "children": Relationship(ref="Category.parent", many=True),
            "parent": Relationship(ref="Category.children"),
        },
        table_name="categories",
    )
    return registry


def make_many_to_many_registry(reverse: bool = False) -> ListRegistry:
    """Post <-> Label declared on both sides as to-many."""
    registry = ListRegistry()
    declare_history_list(registry)
    post = ("Post", {"headline": Text(), "labels": Relationship(ref="Label.posts", many=True)})
    label = ("Label", {"weight": Integer(), "posts": Relationship(ref="Post.labels", many=True)})
    for key, fields in (label, post) if reverse else (post, label):
        registry.create_list(key, fields=fields, table_name=f"{key.lower()}s")
    return registry


def make_library_registry(book_table: str = "books", bidirectional: bool = False) -> ListRegistry:
    """Author and Book, linked by Book.author alone or by Author.books as well."""
    registry = ListRegistry()
    declare_history_list(registry)
    author_fields = {"name": Text()}
    if bidirectional:
        author_fields["books"] = Relationship(ref="Book.author", many=True)
    registry.create_list("Author", fields=author_fields, table_name="authors")
    registry.create_list(
        "Book",
        fields={
            "title": Text(),
            "author": Relationship(ref="Author.books" if bidirectional else "Author"),
        },
        table_name=book_table,
    )
    return registry


def with_table_name(schema: list[ListSchema], list_name: str, table_name: str) -> list[ListSchema]:
    """``schema`` as it was when ``list_name`` lived in ``table_name``."""
    old = next(s.table_name for s in schema if s.list_name == list_name)

    def retabled(association):
        return association.model_copy(
            update={
                key: table_name
                for key in ("source_table", "target_table")
                if getattr(association, key) == old
            }
        )

    return [
        s.model_copy(
            update={
                "table_options": (
                    {**s.table_options, "table_name": table_name}
                    if s.list_name == list_name
                    else s.table_options
                ),
                "associations": [retabled(a) for a in s.associations],
            }
        )
        for s in schema
    ]


@pytest.fixture
def registry() -> ListRegistry:
    return make_registry()


# ============================================================================
# Recording client
# ============================================================================


class RecordingClient:
    """In-memory ``DatabaseClient`` that records every call.

    Builders are compiled with the PostgreSQL dialect so tests can assert
    on the DDL an adapter would run.
    """

    def __init__(self, tables: set[str] | None = None) -> None:
        self.tables: set[str] = set(tables or ())
        self.rows: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.ddl: list[str] = []
        self.fail_on: Callable[[str, str], bool] | None = None
        self.in_transaction = False

    def _check(self, operation: str, name: str) -> None:
        if self.fail_on is not None and self.fail_on(operation, name):
            raise RuntimeError(f"{operation} {name} failed")

    async def select(self, table, columns, filters=None, order_by=None, limit=None):
        self.calls.append(("select", table))
        rows = list(self.rows.get(table, []))
        if filters:
            rows = [r for r in rows if all(r.get(k) == v for k, v in filters.items())]
        if order_by == "created_at DESC":
            rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[:limit] if limit is not None else rows

    async def insert(self, table, data):
        self.calls.append(("insert", table))
        self._check("insert", table)
        self.rows.setdefault(table, []).append(dict(data))
        return dict(data)

    async def execute(self, sql, params=None):
        self.calls.append(("execute", sql))

    async def has_table(self, name):
        self.calls.append(("has_table", name))
        return name in self.tables

    async def create_table(self, name, build_fn):
        self.calls.append(("create_table", name))
        self._check("create_table", name)
        builder = TableBuilder(name, create=True)
        build_fn(builder)
        self.ddl.extend(builder.to_ddl(DIALECT))
        self.tables.add(name)

    async def alter_table(self, name, build_fn):
        self.calls.append(("alter_table", name))
        self._check("alter_table", name)
        builder = TableBuilder(name, create=False)
        build_fn(builder)
        self.ddl.extend(builder.to_ddl(DIALECT))

    async def drop_table_if_exists(self, name):
        self.calls.append(("drop_table_if_exists", name))
        self._check("drop_table_if_exists", name)
        self.tables.discard(name)

    async def rename_table(self, old_name, new_name):
        self.calls.append(("rename_table", (old_name, new_name)))
        self.tables.discard(old_name)
        self.tables.add(new_name)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        self.calls.append(("begin", None))
        self.in_transaction = True
        try:
            yield
        except BaseException:
            self.calls.append(("rollback", None))
            raise
        else:
            self.calls.append(("commit", None))
        finally:
            self.in_transaction = False

    async def close(self):
        self.calls.append(("close", None))

    def names(self, operation: str) -> list[Any]:
        return [arg for op, arg in self.calls if op == operation]


@pytest.fixture
def client() -> RecordingClient:
    return RecordingClient()
