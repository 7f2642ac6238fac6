"""Table builder used by field descriptors and association placements.

A ``TableBuilder`` is one table-definition unit of work.  Field descriptors
call ``add_column``/``add_index``, association placements call
``add_foreign_key``, and the adapter compiles the collected definitions into
DDL strings for its dialect with SQLAlchemy Core.

Two modes:

- **create** -- the builder describes a whole new table
  (``CREATE TABLE`` + ``CREATE INDEX``).
- **alter** -- the builder describes changes to an existing table
  (``ALTER TABLE ... ADD/DROP/RENAME/ALTER COLUMN``, ``ADD CONSTRAINT``).
  Columns added inside ``with builder.changing():`` are emitted as
  ``ALTER COLUMN`` type/nullability/default changes instead of additions.

Usage:
    from sqlalchemy import Integer, Text
    from sqlalchemy.dialects import postgresql

    builder = TableBuilder("todo", create=False)
    builder.add_column("owner", Integer())
    builder.add_foreign_key("owner", "user")
    for sql in builder.to_ddl(postgresql.dialect()):
        print(sql)
"""

import hashlib
import json
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from typing import Any

from sqlalchemy import Column, ForeignKeyConstraint, Index, MetaData, Table, text
from sqlalchemy import Integer as SAInteger
from sqlalchemy.engine import Dialect
from sqlalchemy.schema import AddConstraint, CreateColumn, CreateIndex, CreateTable
from sqlalchemy.types import TypeEngine

# PostgreSQL NAMEDATALEN - 1
MAX_IDENTIFIER_LENGTH = 63


def truncate_identifier(name: str, max_length: int = MAX_IDENTIFIER_LENGTH) -> str:
    """Shorten ``name`` to ``max_length`` keeping it unique via a hash suffix."""
    if len(name) <= max_length:
        return name
    digest = hashlib.md5(name.encode()).hexdigest()[:8]
    return f"{name[: max_length - 9]}_{digest}"


def _server_default(value: Any) -> Any:
    """Convert a field default into a SQLAlchemy ``server_default``."""
    if value is None:
        return None
    if isinstance(value, bool):
        return text("true" if value else "false")
    if isinstance(value, (int, float, Decimal)):
        return text(str(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class TableBuilder:
    """Collects column, index and foreign-key definitions for one table."""

    def __init__(self, table_name: str, *, create: bool = True) -> None:
        self.table_name = table_name
        self.create = create
        self._metadata = MetaData()
        self._table = Table(table_name, self._metadata)
        self._added: list[Column] = []
        self._changed: list[Column] = []
        self._dropped: list[str] = []
        self._renamed: list[tuple[str, str]] = []
        self._indexes: list[Index] = []
        self._foreign_keys: list[ForeignKeyConstraint] = []
        self._changing = False

    # ------------------------------------------------------------------
    # Definition API
    # ------------------------------------------------------------------

    @contextmanager
    def changing(self) -> Iterator["TableBuilder"]:
        """Treat columns added inside the block as changes to existing columns."""
        if self.create:
            raise RuntimeError("changing() is only available when altering a table")
        self._changing = True
        try:
            yield self
        finally:
            self._changing = False

    def add_column(
        self,
        name: str,
        type_: TypeEngine,
        *,
        nullable: bool = True,
        primary_key: bool = False,
        unique: bool = False,
        default: Any = None,
        autoincrement: bool | str = "auto",
    ) -> Column:
        column = Column(
            name,
            type_,
            nullable=nullable,
            primary_key=primary_key,
            unique=unique or None,
            server_default=_server_default(default),
            autoincrement=autoincrement,
        )
        self._table.append_column(column)
        if self._changing:
            self._changed.append(column)
        else:
            self._added.append(column)
        return column

    def add_index(self, *columns: str, unique: bool = False, name: str | None = None) -> Index:
        index_name = name or f"{self.table_name}_{'_'.join(columns)}_index"
        index = Index(
            truncate_identifier(index_name),
            *(self._table.c[col] for col in columns),
            unique=unique,
        )
        self._indexes.append(index)
        return index

    def add_foreign_key(
        self,
        column: str,
        ref_table: str,
        ref_column: str = "id",
        on_delete: str | None = None,
    ) -> ForeignKeyConstraint:
        """Reference ``ref_table.ref_column`` from ``column`` (already added)."""
        self._ensure_referenced(ref_table, ref_column)
        constraint = ForeignKeyConstraint(
            [column],
            [f"{ref_table}.{ref_column}"],
            name=truncate_identifier(f"{self.table_name}_{column}_foreign"),
            ondelete=on_delete,
        )
        self._table.append_constraint(constraint)
        self._foreign_keys.append(constraint)
        return constraint

    def drop_column(self, name: str) -> None:
        self._require_alter("drop_column")
        self._dropped.append(name)

    def rename_column(self, old_name: str, new_name: str) -> None:
        self._require_alter("rename_column")
        self._renamed.append((old_name, new_name))

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def to_ddl(self, dialect: Dialect) -> list[str]:
        """Compile the collected definitions into DDL statements."""
        if self.create:
            statements = [CreateTable(self._table)]
            statements.extend(CreateIndex(index) for index in self._indexes)
            return [str(s.compile(dialect=dialect)).strip() for s in statements]

        preparer = dialect.identifier_preparer
        table = preparer.format_table(self._table)
        ddl: list[str] = []

        for old_name, new_name in self._renamed:
            ddl.append(
                f"ALTER TABLE {table} RENAME COLUMN "
                f"{preparer.quote(old_name)} TO {preparer.quote(new_name)}"
            )

        for name in self._dropped:
            ddl.append(f"ALTER TABLE {table} DROP COLUMN IF EXISTS {preparer.quote(name)}")

        for column in self._added:
            column_sql = str(CreateColumn(column).compile(dialect=dialect)).strip()
            if column.unique:
                column_sql = f"{column_sql} UNIQUE"
            ddl.append(f"ALTER TABLE {table} ADD COLUMN {column_sql}")

        if self._changed:
            compiler = dialect.ddl_compiler(dialect, None)
            for column in self._changed:
                ddl.extend(self._change_column_ddl(table, column, dialect, compiler))

        for constraint in self._foreign_keys:
            ddl.append(str(AddConstraint(constraint).compile(dialect=dialect)).strip())

        for index in self._indexes:
            ddl.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip())

        return ddl

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _change_column_ddl(
        self,
        table: str,
        column: Column,
        dialect: Dialect,
        compiler: Any,
    ) -> list[str]:
        name = dialect.identifier_preparer.quote(column.name)
        type_sql = column.type.compile(dialect=dialect)
        statements = [
            f"ALTER TABLE {table} ALTER COLUMN {name} TYPE {type_sql} USING {name}::{type_sql}",
            f"ALTER TABLE {table} ALTER COLUMN {name} "
            f"{'DROP' if column.nullable else 'SET'} NOT NULL",
        ]
        default = compiler.get_column_default_string(column)
        if default is None:
            statements.append(f"ALTER TABLE {table} ALTER COLUMN {name} DROP DEFAULT")
        else:
            statements.append(f"ALTER TABLE {table} ALTER COLUMN {name} SET DEFAULT {default}")
        return statements

    def _ensure_referenced(self, ref_table: str, ref_column: str) -> None:
        # The referenced table only needs to exist in our MetaData for the
        # REFERENCES clause to compile; it is never emitted.
        if ref_table == self.table_name:
            target = self._table
        elif ref_table in self._metadata.tables:
            target = self._metadata.tables[ref_table]
        else:
            target = Table(ref_table, self._metadata)
        if ref_column not in target.c:
            target.append_column(Column(ref_column, SAInteger(), primary_key=True))

    def _require_alter(self, operation: str) -> None:
        if self.create:
            raise RuntimeError(f"{operation}() is only available when altering a table")
