"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol the migrator talks to.  All methods
are ``async def`` -- every schema operation suspends the caller, and the
executor awaits each one before issuing the next.

Usage:
    from list_migrator.adapters.base import DatabaseClient

    async def bootstrap(client: DatabaseClient) -> None:
        if await client.has_table("todo"):
            await client.drop_table_if_exists("todo")
        await client.create_table("todo", lambda t: t.add_column("id", Integer()))
        await client.close()
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from list_migrator.adapters.ddl import TableBuilder

BuildFn = Callable[[TableBuilder], None]


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    Row-level methods (``select``/``insert``) are only used against the
    schema-history table.  Structural methods receive a ``build_fn`` that is
    called with an open ``TableBuilder``.
    """

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names (e.g., ``"content, created_at"``).
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional ORDER BY expression (e.g., ``"created_at DESC"``).
            limit: Optional maximum number of rows.

        Returns:
            List of dicts, one per row.  Empty list if no matches.
        """
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert row into table and return the created row."""
        ...

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement (DDL or other non-query operations)."""
        ...

    async def has_table(self, name: str) -> bool:
        """Return True if a table with this name exists."""
        ...

    async def create_table(self, name: str, build_fn: BuildFn) -> None:
        """Create a table from the definitions ``build_fn`` adds to a builder."""
        ...

    async def alter_table(self, name: str, build_fn: BuildFn) -> None:
        """Alter a table with the changes ``build_fn`` adds to a builder."""
        ...

    async def drop_table_if_exists(self, name: str) -> None:
        """Drop a table (and dependent constraints) if it exists."""
        ...

    async def rename_table(self, old_name: str, new_name: str) -> None:
        """Rename a table."""
        ...

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Run every call made inside the block in one database transaction.

        Adapters that cannot run DDL transactionally should raise
        ``NotImplementedError``.
        """
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
