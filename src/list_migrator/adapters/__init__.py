"""Database adapters package.

Provides the ``DatabaseClient`` Protocol, the ``TableBuilder`` used to
describe structural changes, and the async PostgreSQL adapter.

Usage:
    from list_migrator.adapters import DatabaseClient, AsyncPostgresAdapter, TableBuilder
"""

from list_migrator.adapters.base import BuildFn, DatabaseClient
from list_migrator.adapters.ddl import TableBuilder
from list_migrator.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "DatabaseClient",
    "BuildFn",
    "TableBuilder",
    "AsyncPostgresAdapter",
]
