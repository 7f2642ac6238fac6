"""list-migrator: schema migrations for declared lists.

Builds a schema snapshot from declared lists, diffs it against the last
applied snapshot, and applies the resulting modifications to PostgreSQL.

Usage:
    from list_migrator import ListRegistry, declare_history_list
    from list_migrator import create_modifications, apply_modifications
    from list_migrator import AsyncPostgresAdapter, get_adapter
"""

__version__ = "0.1.0"

# Adapters
from list_migrator.adapters import AsyncPostgresAdapter, DatabaseClient, TableBuilder

# Config
from list_migrator.config import DatabaseProfile, MigratorConfig, load_config

# Errors
from list_migrator.errors import (
    ConfigurationError,
    MigrationError,
    PartialApplicationError,
    SerializationError,
    StructuralConflictError,
)

# Factory
from list_migrator.factory import ProfileNotFoundError, get_adapter, load_lists, resolve_url

# Lists
from list_migrator.lists import ListRegistry, declare_history_list

# Migrator
from list_migrator.migrator import apply_modifications, create_modifications

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    "TableBuilder",
    # Config
    "load_config",
    "DatabaseProfile",
    "MigratorConfig",
    # Errors
    "MigrationError",
    "ConfigurationError",
    "SerializationError",
    "StructuralConflictError",
    "PartialApplicationError",
    # Factory
    "get_adapter",
    "load_lists",
    "resolve_url",
    "ProfileNotFoundError",
    # Lists
    "ListRegistry",
    "declare_history_list",
    # Migrator
    "create_modifications",
    "apply_modifications",
]
