"""Adapter and list-registry factory.

Resolves the active profile from ``migrator.toml`` and builds the database
adapter for it, and loads the application's declared lists from an entry
point of the form ``package.module:attribute``.
"""

import importlib
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from urllib.parse import quote

from list_migrator.adapters import AsyncPostgresAdapter, DatabaseClient
from list_migrator.config import DatabaseProfile, MigratorConfig, load_config
from list_migrator.errors import ConfigurationError

SUPPORTED_PROVIDERS = ("postgres",)


class ProfileNotFoundError(ConfigurationError):
    """Raised when no database profile is configured."""

    pass


# ============================================================================
# Profile Resolution
# ============================================================================


def get_active_profile_name(profile_name: str | None = None, env_prefix: str = "") -> str:
    """Get active profile name from the explicit argument or env var.

    Priority:
    1. ``profile_name`` argument (``--profile``)
    2. ``{env_prefix}DB_PROFILE`` env var
    3. Raise ProfileNotFoundError

    Raises:
        ProfileNotFoundError: If no profile is configured.
    """
    if profile_name:
        return profile_name

    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Run with --profile <name> or set {env_var}=<name>"
    )


def get_active_profile(
    config: MigratorConfig,
    profile_name: str | None = None,
    env_prefix: str = "",
) -> tuple[str, DatabaseProfile]:
    """Get active profile name and configuration.

    Raises:
        ProfileNotFoundError: If no profile is configured or it is not in
            the config file.
    """
    name = get_active_profile_name(profile_name, env_prefix)
    if name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{name}' not found in migrator.toml.\n"
            f"Available profiles: {available}"
        )
    return name, config.profiles[name]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Database Adapter Factory
# ============================================================================


def get_adapter(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: Path | None = None,
) -> DatabaseClient:
    """Create a database adapter for the active profile.

    Raises:
        ProfileNotFoundError: If no usable profile is configured.
        ConfigurationError: If the profile's provider is not supported.

    Example:
        >>> adapter = get_adapter("local")
        >>> await adapter.has_table("schema_history")
    """
    config = load_config(config_path)
    _, profile = get_active_profile(config, profile_name, env_prefix)

    if profile.provider not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(
            f"Provider '{profile.provider}' cannot run schema migrations.\n"
            f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    return AsyncPostgresAdapter(database_url=resolve_url(profile))


# ============================================================================
# List Registry Loading
# ============================================================================


def load_lists(entry: str | None) -> Mapping:
    """Import the declared lists from ``package.module:attribute``.

    The current working directory is importable, so a project can point at
    its own modules without installing them.

    Raises:
        ConfigurationError: If the entry is missing, cannot be imported, or
            does not name a mapping of lists.
    """
    if not entry:
        raise ConfigurationError(
            "No list entry point configured.\n"
            "Set [migrations] entry = \"package.module:registry\" or pass --entry"
        )

    module_name, _, attribute = entry.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(f"Entry '{entry}' must look like 'package.module:attribute'")

    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import '{module_name}': {e}") from e

    lists = getattr(module, attribute, None)
    if not isinstance(lists, Mapping):
        raise ConfigurationError(
            f"'{entry}' is not a mapping of declared lists (got {type(lists).__name__})"
        )
    return lists
