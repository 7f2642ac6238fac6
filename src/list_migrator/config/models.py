"""Pydantic models for migrator configuration."""

from pydantic import BaseModel, Field

from list_migrator.lists.registry import HISTORY_LIST_KEY


class DatabaseProfile(BaseModel):
    """Database connection profile from migrator.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "postgres"


class MigrationSettings(BaseModel):
    """The ``[migrations]`` table."""

    entry: str | None = None  # "package.module:registry"
    plan_dir: str = "compiled"
    history_list: str = HISTORY_LIST_KEY
    transactional: bool = True


class MigratorConfig(BaseModel):
    """Complete configuration from migrator.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    migrations: MigrationSettings = Field(default_factory=MigrationSettings)
