"""High-level create/apply steps.

``create_modifications`` builds the current schema, diffs it against the
latest snapshot and writes the plan artifacts.  ``apply_modifications``
reads the artifacts back and hands them to the executor.

Example:
    >>> adapter = AsyncPostgresAdapter(url)
    >>> await create_modifications(adapter, registry, "compiled")
    >>> result = await apply_modifications(adapter, registry, "compiled")
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from list_migrator.artifacts import read_plan, read_plan_base, write_plan
from list_migrator.errors import ConfigurationError
from list_migrator.lists.registry import HISTORY_LIST_KEY
from list_migrator.schema.builder import build_schema
from list_migrator.schema.executor import ApplyResult, ModificationExecutor
from list_migrator.schema.history import SnapshotStore
from list_migrator.schema.models import ListSchema, SchemaSnapshotRecord
from list_migrator.schema.modifications import Modification
from list_migrator.schema.ordering import order_modifications
from list_migrator.schema.planner import plan_modifications

if TYPE_CHECKING:
    from list_migrator.adapters.base import DatabaseClient
    from list_migrator.lists.registry import ListDescriptor

logger = logging.getLogger(__name__)


def history_store(
    client: "DatabaseClient",
    lists: Mapping[str, "ListDescriptor"],
    history_list: str = HISTORY_LIST_KEY,
) -> SnapshotStore:
    """Snapshot store for the table of the declared history list.

    Raises:
        ConfigurationError: If the history list is not declared.
    """
    if history_list not in lists:
        raise ConfigurationError(
            f"Schema history list '{history_list}' is not declared.\n"
            "Call declare_history_list(registry) when declaring your lists."
        )
    return SnapshotStore(client, lists[history_list].table_name)


async def pending_modifications(
    client: "DatabaseClient",
    lists: Mapping[str, "ListDescriptor"],
    history_list: str = HISTORY_LIST_KEY,
) -> tuple[list[Modification], list[ListSchema], SchemaSnapshotRecord | None]:
    """Plan against the latest snapshot without writing anything.

    Returns:
        Tuple of (ordered modifications, current schema, latest record).
    """
    current = build_schema(lists, history_list=history_list)
    store = history_store(client, lists, history_list)
    record = await store.load_latest()
    modifications = order_modifications(
        plan_modifications(current, record.content if record else None)
    )
    return modifications, current, record


async def create_modifications(
    client: "DatabaseClient",
    lists: Mapping[str, "ListDescriptor"],
    plan_dir: str | Path,
    history_list: str = HISTORY_LIST_KEY,
) -> list[Modification]:
    """Compute the plan and write it to ``plan_dir``.

    Nothing is written if planning fails.

    Returns:
        The ordered modifications written to the plan.
    """
    modifications, current, record = await pending_modifications(client, lists, history_list)
    write_plan(plan_dir, modifications, current, record.created_at if record else None)
    return modifications


async def apply_modifications(
    client: "DatabaseClient",
    lists: Mapping[str, "ListDescriptor"],
    plan_dir: str | Path,
    history_list: str = HISTORY_LIST_KEY,
    transactional: bool = True,
    dry_run: bool = False,
) -> ApplyResult:
    """Apply the plan in ``plan_dir`` and save its schema as the new snapshot.

    Raises:
        ConfigurationError: If the plan artifacts are missing.
        StalePlanError: If a snapshot was saved after the plan was created.
        SerializationError: If the plan artifacts are malformed.
        StructuralConflictError: If a modification fails.
    """
    modifications, schema = read_plan(plan_dir)
    base_snapshot_at = read_plan_base(plan_dir)
    store = history_store(client, lists, history_list)
    executor = ModificationExecutor(client, lists, store)
    return await executor.apply(
        modifications,
        schema,
        base_snapshot_at=base_snapshot_at,
        dry_run=dry_run,
        transactional=transactional,
    )
