"""Executor: apply ordered modifications to the live database.

Each modification is dispatched to one handler by its variant class and
awaited before the next one starts.  Relationship placement is delegated to
two ``AssociationResolver`` instances (one for creations, one for removals)
that live in an ``ExecutionState`` passed to every handler, so a relationship
declared on both sides is materialized or removed exactly once.

In transactional mode (the default) the whole batch and the snapshot insert
run in one database transaction that holds an advisory lock: a failure
leaves both the schema and the history table untouched, and a second run
against the same database waits for the first.  Once the lock is held the
latest snapshot is read again; if it is not the one the plan was made
against, ``StalePlanError`` is raised before anything runs.

Usage:
    from list_migrator.schema.executor import ModificationExecutor

    executor = ModificationExecutor(adapter, registry, store)
    result = await executor.apply(modifications, current)
    print(result.applied, result.by_kind)
"""

import logging
import zlib
from collections import Counter
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel

from list_migrator.errors import (
    ConfigurationError,
    MigrationError,
    PartialApplicationError,
    StalePlanError,
    StructuralConflictError,
)
from list_migrator.schema.associations import (
    AssociationResolver,
    ForeignKeyPlacement,
    JoinTablePlacement,
    Placement,
    join_table_move,
    placement_for,
    retable,
)
from list_migrator.schema.history import SnapshotStore
from list_migrator.schema.models import AssociationSnapshot, ListSchema, SchemaSnapshotRecord
from list_migrator.schema.modifications import (
    CreateAssociation,
    CreateField,
    CreateList,
    Modification,
    RemoveAssociation,
    RemoveField,
    RemoveList,
    RenameField,
    RenameList,
    UpdateAssociation,
    UpdateField,
)
from list_migrator.schema.ordering import order_modifications

if TYPE_CHECKING:
    from list_migrator.adapters.base import DatabaseClient
    from list_migrator.lists.fields import FieldDescriptor
    from list_migrator.lists.registry import ListDescriptor

logger = logging.getLogger(__name__)


class ApplyResult(BaseModel):
    """Outcome of one ``apply`` call."""

    applied: int = 0
    skipped: int = 0
    by_kind: dict[str, int] = {}
    record: SchemaSnapshotRecord | None = None
    dry_run: bool = False


@dataclass
class ExecutionState:
    """Per-run state shared by all handlers."""

    create_resolver: AssociationResolver
    remove_resolver: AssociationResolver
    renamed_tables: dict[str, str] = field(default_factory=dict)
    # Placements both removed and created by the batch: left as they are.
    kept: set[Placement] = field(default_factory=set)
    created_tables: set[str] = field(default_factory=set)
    dropped_tables: set[str] = field(default_factory=set)
    applied: list[Modification] = field(default_factory=list)

    @classmethod
    def for_batch(cls, modifications: Sequence[Modification]) -> "ExecutionState":
        created: list[AssociationSnapshot] = []
        removed: list[AssociationSnapshot] = []
        renamed_tables: dict[str, str] = {}
        for m in modifications:
            if isinstance(m, CreateAssociation):
                created.append(m.association)
            elif isinstance(m, RemoveAssociation):
                removed.append(m.association)
            elif isinstance(m, UpdateAssociation):
                created.append(m.association)
                removed.append(m.previous)
            elif isinstance(m, RenameList):
                renamed_tables[m.previous_table_name] = m.table_name
        kept = {placement_for(a) for a in created} & {
            retable(placement_for(a), renamed_tables) for a in removed
        }
        return cls(
            create_resolver=AssociationResolver(created),
            remove_resolver=AssociationResolver(removed),
            renamed_tables=renamed_tables,
            kept=kept,
        )

    def is_kept(self, placement: Placement) -> bool:
        """True if ``placement`` already exists and survives this run unchanged."""
        if placement not in self.kept:
            return False
        touched = self.created_tables | self.dropped_tables
        return not touched.intersection(placement.linked_tables)


def advisory_lock_key(table_name: str) -> int:
    """Stable lock key derived from the history table name."""
    return zlib.crc32(table_name.encode("utf-8"))


Handler = Callable[[Modification, ExecutionState], Awaitable[bool]]


class ModificationExecutor:
    """Applies modifications through a ``DatabaseClient``.

    Args:
        client: Database client.
        lists: Declared lists; field materialization delegates to their
            live ``FieldDescriptor`` objects.
        store: Snapshot store the new snapshot is saved to.
    """

    def __init__(
        self,
        client: "DatabaseClient",
        lists: Mapping[str, "ListDescriptor"],
        store: SnapshotStore,
    ) -> None:
        self._client = client
        self._lists = lists
        self._store = store
        self._handlers: dict[type, Handler] = {
            CreateList: self._create_list,
            RemoveList: self._remove_list,
            RenameList: self._rename_list,
            CreateField: self._create_field,
            RemoveField: self._remove_field,
            UpdateField: self._update_field,
            RenameField: self._rename_field,
            CreateAssociation: self._create_association,
            RemoveAssociation: self._remove_association,
            UpdateAssociation: self._update_association,
        }

    async def apply(
        self,
        modifications: Sequence[Modification],
        schema: Sequence[ListSchema],
        *,
        base_snapshot_at: datetime | None = None,
        dry_run: bool = False,
        transactional: bool = True,
    ) -> ApplyResult:
        """Apply ``modifications`` in order, then save ``schema`` as the new snapshot.

        Args:
            modifications: Modifications to apply; ordered again here.
            schema: Full current schema, saved after the last modification.
            base_snapshot_at: ``created_at`` of the snapshot the modifications
                were planned against, or None for a first run.  The latest
                snapshot must still be that one.
            dry_run: Only count what would be applied.
            transactional: Run everything in one transaction with an
                advisory lock held.

        Returns:
            ApplyResult with per-kind counts and the saved snapshot record.

        Raises:
            StalePlanError: Another snapshot was saved since the plan was made.
            StructuralConflictError: A modification failed (transactional mode:
                nothing was committed).
            PartialApplicationError: A modification failed in
                non-transactional mode after others were applied.
            ConfigurationError: A field has no live descriptor.
        """
        ordered = order_modifications(modifications)

        if dry_run:
            by_kind = Counter(m.kind for m in ordered)
            logger.info("Dry run: %d modification(s) would be applied", len(ordered))
            return ApplyResult(applied=len(ordered), by_kind=dict(by_kind), dry_run=True)

        state = ExecutionState.for_batch(ordered)

        if transactional:
            async with self._client.transaction():
                await self._client.execute(
                    "SELECT pg_advisory_xact_lock(:key)",
                    {"key": advisory_lock_key(self._store.table_name)},
                )
                await self._check_base(base_snapshot_at)
                skipped = await self._run(ordered, state, transactional=True)
                record = await self._store.save(schema)
        else:
            await self._check_base(base_snapshot_at)
            skipped = await self._run(ordered, state, transactional=False)
            record = await self._store.save(schema)

        by_kind = Counter(m.kind for m in state.applied)
        logger.info(
            "Applied %d modification(s), skipped %d", len(state.applied), skipped
        )
        return ApplyResult(
            applied=len(state.applied),
            skipped=skipped,
            by_kind=dict(by_kind),
            record=record,
        )

    async def _run(
        self,
        ordered: list[Modification],
        state: ExecutionState,
        *,
        transactional: bool,
    ) -> int:
        skipped = 0
        for modification in ordered:
            handler = self._handlers.get(type(modification))
            if handler is None:
                raise TypeError(f"No handler for modification {type(modification).__name__}")

            logger.debug("Applying %s", modification.describe())
            try:
                done = await handler(modification, state)
            except MigrationError:
                raise
            except Exception as e:
                if transactional:
                    raise StructuralConflictError(modification, e) from e
                raise PartialApplicationError(modification, state.applied, e) from e

            if done:
                state.applied.append(modification)
            else:
                skipped += 1
                logger.debug("Skipped %s", modification.describe())
        return skipped

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    async def _create_list(self, m: CreateList, state: ExecutionState) -> bool:
        table_name = m.table_name
        descriptors = [self._descriptor(m.list_name, f.name) for f in m.list_schema.fields]

        if await self._client.has_table(table_name):
            logger.warning("Table %s already exists, dropping it before recreating", table_name)
            await self._client.drop_table_if_exists(table_name)

        def build(table):
            for descriptor in descriptors:
                descriptor.materialize(table)

        await self._client.create_table(table_name, build)
        state.created_tables.add(table_name)
        return True

    async def _remove_list(self, m: RemoveList, state: ExecutionState) -> bool:
        if m.table_name in state.created_tables:
            # Another list took over this table earlier in the run.
            return False
        logger.warning("Dropping table %s (list %s removed)", m.table_name, m.list_name)
        await self._client.drop_table_if_exists(m.table_name)
        state.dropped_tables.add(m.table_name)
        return True

    async def _rename_list(self, m: RenameList, state: ExecutionState) -> bool:
        await self._client.rename_table(m.previous_table_name, m.table_name)
        return True

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    async def _create_field(self, m: CreateField, state: ExecutionState) -> bool:
        descriptor = self._descriptor(m.list_name, m.field.name)
        await self._client.alter_table(m.table_name, descriptor.materialize)
        return True

    async def _update_field(self, m: UpdateField, state: ExecutionState) -> bool:
        descriptor = self._descriptor(m.list_name, m.field.name)

        def build(table):
            with table.changing():
                descriptor.materialize(table)

        await self._client.alter_table(m.table_name, build)
        return True

    async def _remove_field(self, m: RemoveField, state: ExecutionState) -> bool:
        logger.warning("Dropping column %s.%s", m.table_name, m.field.name)
        await self._client.alter_table(m.table_name, lambda t: t.drop_column(m.field.name))
        return True

    async def _rename_field(self, m: RenameField, state: ExecutionState) -> bool:
        await self._client.alter_table(
            m.table_name, lambda t: t.rename_column(m.previous_name, m.field.name)
        )
        return True

    # ------------------------------------------------------------------
    # Associations
    # ------------------------------------------------------------------

    async def _create_association(self, m: CreateAssociation, state: ExecutionState) -> bool:
        placement = state.create_resolver.resolve(m.association)
        if placement is None:
            return False
        return await self._place(placement, state)

    async def _remove_association(self, m: RemoveAssociation, state: ExecutionState) -> bool:
        placement = state.remove_resolver.resolve(m.association)
        if placement is None:
            return False
        return await self._unplace(retable(placement, state.renamed_tables), state)

    async def _update_association(self, m: UpdateAssociation, state: ExecutionState) -> bool:
        removal = state.remove_resolver.resolve(m.previous)
        placement = state.create_resolver.resolve(m.association)
        if removal is not None:
            removal = retable(removal, state.renamed_tables)

        if (
            isinstance(removal, JoinTablePlacement)
            and isinstance(placement, JoinTablePlacement)
            and not state.created_tables.intersection(placement.linked_tables)
        ):
            columns = join_table_move(removal, placement)
            if columns is not None:
                if removal == placement:
                    return False
                await self._move_join_table(removal, placement, columns)
                return True

        removed = placed = False
        if removal is not None:
            removed = await self._unplace(removal, state)
        if placement is not None:
            placed = await self._place(placement, state)
        return removed or placed

    async def _place(self, placement: Placement, state: ExecutionState) -> bool:
        if state.is_kept(placement):
            return False
        if isinstance(placement, ForeignKeyPlacement):
            await self._client.alter_table(placement.table_name, placement.apply)
            return True

        if await self._client.has_table(placement.table_name):
            logger.warning(
                "Join table %s already exists, dropping it before recreating",
                placement.table_name,
            )
            await self._client.drop_table_if_exists(placement.table_name)
        await self._client.create_table(placement.table_name, placement.apply)
        return True

    async def _unplace(self, placement: Placement, state: ExecutionState) -> bool:
        if state.is_kept(placement):
            return False
        if isinstance(placement, JoinTablePlacement):
            await self._client.drop_table_if_exists(placement.table_name)
            return True
        if placement.table_name in state.dropped_tables | state.created_tables:
            return False
        await self._client.alter_table(placement.table_name, placement.remove)
        return True

    async def _move_join_table(
        self,
        previous: JoinTablePlacement,
        current: JoinTablePlacement,
        columns: list[tuple[str, str]],
    ) -> None:
        if previous.table_name != current.table_name:
            logger.info("Renaming join table %s to %s", previous.table_name, current.table_name)
            await self._client.rename_table(previous.table_name, current.table_name)
        if columns:

            def build(table):
                for old_name, new_name in columns:
                    table.rename_column(old_name, new_name)

            await self._client.alter_table(current.table_name, build)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _check_base(self, base_snapshot_at: datetime | None) -> None:
        latest = await self._store.load_latest()
        latest_at = latest.created_at if latest is not None else None
        if latest_at != base_snapshot_at:
            raise StalePlanError(base_snapshot_at, latest_at)

    def _descriptor(self, list_name: str, field_name: str) -> "FieldDescriptor":
        list_descriptor = self._lists.get(list_name)
        if list_descriptor is None:
            raise ConfigurationError(f"List '{list_name}' is not declared")
        descriptor = list_descriptor.fields_by_path.get(field_name)
        if descriptor is None:
            raise ConfigurationError(f"Field '{list_name}.{field_name}' is not declared")
        return descriptor
