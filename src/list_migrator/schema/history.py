"""Snapshot store backed by the schema-history table.

Every successful apply appends one row holding the full schema snapshot the
database now matches.  Rows are never updated or deleted: the table is the
audit trail and the only record of what the database looks like.

Usage:
    from list_migrator.schema.history import SnapshotStore

    store = SnapshotStore(adapter, "schema_history")
    record = await store.load_latest()
    cached = record.content if record else None
    ...
    await store.save(current)
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from list_migrator.errors import SerializationError
from list_migrator.lists.registry import HISTORY_TABLE_NAME
from list_migrator.schema.models import ListSchema, SchemaContent, SchemaSnapshotRecord

if TYPE_CHECKING:
    from list_migrator.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = "content, created_at, active"


class SnapshotStore:
    """Loads and appends schema snapshots.

    Args:
        client: Database client used for ``has_table``/``select``/``insert``.
        table_name: Name of the history table.
    """

    def __init__(self, client: "DatabaseClient", table_name: str = HISTORY_TABLE_NAME) -> None:
        self._client = client
        self.table_name = table_name

    async def load_latest(self, active_only: bool = False) -> SchemaSnapshotRecord | None:
        """Return the most recent snapshot by ``created_at``.

        Args:
            active_only: Only consider rows whose ``active`` flag is set.

        Returns:
            The latest record, or None if the history table does not exist
            yet or holds no matching rows (the first-run state).

        Raises:
            SerializationError: If the stored content cannot be parsed.
        """
        if not await self._client.has_table(self.table_name):
            logger.info("History table %s does not exist yet", self.table_name)
            return None

        rows = await self._client.select(
            self.table_name,
            HISTORY_COLUMNS,
            filters={"active": True} if active_only else None,
            order_by="created_at DESC",
            limit=1,
        )
        if not rows:
            logger.info("History table %s holds no snapshots", self.table_name)
            return None

        return self._parse_row(rows[0])

    async def save(self, snapshot: Sequence[ListSchema], active: bool = True) -> SchemaSnapshotRecord:
        """Append a new snapshot row and return it as a record."""
        record = SchemaSnapshotRecord(
            content=list(snapshot),
            created_at=datetime.now(timezone.utc),
            active=active,
        )
        await self._client.insert(
            self.table_name,
            {
                "content": SchemaContent.dump_json(record.content).decode(),
                "created_at": record.created_at,
                "active": record.active,
            },
        )
        logger.info(
            "Saved schema snapshot (%d lists) to %s", len(record.content), self.table_name
        )
        return record

    def _parse_row(self, row: dict[str, Any]) -> SchemaSnapshotRecord:
        raw = row.get("content")
        try:
            if isinstance(raw, (str, bytes)):
                content = SchemaContent.validate_json(raw)
            else:
                content = SchemaContent.validate_python(raw)
            return SchemaSnapshotRecord(
                content=content,
                created_at=row["created_at"],
                active=row.get("active") is not False,
            )
        except (ValidationError, KeyError) as e:
            raise SerializationError(
                f"Unreadable schema snapshot in {self.table_name}: {e}"
            ) from e
