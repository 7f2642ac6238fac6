"""Tests for the snapshot store."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import RecordingClient, make_registry
from list_migrator.errors import SerializationError
from list_migrator.schema.builder import build_schema
from list_migrator.schema.history import SnapshotStore
from list_migrator.schema.models import SchemaContent


def _row(content, created_at: datetime, active=True) -> dict:
    return {"content": content, "created_at": created_at.isoformat(), "active": active}


class TestLoadLatest:
    """load_latest() behaviour."""

    async def test_missing_table_is_first_run(self) -> None:
        """No history table means no snapshot, not an error."""
        client = RecordingClient()
        store = SnapshotStore(client, "schema_history")

        assert await store.load_latest() is None
        assert client.names("select") == []

    async def test_empty_table_is_first_run(self) -> None:
        """An empty history table means no snapshot."""
        client = RecordingClient(tables={"schema_history"})
        assert await SnapshotStore(client).load_latest() is None

    async def test_returns_most_recent(self) -> None:
        """The newest row by created_at wins, regardless of insertion order."""
        schema = build_schema(make_registry())
        now = datetime.now(timezone.utc)
        client = RecordingClient(tables={"schema_history"})
        client.rows["schema_history"] = [
            _row(SchemaContent.dump_json(schema).decode(), now),
            _row("[]", now - timedelta(days=1)),
        ]

        record = await SnapshotStore(client).load_latest()

        assert record is not None
        assert record.content == schema
        assert record.created_at == now
        assert record.active is True

    async def test_active_only_filter(self) -> None:
        """active_only passes an active=True filter."""
        client = AsyncMock()
        client.has_table.return_value = True
        client.select.return_value = []

        await SnapshotStore(client, "history").load_latest(active_only=True)

        client.select.assert_awaited_once_with(
            "history",
            "content, created_at, active",
            filters={"active": True},
            order_by="created_at DESC",
            limit=1,
        )

    async def test_jsonb_content_accepted(self) -> None:
        """Content already decoded by the driver is validated as-is."""
        schema = build_schema(make_registry())
        client = AsyncMock()
        client.has_table.return_value = True
        client.select.return_value = [
            _row(json.loads(SchemaContent.dump_json(schema)), datetime.now(timezone.utc))
        ]

        record = await SnapshotStore(client).load_latest()

        assert record.content == schema

    async def test_null_active_counts_as_active(self) -> None:
        """A row without an active value is treated as active."""
        client = RecordingClient(tables={"schema_history"})
        client.rows["schema_history"] = [_row("[]", datetime.now(timezone.utc), active=None)]
        record = await SnapshotStore(client).load_latest()
        assert record.active is True

    @pytest.mark.parametrize("content", ["not json", '[{"list_name": 3}]', '{"a": 1}'])
    async def test_malformed_content(self, content: str) -> None:
        """Unreadable content is a serialization error."""
        client = RecordingClient(tables={"schema_history"})
        client.rows["schema_history"] = [_row(content, datetime.now(timezone.utc))]
        with pytest.raises(SerializationError, match="schema_history"):
            await SnapshotStore(client).load_latest()


class TestSave:
    """save() behaviour."""

    async def test_appends_row(self) -> None:
        """save() inserts serialized content, a timestamp and the active flag."""
        schema = build_schema(make_registry())
        client = RecordingClient(tables={"schema_history"})

        record = await SnapshotStore(client).save(schema)

        rows = client.rows["schema_history"]
        assert len(rows) == 1
        assert SchemaContent.validate_json(rows[0]["content"]) == schema
        assert rows[0]["created_at"] == record.created_at
        assert rows[0]["active"] is True
        assert record.created_at.tzinfo is not None

    async def test_never_updates(self) -> None:
        """Two saves produce two rows; the latest is returned by load_latest()."""
        schema = build_schema(make_registry())
        client = RecordingClient(tables={"schema_history"})
        store = SnapshotStore(client)

        await store.save([])
        client.rows["schema_history"][0]["created_at"] -= timedelta(seconds=1)
        await store.save(schema)

        assert len(client.rows["schema_history"]) == 2
        assert [op for op, _ in client.calls if op in ("insert", "select")] == ["insert", "insert"]
        assert (await store.load_latest()).content == schema
