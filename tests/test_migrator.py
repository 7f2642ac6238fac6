"""Tests for plan artifacts and the create/apply steps."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from conftest import RecordingClient, make_registry
from list_migrator.artifacts import (
    BASE_FILE,
    MODIFICATIONS_FILE,
    SCHEMA_FILE,
    read_plan,
    read_plan_base,
    write_plan,
)
from list_migrator.errors import ConfigurationError, SerializationError, StalePlanError
from list_migrator.lists import ListRegistry, Text, declare_history_list
from list_migrator.migrator import (
    apply_modifications,
    create_modifications,
    history_store,
    pending_modifications,
)
from list_migrator.schema.builder import build_schema
from list_migrator.schema.planner import plan_modifications


# ============================================================================
# Artifacts
# ============================================================================


class TestArtifacts:
    """modifications.json / schema.json."""

    def test_write_then_read(self, tmp_path: Path) -> None:
        """Artifacts read back into the same modifications and schema."""
        schema = build_schema(make_registry())
        modifications = plan_modifications(schema, None)

        write_plan(tmp_path / "compiled", modifications, schema)
        restored_modifications, restored_schema = read_plan(tmp_path / "compiled")

        assert restored_modifications == modifications
        assert restored_schema == schema

    def test_files_are_readable_json(self, tmp_path: Path) -> None:
        """Both files are JSON arrays; modifications carry object/op tags."""
        schema = build_schema(make_registry())
        write_plan(tmp_path, plan_modifications(schema, None), schema)

        modifications = json.loads((tmp_path / MODIFICATIONS_FILE).read_text())
        lists = json.loads((tmp_path / SCHEMA_FILE).read_text())

        assert modifications[0]["object"] == "list"
        assert modifications[0]["op"] == "create"
        assert [s["list_name"] for s in lists] == ["SchemaHistory", "User", "Todo", "Tag"]

    def test_missing_artifacts(self, tmp_path: Path) -> None:
        """Applying without a plan is a configuration error."""
        with pytest.raises(ConfigurationError, match="Plan artifact not found"):
            read_plan(tmp_path)

    def test_missing_schema_file(self, tmp_path: Path) -> None:
        """Both artifacts are required."""
        (tmp_path / MODIFICATIONS_FILE).write_text("[]")
        with pytest.raises(ConfigurationError, match=SCHEMA_FILE):
            read_plan(tmp_path)

    @pytest.mark.parametrize(
        "content",
        ["{", '[{"object": "list", "op": "explode"}]', '{"not": "a list"}'],
    )
    def test_malformed_modifications(self, tmp_path: Path, content: str) -> None:
        """Unparseable modifications are a serialization error."""
        (tmp_path / MODIFICATIONS_FILE).write_text(content)
        (tmp_path / SCHEMA_FILE).write_text("[]")
        with pytest.raises(SerializationError, match=MODIFICATIONS_FILE):
            read_plan(tmp_path)

    def test_base_snapshot_round_trip(self, tmp_path: Path) -> None:
        """The base snapshot time is written next to the plan and read back."""
        schema = build_schema(make_registry())
        created_at = datetime(2026, 3, 4, 5, 6, 7, 890123, tzinfo=timezone.utc)

        write_plan(tmp_path, [], schema, created_at)

        assert read_plan_base(tmp_path) == created_at

    def test_first_run_base_is_none(self, tmp_path: Path) -> None:
        """A plan made without any snapshot records no base."""
        schema = build_schema(make_registry())
        write_plan(tmp_path, plan_modifications(schema, None), schema)

        assert json.loads((tmp_path / BASE_FILE).read_text()) == {"snapshot_created_at": None}
        assert read_plan_base(tmp_path) is None

    def test_missing_base_file(self, tmp_path: Path) -> None:
        """The base file is required to apply."""
        with pytest.raises(ConfigurationError, match=BASE_FILE):
            read_plan_base(tmp_path)

    def test_malformed_base_file(self, tmp_path: Path) -> None:
        """An unparseable base file is a serialization error."""
        (tmp_path / BASE_FILE).write_text('{"snapshot_created_at": "yesterday"}')
        with pytest.raises(SerializationError, match=BASE_FILE):
            read_plan_base(tmp_path)

    def test_malformed_schema(self, tmp_path: Path) -> None:
        """Unparseable schema is a serialization error."""
        (tmp_path / MODIFICATIONS_FILE).write_text("[]")
        (tmp_path / SCHEMA_FILE).write_text('[{"fields": 1}]')
        with pytest.raises(SerializationError, match=SCHEMA_FILE):
            read_plan(tmp_path)


# ============================================================================
# create / apply
# ============================================================================


class TestCreateAndApply:
    """End-to-end create then apply against the recording client."""

    async def test_create_writes_plan(self, tmp_path: Path) -> None:
        """create_modifications() writes the ordered bootstrap plan."""
        client = RecordingClient()
        modifications = await create_modifications(client, make_registry(), tmp_path)

        assert (tmp_path / MODIFICATIONS_FILE).exists()
        assert [m.object for m in modifications][:4] == ["list"] * 4
        assert client.names("has_table") == ["schema_history"]

    async def test_create_then_apply_then_nothing_pending(self, tmp_path: Path) -> None:
        """After applying, the next plan is empty."""
        registry = make_registry()
        client = RecordingClient()

        await create_modifications(client, registry, tmp_path)
        result = await apply_modifications(client, registry, tmp_path)
        pending, _, record = await pending_modifications(client, registry)

        assert result.applied == 6
        assert record is not None
        assert pending == []

    async def test_reapplying_a_plan_is_rejected(self, tmp_path: Path) -> None:
        """A plan already applied is stale and changes nothing the second time."""
        registry = make_registry()
        client = RecordingClient()
        await create_modifications(client, registry, tmp_path)
        await apply_modifications(client, registry, tmp_path)
        client.calls.clear()

        with pytest.raises(StalePlanError, match="Run: list-migrator create"):
            await apply_modifications(client, registry, tmp_path)

        assert client.names("drop_table_if_exists") == []
        assert client.names("create_table") == []
        assert "schema_history" in client.tables
        assert len(client.rows["schema_history"]) == 1

    async def test_new_plan_after_apply_is_current(self, tmp_path: Path) -> None:
        """A plan created after the last apply records that snapshot as its base."""
        registry = make_registry()
        client = RecordingClient()
        await create_modifications(client, registry, tmp_path)
        first = await apply_modifications(client, registry, tmp_path)

        await create_modifications(client, registry, tmp_path)
        second = await apply_modifications(client, registry, tmp_path)

        assert read_plan_base(tmp_path) == first.record.created_at
        assert second.applied == 0
        assert len(client.rows["schema_history"]) == 2

    async def test_apply_dry_run(self, tmp_path: Path) -> None:
        """A dry run reads the plan but touches nothing."""
        registry = make_registry()
        client = RecordingClient()
        await create_modifications(client, registry, tmp_path)
        client.calls.clear()

        result = await apply_modifications(client, registry, tmp_path, dry_run=True)

        assert result.dry_run
        assert client.calls == []

    async def test_planning_error_writes_nothing(self, tmp_path: Path) -> None:
        """No artifact is written when planning fails."""
        registry = ListRegistry()
        registry.create_list("Note", fields={"body": Text()})

        with pytest.raises(ConfigurationError):
            await create_modifications(RecordingClient(), registry, tmp_path / "compiled")

        assert not (tmp_path / "compiled").exists()

    def test_history_store_uses_declared_table(self) -> None:
        """The store targets the history list's table."""
        registry = ListRegistry()
        declare_history_list(registry, table_name="migrations")
        assert history_store(RecordingClient(), registry).table_name == "migrations"

    def test_history_store_requires_history_list(self) -> None:
        """Without the history list there is nowhere to store snapshots."""
        with pytest.raises(ConfigurationError, match="not declared"):
            history_store(RecordingClient(), ListRegistry())
