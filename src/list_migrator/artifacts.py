"""Plan artifacts shared by the ``create`` and ``apply`` steps.

``create`` writes three JSON files into the plan directory; ``apply`` reads
them back, so planning and execution can run as separate processes:

- ``modifications.json``: ordered list of modifications
- ``schema.json``: ordered list of ``ListSchema`` (the snapshot to save)
- ``base.json``: ``created_at`` of the snapshot the plan was made against
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ValidationError

from list_migrator.errors import ConfigurationError, SerializationError
from list_migrator.schema.models import ListSchema, SchemaContent
from list_migrator.schema.modifications import Modification, ModificationList

logger = logging.getLogger(__name__)

MODIFICATIONS_FILE = "modifications.json"
SCHEMA_FILE = "schema.json"
BASE_FILE = "base.json"


class PlanBase(BaseModel):
    """The snapshot a plan was computed against (None on a first run)."""

    snapshot_created_at: datetime | None = None


def _missing(path: Path) -> ConfigurationError:
    return ConfigurationError(
        f"Plan artifact not found: {path}\n"
        "Run: list-migrator create"
    )


def write_plan(
    plan_dir: str | Path,
    modifications: Sequence[Modification],
    schema: Sequence[ListSchema],
    base_snapshot_at: datetime | None = None,
) -> tuple[Path, Path]:
    """Write the artifacts, creating ``plan_dir`` if needed.

    Returns:
        Paths of the modifications file and the schema file.
    """
    plan_path = Path(plan_dir)
    plan_path.mkdir(parents=True, exist_ok=True)

    modifications_path = plan_path / MODIFICATIONS_FILE
    schema_path = plan_path / SCHEMA_FILE
    modifications_path.write_bytes(ModificationList.dump_json(list(modifications), indent=2))
    schema_path.write_bytes(SchemaContent.dump_json(list(schema), indent=2))
    (plan_path / BASE_FILE).write_text(
        PlanBase(snapshot_created_at=base_snapshot_at).model_dump_json(indent=2)
    )

    logger.info(
        "Wrote %d modification(s) and %d list(s) to %s",
        len(modifications),
        len(schema),
        plan_path,
    )
    return modifications_path, schema_path


def read_plan(plan_dir: str | Path) -> tuple[list[Modification], list[ListSchema]]:
    """Read the modifications and the schema back.

    Raises:
        ConfigurationError: If either file is missing.
        SerializationError: If either file cannot be parsed.
    """
    plan_path = Path(plan_dir)
    modifications_path = plan_path / MODIFICATIONS_FILE
    schema_path = plan_path / SCHEMA_FILE

    for path in (modifications_path, schema_path):
        if not path.exists():
            raise _missing(path)

    try:
        modifications = ModificationList.validate_json(modifications_path.read_bytes())
    except ValidationError as e:
        raise SerializationError(f"Malformed {modifications_path}: {e}") from e

    try:
        schema = SchemaContent.validate_json(schema_path.read_bytes())
    except ValidationError as e:
        raise SerializationError(f"Malformed {schema_path}: {e}") from e

    return modifications, schema


def read_plan_base(plan_dir: str | Path) -> datetime | None:
    """``created_at`` of the snapshot the plan in ``plan_dir`` was made against.

    Raises:
        ConfigurationError: If ``base.json`` is missing.
        SerializationError: If it cannot be parsed.
    """
    base_path = Path(plan_dir) / BASE_FILE
    if not base_path.exists():
        raise _missing(base_path)
    try:
        return PlanBase.model_validate_json(base_path.read_bytes()).snapshot_created_at
    except ValidationError as e:
        raise SerializationError(f"Malformed {base_path}: {e}") from e
