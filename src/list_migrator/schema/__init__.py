"""Schema snapshots, planning, ordering and execution.

Usage:
    from list_migrator.schema import build_schema, plan_modifications, order_modifications
    from list_migrator.schema import ModificationExecutor, SnapshotStore
"""

from list_migrator.schema.associations import AssociationResolver, classify, placement_for
from list_migrator.schema.builder import build_schema
from list_migrator.schema.executor import ApplyResult, ModificationExecutor
from list_migrator.schema.history import SnapshotStore
from list_migrator.schema.models import (
    AssociationSnapshot,
    Cardinality,
    FieldSnapshot,
    ListSchema,
    SchemaSnapshotRecord,
)
from list_migrator.schema.modifications import Modification, ModificationList
from list_migrator.schema.ordering import order_modifications
from list_migrator.schema.planner import plan_modifications

__all__ = [
    # Models
    "FieldSnapshot",
    "AssociationSnapshot",
    "Cardinality",
    "ListSchema",
    "SchemaSnapshotRecord",
    "Modification",
    "ModificationList",
    # Pipeline
    "build_schema",
    "SnapshotStore",
    "plan_modifications",
    "order_modifications",
    "classify",
    "placement_for",
    "AssociationResolver",
    "ModificationExecutor",
    "ApplyResult",
]
