"""Error taxonomy for planning and applying modifications.

Every error raised by the migrator derives from ``MigrationError`` so callers
(and the CLI) can report failures uniformly.  Nothing here is retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from list_migrator.schema.modifications import Modification


class MigrationError(Exception):
    """Base class for all migrator errors."""


class ConfigurationError(MigrationError):
    """Raised when a fatal precondition is not met.

    Examples: the schema-history list is not declared, a relationship refers
    to an undeclared list, or the plan artifacts are missing when applying.
    """


class SerializationError(MigrationError):
    """Raised when persisted plan or snapshot content cannot be read."""


class StructuralConflictError(MigrationError):
    """Raised when a single modification fails to apply.

    Attributes:
        modification: The modification that failed.
    """

    def __init__(self, modification: "Modification", cause: Any = None) -> None:
        self.modification = modification
        self.cause = cause
        message = f"Failed to apply {modification.describe()}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class PartialApplicationError(StructuralConflictError):
    """Raised when a non-transactional run fails part-way.

    The modifications in ``applied`` reached the database before the failure
    and were not rolled back.  No snapshot was written.
    """

    def __init__(
        self,
        modification: "Modification",
        applied: list["Modification"],
        cause: Any = None,
    ) -> None:
        self.applied = list(applied)
        super().__init__(modification, cause)

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} ({len(self.applied)} modification(s) already applied, not rolled back)"


class StalePlanError(ConfigurationError):
    """Raised when the latest snapshot is not the one a plan was made against.

    Applying such a plan would repeat or undo changes already recorded, so
    the plan has to be created again.
    """

    def __init__(self, planned_against: Any, latest: Any) -> None:
        self.planned_against = planned_against
        self.latest = latest
        super().__init__(
            f"Plan is stale: it was created against snapshot {planned_against or 'none'}, "
            f"but the latest snapshot is {latest or 'none'}.\n"
            "Run: list-migrator create"
        )
