"""Field types for declaring lists.

Each field type is a ``FieldDescriptor``: it carries a read-only attribute
map and knows how to materialize itself onto an open ``TableBuilder``.
Relationship fields are not materialized directly -- they are promoted to
associations and placed by the association resolver.

Usage:
    from list_migrator.lists.fields import Text, Integer, Relationship

    fields = {
        "name": Text(is_required=True, max_length=120),
        "priority": Integer(default_value=0, is_indexed=True),
        "assignee": Relationship(ref="User.tasks"),
    }
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import JSON, Boolean, Date, Enum, Numeric
from sqlalchemy import DateTime as SADateTime
from sqlalchemy import Float as SAFloat
from sqlalchemy import Integer as SAInteger
from sqlalchemy import String, Text as SAText
from sqlalchemy.types import TypeEngine

if TYPE_CHECKING:
    from list_migrator.adapters.ddl import TableBuilder


class FieldDescriptor:
    """Base class for all field types.

    Attributes:
        kind_name: Field type name recorded in schema snapshots.
        list_key: Key of the list this field belongs to (set on declaration).
        path: Field name (set on declaration).
        field: Attribute map (``is_required``, ``default_value``, ...).
    """

    kind_name: ClassVar[str] = "Field"
    is_relationship: ClassVar[bool] = False

    def __init__(
        self,
        *,
        is_required: bool = False,
        is_unique: bool = False,
        is_indexed: bool = False,
        default_value: Any = None,
        **attributes: Any,
    ) -> None:
        self.list_key: str | None = None
        self.path: str | None = None
        self.field: dict[str, Any] = {
            "is_required": is_required,
            "is_unique": is_unique,
            "is_indexed": is_indexed,
            "default_value": default_value,
            **attributes,
        }

    def bind(self, list_key: str, path: str) -> None:
        """Attach the descriptor to a list under the given field name."""
        self.list_key = list_key
        self.path = path

    def column_type(self) -> TypeEngine:
        raise NotImplementedError(f"{self.kind_name} has no column type")

    def materialize(self, table: "TableBuilder") -> None:
        """Add this field's column (and index, if requested) to ``table``."""
        table.add_column(
            self.path,
            self.column_type(),
            nullable=not self.field["is_required"],
            unique=self.field["is_unique"],
            primary_key=bool(self.field.get("is_primary_key")),
            default=self.field["default_value"],
        )
        if self.field["is_indexed"]:
            table.add_index(self.path)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={self.path!r})"


class AutoIncrement(FieldDescriptor):
    kind_name = "AutoIncrement"

    def __init__(self, **attributes: Any) -> None:
        attributes.setdefault("is_primary_key", True)
        super().__init__(**attributes)

    def column_type(self) -> TypeEngine:
        return SAInteger()

    def materialize(self, table: "TableBuilder") -> None:
        table.add_column(
            self.path,
            self.column_type(),
            nullable=False,
            primary_key=self.field["is_primary_key"],
            autoincrement=True,
        )


class Text(FieldDescriptor):
    kind_name = "Text"

    def __init__(self, *, max_length: int | None = None, **attributes: Any) -> None:
        super().__init__(max_length=max_length, **attributes)

    def column_type(self) -> TypeEngine:
        max_length = self.field["max_length"]
        return String(max_length) if max_length else SAText()


class Integer(FieldDescriptor):
    kind_name = "Integer"

    def column_type(self) -> TypeEngine:
        return SAInteger()


class Float(FieldDescriptor):
    kind_name = "Float"

    def column_type(self) -> TypeEngine:
        return SAFloat()


class Decimal(FieldDescriptor):
    kind_name = "Decimal"

    def __init__(self, *, precision: int = 18, scale: int = 4, **attributes: Any) -> None:
        super().__init__(precision=precision, scale=scale, **attributes)

    def column_type(self) -> TypeEngine:
        return Numeric(self.field["precision"], self.field["scale"])


class Checkbox(FieldDescriptor):
    kind_name = "Checkbox"

    def column_type(self) -> TypeEngine:
        return Boolean()


class DateTime(FieldDescriptor):
    kind_name = "DateTime"

    def column_type(self) -> TypeEngine:
        return SADateTime(timezone=True)


class CalendarDay(FieldDescriptor):
    kind_name = "CalendarDay"

    def column_type(self) -> TypeEngine:
        return Date()


class Select(FieldDescriptor):
    """Single choice from a fixed set of string options.

    Stored as a VARCHAR with a CHECK constraint rather than a native enum,
    so adding an option never needs a type migration.
    """

    kind_name = "Select"

    def __init__(self, *, options: list[str], **attributes: Any) -> None:
        if not options:
            raise ValueError("Select requires at least one option")
        super().__init__(options=list(options), **attributes)

    def column_type(self) -> TypeEngine:
        return Enum(
            *self.field["options"],
            name=f"{self.list_key}_{self.path}".lower(),
            native_enum=False,
            create_constraint=True,
        )


class Json(FieldDescriptor):
    kind_name = "Json"

    def column_type(self) -> TypeEngine:
        return JSON()


class Relationship(FieldDescriptor):
    """Reference to another list.

    ``ref="User"`` declares a standalone relationship; ``ref="User.todos"``
    declares one half of a bidirectional relationship whose other half is
    the ``todos`` field on ``User``.  ``many=True`` makes this side to-many.
    """

    kind_name = "Relationship"
    is_relationship = True

    def __init__(self, *, ref: str, many: bool = False, **attributes: Any) -> None:
        ref_list_key, _, ref_list_path = ref.partition(".")
        super().__init__(
            ref_list_key=ref_list_key,
            ref_list_path=ref_list_path or None,
            many=many,
            **attributes,
        )

    def materialize(self, table: "TableBuilder") -> None:
        raise TypeError(
            f"Relationship field {self.list_key}.{self.path} is placed by the "
            "association resolver, not materialized directly"
        )
