"""Modification variants.

A modification is one atomic structural change.  Variants are discriminated
by the ``(object, op)`` pair, serialized as two plain fields so the plan file
stays readable::

    {"object": "field", "op": "rename", "list_name": "User", ...}

``ModificationList`` validates and dumps whole plans.

Usage:
    from list_migrator.schema.modifications import CreateList, ModificationList

    plan = [CreateList(list_schema=schema)]
    payload = ModificationList.dump_json(plan)
    restored = ModificationList.validate_json(payload)
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Tag, TypeAdapter

from list_migrator.schema.models import AssociationSnapshot, FieldSnapshot, ListSchema

OBJECTS = ("list", "field", "association")
OPS = ("create", "remove", "update", "rename")


class _ModificationBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def kind(self) -> str:
        return f"{self.object}/{self.op}"


# ------------------------------------------------------------------
# List modifications
# ------------------------------------------------------------------


class CreateList(_ModificationBase):
    object: Literal["list"] = "list"
    op: Literal["create"] = "create"
    list_schema: ListSchema

    @property
    def list_name(self) -> str:
        return self.list_schema.list_name

    @property
    def table_name(self) -> str:
        return self.list_schema.table_name

    def describe(self) -> str:
        return f"create list {self.list_name} (table {self.table_name})"


class RemoveList(_ModificationBase):
    object: Literal["list"] = "list"
    op: Literal["remove"] = "remove"
    list_name: str
    table_name: str

    def describe(self) -> str:
        return f"remove list {self.list_name} (table {self.table_name})"


class RenameList(_ModificationBase):
    """The list kept its name but now lives in a different table."""

    object: Literal["list"] = "list"
    op: Literal["rename"] = "rename"
    list_name: str
    table_name: str
    previous_table_name: str

    def describe(self) -> str:
        return f"rename table {self.previous_table_name} -> {self.table_name} (list {self.list_name})"


# ------------------------------------------------------------------
# Field modifications
# ------------------------------------------------------------------


class CreateField(_ModificationBase):
    object: Literal["field"] = "field"
    op: Literal["create"] = "create"
    list_name: str
    table_name: str
    field: FieldSnapshot

    def describe(self) -> str:
        return f"create field {self.list_name}.{self.field.name} ({self.field.type})"


class RemoveField(_ModificationBase):
    object: Literal["field"] = "field"
    op: Literal["remove"] = "remove"
    list_name: str
    table_name: str
    field: FieldSnapshot

    def describe(self) -> str:
        return f"remove field {self.list_name}.{self.field.name}"


class UpdateField(_ModificationBase):
    object: Literal["field"] = "field"
    op: Literal["update"] = "update"
    list_name: str
    table_name: str
    field: FieldSnapshot
    previous: FieldSnapshot

    def describe(self) -> str:
        return f"update field {self.list_name}.{self.field.name} ({self.previous.type} -> {self.field.type})"


class RenameField(_ModificationBase):
    object: Literal["field"] = "field"
    op: Literal["rename"] = "rename"
    list_name: str
    table_name: str
    field: FieldSnapshot
    previous_name: str

    def describe(self) -> str:
        return f"rename field {self.list_name}.{self.previous_name} -> {self.field.name}"


# ------------------------------------------------------------------
# Association modifications
# ------------------------------------------------------------------


class CreateAssociation(_ModificationBase):
    object: Literal["association"] = "association"
    op: Literal["create"] = "create"
    association: AssociationSnapshot

    def describe(self) -> str:
        a = self.association
        return f"create association {a.source_list}.{a.source_field} ({a.cardinality.value} {a.target_list})"


class RemoveAssociation(_ModificationBase):
    object: Literal["association"] = "association"
    op: Literal["remove"] = "remove"
    association: AssociationSnapshot

    def describe(self) -> str:
        a = self.association
        return f"remove association {a.source_list}.{a.source_field} ({a.cardinality.value} {a.target_list})"


class UpdateAssociation(_ModificationBase):
    """The relationship field still exists but its target or cardinality changed.

    Applied as: remove the previous placement, then place the new one.
    """

    object: Literal["association"] = "association"
    op: Literal["update"] = "update"
    association: AssociationSnapshot
    previous: AssociationSnapshot

    def describe(self) -> str:
        a, p = self.association, self.previous
        return (
            f"update association {a.source_list}.{a.source_field} "
            f"({p.cardinality.value} {p.target_list} -> {a.cardinality.value} {a.target_list})"
        )


def _modification_tag(value: Any) -> str:
    if isinstance(value, dict):
        return f"{value.get('object')}/{value.get('op')}"
    return f"{getattr(value, 'object', None)}/{getattr(value, 'op', None)}"


Modification = Annotated[
    Union[
        Annotated[CreateList, Tag("list/create")],
        Annotated[RemoveList, Tag("list/remove")],
        Annotated[RenameList, Tag("list/rename")],
        Annotated[CreateField, Tag("field/create")],
        Annotated[RemoveField, Tag("field/remove")],
        Annotated[UpdateField, Tag("field/update")],
        Annotated[RenameField, Tag("field/rename")],
        Annotated[CreateAssociation, Tag("association/create")],
        Annotated[RemoveAssociation, Tag("association/remove")],
        Annotated[UpdateAssociation, Tag("association/update")],
    ],
    Discriminator(_modification_tag),
]

ModificationList: TypeAdapter[list[Modification]] = TypeAdapter(list[Modification])
