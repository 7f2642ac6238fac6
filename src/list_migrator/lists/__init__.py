"""List declaration API: field types and the list registry.

Usage:
    from list_migrator.lists import ListRegistry, declare_history_list
    from list_migrator.lists import Text, Relationship
"""

from list_migrator.lists.fields import (
    AutoIncrement,
    CalendarDay,
    Checkbox,
    DateTime,
    Decimal,
    FieldDescriptor,
    Float,
    Integer,
    Json,
    Relationship,
    Select,
    Text,
)
from list_migrator.lists.registry import (
    HISTORY_LIST_KEY,
    HISTORY_TABLE_NAME,
    ListDescriptor,
    ListRegistry,
    declare_history_list,
)

__all__ = [
    "FieldDescriptor",
    "AutoIncrement",
    "Text",
    "Integer",
    "Float",
    "Decimal",
    "Checkbox",
    "DateTime",
    "CalendarDay",
    "Select",
    "Json",
    "Relationship",
    "ListDescriptor",
    "ListRegistry",
    "declare_history_list",
    "HISTORY_LIST_KEY",
    "HISTORY_TABLE_NAME",
]
