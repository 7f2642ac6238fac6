"""Modification ordering.

Tables must exist before their columns are altered, and both tables and
columns must exist before foreign keys or join tables reference them.

Usage:
    from list_migrator.schema.ordering import order_modifications

    ordered = order_modifications(modifications)
"""

from collections.abc import Iterable

from list_migrator.schema.modifications import OBJECTS, OPS, Modification

OBJECT_RANK = {name: rank for rank, name in enumerate(OBJECTS)}
OP_RANK = {name: rank for rank, name in enumerate(OPS)}


def sort_key(modification: Modification) -> tuple[int, int]:
    return (OBJECT_RANK[modification.object], OP_RANK[modification.op])


def order_modifications(modifications: Iterable[Modification]) -> list[Modification]:
    """Total-order modifications: ``list < field < association``, then
    ``create < remove < update < rename``.

    The sort is stable, so ties keep their input order.
    """
    return sorted(modifications, key=sort_key)
