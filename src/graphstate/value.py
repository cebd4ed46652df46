"""
GraphValue - the default VariantStruct deployment for graph models.

Scalars are the field types commonly needed for databases. Python's int is
arbitrary precision, so one kind covers machine and big integers.
"""

from datetime import date, datetime
from typing import Any, List, Tuple

from variant_struct import VariantStruct

GraphBasicTypes = (
    bool,
    float,
    int,
    str,
    date,
    datetime,
)

GraphValue = VariantStruct[GraphBasicTypes]


def merge_values(base: VariantStruct, partial: Any) -> VariantStruct:
    """Return a new tree with ``partial`` merged over ``base``.

    Where both sides are objects the merge recurses key by key, and keys
    missing from ``partial`` keep their base value. Any other pairing,
    arrays included, replaces the base value with a copy of the partial one.
    Neither input is modified.

    Args:
        base: Existing tree.
        partial: Update, as a tree or a plain value convertible to type(base).
    """
    value_type = type(base)
    if not isinstance(partial, value_type):
        partial = value_type(partial)
    if not (base.is_object and partial.is_object):
        return partial.dup()

    merged = base.dup()
    pending: List[Tuple[VariantStruct, VariantStruct]] = [(merged, partial)]
    while pending:
        target, update = pending.pop()
        for key, value in update.items():
            existing = target.get_path(key)
            if existing is not None and existing.is_object and value.is_object:
                pending.append((existing, value))
            else:
                target[key] = value
    return merged
