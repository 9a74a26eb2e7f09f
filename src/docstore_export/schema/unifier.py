"""Schema widening and unification.

Merges per-document column types into one column type per table that can
hold every observed value.  Pure logic -- no I/O.

The widening order is a join-semilattice with ``TEXT`` on top: numeric
types form one chain, text tiers and ``TIMESTAMP`` form another, and any
mix of the two families widens to ``TEXT``.  ``widen`` is therefore
idempotent, commutative and associative, so schemas can be unified
incrementally as documents arrive.

Usage:
    from docstore_export.schema.unifier import unify, widen

    widen(ColumnType.INTEGER, ColumnType.FLOAT)   # ColumnType.FLOAT
    unify([{"age": ColumnType.INTEGER}, {"age": ColumnType.TEXT_50}])
    # {"age": ColumnType.TEXT}
"""

from collections.abc import Iterable

from docstore_export.schema.models import ColumnType, Schema

WIDENING_ORDER: list[ColumnType] = [
    ColumnType.BOOLEAN,
    ColumnType.INTEGER,
    ColumnType.BIGINT,
    ColumnType.FLOAT,
    ColumnType.TEXT_50,
    ColumnType.TEXT_100,
    ColumnType.TEXT_255,
    ColumnType.TEXT_500,
    ColumnType.TEXT_1000,
    ColumnType.TEXT_4000,
    ColumnType.TEXT,
    ColumnType.TIMESTAMP,
]

_RANK = {column_type: index for index, column_type in enumerate(WIDENING_ORDER)}


def widen(a: ColumnType, b: ColumnType) -> ColumnType:
    """Return the narrowest column type that can hold values of both types.

    Rules:
    - identical types are unchanged
    - unbounded ``TEXT`` on either side wins
    - numeric mixed with text/timestamp widens to ``TEXT``
    - otherwise the later type in ``WIDENING_ORDER`` wins

    Examples:
        >>> widen(ColumnType.INTEGER, ColumnType.FLOAT)
        <ColumnType.FLOAT: 'float'>
        >>> widen(ColumnType.INTEGER, ColumnType.TEXT_50)
        <ColumnType.TEXT: 'text'>
    """
    if a == b:
        return a
    if a == ColumnType.TEXT or b == ColumnType.TEXT:
        return ColumnType.TEXT
    if a.is_numeric != b.is_numeric:
        return ColumnType.TEXT
    return a if _RANK[a] > _RANK[b] else b


def merge_into(target: Schema, schema: Schema) -> Schema:
    """Widen *target* in place with every column of *schema*.

    New columns are appended in *schema* order.  Returns *target*.
    """
    for column, column_type in schema.items():
        current = target.get(column)
        target[column] = column_type if current is None else widen(current, column_type)
    return target


def unify(schemas: Iterable[Schema]) -> Schema:
    """Merge schemas left to right into one widest-compatible schema.

    A column present in only one input passes through unchanged.  Column
    order is first-appearance order.  There is no failure mode: conflicting
    types always resolve, at worst to ``TEXT``.

    Args:
        schemas: Per-document schemas (column name -> ``ColumnType``).

    Returns:
        The unified schema.
    """
    merged: Schema = {}
    for schema in schemas:
        merge_into(merged, schema)
    return merged
