"""Pydantic models for document records, dynamic values, and column types."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Column Types
# ============================================================================


class ColumnType(str, Enum):
    """Semantic column type inferred for a value or resolved for a column.

    Text tiers carry their width in code units; ``TEXT`` is unbounded.
    """

    BOOLEAN = "boolean"
    INTEGER = "integer"
    BIGINT = "bigint"
    FLOAT = "float"
    TEXT_50 = "text(50)"
    TEXT_100 = "text(100)"
    TEXT_255 = "text(255)"
    TEXT_500 = "text(500)"
    TEXT_1000 = "text(1000)"
    TEXT_4000 = "text(4000)"
    TEXT = "text"
    TIMESTAMP = "timestamp"

    @property
    def is_numeric(self) -> bool:
        """True for the boolean/integer/bigint/float family."""
        return self in _NUMERIC_TYPES

    @property
    def width(self) -> int | None:
        """Maximum length for bounded text tiers, else None."""
        return _TEXT_WIDTHS.get(self)


_NUMERIC_TYPES = frozenset(
    {ColumnType.BOOLEAN, ColumnType.INTEGER, ColumnType.BIGINT, ColumnType.FLOAT}
)

_TEXT_WIDTHS = {
    ColumnType.TEXT_50: 50,
    ColumnType.TEXT_100: 100,
    ColumnType.TEXT_255: 255,
    ColumnType.TEXT_500: 500,
    ColumnType.TEXT_1000: 1000,
    ColumnType.TEXT_4000: 4000,
}

# Field name -> resolved column type, in column order
Schema = dict[str, ColumnType]


# ============================================================================
# Dynamic Value Types
# ============================================================================


class GeoPoint(BaseModel):
    """Geographic point stored in a document."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class DocumentRef(BaseModel):
    """Reference to another document, by its full slash-separated path."""

    model_config = ConfigDict(frozen=True)

    path: str


# ============================================================================
# Records
# ============================================================================


class DocumentRecord(BaseModel):
    """One document as read from the store.

    ``path`` alternates collection names and document ids
    (``users/u1/orders/o1``) and is kept on every downstream row.
    """

    id: str
    path: str
    data: dict[str, Any] = Field(default_factory=dict)


class TypedValue(BaseModel):
    """A storage-ready value paired with its inferred column type."""

    value: Any = None
    column_type: ColumnType


class TransformedDocument(BaseModel):
    """A document rewritten into flat, storage-ready columns.

    ``values`` always holds the synthetic ``id`` and ``_path`` columns.
    ``field_mapping`` maps original field names to their column names.
    """

    id: str
    path: str
    values: dict[str, Any] = Field(default_factory=dict)
    column_types: Schema = Field(default_factory=dict)
    field_mapping: dict[str, str] = Field(default_factory=dict)
