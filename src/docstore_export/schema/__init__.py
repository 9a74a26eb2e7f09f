"""Value type inference, schema widening, and record models.

Usage:
    >>> from docstore_export.schema import ColumnType, infer, widen
    >>> widen(infer(30), infer(30.5))
    <ColumnType.FLOAT: 'float'>
"""

from docstore_export.schema.inference import infer, transform_document, transform_value
from docstore_export.schema.models import (
    ColumnType,
    DocumentRecord,
    DocumentRef,
    GeoPoint,
    Schema,
    TransformedDocument,
    TypedValue,
)
from docstore_export.schema.unifier import unify, widen

__all__ = [
    "ColumnType",
    "DocumentRecord",
    "DocumentRef",
    "GeoPoint",
    "Schema",
    "TransformedDocument",
    "TypedValue",
    "infer",
    "transform_document",
    "transform_value",
    "unify",
    "widen",
]
