"""Value type inference and document flattening.

Every dynamic value read from the store is rewritten into a storage-ready
form and classified into a ``ColumnType``.  The two always travel together
as a ``TypedValue``.  Pure logic -- no I/O.

Usage:
    from docstore_export.schema.inference import transform_value, transform_document

    typed = transform_value(30.5)
    typed.column_type            # ColumnType.FLOAT

    doc = transform_document(record)
    doc.values["_path"]          # "users/u1"
"""

import base64
import json
import math
import re
from datetime import date, datetime, timezone
from typing import Any

from docstore_export.schema.models import (
    ColumnType,
    DocumentRecord,
    DocumentRef,
    GeoPoint,
    TransformedDocument,
    TypedValue,
)

ID_COLUMN = "id"
PATH_COLUMN = "_path"

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# (max length in UTF-16 code units, tier); anything longer is unbounded
TEXT_TIERS: list[tuple[int, ColumnType]] = [
    (50, ColumnType.TEXT_50),
    (255, ColumnType.TEXT_255),
    (1000, ColumnType.TEXT_1000),
    (4000, ColumnType.TEXT_4000),
]

_ISO_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")


# ============================================================================
# Encoding helpers
# ============================================================================


def canonical_json(value: Any) -> str:
    """Serialize an already-plain value to a stable, compact JSON string.

    Keys are sorted so the same input always yields identical text.
    """
    return json.dumps(value, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def format_timestamp(value: date) -> str:
    """Render a date or datetime as ISO-8601 UTC with millisecond precision.

    Naive datetimes are taken to be UTC.

    Example:
        >>> format_timestamp(datetime(2024, 1, 2, 3, 4, 5))
        '2024-01-02T03:04:05.000Z'
    """
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def text_length(value: str) -> int:
    """Length of *value* in UTF-16 code units."""
    return len(value.encode("utf-16-le", "surrogatepass")) // 2


def text_tier(value: str) -> ColumnType:
    """Pick the narrowest text tier that holds *value*."""
    length = text_length(value)
    for limit, tier in TEXT_TIERS:
        if length <= limit:
            return tier
    return ColumnType.TEXT


def path_tier(path: str) -> ColumnType:
    """Column type for a document path: 500 wide, or the next tier that fits."""
    if text_length(path) <= 500:
        return ColumnType.TEXT_500
    return text_tier(path)


def _integer_tier(value: int) -> ColumnType:
    if INT32_MIN <= value <= INT32_MAX:
        return ColumnType.INTEGER
    return ColumnType.BIGINT


def _is_bytes(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview))


def _normalize_number(value: int | float) -> TypedValue:
    """Classify a non-boolean number into integer, bigint or float."""
    if isinstance(value, int):
        return TypedValue(value=value, column_type=_integer_tier(value))

    if not math.isfinite(value):
        return TypedValue(value=None, column_type=ColumnType.FLOAT)

    # Integral floats outside the 64-bit range stay floats
    if value.is_integer() and INT64_MIN <= value <= INT64_MAX:
        as_int = int(value)
        return TypedValue(value=as_int, column_type=_integer_tier(as_int))

    return TypedValue(value=value, column_type=ColumnType.FLOAT)


def to_plain(value: Any) -> Any:
    """Recursively rewrite a dynamic value into JSON-compatible data.

    Used for values nested inside arrays and maps, so that timestamps,
    references, blobs and points are normalized before serialization.
    """
    if value is None:
        return None
    if _is_bytes(value):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (datetime, date)):
        return format_timestamp(value)
    if isinstance(value, GeoPoint):
        return {"latitude": value.latitude, "longitude": value.longitude}
    if isinstance(value, DocumentRef):
        return value.path
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    if isinstance(value, dict):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return _normalize_number(value).value
    if isinstance(value, str):
        return value
    return str(value)


# ============================================================================
# Value inference
# ============================================================================


def transform_value(value: Any) -> TypedValue:
    """Rewrite a single dynamic value and infer its column type.

    Rules are applied in priority order; byte blobs are checked before
    generic mappings because some blob types look like containers.

    Args:
        value: Any value read from the store.

    Returns:
        ``TypedValue`` with the storage-ready value and its ``ColumnType``.
        Never raises: unknown types fall back to their ``str()`` form as
        unbounded text.

    Examples:
        >>> transform_value(True)
        TypedValue(value=1, column_type=<ColumnType.BOOLEAN: 'boolean'>)
        >>> transform_value(3_000_000_000).column_type
        <ColumnType.BIGINT: 'bigint'>
        >>> transform_value("x" * 300).column_type
        <ColumnType.TEXT_1000: 'text(1000)'>
    """
    if value is None:
        return TypedValue(value=None, column_type=ColumnType.TEXT)

    if _is_bytes(value):
        return TypedValue(value=to_plain(value), column_type=ColumnType.TEXT)

    if isinstance(value, (datetime, date)):
        return TypedValue(value=format_timestamp(value), column_type=ColumnType.TIMESTAMP)

    if isinstance(value, GeoPoint):
        return TypedValue(value=canonical_json(to_plain(value)), column_type=ColumnType.TEXT_100)

    if isinstance(value, DocumentRef):
        return TypedValue(value=value.path, column_type=path_tier(value.path))

    if isinstance(value, (list, tuple, dict)):
        return TypedValue(value=canonical_json(to_plain(value)), column_type=ColumnType.TEXT)

    if isinstance(value, bool):
        return TypedValue(value=1 if value else 0, column_type=ColumnType.BOOLEAN)

    if isinstance(value, (int, float)):
        return _normalize_number(value)

    if isinstance(value, str):
        return TypedValue(value=value, column_type=text_tier(value))

    return TypedValue(value=str(value), column_type=ColumnType.TEXT)


def infer(value: Any) -> ColumnType:
    """Column type for *value*; see ``transform_value`` for the rules."""
    return transform_value(value).column_type


def infer_json_value(value: Any) -> ColumnType:
    """Infer a column type for a value loaded back from a JSON artifact.

    JSON has lost the store's rich types, so strings that begin with an
    ISO-8601 date-time are treated as timestamps.
    """
    if value is None:
        return ColumnType.TEXT
    if isinstance(value, bool):
        return ColumnType.BOOLEAN
    if isinstance(value, (int, float)):
        return _normalize_number(value).column_type
    if isinstance(value, str):
        if _ISO_DATETIME_RE.match(value):
            return ColumnType.TIMESTAMP
        return text_tier(value)
    return ColumnType.TEXT


# ============================================================================
# Names
# ============================================================================


def sanitize_field_name(field_name: str) -> str:
    """Turn an arbitrary document field name into a safe column name.

    Examples:
        >>> sanitize_field_name("address.city")
        'address_city'
        >>> sanitize_field_name("2fa enabled")
        '_2fa_enabled'
        >>> sanitize_field_name("!!!")
        '_field'
    """
    sanitized = re.sub(r"[^\w]", "_", field_name.replace(".", "_"), flags=re.ASCII)
    sanitized = sanitized.strip("_")
    sanitized = re.sub(r"_+", "_", sanitized)

    if sanitized[:1].isdigit():
        sanitized = "_" + sanitized

    return sanitized or "_field"


def sanitize_file_name(collection_name: str) -> str:
    """Turn a normalized collection name into a safe file stem."""
    # Runs of invalid characters collapse; existing "__" separators survive
    sanitized = re.sub(r'[<>:"/\\|?*\s]+', "_", collection_name)
    sanitized = sanitized.strip("_")
    sanitized = sanitized[:200]
    return sanitized or "collection"


# ============================================================================
# Documents
# ============================================================================


def transform_document(record: DocumentRecord) -> TransformedDocument:
    """Flatten one document into typed columns.

    The result always starts with the synthetic ``id`` column and ends with
    ``_path``.  Fields whose sanitized names collide with an earlier column
    get a numeric suffix (``name``, ``name_1``, ...).

    Args:
        record: Document as read from the store.

    Returns:
        ``TransformedDocument`` with values, per-column types and the
        original-to-column name mapping.
    """
    values: dict[str, Any] = {ID_COLUMN: record.id}
    column_types: dict[str, ColumnType] = {ID_COLUMN: ColumnType.TEXT_255}
    field_mapping: dict[str, str] = {}

    for field, raw in record.data.items():
        base_name = sanitize_field_name(field)
        column = base_name
        counter = 1
        while column in values or column == PATH_COLUMN:
            column = f"{base_name}_{counter}"
            counter += 1

        typed = transform_value(raw)
        values[column] = typed.value
        column_types[column] = typed.column_type
        field_mapping[field] = column

    values[PATH_COLUMN] = record.path
    column_types[PATH_COLUMN] = path_tier(record.path)

    return TransformedDocument(
        id=record.id,
        path=record.path,
        values=values,
        column_types=column_types,
        field_mapping=field_mapping,
    )
