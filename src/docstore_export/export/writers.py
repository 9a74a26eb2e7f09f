"""Sink writers: one artifact per logical table.

Two sinks are provided:

- ``JsonWriter``: ``<json_dir>/<table>.json`` with every transformed document
- ``SqlWriter``: ``<sql_dir>/<table>.sql`` with SQL Server DDL and INSERTs

Writers overwrite their artifact on every call, so re-running an export
replaces rather than appends.  No wall-clock timestamps are written, which
keeps re-exports of an unchanged source byte-identical.

Usage:
    from docstore_export.export.writers import JsonWriter, SqlWriter, build_sinks

    sinks = build_sinks("both", Path("./output"), SqlOptions())
    for sink in sinks:
        sink.write("users", schema, rows)
"""

import json
import math
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import Column, MetaData, Table
from sqlalchemy.dialects import mssql
from sqlalchemy.dialects.mssql.base import RESERVED_WORDS, MSDialect, MSIdentifierPreparer
from sqlalchemy.schema import CreateTable
from sqlalchemy.types import TypeEngine

from docstore_export.config.models import ExportFormat, SqlOptions
from docstore_export.export.models import ArtifactDescriptor
from docstore_export.schema.inference import PATH_COLUMN, canonical_json, sanitize_file_name
from docstore_export.schema.models import ColumnType, Schema, TransformedDocument


class SinkWriteError(Exception):
    """Raised when an artifact cannot be written (disk full, permissions)."""

    pass


class SinkWriter(Protocol):
    """Output sink invoked once per logical table per flush."""

    name: str

    def write(
        self,
        table_name: str,
        schema: Schema,
        rows: Sequence[TransformedDocument],
    ) -> ArtifactDescriptor:
        """Write one table and describe the artifact produced.

        Args:
            table_name: Normalized collection path (e.g., ``users__orders``).
            schema: Unified column types, in column order.
            rows: Transformed documents in traversal order.

        Raises:
            SinkWriteError: If the artifact cannot be written.
        """
        ...


def write_artifact(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise SinkWriteError(f"Failed to write {path}: {e}") from e


# ============================================================================
# JSON
# ============================================================================


class JsonWriter:
    """Write tables as JSON documents.

    Layout::

        {"collection": "users__orders", "count": 2,
         "documents": [{"_id": "o1", "_path": "users/u1/orders/o1", "id": "o1", ...}]}
    """

    name = "json"

    def __init__(self, output_dir: Path) -> None:
        self.output_dir: Path = Path(output_dir)

    def write(
        self,
        table_name: str,
        schema: Schema,
        rows: Sequence[TransformedDocument],
    ) -> ArtifactDescriptor:
        documents = [
            {
                "_id": row.id,
                "_path": row.path,
                **{column: value for column, value in row.values.items() if column != PATH_COLUMN},
            }
            for row in rows
        ]
        output = {
            "collection": table_name,
            "count": len(documents),
            "documents": documents,
        }

        path = self.output_dir / f"{sanitize_file_name(table_name)}.json"
        write_artifact(path, json.dumps(output, indent=2, ensure_ascii=False) + "\n")

        return ArtifactDescriptor(
            sink=self.name, table=table_name, path=str(path), record_count=len(documents)
        )


# ============================================================================
# SQL Server
# ============================================================================

# Words the SQL Server list misses but that commonly break hand-written queries
EXTRA_RESERVED_WORDS = {
    "type", "status", "name", "value", "data", "level", "date", "time",
    "timestamp", "year", "month", "day", "hour", "minute", "second", "zone",
    "first", "last", "next", "prior", "absolute", "relative", "action",
}


class _ExportIdentifierPreparer(MSIdentifierPreparer):
    reserved_words = RESERVED_WORDS | EXTRA_RESERVED_WORDS


class _ExportDialect(MSDialect):
    preparer = _ExportIdentifierPreparer


def sql_type(column_type: ColumnType) -> TypeEngine:
    """SQL Server column type for a ``ColumnType``."""
    if column_type == ColumnType.BOOLEAN:
        return mssql.BIT()
    if column_type == ColumnType.INTEGER:
        return mssql.INTEGER()
    if column_type == ColumnType.BIGINT:
        return mssql.BIGINT()
    if column_type == ColumnType.FLOAT:
        return mssql.FLOAT()
    if column_type == ColumnType.TIMESTAMP:
        return mssql.DATETIME2()
    # NVARCHAR without a length renders as NVARCHAR(max)
    return mssql.NVARCHAR(column_type.width)


def escape_sql_value(value: Any) -> str:
    """Render a storage-ready value as a T-SQL literal.

    Examples:
        >>> escape_sql_value(None)
        'NULL'
        >>> escape_sql_value(True)
        '1'
        >>> escape_sql_value("O'Brien")
        "N'O''Brien'"
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return "NULL"
        return str(value)
    if isinstance(value, (dict, list)):
        value = canonical_json(value)

    escaped = str(value).replace("'", "''")
    return f"N'{escaped}'"


class SqlWriter:
    """Write tables as SQL Server scripts.

    Each script holds an optional ``DROP TABLE`` guard, an optional
    ``CREATE TABLE`` compiled from the unified schema, and one ``INSERT``
    per row, separated into ``GO`` batches.

    Args:
        output_dir: Directory for ``.sql`` files.
        options: Schema prefix and DDL toggles.
    """

    name = "sql"

    def __init__(self, output_dir: Path, options: SqlOptions | None = None) -> None:
        self.output_dir: Path = Path(output_dir)
        self.options: SqlOptions = options or SqlOptions()
        self._dialect = _ExportDialect()

    @property
    def preparer(self) -> MSIdentifierPreparer:
        return self._dialect.identifier_preparer

    def build_table(self, table_name: str, schema: Schema) -> Table:
        """SQLAlchemy ``Table`` for a unified schema."""
        return Table(
            table_name,
            MetaData(),
            *(Column(column, sql_type(column_type)) for column, column_type in schema.items()),
            schema=self.options.schema_name or None,
        )

    def render(self, table_name: str, schema: Schema, rows: Sequence[dict[str, Any]]) -> str:
        """Render a complete script for one table.

        Args:
            table_name: Table (and file) name, already sanitized.
            schema: Column types, in column order.
            rows: Column-name to value mappings; missing columns become NULL.
        """
        table = self.build_table(table_name, schema)
        full_name = self.preparer.format_table(table)
        object_name = f"{self.options.schema_name}.{table_name}" if self.options.schema_name else table_name
        columns = list(schema)
        column_list = ", ".join(self.preparer.quote(column) for column in columns)

        parts = [
            f"-- Export: {table_name}\n",
            f"-- Document count: {len(rows)}\n\n",
        ]

        if self.options.include_drop_table:
            object_literal = object_name.replace("'", "''")
            parts.append(f"IF OBJECT_ID('{object_literal}', 'U') IS NOT NULL\n")
            parts.append(f"    DROP TABLE {full_name};\nGO\n\n")

        if self.options.include_create_table:
            parts.append(self._create_table_sql(table))

        parts.append("-- Data\n")
        for row in rows:
            value_list = ", ".join(escape_sql_value(row.get(column)) for column in columns)
            parts.append(f"INSERT INTO {full_name} ({column_list}) VALUES ({value_list});\n")
        parts.append("GO\n")

        return "".join(parts)

    def _create_table_sql(self, table: Table) -> str:
        ddl = str(CreateTable(table).compile(dialect=self._dialect)).strip()
        ddl = ddl.replace(", \n", ",\n").replace("\t", "    ")
        return f"{ddl};\nGO\n\n"

    def write(
        self,
        table_name: str,
        schema: Schema,
        rows: Sequence[TransformedDocument],
    ) -> ArtifactDescriptor:
        safe_name = sanitize_file_name(table_name)
        script = self.render(safe_name, schema, [row.values for row in rows])

        path = self.output_dir / f"{safe_name}.sql"
        write_artifact(path, script)

        return ArtifactDescriptor(
            sink=self.name, table=table_name, path=str(path), record_count=len(rows)
        )


# ============================================================================
# Factory
# ============================================================================


def build_sinks(
    export_format: ExportFormat | str,
    output_dir: Path,
    sql_options: SqlOptions | None = None,
) -> list[SinkWriter]:
    """Create the sinks for an output format.

    Args:
        export_format: ``"json"``, ``"sql"`` or ``"both"``.
        output_dir: Root output directory; sinks write to ``json/`` and ``sql/``.
        sql_options: Options for the SQL sink.

    Returns:
        Sinks in write order (JSON before SQL).
    """
    export_format = ExportFormat(export_format)
    output_dir = Path(output_dir)
    sinks: list[SinkWriter] = []

    if export_format in (ExportFormat.JSON, ExportFormat.BOTH):
        sinks.append(JsonWriter(output_dir / "json"))
    if export_format in (ExportFormat.SQL, ExportFormat.BOTH):
        sinks.append(SqlWriter(output_dir / "sql", sql_options))

    return sinks
