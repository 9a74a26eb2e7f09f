"""Convert exported JSON artifacts into SQL Server scripts.

Works offline from the files written by ``JsonWriter``; the store is never
contacted.  Column types are re-inferred from the JSON values and widened
with the same unifier the export uses.

Usage:
    from docstore_export.export.convert import convert_directory

    result = convert_directory(Path("output/json"), Path("output/sql"))
    print(f"Converted {len(result.converted)} files")
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from docstore_export.config.models import SqlOptions
from docstore_export.export.models import ArtifactDescriptor
from docstore_export.export.writers import SqlWriter, write_artifact
from docstore_export.schema.inference import infer_json_value
from docstore_export.schema.models import Schema
from docstore_export.schema.unifier import merge_into

logger = logging.getLogger(__name__)


class ConvertFailure(BaseModel):
    """A JSON file that could not be converted."""

    file: str
    error: str


class ConvertResult(BaseModel):
    """Outcome of converting a directory of JSON artifacts."""

    converted: list[ArtifactDescriptor] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: list[ConvertFailure] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


def infer_documents_schema(documents: list[dict[str, Any]]) -> Schema:
    """Widen per-value types across documents; columns in first-seen order."""
    schema: Schema = {}
    for document in documents:
        merge_into(schema, {key: infer_json_value(value) for key, value in document.items()})
    return schema


def convert_file(json_path: Path, writer: SqlWriter) -> ArtifactDescriptor | None:
    """Convert one JSON artifact into ``<stem>.sql`` in the writer's directory.

    Args:
        json_path: File written by the JSON sink.
        writer: SQL writer holding the output directory and options.

    Returns:
        The written artifact, or None when the file has no documents.

    Raises:
        ValueError: If the file is not valid JSON or lacks a documents list.
        SinkWriteError: If the SQL file cannot be written.
    """
    try:
        content = json.loads(json_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e

    documents = content.get("documents") if isinstance(content, dict) else None
    if not isinstance(documents, list):
        raise ValueError("Missing 'documents' list")
    if not documents:
        return None

    table_name = json_path.stem
    schema = infer_documents_schema(documents)
    script = writer.render(table_name, schema, documents)

    sql_path = writer.output_dir / f"{table_name}.sql"
    write_artifact(sql_path, script)

    logger.info("%s.sql (%d rows, %d columns)", table_name, len(documents), len(schema))
    return ArtifactDescriptor(
        sink=writer.name, table=table_name, path=str(sql_path), record_count=len(documents)
    )


def convert_directory(
    input_dir: Path,
    output_dir: Path,
    options: SqlOptions | None = None,
) -> ConvertResult:
    """Convert every ``*.json`` file in *input_dir*.

    A file that fails is recorded and the rest are still converted.

    Args:
        input_dir: Directory of JSON artifacts.
        output_dir: Directory for the generated ``.sql`` files.
        options: SQL script options.

    Returns:
        ConvertResult listing converted, skipped (empty) and failed files.

    Raises:
        FileNotFoundError: If *input_dir* does not exist.
    """
    input_dir = Path(input_dir)
    if not input_dir.is_dir():
        raise FileNotFoundError(f"Input directory not found: {input_dir}")

    writer = SqlWriter(Path(output_dir), options)
    result = ConvertResult()

    for json_path in sorted(input_dir.glob("*.json")):
        try:
            artifact = convert_file(json_path, writer)
        except Exception as e:
            logger.error("Error converting %s: %s", json_path.name, e)
            result.failed.append(ConvertFailure(file=json_path.name, error=str(e)))
            continue

        if artifact is None:
            logger.warning("%s: no documents, skipping", json_path.name)
            result.skipped.append(json_path.name)
        else:
            result.converted.append(artifact)

    return result
