"""Models for traversal results, artifacts, checkpoints and run summaries.

Usage:
    from docstore_export.export.models import ExportCheckpoint, LogicalTable

    table = LogicalTable(name="users__orders")
    table.records.extend(records)
    schema, rows = table.flatten()
"""

from collections import Counter
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from docstore_export.schema.inference import ID_COLUMN, PATH_COLUMN, transform_document
from docstore_export.schema.models import DocumentRecord, Schema, TransformedDocument
from docstore_export.schema.unifier import unify


# ============================================================================
# Progress Side Channel
# ============================================================================


class ProgressReporter(Protocol):
    """Observer for human-visible liveness messages.

    Implementations must not influence control flow.
    """

    def report(self, status: str) -> None: ...


class NullProgress:
    """``ProgressReporter`` that discards every message."""

    def report(self, status: str) -> None:
        pass


# ============================================================================
# Tables and Artifacts
# ============================================================================


class LogicalTable(BaseModel):
    """All documents sharing one normalized collection path.

    Records keep traversal insertion order.  The schema is derived from
    the current records every time ``flatten()`` is called, never stored.
    """

    name: str
    records: list[DocumentRecord] = Field(default_factory=list)

    def flatten(self) -> tuple[Schema, list[TransformedDocument]]:
        """Transform every record and unify their schemas.

        Returns:
            ``(schema, rows)`` where the schema starts with ``id``, ends
            with ``_path``, and lists other columns in first-appearance order.
        """
        rows = [transform_document(record) for record in self.records]
        merged = unify(row.column_types for row in rows)

        schema: Schema = {}
        if ID_COLUMN in merged:
            schema[ID_COLUMN] = merged.pop(ID_COLUMN)
        path_type = merged.pop(PATH_COLUMN, None)
        schema.update(merged)
        if path_type is not None:
            schema[PATH_COLUMN] = path_type

        return schema, rows


class ArtifactDescriptor(BaseModel):
    """One file written by a sink for one table."""

    sink: str
    table: str
    path: str
    record_count: int


class TraversalResult(BaseModel):
    """Statistics for one root collection traversal and flush."""

    root: str
    total_docs: int = 0
    subcollection_types: int = 0
    tables: list[str] = Field(default_factory=list)
    artifacts: list[ArtifactDescriptor] = Field(default_factory=list)

    @property
    def files_by_sink(self) -> dict[str, int]:
        """Number of artifacts written per sink name."""
        return dict(Counter(artifact.sink for artifact in self.artifacts))


# ============================================================================
# Checkpoint
# ============================================================================


class LastError(BaseModel):
    """The most recent root collection failure."""

    model_config = ConfigDict(populate_by_name=True)

    collection: str
    message: str = Field(alias="error")


class ExportCheckpoint(BaseModel):
    """Durable progress record of one export run.

    Serialized with camelCase keys (``format``, ``requestedCollections``,
    ``completed``, ``startedAt``, ``lastUpdated``, ``lastError``).
    """

    model_config = ConfigDict(populate_by_name=True)

    requested_format: str = Field(alias="format")
    requested_collections: list[str] = Field(alias="requestedCollections")
    completed: list[str] = Field(default_factory=list)
    started_at: datetime = Field(alias="startedAt")
    last_updated: datetime = Field(alias="lastUpdated")
    last_error: LastError | None = Field(default=None, alias="lastError")

    def is_compatible(self, requested_format: str, requested_collections: list[str]) -> bool:
        """True if this checkpoint was written for the same format and collections.

        Collection order does not matter.
        """
        return (
            self.requested_format == requested_format
            and sorted(set(self.requested_collections)) == sorted(set(requested_collections))
        )

    def remaining(self) -> list[str]:
        """Requested collections not yet completed, in requested order."""
        done = set(self.completed)
        return [name for name in self.requested_collections if name not in done]


# ============================================================================
# Run Summary
# ============================================================================


class CollectionTiming(BaseModel):
    """Elapsed time for one root collection."""

    name: str
    seconds: float
    docs: int


class ExportSummary(BaseModel):
    """Outcome of one export run."""

    requested: list[str] = Field(default_factory=list)
    already_completed: list[str] = Field(default_factory=list)
    exported: list[str] = Field(default_factory=list)
    failed: list[LastError] = Field(default_factory=list)
    results: list[TraversalResult] = Field(default_factory=list)
    timings: list[CollectionTiming] = Field(default_factory=list)
    resumed: bool = False
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """True when no collection was left unexported."""
        return not self.failed

    @property
    def total_documents(self) -> int:
        return sum(result.total_docs for result in self.results)

    @property
    def files_by_sink(self) -> dict[str, int]:
        totals: Counter[str] = Counter()
        for result in self.results:
            totals.update(result.files_by_sink)
        return dict(totals)

    def slowest(self, limit: int = 5) -> list[CollectionTiming]:
        """The *limit* slowest collections, slowest first."""
        return sorted(self.timings, key=lambda timing: timing.seconds, reverse=True)[:limit]
