"""Collection traversal, sink writers, checkpointing and the export driver.

Usage:
    from docstore_export.export import run_export, traverse, build_sinks
"""

from docstore_export.export.checkpoint import CheckpointManager, CheckpointState
from docstore_export.export.collector import collect_documents
from docstore_export.export.convert import ConvertResult, convert_directory
from docstore_export.export.driver import CollectionExportError, run_export
from docstore_export.export.models import (
    ArtifactDescriptor,
    ExportCheckpoint,
    ExportSummary,
    LogicalTable,
    NullProgress,
    ProgressReporter,
    TraversalResult,
)
from docstore_export.export.traversal import discover, normalize_collection_path, traverse
from docstore_export.export.writers import (
    JsonWriter,
    SinkWriteError,
    SinkWriter,
    SqlWriter,
    build_sinks,
)

__all__ = [
    "ArtifactDescriptor",
    "CheckpointManager",
    "CheckpointState",
    "CollectionExportError",
    "ConvertResult",
    "ExportCheckpoint",
    "ExportSummary",
    "JsonWriter",
    "LogicalTable",
    "NullProgress",
    "ProgressReporter",
    "SinkWriteError",
    "SinkWriter",
    "SqlWriter",
    "TraversalResult",
    "build_sinks",
    "collect_documents",
    "convert_directory",
    "discover",
    "normalize_collection_path",
    "run_export",
    "traverse",
]
