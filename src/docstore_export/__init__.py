"""Export a hierarchical document store to JSON and SQL Server scripts.

Walks every root collection and all nested sub-collections, groups
documents from structurally equivalent sub-collections into one table,
infers a widened column type per field, and writes one artifact per table
and output format.  Progress is checkpointed per root collection so an
interrupted export can be resumed.

Usage:
    from docstore_export import ExportConfig, get_store, run_export

    config = ExportConfig(collections=["users"], format="json")
    summary = await run_export(get_store(config), config)
"""

from docstore_export.config import ExportConfig, ExportFormat, SqlOptions, load_export_config
from docstore_export.export import (
    CheckpointManager,
    CollectionExportError,
    ExportSummary,
    convert_directory,
    run_export,
    traverse,
)
from docstore_export.factory import StoreNotConfiguredError, get_store, reset_store
from docstore_export.schema import ColumnType, unify, widen
from docstore_export.stores import DocumentStoreClient, StoreError

__version__ = "1.0.0"

__all__ = [
    "CheckpointManager",
    "CollectionExportError",
    "ColumnType",
    "DocumentStoreClient",
    "ExportConfig",
    "ExportFormat",
    "ExportSummary",
    "SqlOptions",
    "StoreError",
    "StoreNotConfiguredError",
    "convert_directory",
    "get_store",
    "load_export_config",
    "reset_store",
    "run_export",
    "traverse",
    "unify",
    "widen",
]
