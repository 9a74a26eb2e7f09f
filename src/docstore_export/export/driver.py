"""Export driver: runs root collections one at a time with checkpointing.

Usage:
    from docstore_export.export.driver import run_export

    summary = await run_export(store, config, resume=True)
    if not summary.success:
        print(summary.failed)
"""

import logging
import time

from docstore_export.config.models import ExportConfig
from docstore_export.export.checkpoint import CheckpointManager
from docstore_export.export.models import (
    CollectionTiming,
    ExportSummary,
    LastError,
    ProgressReporter,
)
from docstore_export.export.traversal import traverse
from docstore_export.export.writers import SinkWriter, build_sinks
from docstore_export.stores.base import DocumentStoreClient

logger = logging.getLogger(__name__)


class CollectionExportError(Exception):
    """Raised when a root collection fails and the run stops on error.

    Attributes:
        collection: Root collection that failed.
        cause: Underlying exception.
        summary: Progress of the run up to the failure.
    """

    def __init__(
        self,
        collection: str,
        cause: BaseException,
        summary: ExportSummary | None = None,
    ) -> None:
        self.collection = collection
        self.cause = cause
        self.summary = summary
        super().__init__(f"Failed to export '{collection}': {cause}")


async def resolve_collections(store: DocumentStoreClient, requested: list[str]) -> list[str]:
    """Requested root collections, or every root collection when none given.

    Duplicates are dropped; order is kept.
    """
    if requested:
        return list(dict.fromkeys(requested))

    names = await store.list_root_collections()
    logger.info("Found %d root collections", len(names))
    return list(dict.fromkeys(names))


async def run_export(
    store: DocumentStoreClient,
    config: ExportConfig,
    resume: bool = False,
    reset: bool = False,
    sinks: list[SinkWriter] | None = None,
    checkpoints: CheckpointManager | None = None,
    progress: ProgressReporter | None = None,
) -> ExportSummary:
    """Export the configured root collections.

    Root collections run sequentially.  Each one is checkpointed after its
    tables are flushed (or after it fails), so an interrupted run can be
    resumed without repeating finished collections.

    Args:
        store: Store handle, created once by the caller.
        config: Export configuration (collections, format, output, paging).
        resume: Continue a compatible previous run.
        reset: Delete previous progress before starting.
        sinks: Writers to use (default: built from ``config.format``).
        checkpoints: Checkpoint manager (default: ``config.state_file``).
        progress: Liveness observer passed down to traversal.

    Returns:
        ExportSummary of the run.  The state file is deleted only when no
        collection failed.

    Raises:
        CollectionExportError: If a collection fails and
            ``config.continue_on_error`` is off.
        StoreError: If root collections cannot be listed.

    Example:
        >>> summary = await run_export(store, ExportConfig(collections=["users"]))
        >>> summary.total_documents
        3
    """
    run_started = time.perf_counter()
    checkpoints = checkpoints or CheckpointManager(config.state_file)
    if reset:
        checkpoints.clear()

    requested = await resolve_collections(store, config.collections)
    if not requested:
        logger.warning("No collections to export")
        return ExportSummary()

    checkpoint = checkpoints.begin(config.format.value, requested, resume=resume, reset=reset)
    summary = ExportSummary(
        requested=requested,
        already_completed=list(checkpoint.completed),
        resumed=checkpoints.resumed,
    )

    remaining = checkpoint.remaining()
    if not remaining:
        logger.info("All %d collections already exported, nothing to do", len(requested))
        checkpoints.finish()
        return summary

    if sinks is None:
        sinks = build_sinks(config.format, config.output_dir, config.sql)

    for index, name in enumerate(remaining, start=len(checkpoint.completed) + 1):
        logger.info("[%d/%d] Exporting %s", index, len(requested), name)
        started = time.perf_counter()

        try:
            result = await traverse(
                store, name, sinks, batch_size=config.batch_size, progress=progress
            )
        except Exception as e:
            logger.error("Failed to export %s: %s", name, e)
            checkpoints.mark_failed(name, e)
            summary.failed.append(LastError(collection=name, message=str(e)))
            if not config.continue_on_error:
                summary.elapsed_seconds = time.perf_counter() - run_started
                raise CollectionExportError(name, e, summary) from e
            continue

        checkpoints.mark_completed(name)
        seconds = time.perf_counter() - started
        summary.exported.append(name)
        summary.results.append(result)
        summary.timings.append(
            CollectionTiming(name=name, seconds=seconds, docs=result.total_docs)
        )
        logger.info(
            "Exported %s: %d documents, %d subcollection types in %.1fs",
            name,
            result.total_docs,
            result.subcollection_types,
            seconds,
        )

    if summary.success:
        checkpoints.finish()
    else:
        logger.warning(
            "%d collections failed; resume with --resume to retry them",
            len(summary.failed),
        )

    summary.elapsed_seconds = time.perf_counter() - run_started
    return summary
