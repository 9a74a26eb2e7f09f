"""Breadth-first traversal of a collection tree with grouped flushing.

Walks one root collection and every nested sub-collection below it,
grouping documents from structurally equivalent sub-collections
(``users/u1/orders`` and ``users/u2/orders``) into one logical table
(``users__orders``).  Tables are flushed to the sinks only after the whole
tree has been read, so a table is never written in two parts.

Usage:
    from docstore_export.export.traversal import traverse
    from docstore_export.export.writers import build_sinks

    result = await traverse(store, "users", build_sinks("both", Path("./output")))
    result.total_docs, result.subcollection_types, result.files_by_sink
"""

import logging
from collections import deque
from collections.abc import Iterable, Sequence
from typing import NamedTuple

from pydantic import BaseModel, Field

from docstore_export.export.collector import collect_documents
from docstore_export.export.models import (
    ArtifactDescriptor,
    LogicalTable,
    NullProgress,
    ProgressReporter,
    TraversalResult,
)
from docstore_export.export.writers import SinkWriter
from docstore_export.stores.base import DocumentStoreClient

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"
TABLE_SEPARATOR = "__"


# ============================================================================
# Path normalization
# ============================================================================


def collection_names(path: str) -> tuple[str, ...]:
    """Collection-name segments of a collection or document path.

    Document ids sit at the odd positions and are dropped.

    Example:
        >>> collection_names("users/u1/orders/o9/items")
        ('users', 'orders', 'items')
    """
    return tuple(path.split(PATH_SEPARATOR)[::2])


def normalize_collection_path(path: str) -> str:
    """Logical table name for a collection path, independent of document ids.

    Examples:
        >>> normalize_collection_path("users")
        'users'
        >>> normalize_collection_path("users/abc/orders")
        'users__orders'
    """
    return TABLE_SEPARATOR.join(collection_names(path))


# ============================================================================
# Discovery
# ============================================================================


class _Node(NamedTuple):
    path: str
    depth: int


class Discovery(BaseModel):
    """Every logical table found below one root, fully populated."""

    root: str
    tables: list[LogicalTable] = Field(default_factory=list)
    total_docs: int = 0
    subcollection_types: int = 0


async def discover(
    store: DocumentStoreClient,
    root: str,
    batch_size: int = 500,
    progress: ProgressReporter | None = None,
) -> Discovery:
    """Read the whole tree below *root* into logical tables.

    Uses an explicit FIFO queue tagged with depth instead of recursion.
    Only one collection's documents are fetched at a time, but every table
    stays in memory until the tree is exhausted.

    Args:
        store: Store client implementing ``DocumentStoreClient``.
        root: Root collection name.
        batch_size: Page size for each collection.
        progress: Liveness observer.

    Returns:
        ``Discovery`` with tables in first-discovery order.  Records inside
        a table keep the order in which they were read.

    Raises:
        StoreError: Propagated from any page fetch or listing call.
    """
    progress = progress or NullProgress()
    queue: deque[_Node] = deque([_Node(root, 0)])
    visited: set[str] = set()
    tables: dict[tuple[str, ...], LogicalTable] = {}
    table_names: set[str] = set()
    result = Discovery(root=root)

    while queue:
        node = queue.popleft()
        if node.path in visited:
            continue
        visited.add(node.path)

        progress.report(f"Collecting: {node.path}")
        records = [
            record
            async for record in collect_documents(store, node.path, batch_size, progress)
        ]
        if not records:
            continue

        result.total_docs += len(records)

        key = collection_names(node.path)
        table = tables.get(key)
        if table is None:
            table = LogicalTable(name=_unique_table_name(key, table_names))
            tables[key] = table
            if node.depth > 0:
                result.subcollection_types += 1
            logger.debug("New table %s from %s", table.name, node.path)
        table.records.extend(records)

        for index, record in enumerate(records, start=1):
            progress.report(f"Checking subcollections... {index}/{len(records)}")
            for child in await store.list_child_collections(record.path):
                child_path = f"{record.path}{PATH_SEPARATOR}{child}"
                if child_path not in visited:
                    queue.append(_Node(child_path, node.depth + 1))

    result.tables = list(tables.values())
    return result


def _unique_table_name(key: tuple[str, ...], taken: set[str]) -> str:
    """Join *key* into a table name, suffixing on the rare join collision.

    Names such as ``a__b`` and ``a``/``b`` join to the same text; the later
    one becomes ``a__b_2``.
    """
    base = TABLE_SEPARATOR.join(key)
    name = base
    counter = 2
    while name in taken:
        name = f"{base}_{counter}"
        counter += 1
    taken.add(name)
    return name


# ============================================================================
# Flush
# ============================================================================


def flush_tables(
    tables: Iterable[LogicalTable],
    sinks: Sequence[SinkWriter],
    progress: ProgressReporter | None = None,
) -> list[ArtifactDescriptor]:
    """Unify each table's schema and write it once to every sink.

    Empty tables are skipped.  Sink errors propagate immediately.

    Returns:
        One ``ArtifactDescriptor`` per (table, sink) written.
    """
    progress = progress or NullProgress()
    artifacts: list[ArtifactDescriptor] = []

    for table in tables:
        if not table.records:
            continue

        progress.report(f"Saving: {table.name} ({len(table.records):,} docs)")
        schema, rows = table.flatten()

        for sink in sinks:
            artifact = sink.write(table.name, schema, rows)
            logger.info(
                "%s: %s (%d rows, %d columns)",
                sink.name.upper(),
                artifact.path,
                artifact.record_count,
                len(schema),
            )
            artifacts.append(artifact)

    return artifacts


async def traverse(
    store: DocumentStoreClient,
    root: str,
    sinks: Sequence[SinkWriter],
    batch_size: int = 500,
    progress: ProgressReporter | None = None,
) -> TraversalResult:
    """Export one root collection and all of its sub-collections.

    Reads the complete tree first, then flushes every table.  The caller
    may only treat *root* as done once this returns.

    Args:
        store: Store client implementing ``DocumentStoreClient``.
        root: Root collection name.
        sinks: Writers to invoke once per table.
        batch_size: Page size for each collection.
        progress: Liveness observer.

    Returns:
        ``TraversalResult`` with document, sub-collection and artifact counts.

    Example:
        result = await traverse(store, "users", [JsonWriter(Path("out/json"))])
        print(result.total_docs, result.files_by_sink)
    """
    discovery = await discover(store, root, batch_size=batch_size, progress=progress)
    artifacts = flush_tables(discovery.tables, sinks, progress)

    return TraversalResult(
        root=root,
        total_docs=discovery.total_docs,
        subcollection_types=discovery.subcollection_types,
        tables=[table.name for table in discovery.tables],
        artifacts=artifacts,
    )
