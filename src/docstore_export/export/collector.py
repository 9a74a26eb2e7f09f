"""Paginated document collection for one collection.

Usage:
    from docstore_export.export.collector import collect_documents

    async for record in collect_documents(store, "users/u1/orders", batch_size=500):
        print(record.path)
"""

import logging
from collections.abc import AsyncIterator

from docstore_export.export.models import NullProgress, ProgressReporter
from docstore_export.schema.models import DocumentRecord
from docstore_export.stores.base import DocumentStoreClient

logger = logging.getLogger(__name__)


async def collect_documents(
    store: DocumentStoreClient,
    collection_path: str,
    batch_size: int,
    progress: ProgressReporter | None = None,
) -> AsyncIterator[DocumentRecord]:
    """Stream every document of one collection, page by page.

    Pages are requested in the store's stable id order, each resuming after
    the last id seen.  A page shorter than *batch_size* (including an empty
    one) is the only end signal, so a collection holding exactly
    *batch_size* documents costs one extra, empty page fetch.

    Store errors propagate uncaught; the caller retries at root collection
    granularity, never per page.  The generator cannot be restarted
    mid-stream.

    Args:
        store: Store client implementing ``DocumentStoreClient``.
        collection_path: Full collection path.
        batch_size: Maximum documents per page; must be positive.
        progress: Receives ``"Reading... N documents (batch B)"`` after
            every page.  Purely informational.

    Yields:
        ``DocumentRecord`` objects in page order.

    Raises:
        ValueError: If *batch_size* is not positive.
    """
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    progress = progress or NullProgress()
    after_key: str | None = None
    total = 0
    batch_number = 0

    while True:
        page = await store.paginate(collection_path, after_key, batch_size)
        batch_number += 1
        total += len(page)

        progress.report(f"Reading... {total:,} documents (batch {batch_number})")

        for record in page:
            yield DocumentRecord(id=record.id, path=record.path, data=record.data)

        if len(page) < batch_size:
            break

        after_key = page[-1].id

    logger.debug("Collected %d documents from %s in %d pages", total, collection_path, batch_number)
