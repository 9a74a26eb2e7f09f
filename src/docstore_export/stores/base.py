"""Document store client protocol definition.

Defines the ``DocumentStoreClient`` Protocol that every store adapter must
implement.  All methods are ``async def`` -- each call is a point where the
export yields to store I/O.

Usage:
    from docstore_export.stores.base import DocumentStoreClient

    async def dump(store: DocumentStoreClient) -> None:
        for name in await store.list_root_collections():
            page = await store.paginate(name, after_key=None, limit=100)
            for record in page:
                print(record.path)
        await store.close()
"""

from typing import Protocol

from docstore_export.schema.models import DocumentRecord


class StoreError(Exception):
    """Raised when the store fails a listing or page fetch.

    Covers connectivity, authentication and quota failures.  Never retried
    inside the export; the root collection boundary is the unit of retry.
    """

    pass


class DocumentStoreClient(Protocol):
    """Store client interface that all adapters must implement.

    The export only consumes these operations; it never authenticates or
    configures the client itself.
    """

    async def list_root_collections(self) -> list[str]:
        """List the names of all top-level collections.

        Returns:
            Collection names in the order the store reports them.
        """
        ...

    async def list_child_collections(self, document_path: str) -> list[str]:
        """List sub-collection names owned by one document.

        Args:
            document_path: Full document path (e.g., ``"users/u1"``).

        Returns:
            Sub-collection names (not paths).  Empty list if none.

        Example:
            names = await store.list_child_collections("users/u1")
            # ["orders", "sessions"]
        """
        ...

    async def paginate(
        self,
        collection_path: str,
        after_key: str | None,
        limit: int,
    ) -> list[DocumentRecord]:
        """Fetch one page of documents ordered by document id.

        Args:
            collection_path: Full collection path (e.g., ``"users/u1/orders"``).
            after_key: Document id to resume after, or ``None`` for the first page.
            limit: Maximum number of documents to return.

        Returns:
            Up to *limit* records, in stable id order.  Fewer than *limit*
            (possibly zero) means the collection is exhausted.

        Raises:
            StoreError: If the store cannot serve the page.
        """
        ...

    async def close(self) -> None:
        """Release the underlying client connection."""
        ...
