"""Document store clients.

Provides the ``DocumentStoreClient`` Protocol and the async Firestore
implementation.

Usage:
    from docstore_export.stores import AsyncFirestoreStore, DocumentStoreClient
"""

from docstore_export.stores.base import DocumentStoreClient, StoreError
from docstore_export.stores.firestore import AsyncFirestoreStore

__all__ = [
    "AsyncFirestoreStore",
    "DocumentStoreClient",
    "StoreError",
]
