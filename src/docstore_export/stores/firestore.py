"""Async Google Cloud Firestore store adapter.

Provides ``AsyncFirestoreStore``, an async implementation of the
``DocumentStoreClient`` protocol using ``google-cloud-firestore``'s
``AsyncClient``.

The client is initialized lazily on first use with an ``asyncio.Lock``
to ensure it is created exactly once.

Usage:
    from docstore_export.stores.firestore import AsyncFirestoreStore

    store = AsyncFirestoreStore(service_account_path="./serviceAccountKey.json")

    names = await store.list_root_collections()
    page = await store.paginate("users", after_key=None, limit=500)
    await store.close()
"""

import asyncio
import logging
from typing import Any

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_document import BaseDocumentReference
from google.oauth2 import service_account

from docstore_export.schema.models import DocumentRecord, DocumentRef, GeoPoint
from docstore_export.stores.base import StoreError

logger = logging.getLogger(__name__)


def to_dynamic_value(value: Any) -> Any:
    """Translate Firestore-native values into export value types.

    Points become ``GeoPoint`` and document references become
    ``DocumentRef``; timestamps already arrive as ``datetime`` and blobs as
    ``bytes``.  Containers are translated recursively.
    """
    if isinstance(value, firestore.GeoPoint):
        return GeoPoint(latitude=value.latitude, longitude=value.longitude)
    if isinstance(value, BaseDocumentReference):
        return DocumentRef(path=value.path)
    if isinstance(value, dict):
        return {key: to_dynamic_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_dynamic_value(item) for item in value]
    return value


class AsyncFirestoreStore:
    """Async Firestore implementation of the ``DocumentStoreClient`` protocol.

    Pages are ordered by document id (``__name__``) so that resuming after
    the last seen id never skips or repeats documents.

    Args:
        service_account_path: Path to a service account key JSON file.
            When ``None``, application default credentials are used.
        project: Project id override.  Defaults to the key file's project.

    Example:
        store = AsyncFirestoreStore("./serviceAccountKey.json")
        page = await store.paginate("users/u1/orders", None, 500)
        await store.close()
    """

    def __init__(
        self,
        service_account_path: str | None = None,
        project: str | None = None,
    ) -> None:
        self._service_account_path: str | None = service_account_path
        self._project: str | None = project
        self._client: firestore.AsyncClient | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    @property
    def project(self) -> str | None:
        """Project id the client is bound to (known after first use)."""
        if self._client is not None:
            return self._client.project
        return self._project

    async def _get_client(self) -> firestore.AsyncClient:
        """Get or create the async Firestore client.

        Returns:
            Initialized ``AsyncClient``.
        """
        if self._client is None:
            async with self._lock:
                # Double-check after acquiring lock
                if self._client is None:
                    self._client = self._create_client()
                    logger.info("Connected to Firestore project: %s", self._client.project)
        return self._client

    def _create_client(self) -> firestore.AsyncClient:
        if self._service_account_path is None:
            return firestore.AsyncClient(project=self._project)

        credentials = service_account.Credentials.from_service_account_file(
            self._service_account_path
        )
        return firestore.AsyncClient(
            project=self._project or credentials.project_id,
            credentials=credentials,
        )

    # ------------------------------------------------------------------
    # Protocol Methods
    # ------------------------------------------------------------------

    async def list_root_collections(self) -> list[str]:
        """List top-level collection ids."""
        client = await self._get_client()
        try:
            return [collection.id async for collection in client.collections()]
        except google_exceptions.GoogleAPIError as e:
            raise StoreError(f"Failed to list root collections: {e}") from e

    async def list_child_collections(self, document_path: str) -> list[str]:
        """List sub-collection ids of one document."""
        client = await self._get_client()
        document = client.document(document_path)
        try:
            return [collection.id async for collection in document.collections()]
        except google_exceptions.GoogleAPIError as e:
            raise StoreError(
                f"Failed to list sub-collections of {document_path}: {e}"
            ) from e

    async def paginate(
        self,
        collection_path: str,
        after_key: str | None,
        limit: int,
    ) -> list[DocumentRecord]:
        """Fetch one page of documents ordered by document id."""
        client = await self._get_client()
        query = client.collection(collection_path).order_by("__name__").limit(limit)
        if after_key is not None:
            query = query.start_after({"__name__": after_key})

        try:
            snapshots = await query.get()
        except google_exceptions.GoogleAPIError as e:
            raise StoreError(f"Failed to read {collection_path}: {e}") from e

        return [
            DocumentRecord(
                id=snapshot.id,
                path=snapshot.reference.path,
                data=to_dynamic_value(snapshot.to_dict() or {}),
            )
            for snapshot in snapshots
        ]

    async def close(self) -> None:
        """Drop the Firestore client so its channel can be released.

        If the client was never initialized, this is a no-op.
        """
        self._client = None
