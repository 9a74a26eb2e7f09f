"""Shared fixtures: an in-memory document store implementing DocumentStoreClient."""

from typing import Any

import pytest

from docstore_export.schema.models import DocumentRecord
from docstore_export.stores.base import StoreError


class FakeStore:
    """In-memory ``DocumentStoreClient``.

    Args:
        collections: Collection path -> {document id: data}.  Insertion
            order is the order collections are listed in.
        failures: Collection path -> exception raised by ``paginate``.
    """

    def __init__(
        self,
        collections: dict[str, dict[str, dict[str, Any]]] | None = None,
        failures: dict[str, Exception] | None = None,
    ) -> None:
        self.collections = collections or {}
        self.failures = failures or {}
        self.page_calls: list[tuple[str, str | None, int]] = []
        self.child_calls: list[str] = []
        self.closed = False

    async def list_root_collections(self) -> list[str]:
        return [path for path in self.collections if "/" not in path]

    async def list_child_collections(self, document_path: str) -> list[str]:
        self.child_calls.append(document_path)
        prefix = document_path + "/"
        return [
            path[len(prefix):]
            for path in self.collections
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        ]

    async def paginate(
        self,
        collection_path: str,
        after_key: str | None,
        limit: int,
    ) -> list[DocumentRecord]:
        self.page_calls.append((collection_path, after_key, limit))
        if collection_path in self.failures:
            raise self.failures[collection_path]

        documents = self.collections.get(collection_path, {})
        ids = sorted(documents)
        if after_key is not None:
            ids = [doc_id for doc_id in ids if doc_id > after_key]

        return [
            DocumentRecord(
                id=doc_id,
                path=f"{collection_path}/{doc_id}",
                data=documents[doc_id],
            )
            for doc_id in ids[:limit]
        ]

    async def close(self) -> None:
        self.closed = True

    def paginated_collections(self) -> list[str]:
        """Collection paths that had at least one page requested."""
        return list(dict.fromkeys(call[0] for call in self.page_calls))


class RecordingProgress:
    """``ProgressReporter`` that keeps every message."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def report(self, status: str) -> None:
        self.messages.append(status)


@pytest.fixture
def nested_store() -> FakeStore:
    """``users`` with two documents; only ``u1`` has ``orders``."""
    return FakeStore(
        {
            "users": {
                "u1": {"name": "Ada", "age": 30},
                "u2": {"name": "Grace", "age": 30.5},
            },
            "users/u1/orders": {
                "o1": {"total": 10, "paid": True},
                "o2": {"total": 12.5, "paid": False},
            },
        }
    )


@pytest.fixture
def store_error() -> StoreError:
    return StoreError("quota exceeded")
