"""Store handle factory.

The store handle is created once per process by the command layer and
passed explicitly into the export driver; core code never calls this module.

Usage:
    from docstore_export.factory import get_store, reset_store

    store = get_store(config)
    summary = await run_export(store, config)
    await reset_store()
"""

from docstore_export.config.models import ExportConfig
from docstore_export.stores.base import DocumentStoreClient
from docstore_export.stores.firestore import AsyncFirestoreStore

# Store cache
_store: DocumentStoreClient | None = None


class StoreNotConfiguredError(Exception):
    """Raised when the store credentials cannot be found."""

    pass


def create_store(config: ExportConfig) -> AsyncFirestoreStore:
    """Build a Firestore store from configuration.

    The connection itself is opened lazily on first use.

    Args:
        config: Export configuration with the service account path.

    Returns:
        Unconnected ``AsyncFirestoreStore``.

    Raises:
        StoreNotConfiguredError: If the service account key file is missing.
    """
    key_path = config.service_account_path
    if not key_path.is_file():
        raise StoreNotConfiguredError(
            f"Service account key not found: {key_path}\n"
            "Download it from the Firebase console (Project settings > Service accounts)\n"
            "and pass it with --key or set service_account_path in export.toml."
        )

    return AsyncFirestoreStore(service_account_path=str(key_path), project=config.project)


def get_store(config: ExportConfig) -> DocumentStoreClient:
    """Get the process-wide store handle, creating it on first call.

    Later calls return the same handle regardless of *config*.

    Raises:
        StoreNotConfiguredError: If the service account key file is missing.
    """
    global _store
    if _store is None:
        _store = create_store(config)
    return _store


async def reset_store() -> None:
    """Close and forget the cached store (useful for testing)."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None
