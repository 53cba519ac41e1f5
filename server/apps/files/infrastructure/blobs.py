"""Blob store over the configured S3 storage backend."""

import logging
from typing import TYPE_CHECKING, final

from django.core.files.base import File
from django.core.files.storage import default_storage

from server.apps.files.exceptions import BlobStoreError

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import FileStorage

logger = logging.getLogger(__name__)


def get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


@final
class S3BlobStore:
    """Key-addressed blob storage for user files.

    Thin adapter that turns storage and botocore failures into
    :class:`BlobStoreError` carrying the underlying message.
    """

    def __init__(self, storage: 'FileStorage | None' = None) -> None:
        """Initialize the blob store.

        Args:
            storage: Backend to use, the default storage when omitted.
        """
        self._storage = storage if storage is not None else get_storage()

    def put(self, key: str, content: File) -> None:
        """Create the blob under ``key``; the key must be unused."""
        try:
            saved_key = self._storage.put(key, content)
        except Exception as error:
            raise BlobStoreError(f'Upload failed for {key}: {error}') from error
        if saved_key != key:
            raise BlobStoreError(
                f'Upload failed for {key}: stored as {saved_key}',
            )

    def upsert(self, key: str, content: File) -> None:
        """Write the blob under ``key``, replacing any existing content."""
        try:
            self._storage.upsert(key, content)
        except Exception as error:
            raise BlobStoreError(f'Save failed for {key}: {error}') from error

    def get(self, key: str) -> bytes:
        """Fetch the whole blob stored under ``key``."""
        try:
            return self._storage.read(key)
        except Exception as error:
            raise BlobStoreError(
                f'Download failed for {key}: {error}',
            ) from error

    def remove(self, key: str) -> None:
        """Remove the blob under ``key``; a missing key is not an error."""
        try:
            self._storage.delete(key)
        except Exception as error:
            raise BlobStoreError(f'Remove failed for {key}: {error}') from error
