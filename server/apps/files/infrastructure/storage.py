"""Custom storage backend for S3-compatible storage."""

import logging
from typing import Any, final, override

from django.core.files.base import File
from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)


@final
class FileStorage(S3Storage):
    """Custom S3 storage backend for user blobs.

    Extends django-storages S3Storage with:
    - Create-only writes (`put`) and exact-key overwrites (`upsert`)
    - Whole-object reads for inline editing and downloads
    - Enhanced error logging
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage path for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage path used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading file to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded file: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload file to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete file from S3 with error handling and logging.

        Deleting a key that does not exist succeeds.

        Args:
            name: Storage path of file to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting file from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted file: %s', name)
        except Exception:
            logger.exception('Failed to delete file from storage: %s', name)
            raise

    def put(self, name: str, content: File) -> str:
        """Store a new object under exactly ``name``.

        If the key gets taken between the existence check and the write,
        `save` picks an alternative key. That object is removed again and
        the write fails as if the key had been taken up front.

        Args:
            name: Storage key, expected to be unused.
            content: Object content.

        Returns:
            Storage key written, always ``name``.

        Raises:
            FileExistsError: If an object already exists under the key.
            Exception: If S3 upload fails.
        """
        if self.exists(name):
            logger.error('Refusing to overwrite existing object: %s', name)
            raise FileExistsError(f'Object already exists: {name}')

        saved_name = self.save(name, content)
        if saved_name != name:
            logger.error(
                'Key taken during upload, discarding %s (wanted %s)',
                saved_name,
                name,
            )
            self.delete(saved_name)
            raise FileExistsError(f'Object already exists: {name}')
        return saved_name

    def upsert(self, name: str, content: File) -> str:
        """Write ``content`` under ``name`` whether or not it exists.

        Bypasses `get_available_name`, which would otherwise pick a new
        key because `file_overwrite` is disabled for this backend.

        Args:
            name: Storage key to write.
            content: New object content.

        Returns:
            Storage key written.

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Overwriting file in storage: %s', name)
            saved_name = self._save(name, content)
            logger.info('Successfully overwrote file: %s', saved_name)
        except Exception:
            logger.exception('Failed to overwrite file in storage: %s', name)
            raise
        else:
            return saved_name

    def read(self, name: str) -> bytes:
        """Read a whole object into memory.

        Args:
            name: Storage key to read.

        Returns:
            Object content.

        Raises:
            FileNotFoundError: If no object exists under the key.
            Exception: If S3 download fails.
        """
        try:
            logger.debug('Reading file from storage: %s', name)
            with self.open(name, 'rb') as stored:
                return stored.read()
        except Exception:
            logger.exception('Failed to read file from storage: %s', name)
            raise
