"""Metadata store backed by the Django ORM."""

import logging
from typing import final

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from server.apps.files.exceptions import MetadataStoreError, NotFoundError
from server.apps.files.infrastructure.metadata import validate_blob_key
from server.apps.files.models import FileRecord

logger = logging.getLogger(__name__)


@final
class DjangoMetadataStore:
    """Structured file records, one per blob.

    Database errors are translated into :class:`MetadataStoreError`.
    There is deliberately no update operation: records are only
    inserted and deleted.
    """

    def insert(  # noqa: WPS211
        self,
        owner_id: int,
        display_name: str,
        size_bytes: int,
        content_type: str,
        blob_key: str,
    ) -> FileRecord:
        """Insert a record for a freshly written blob.

        Args:
            owner_id: Owner's user ID.
            display_name: Original filename.
            size_bytes: Byte length of the blob.
            content_type: MIME type of the blob.
            blob_key: Key of the blob, inside the owner's namespace.

        Returns:
            Created FileRecord with its assigned ID.

        Raises:
            MetadataStoreError: If the key is invalid or the insert fails.
        """
        try:
            validate_blob_key(owner_id, blob_key)
        except ValidationError as error:
            raise MetadataStoreError(' '.join(error.messages)) from error

        try:
            with transaction.atomic():
                record = FileRecord.objects.create(
                    owner_id=owner_id,
                    display_name=display_name,
                    size_bytes=size_bytes,
                    content_type=content_type,
                    blob_key=blob_key,
                )
        except DatabaseError as error:
            logger.exception('Failed to insert file record: %s', blob_key)
            raise MetadataStoreError(
                f'Could not record {display_name}: {error}',
            ) from error

        logger.info(
            'File record created: %s (ID: %d)',
            blob_key,
            record.id,
        )
        return record

    def get(self, owner_id: int, record_id: int) -> FileRecord:
        """Fetch one of the owner's records.

        Raises:
            NotFoundError: If the owner has no record with this ID.
            MetadataStoreError: If the query fails.
        """
        try:
            return FileRecord.objects.get(id=record_id, owner_id=owner_id)
        except FileRecord.DoesNotExist as error:
            raise NotFoundError(record_id) from error
        except DatabaseError as error:
            raise MetadataStoreError(
                f'Could not load file {record_id}: {error}',
            ) from error

    def list_by_owner(self, owner_id: int) -> list[FileRecord]:
        """List the owner's records, newest first.

        Records created at the same instant keep their insertion order.

        Raises:
            MetadataStoreError: If the query fails.
        """
        try:
            return list(
                FileRecord.objects.filter(
                    owner_id=owner_id,
                ).order_by('-created_at', 'id'),
            )
        except DatabaseError as error:
            raise MetadataStoreError(
                f'Could not list files: {error}',
            ) from error

    def delete_by_id(self, owner_id: int, record_id: int) -> None:
        """Delete one of the owner's records.

        Raises:
            NotFoundError: If nothing was deleted.
            MetadataStoreError: If the delete fails.
        """
        try:
            with transaction.atomic():
                deleted, _ = FileRecord.objects.filter(
                    id=record_id,
                    owner_id=owner_id,
                ).delete()
        except DatabaseError as error:
            logger.exception('Failed to delete file record: ID=%d', record_id)
            raise MetadataStoreError(
                f'Could not delete file {record_id}: {error}',
            ) from error

        if not deleted:
            raise NotFoundError(record_id)
        logger.info('File record deleted: ID=%d', record_id)
