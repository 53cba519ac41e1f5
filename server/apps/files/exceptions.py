"""Exceptions for files app.

Every failure the sync controller reports to the user derives from
:class:`FileSyncError`. Store adapters translate backend errors
(botocore, storage, database) into these types.
"""


class FileSyncError(Exception):
    """Base class for failures surfaced through the notification sink."""


class BlobStoreError(FileSyncError):
    """Raised when writing, reading or removing a blob fails."""


class MetadataStoreError(FileSyncError):
    """Raised when inserting, listing or deleting metadata fails."""


class NotFoundError(FileSyncError):
    """Raised when an operation targets a record absent from the store."""

    def __init__(self, record_id: int) -> None:
        """Initialize NotFoundError.

        Args:
            record_id: ID of the missing file record.
        """
        self.record_id = record_id
        super().__init__(f'File not found (ID: {record_id})')


class NoSessionError(FileSyncError):
    """Raised when an operation runs without a signed-in owner."""
