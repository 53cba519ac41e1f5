"""Database models for files app."""

from typing import Final, final, override

from django.contrib.auth import get_user_model
from django.db import models

from server.apps.files.infrastructure.metadata import (
    get_file_extension,
    is_text_editable,
)

User = get_user_model()

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_CONTENT_TYPE_MAX_LENGTH: Final = 255
_BLOB_KEY_MAX_LENGTH: Final = 512


@final
class FileRecord(models.Model):
    """Metadata for one user-owned blob.

    The blob itself lives in S3-compatible storage under ``blob_key``,
    which always starts with the owner's id: ``{owner_id}/{hex}.ext``.
    A record and its blob are created and destroyed together by the
    sync controller.
    """

    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='file_records',
        db_index=True,
    )

    display_name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        help_text='Original filename as uploaded',
    )

    size_bytes = models.BigIntegerField(
        help_text='Size of the content at the last upload',
    )

    content_type = models.CharField(
        max_length=_CONTENT_TYPE_MAX_LENGTH,
        help_text='MIME type reported at upload time',
    )

    blob_key = models.CharField(
        max_length=_BLOB_KEY_MAX_LENGTH,
        unique=True,
        editable=False,
        help_text='Key in storage: {owner_id}/{hex}.ext',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File record'  # type: ignore[mutable-override]
        verbose_name_plural = 'File records'  # type: ignore[mutable-override]
        # Newest first; ties keep insertion order
        ordering = ['-created_at', 'id']

        indexes = [
            models.Index(
                fields=['owner', '-created_at'],
                name='files_owner_recent_idx',
            ),
        ]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='file_size_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.display_name}'

    def get_extension(self) -> str:
        """Extract the extension of the display name.

        Example: 'notes.TXT' -> 'txt'

        Returns:
            Extension without dot (lowercase).
        """
        return get_file_extension(self.display_name)

    def is_text_editable(self) -> bool:
        """Whether the content can be edited inline as text."""
        return is_text_editable(self.content_type)
