"""Collaborator interfaces consumed by the sync controller."""

from collections.abc import Callable
from typing import Protocol

from django.core.files.base import File

from server.apps.files.models import FileRecord

OwnerChangeCallback = Callable[[int | None], None]


class BlobStore(Protocol):
    """Key-addressed byte storage.

    Every method raises ``BlobStoreError`` on failure.
    """

    def put(self, key: str, content: File) -> None:
        """Create a blob; the key must not exist yet."""

    def upsert(self, key: str, content: File) -> None:
        """Create or overwrite a blob."""

    def get(self, key: str) -> bytes:
        """Return the full content of a blob."""

    def remove(self, key: str) -> None:
        """Remove a blob; removing a missing key succeeds."""


class MetadataStore(Protocol):
    """Structured file records queried by owner.

    Every method raises ``MetadataStoreError`` on failure and
    ``NotFoundError`` when the targeted record is absent.
    """

    def insert(  # noqa: WPS211
        self,
        owner_id: int,
        display_name: str,
        size_bytes: int,
        content_type: str,
        blob_key: str,
    ) -> FileRecord:
        """Insert a record and return it with its assigned ID."""

    def get(self, owner_id: int, record_id: int) -> FileRecord:
        """Return one of the owner's records."""

    def list_by_owner(self, owner_id: int) -> list[FileRecord]:
        """Return the owner's records ordered by creation, newest first."""

    def delete_by_id(self, owner_id: int, record_id: int) -> None:
        """Delete one of the owner's records."""


class NotificationSink(Protocol):
    """Fire-and-forget user notifications."""

    def report_success(self, message: str) -> None:
        """Tell the user an operation succeeded."""

    def report_error(self, message: str) -> None:
        """Tell the user an operation failed."""


class IdentityProvider(Protocol):
    """Source of the signed-in owner."""

    def current_owner_id(self) -> int | None:
        """Return the signed-in user's ID, if any."""

    def on_change(
        self,
        callback: OwnerChangeCallback,
    ) -> Callable[[], None]:
        """Subscribe to owner changes; returns an unsubscribe function."""
