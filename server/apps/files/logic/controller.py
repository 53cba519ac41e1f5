"""Client-side synchronization of a user's file list.

:class:`FileSyncController` mediates every mutating operation against
two stores that cannot share a transaction: the blob store (content)
and the metadata store (records). After each mutation the in-memory
list is rebuilt from the metadata store instead of being patched.

Known consistency gaps of the two-store design:

- Upload writes the blob, then inserts the record. If the insert
  fails the blob is removed again when ``FILES_COMPENSATE_UPLOADS``
  is on; otherwise it stays behind as an orphan.
- Delete removes the blob, then the record. If the record delete
  fails the record dangles, pointing at removed content.
- Saving content never updates ``size_bytes``; the displayed size
  stays at the upload size until ``reconcile_files --sizes`` runs.
"""

import asyncio
import functools
import logging
import tempfile
from collections.abc import Callable, MutableSequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, final

from asgiref.sync import sync_to_async
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.uploadedfile import UploadedFile

from server.apps.files.exceptions import (
    FileSyncError,
    MetadataStoreError,
    NoSessionError,
)
from server.apps.files.infrastructure.metadata import (
    build_blob_key,
    detect_mime_type,
)
from server.apps.files.logic.contracts import (
    BlobStore,
    IdentityProvider,
    MetadataStore,
    NotificationSink,
)
from server.apps.files.logic.transactions import with_compensation
from server.apps.files.models import FileRecord

logger = logging.getLogger(__name__)

_TEXT_ENCODING: Final = 'utf-8'

# Receives the temporary path and the name to save the content under
SaveAs = Callable[[Path, str], None]


@dataclass(slots=True)
class EditSession:
    """Open inline editor: the record and the user's current buffer."""

    record: FileRecord
    content: str


@final
class FileSyncController:
    """Authoritative file list for the signed-in user.

    ``files`` is an immutable snapshot that only `reload` replaces, in a
    single assignment. Operations are coroutines meant to run on one
    event loop; store calls are handed to Django's sync thread through
    ``sync_to_async``. Failures never escape an operation: they are
    reported through the notification sink and the operation returns
    False.
    """

    def __init__(
        self,
        session: IdentityProvider,
        blobs: BlobStore,
        records: MetadataStore,
        notifications: NotificationSink,
        *,
        compensate_uploads: bool | None = None,
    ) -> None:
        """Initialize the controller with its collaborators.

        Args:
            session: Source of the signed-in owner.
            blobs: Blob store holding file content.
            records: Metadata store holding file records.
            notifications: Sink for user-facing messages.
            compensate_uploads: Remove the blob when the record insert of
                an upload fails. Defaults to FILES_COMPENSATE_UPLOADS.
        """
        if compensate_uploads is None:
            compensate_uploads = settings.FILES_COMPENSATE_UPLOADS

        self._session = session
        self._blobs = blobs
        self._records = records
        self._notifications = notifications
        self._compensate_uploads = compensate_uploads
        self._deleting: set[int] = set()
        self._unsubscribe: Callable[[], None] | None = None
        self._pending_reloads: set[asyncio.Task[bool]] = set()

        self.files: tuple[FileRecord, ...] = ()
        self.editing: EditSession | None = None

    def attach(self) -> None:
        """Follow owner changes of the session context."""
        if self._unsubscribe is None:
            self._unsubscribe = self._session.on_change(
                self._handle_owner_change,
            )

    def detach(self) -> None:
        """Stop following owner changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def is_deleting(self, record_id: int) -> bool:
        """Whether a delete of this record is in flight."""
        return record_id in self._deleting

    async def reload(self) -> bool:
        """Replace the file list with the owner's records, newest first.

        On failure the previous snapshot stays in place.

        Returns:
            True if the list was replaced.
        """
        try:
            owner_id = self._require_owner()
            records = await sync_to_async(self._records.list_by_owner)(
                owner_id,
            )
        except FileSyncError as error:
            self._report_failure(error, 'Error loading files')
            return False

        self.files = tuple(records)
        logger.debug(
            'Reloaded %d file records for owner %d',
            len(records),
            owner_id,
        )
        return True

    async def upload(self, files: MutableSequence[UploadedFile]) -> bool:
        """Upload files in order, each as a blob plus a record.

        Files are independent: a failure does not stop later files and
        does not undo earlier ones. All failures are reported as one
        error. On full success ``files`` is cleared.

        Args:
            files: Selected uploads; emptied on full success.

        Returns:
            True if every file was uploaded.
        """
        if not files:
            return False

        try:
            owner_id = self._require_owner()
        except NoSessionError as error:
            self._report_failure(error, 'Error uploading files')
            return False

        failures: list[FileSyncError] = []
        uploaded = 0
        for upload in files:
            try:
                await self._upload_one(owner_id, upload)
            except FileSyncError as error:
                logger.warning('Upload failed: %s (%s)', upload.name, error)
                failures.append(error)
            else:
                uploaded += 1

        if uploaded:
            await self.reload()

        if failures:
            self._notifications.report_error(
                _summarize_failures(failures, len(files)),
            )
            return False

        files.clear()
        self._notifications.report_success('Files uploaded successfully!')
        return True

    async def open_editor(self, record: FileRecord) -> EditSession | None:
        """Load a text record into a new inline editing session.

        Returns:
            The open session, or None if the content could not be loaded.
        """
        if not record.is_text_editable():
            self._notifications.report_error(
                f'{record.display_name} cannot be edited as text',
            )
            return None

        try:
            self._require_owner()
            content = await sync_to_async(self._blobs.get)(record.blob_key)
            text = content.decode(_TEXT_ENCODING)
        except (FileSyncError, UnicodeDecodeError) as error:
            self.editing = None
            self._report_failure(error, 'Error loading file')
            return None

        self.editing = EditSession(record=record, content=text)
        return self.editing

    def close_editor(self) -> None:
        """Discard the open editing session, if any."""
        self.editing = None

    async def save_content(self, record: FileRecord, new_content: str) -> bool:
        """Overwrite a record's blob with new text.

        Metadata is left untouched, so ``size_bytes`` keeps the upload
        size. On failure the editor stays open holding ``new_content``.

        Args:
            record: Existing record to write to.
            new_content: Replacement text, stored as UTF-8.

        Returns:
            True if the content was saved.
        """
        try:
            owner_id = self._require_owner()
            await sync_to_async(self._records.get)(owner_id, record.id)
            await sync_to_async(self._blobs.upsert)(
                record.blob_key,
                ContentFile(
                    new_content.encode(_TEXT_ENCODING),
                    name=record.display_name,
                ),
            )
        except FileSyncError as error:
            self.editing = EditSession(record=record, content=new_content)
            self._report_failure(error, 'Error saving file')
            return False

        logger.info('Saved content of file record %d', record.id)
        self._notifications.report_success('File saved successfully!')
        self.editing = None
        await self.reload()
        return True

    async def delete(self, record: FileRecord) -> bool:
        """Delete a record's blob, then the record itself.

        A repeated call for a record whose delete is still in flight is
        ignored without contacting either store.

        Returns:
            True if both the blob and the record were deleted.
        """
        if record.id in self._deleting:
            logger.debug('Delete already in flight: ID=%d', record.id)
            return False

        self._deleting.add(record.id)
        try:
            await self._delete_one(record)
        except FileSyncError as error:
            self._report_failure(error, 'Error deleting file')
            return False
        finally:
            self._deleting.discard(record.id)

        self._notifications.report_success('File deleted successfully!')
        await self.reload()
        return True

    async def download(self, record: FileRecord, save_as: SaveAs) -> bool:
        """Hand a record's content to ``save_as`` through a temporary file.

        The temporary file exists only while ``save_as`` runs.

        Args:
            record: Record to download.
            save_as: Called with the temporary path and the display name.

        Returns:
            True if ``save_as`` completed.
        """
        try:
            self._require_owner()
            content = await sync_to_async(self._blobs.get)(record.blob_key)
        except FileSyncError as error:
            self._report_failure(error, 'Error downloading file')
            return False

        try:
            with tempfile.TemporaryDirectory(prefix='file-vault-') as scratch:
                temporary_path = Path(scratch, 'content')
                temporary_path.write_bytes(content)
                save_as(temporary_path, record.display_name)
        except Exception as error:
            logger.exception('Failed to save download: ID=%d', record.id)
            self._notifications.report_error(
                str(error) or 'Error downloading file',
            )
            return False

        self._notifications.report_success('File downloaded successfully!')
        return True

    async def _upload_one(self, owner_id: int, upload: UploadedFile) -> None:
        display_name = upload.name or 'upload.bin'
        blob_key = build_blob_key(owner_id, display_name)
        content_type = upload.content_type or detect_mime_type(display_name)

        await sync_to_async(self._blobs.put)(blob_key, upload)
        await with_compensation(
            sync_to_async(
                functools.partial(
                    self._records.insert,
                    owner_id=owner_id,
                    display_name=display_name,
                    size_bytes=upload.size,
                    content_type=content_type,
                    blob_key=blob_key,
                ),
            ),
            sync_to_async(functools.partial(self._blobs.remove, blob_key)),
            description=blob_key,
            enabled=self._compensate_uploads,
        )

    async def _delete_one(self, record: FileRecord) -> None:
        owner_id = self._require_owner()
        await sync_to_async(self._records.get)(owner_id, record.id)
        await sync_to_async(self._blobs.remove)(record.blob_key)
        try:
            await sync_to_async(self._records.delete_by_id)(
                owner_id,
                record.id,
            )
        except MetadataStoreError:
            logger.exception(
                'Blob removed but record delete failed, dangling: ID=%d',
                record.id,
            )
            raise

    def _require_owner(self) -> int:
        owner_id = self._session.current_owner_id()
        if owner_id is None:
            raise NoSessionError('You must be signed in')
        return owner_id

    def _report_failure(self, error: Exception, fallback: str) -> None:
        message = str(error) or fallback
        logger.warning('%s: %s', fallback, message)
        self._notifications.report_error(message)

    def _handle_owner_change(self, owner_id: int | None) -> None:
        # Never show one owner's files to another
        self.files = ()
        self.editing = None
        if owner_id is None:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug('No running loop, reload deferred to the caller')
            return

        task = loop.create_task(self.reload())
        self._pending_reloads.add(task)
        task.add_done_callback(self._pending_reloads.discard)


def _summarize_failures(failures: list[FileSyncError], total: int) -> str:
    first_message = str(failures[0]) or 'Error uploading files'
    if len(failures) == 1:
        return first_message
    return f'{len(failures)} of {total} files failed to upload: {first_message}'
