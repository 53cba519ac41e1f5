"""Management command driving the file sync controller for one user."""

import functools
import shutil
from pathlib import Path
from typing import Any

from asgiref.sync import async_to_sync
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management.base import BaseCommand, CommandError

from server.apps.files.exceptions import NotFoundError
from server.apps.files.infrastructure.blobs import S3BlobStore
from server.apps.files.infrastructure.metadata import (
    detect_mime_type,
    format_size,
)
from server.apps.files.infrastructure.records import DjangoMetadataStore
from server.apps.files.logic.controller import FileSyncController
from server.apps.files.logic.notifications import CommandNotificationSink
from server.apps.files.logic.session import session_context
from server.apps.files.models import FileRecord

User = get_user_model()


class Command(BaseCommand):
    """List, upload, download, edit or delete a user's files."""

    help = "Manage a user's files through the sync controller"

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        actions = parser.add_subparsers(dest='action', required=True)

        self._add_user_argument(actions.add_parser('list', help='List files'))

        upload_parser = actions.add_parser('upload', help='Upload files')
        self._add_user_argument(upload_parser)
        upload_parser.add_argument('paths', nargs='+', type=Path)

        download_parser = actions.add_parser('download', help='Download a file')
        self._add_record_arguments(download_parser)
        download_parser.add_argument(
            '--dest',
            type=Path,
            default=Path(),
            help=(
                'Directory to save the file in, an existing file of the '
                'same name is never overwritten (default: current)'
            ),
        )

        delete_parser = actions.add_parser('delete', help='Delete a file')
        self._add_record_arguments(delete_parser)

        edit_parser = actions.add_parser('edit', help='Replace text content')
        self._add_record_arguments(edit_parser)
        content_source = edit_parser.add_mutually_exclusive_group(
            required=True,
        )
        content_source.add_argument('--text', help='New content')
        content_source.add_argument(
            '--from-file',
            type=Path,
            help='Read new content from this UTF-8 file',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the requested action.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If the user is unknown or the action failed.
        """
        try:
            user = User.objects.get(username=options['username'])
        except User.DoesNotExist as error:
            raise CommandError(
                f'Unknown user: {options["username"]}',
            ) from error

        uploads = []
        if options['action'] == 'upload':
            uploads = [self._read_upload(path) for path in options['paths']]

        controller = FileSyncController(
            session=session_context,
            blobs=S3BlobStore(),
            records=DjangoMetadataStore(),
            notifications=CommandNotificationSink(self),
        )
        session_context.init(user)
        try:
            succeeded = async_to_sync(self._run)(controller, uploads, options)
        finally:
            session_context.teardown()

        if not succeeded:
            raise CommandError(f'{options["action"]} failed')

    async def _run(
        self,
        controller: FileSyncController,
        uploads: list[SimpleUploadedFile],
        options: dict[str, Any],
    ) -> bool:
        action = options['action']
        if action == 'upload':
            return await controller.upload(uploads)

        if not await controller.reload():
            return False
        if action == 'list':
            self._write_listing(controller.files)
            return True

        record = self._find_record(controller.files, options['record_id'])
        if record is None:
            return False
        if action == 'download':
            return await controller.download(
                record,
                functools.partial(_copy_into, options['dest']),
            )
        if action == 'delete':
            return await controller.delete(record)

        if await controller.open_editor(record) is None:
            return False
        return await controller.save_content(
            record,
            self._read_content(options),
        )

    def _add_user_argument(self, parser: Any) -> None:
        parser.add_argument(
            '--user',
            dest='username',
            required=True,
            help='Username of the file owner',
        )

    def _add_record_arguments(self, parser: Any) -> None:
        self._add_user_argument(parser)
        parser.add_argument('record_id', type=int, help='File record ID')

    def _read_upload(self, path: Path) -> SimpleUploadedFile:
        try:
            content = path.read_bytes()
        except OSError as error:
            raise CommandError(f'Cannot read {path}: {error}') from error
        return SimpleUploadedFile(
            path.name,
            content,
            content_type=detect_mime_type(path.name),
        )

    def _read_content(self, options: dict[str, Any]) -> str:
        if options['text'] is not None:
            return options['text']
        try:
            return options['from_file'].read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as error:
            raise CommandError(
                f'Cannot read {options["from_file"]}: {error}',
            ) from error

    def _find_record(
        self,
        files: tuple[FileRecord, ...],
        record_id: int,
    ) -> FileRecord | None:
        for record in files:
            if record.id == record_id:
                return record
        self.stderr.write(self.style.ERROR(str(NotFoundError(record_id))))
        return None

    def _write_listing(self, files: tuple[FileRecord, ...]) -> None:
        if not files:
            self.stdout.write('No files uploaded yet')
            return

        for record in files:
            marker = ' (editable)' if record.is_text_editable() else ''
            self.stdout.write(
                f'{record.id:>6}  {format_size(record.size_bytes):>10}  '
                f'{record.created_at:%b %d, %Y}  '
                f'{record.display_name}{marker}',
            )


def _copy_into(directory: Path, source: Path, display_name: str) -> None:
    target = directory / display_name
    try:
        destination = target.open('xb')
    except FileExistsError as error:
        raise FileExistsError(f'{target} already exists') from error
    with destination, source.open('rb') as content:
        shutil.copyfileobj(content, destination)
