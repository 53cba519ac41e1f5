"""Management command to reconcile blobs with file records."""

import logging
from datetime import timedelta
from typing import Any, Final

from django.core.management.base import BaseCommand

from server.apps.files.logic.reconciliation import reconcile

_DEFAULT_MIN_AGE_MINUTES: Final = 60

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Remove orphaned blobs and dangling records, refresh stale sizes."""

    help = 'Reconcile the blob store with file records'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be repaired without changing anything',
        )
        parser.add_argument(
            '--sizes',
            action='store_true',
            help='Also refresh recorded sizes from the stored blobs',
        )
        parser.add_argument(
            '--min-age-minutes',
            type=int,
            default=_DEFAULT_MIN_AGE_MINUTES,
            help=(
                'Ignore blobs younger than this '
                f'(default: {_DEFAULT_MIN_AGE_MINUTES})'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the reconciliation.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        report = reconcile(
            dry_run=dry_run,
            refresh_sizes=options['sizes'],
            min_age=timedelta(minutes=options['min_age_minutes']),
        )

        verb = 'Would repair' if dry_run else 'Repaired'
        for blob_key in report.orphaned_blobs:
            self.stdout.write(f'Orphaned blob: {blob_key}')
        for record_id in report.dangling_records:
            self.stdout.write(f'Dangling record: {record_id}')
        for record_id in report.resized_records:
            self.stdout.write(f'Stale size: {record_id}')
        for item in report.failed:
            self.stderr.write(f'Failed to repair {item}')

        logger.info(
            'Reconciliation finished: %d orphans, %d dangling, %d resized',
            len(report.orphaned_blobs),
            len(report.dangling_records),
            len(report.resized_records),
        )
        self.stdout.write(
            self.style.SUCCESS(
                f'{verb} {len(report.orphaned_blobs)} orphaned blobs, '
                f'{len(report.dangling_records)} dangling records, '
                f'{len(report.resized_records)} stale sizes, '
                f'{len(report.failed)} failed',
            ),
        )
