"""Reconciliation of the blob store against the metadata store.

Repairs what the non-transactional two-store writes can leave behind:
blobs without a record, records without a blob, and sizes that went
stale when content was saved inline.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Final

from django.core.exceptions import ValidationError
from django.utils import timezone

from server.apps.files.infrastructure.blobs import get_storage
from server.apps.files.infrastructure.metadata import owner_id_from_blob_key
from server.apps.files.models import FileRecord

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import FileStorage

logger = logging.getLogger(__name__)

# Younger blobs may belong to an upload whose record is not inserted yet
_DEFAULT_MIN_AGE: Final = timedelta(hours=1)

# Stands for the bucket root in failure lists
_ROOT_LISTING: Final = '/'


@dataclass(slots=True)
class ReconcileReport:
    """Findings of a reconciliation pass, and what failed to repair."""

    orphaned_blobs: list[str] = field(default_factory=list)
    dangling_records: list[int] = field(default_factory=list)
    resized_records: list[int] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def find_orphaned_blobs(
    storage: 'FileStorage',
    min_age: timedelta = _DEFAULT_MIN_AGE,
    failed: list[str] | None = None,
) -> list[str]:
    """List owner-namespaced blobs that no record points to.

    A storage error while listing a namespace or inspecting a blob
    skips only that namespace or blob.

    Args:
        storage: Blob storage backend.
        min_age: Blobs modified more recently than this are skipped.
        failed: Collects keys that could not be inspected.

    Returns:
        Orphaned blob keys.
    """
    if failed is None:
        failed = []
    known_keys = set(FileRecord.objects.values_list('blob_key', flat=True))
    cutoff = timezone.now() - min_age

    try:
        owner_dirs, _ = storage.listdir('')
    except Exception:
        logger.exception('Failed to list blob namespaces')
        failed.append(_ROOT_LISTING)
        return []

    orphans = []
    for owner_dir in owner_dirs:
        try:
            _, names = storage.listdir(owner_dir)
        except Exception:
            logger.exception('Failed to list namespace: %s', owner_dir)
            failed.append(f'{owner_dir}/')
            continue

        for name in names:
            blob_key = f'{owner_dir}/{name}'
            try:
                owner_id_from_blob_key(blob_key)
            except ValidationError:
                logger.debug('Skipping foreign object: %s', blob_key)
                continue

            if blob_key in known_keys:
                continue
            try:
                modified_at = storage.get_modified_time(blob_key)
            except Exception:
                logger.exception('Failed to inspect blob: %s', blob_key)
                failed.append(blob_key)
                continue
            if modified_at > cutoff:
                logger.debug('Skipping recent object: %s', blob_key)
                continue
            orphans.append(blob_key)
    return orphans


def find_dangling_records(
    storage: 'FileStorage',
    failed: list[str] | None = None,
) -> list[FileRecord]:
    """List records whose blob no longer exists.

    Records whose blob cannot be checked are collected in ``failed``.
    """
    if failed is None:
        failed = []
    dangling = []
    for record in FileRecord.objects.order_by('id'):
        try:
            blob_exists = storage.exists(record.blob_key)
        except Exception:
            logger.exception('Failed to check blob: %s', record.blob_key)
            failed.append(record.blob_key)
            continue
        if not blob_exists:
            dangling.append(record)
    return dangling


def find_stale_sizes(
    storage: 'FileStorage',
    failed: list[str] | None = None,
) -> list[tuple[FileRecord, int]]:
    """List records whose size differs from their blob's actual size.

    Args:
        storage: Blob storage backend.
        failed: Collects keys whose size could not be read.

    Returns:
        Pairs of record and actual blob size in bytes.
    """
    if failed is None:
        failed = []
    stale = []
    for record in FileRecord.objects.order_by('id'):
        try:
            if not storage.exists(record.blob_key):
                continue
            actual_size = storage.size(record.blob_key)
        except Exception:
            logger.exception('Failed to read blob size: %s', record.blob_key)
            failed.append(record.blob_key)
            continue
        if actual_size != record.size_bytes:
            stale.append((record, actual_size))
    return stale


def reconcile(
    storage: 'FileStorage | None' = None,
    *,
    dry_run: bool = False,
    refresh_sizes: bool = False,
    min_age: timedelta = _DEFAULT_MIN_AGE,
) -> ReconcileReport:
    """Find and repair inconsistencies between blobs and records.

    Orphaned blobs are removed, dangling records are deleted and, with
    ``refresh_sizes``, stale sizes are overwritten with actual sizes.
    Each check and repair is independent; failures are logged and
    collected in ``failed`` while the pass goes on.

    Args:
        storage: Blob storage backend, the default storage when omitted.
        dry_run: Only report, change nothing.
        refresh_sizes: Also re-derive ``size_bytes`` from the blobs.
        min_age: Minimum age of a blob before it counts as orphaned.

    Returns:
        Report of everything found (and repaired unless dry-run).
    """
    if storage is None:
        storage = get_storage()
    report = ReconcileReport()

    for blob_key in find_orphaned_blobs(storage, min_age, report.failed):
        report.orphaned_blobs.append(blob_key)
        if dry_run:
            continue
        try:
            storage.delete(blob_key)
        except Exception:
            logger.exception('Failed to remove orphaned blob: %s', blob_key)
            report.failed.append(blob_key)

    for record in find_dangling_records(storage, report.failed):
        record_id = record.id
        report.dangling_records.append(record_id)
        if dry_run:
            continue
        try:
            record.delete()
        except Exception:
            logger.exception('Failed to delete dangling record: %d', record_id)
            report.failed.append(record.blob_key)
        else:
            logger.info('Deleted dangling record: ID=%d', record_id)

    if not refresh_sizes:
        return report

    for record, actual_size in find_stale_sizes(storage, report.failed):
        report.resized_records.append(record.id)
        if dry_run:
            continue
        try:
            FileRecord.objects.filter(id=record.id).update(
                size_bytes=actual_size,
            )
        except Exception:
            logger.exception('Failed to refresh size of record: %d', record.id)
            report.failed.append(record.blob_key)
            continue
        logger.info(
            'Refreshed size of record %d: %d -> %d bytes',
            record.id,
            record.size_bytes,
            actual_size,
        )
    return report
