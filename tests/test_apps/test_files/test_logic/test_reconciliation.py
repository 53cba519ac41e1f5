"""Tests for reconciling blobs with file records."""

from datetime import timedelta

import pytest
from django.core.files.base import ContentFile

from server.apps.files.infrastructure.storage import FileStorage
from server.apps.files.logic.reconciliation import (
    find_orphaned_blobs,
    reconcile,
)
from server.apps.files.models import FileRecord

_NO_MIN_AGE = timedelta(0)


def _stored_record(storage, owner, name, content=b'content'):
    blob_key = f'{owner.id}/{name}'
    storage.save(blob_key, ContentFile(content))
    return FileRecord.objects.create(
        owner=owner,
        display_name=name,
        size_bytes=len(content),
        content_type='text/plain',
        blob_key=blob_key,
    )


@pytest.mark.django_db
class TestReconcile:
    """Tests for the reconciliation pass."""

    def test_removes_orphaned_blob(self, user, s3_storage):
        """Test blobs without a record are removed."""
        kept = _stored_record(s3_storage, user, 'kept.txt')
        s3_storage.save(f'{user.id}/orphan.txt', ContentFile(b'lost'))

        report = reconcile(s3_storage, min_age=_NO_MIN_AGE)

        assert report.orphaned_blobs == [f'{user.id}/orphan.txt']
        assert not s3_storage.exists(f'{user.id}/orphan.txt')
        assert s3_storage.exists(kept.blob_key)

    def test_skips_recent_orphans(self, user, s3_storage):
        """Test fresh blobs are not treated as orphans yet."""
        s3_storage.save(f'{user.id}/uploading.txt', ContentFile(b'new'))

        assert find_orphaned_blobs(s3_storage) == []

    def test_skips_foreign_objects(self, user, s3_storage):
        """Test objects outside owner namespaces are left alone."""
        s3_storage.save('misc/readme.txt', ContentFile(b'hi'))

        report = reconcile(s3_storage, min_age=_NO_MIN_AGE)

        assert report.orphaned_blobs == []
        assert s3_storage.exists('misc/readme.txt')

    def test_deletes_dangling_record(self, user, s3_storage):
        """Test records whose blob is gone are deleted."""
        record = FileRecord.objects.create(
            owner=user,
            display_name='gone.txt',
            size_bytes=4,
            content_type='text/plain',
            blob_key=f'{user.id}/gone.txt',
        )

        report = reconcile(s3_storage, min_age=_NO_MIN_AGE)

        assert report.dangling_records == [record.id]
        assert not FileRecord.objects.filter(id=record.id).exists()

    def test_refreshes_stale_sizes(self, user, s3_storage):
        """Test sizes are re-derived from blobs when asked."""
        record = _stored_record(s3_storage, user, 'notes.txt', b'0123456789')
        s3_storage.upsert(record.blob_key, ContentFile(b'hello world'))

        report = reconcile(s3_storage, refresh_sizes=True, min_age=_NO_MIN_AGE)

        record.refresh_from_db()
        assert report.resized_records == [record.id]
        assert record.size_bytes == 11

    def test_sizes_untouched_by_default(self, user, s3_storage):
        """Test sizes are only refreshed on request."""
        record = _stored_record(s3_storage, user, 'notes.txt', b'0123456789')
        s3_storage.upsert(record.blob_key, ContentFile(b'hello world'))

        report = reconcile(s3_storage, min_age=_NO_MIN_AGE)

        record.refresh_from_db()
        assert report.resized_records == []
        assert record.size_bytes == 10

    def test_dry_run_changes_nothing(self, user, s3_storage):
        """Test a dry run only reports."""
        record = _stored_record(s3_storage, user, 'notes.txt', b'0123456789')
        s3_storage.upsert(record.blob_key, ContentFile(b'hello world'))
        s3_storage.save(f'{user.id}/orphan.txt', ContentFile(b'lost'))
        dangling = FileRecord.objects.create(
            owner=user,
            display_name='gone.txt',
            size_bytes=4,
            content_type='text/plain',
            blob_key=f'{user.id}/gone.txt',
        )

        report = reconcile(
            s3_storage,
            dry_run=True,
            refresh_sizes=True,
            min_age=_NO_MIN_AGE,
        )

        record.refresh_from_db()
        assert report.orphaned_blobs == [f'{user.id}/orphan.txt']
        assert report.dangling_records == [dangling.id]
        assert report.resized_records == [record.id]
        assert s3_storage.exists(f'{user.id}/orphan.txt')
        assert FileRecord.objects.filter(id=dangling.id).exists()
        assert record.size_bytes == 10

    def test_storage_errors_do_not_stop_the_pass(
        self,
        user,
        s3_storage,
        monkeypatch,
    ):
        """Test a failing blob check is collected and others still repaired."""
        throttled = FileRecord.objects.create(
            owner=user,
            display_name='throttled.txt',
            size_bytes=4,
            content_type='text/plain',
            blob_key=f'{user.id}/throttled.txt',
        )
        dangling = FileRecord.objects.create(
            owner=user,
            display_name='gone.txt',
            size_bytes=4,
            content_type='text/plain',
            blob_key=f'{user.id}/gone.txt',
        )
        original_exists = FileStorage.exists

        def exists(storage, name):
            if name == throttled.blob_key:
                raise OSError('S3 throttled')
            return original_exists(storage, name)

        monkeypatch.setattr(FileStorage, 'exists', exists)

        report = reconcile(s3_storage, min_age=_NO_MIN_AGE)

        assert report.failed == [throttled.blob_key]
        assert report.dangling_records == [dangling.id]
        assert FileRecord.objects.filter(id=throttled.id).exists()
        assert not FileRecord.objects.filter(id=dangling.id).exists()

    def test_unreadable_size_is_collected(self, user, s3_storage, monkeypatch):
        """Test a failing size lookup skips only that record."""
        broken = _stored_record(s3_storage, user, 'broken.txt', b'abc')
        stale = _stored_record(s3_storage, user, 'notes.txt', b'0123456789')
        s3_storage.upsert(stale.blob_key, ContentFile(b'hello world'))
        original_size = FileStorage.size

        def size(storage, name):
            if name == broken.blob_key:
                raise OSError('S3 throttled')
            return original_size(storage, name)

        monkeypatch.setattr(FileStorage, 'size', size)

        report = reconcile(s3_storage, refresh_sizes=True, min_age=_NO_MIN_AGE)

        stale.refresh_from_db()
        assert report.failed == [broken.blob_key]
        assert report.resized_records == [stale.id]
        assert stale.size_bytes == 11
