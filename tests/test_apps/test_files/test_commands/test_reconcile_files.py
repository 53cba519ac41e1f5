"""Tests for the reconcile_files management command."""

from io import StringIO

import pytest
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.core.management import call_command

from server.apps.files.infrastructure.storage import FileStorage
from server.apps.files.models import FileRecord


@pytest.fixture
def inconsistent_state(user, mock_s3):
    """Store an orphaned blob and a dangling record for the test user.

    Returns:
        Tuple of orphaned blob key and dangling record.
    """
    orphan_key = f'{user.id}/orphan.txt'
    default_storage.save(orphan_key, ContentFile(b'lost'))
    dangling = FileRecord.objects.create(
        owner=user,
        display_name='gone.txt',
        size_bytes=4,
        content_type='text/plain',
        blob_key=f'{user.id}/gone.txt',
    )
    return orphan_key, dangling


@pytest.mark.django_db
class TestReconcileFilesCommand:
    """Tests for reconcile_files command."""

    def test_dry_run(self, inconsistent_state):
        """Test dry run reports without repairing."""
        orphan_key, dangling = inconsistent_state
        out = StringIO()

        call_command(
            'reconcile_files',
            '--dry-run',
            '--min-age-minutes',
            '0',
            stdout=out,
        )

        output = out.getvalue()
        assert f'Orphaned blob: {orphan_key}' in output
        assert f'Dangling record: {dangling.id}' in output
        assert 'Would repair 1 orphaned blobs, 1 dangling records' in output
        assert default_storage.exists(orphan_key)
        assert FileRecord.objects.filter(id=dangling.id).exists()

    def test_repairs(self, inconsistent_state):
        """Test orphans and dangling records are removed."""
        orphan_key, dangling = inconsistent_state
        out = StringIO()

        call_command('reconcile_files', '--min-age-minutes', '0', stdout=out)

        assert 'Repaired 1 orphaned blobs, 1 dangling records' in out.getvalue()
        assert not default_storage.exists(orphan_key)
        assert not FileRecord.objects.filter(id=dangling.id).exists()

    def test_default_min_age_keeps_fresh_blobs(self, inconsistent_state):
        """Test freshly written blobs survive the default run."""
        orphan_key, _ = inconsistent_state
        out = StringIO()

        call_command('reconcile_files', stdout=out)

        assert 'Repaired 0 orphaned blobs' in out.getvalue()
        assert default_storage.exists(orphan_key)

    def test_sizes(self, user, mock_s3):
        """Test --sizes refreshes stale sizes."""
        blob_key = f'{user.id}/notes.txt'
        default_storage.save(blob_key, ContentFile(b'hello world'))
        record = FileRecord.objects.create(
            owner=user,
            display_name='notes.txt',
            size_bytes=10,
            content_type='text/plain',
            blob_key=blob_key,
        )
        out = StringIO()

        call_command('reconcile_files', '--sizes', stdout=out)

        record.refresh_from_db()
        assert f'Stale size: {record.id}' in out.getvalue()
        assert record.size_bytes == 11

    def test_reports_failed_repairs(self, inconsistent_state, monkeypatch):
        """Test unreadable blobs are listed and counted, not fatal."""
        orphan_key, dangling = inconsistent_state

        def exists(storage, name):
            raise OSError('S3 throttled')

        monkeypatch.setattr(FileStorage, 'exists', exists)
        out = StringIO()
        err = StringIO()

        call_command(
            'reconcile_files',
            '--min-age-minutes',
            '0',
            stdout=out,
            stderr=err,
        )

        monkeypatch.undo()
        assert f'Failed to repair {dangling.blob_key}' in err.getvalue()
        assert 'Repaired 1 orphaned blobs, 0 dangling records' in out.getvalue()
        assert '1 failed' in out.getvalue()
        assert not default_storage.exists(orphan_key)
        assert FileRecord.objects.filter(id=dangling.id).exists()
