"""Shared fixtures for files app tests."""

import boto3
import pytest
from asgiref.sync import async_to_sync
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.files.storage import storages
from moto import mock_aws

from server.apps.files.exceptions import BlobStoreError, MetadataStoreError
from server.apps.files.infrastructure.records import DjangoMetadataStore
from server.apps.files.logic.controller import FileSyncController
from server.apps.files.logic.session import SessionContext

User = get_user_model()


class InMemoryBlobStore:
    """Blob store keeping content in a dict, with injectable failures."""

    def __init__(self):
        self.blobs = {}
        self.calls = []
        self.fail_on = set()

    def put(self, key, content):
        self._record('put', key)
        if key in self.blobs:
            raise BlobStoreError(f'Object already exists: {key}')
        content.seek(0)
        self.blobs[key] = content.read()

    def upsert(self, key, content):
        self._record('upsert', key)
        content.seek(0)
        self.blobs[key] = content.read()

    def get(self, key):
        self._record('get', key)
        if key not in self.blobs:
            raise BlobStoreError(f'Download failed for {key}: not found')
        return self.blobs[key]

    def remove(self, key):
        self._record('remove', key)
        self.blobs.pop(key, None)

    def _record(self, operation, key):
        self.calls.append((operation, key))
        if operation in self.fail_on:
            raise BlobStoreError(f'Simulated {operation} failure for {key}')


class FlakyMetadataStore:
    """ORM metadata store that can be told to fail."""

    def __init__(self):
        self._store = DjangoMetadataStore()
        self.calls = []
        self.fail_on = set()
        self.reject_names = set()

    def insert(self, owner_id, display_name, size_bytes, content_type, blob_key):
        self._record('insert')
        if display_name in self.reject_names:
            raise MetadataStoreError(f'Simulated insert failure: {display_name}')
        return self._store.insert(
            owner_id=owner_id,
            display_name=display_name,
            size_bytes=size_bytes,
            content_type=content_type,
            blob_key=blob_key,
        )

    def get(self, owner_id, record_id):
        self._record('get')
        return self._store.get(owner_id, record_id)

    def list_by_owner(self, owner_id):
        self._record('list_by_owner')
        return self._store.list_by_owner(owner_id)

    def delete_by_id(self, owner_id, record_id):
        self._record('delete_by_id')
        return self._store.delete_by_id(owner_id, record_id)

    def _record(self, operation):
        self.calls.append(operation)
        if operation in self.fail_on:
            raise MetadataStoreError(f'Simulated {operation} failure')


class RecordingNotificationSink:
    """Notification sink that remembers every message."""

    def __init__(self):
        self.successes = []
        self.errors = []

    def report_success(self, message):
        self.successes.append(message)

    def report_error(self, message):
        self.errors.append(message)


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with the user-files bucket.

    Yields:
        boto3 S3 resource with the configured bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(
            Bucket=settings.STORAGES['default']['OPTIONS']['bucket_name'],
        )

        yield conn


@pytest.fixture
def s3_storage(mock_s3):
    """Fresh FileStorage instance bound to the mocked bucket.

    Returns:
        FileStorage built from the default storage settings.
    """
    return storages.create_storage(settings.STORAGES['default'])


@pytest.fixture
def blob_store():
    """In-memory blob store.

    Returns:
        InMemoryBlobStore with no failures configured.
    """
    return InMemoryBlobStore()


@pytest.fixture
def metadata_store(db):
    """ORM-backed metadata store with injectable failures.

    Returns:
        FlakyMetadataStore with no failures configured.
    """
    return FlakyMetadataStore()


@pytest.fixture
def notifications():
    """Notification sink recording messages.

    Returns:
        RecordingNotificationSink instance.
    """
    return RecordingNotificationSink()


@pytest.fixture
def session(user):
    """Session context signed in as the test user.

    Yields:
        Initialized SessionContext, torn down afterwards.
    """
    context = SessionContext()
    context.init(user)
    yield context
    context.teardown()


@pytest.fixture
def controller(session, blob_store, metadata_store, notifications):
    """Sync controller over the in-memory blob store and the ORM.

    Returns:
        FileSyncController with upload compensation enabled.
    """
    return FileSyncController(
        session=session,
        blobs=blob_store,
        records=metadata_store,
        notifications=notifications,
        compensate_uploads=True,
    )


@pytest.fixture
def run():
    """Run a controller coroutine from a synchronous test.

    Store calls are routed back to the test thread, so they share the
    test's database transaction.

    Returns:
        Function calling an async callable and returning its result.
    """
    def runner(coroutine_function, *args, **kwargs):
        return async_to_sync(coroutine_function)(*args, **kwargs)

    return runner
