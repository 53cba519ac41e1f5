"""Infrastructure layer for files app.

This package contains integrations with external systems:
- Custom storage backend (S3/MinIO) and the blob store built on it
- The ORM-backed metadata store
- Key, MIME type and size helpers

Keep infrastructure concerns separate from the sync logic.
"""
