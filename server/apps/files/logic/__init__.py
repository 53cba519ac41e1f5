"""Sync logic layer for files app.

This package keeps a user's file list consistent with two stores:
- The controller: upload, edit, download, delete and reload
- Collaborator contracts, session context and notification sinks
- Compensation for two-store writes and the reconciliation pass

Store implementations live in ``infrastructure``; nothing here talks
to S3 or the ORM directly except the reconciliation pass.
"""
