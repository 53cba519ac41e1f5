"""Django admin configuration for files app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest

from server.apps.files.infrastructure.metadata import format_size
from server.apps.files.models import FileRecord


@admin.register(FileRecord)
class FileRecordAdmin(admin.ModelAdmin[FileRecord]):
    """Admin interface for FileRecord model.

    Records are read-only here: creating or deleting one without its
    blob would break the one-blob-per-record pairing, so changes go
    through the sync controller and `reconcile_files`.
    """

    list_display = [
        'display_name',
        'owner',
        'size_display',
        'content_type',
        'created_at',
    ]

    list_filter = [
        'content_type',
        'created_at',
    ]

    search_fields = [
        'display_name',
        'blob_key',
    ]

    readonly_fields = [
        'owner',
        'display_name',
        'size_bytes',
        'content_type',
        'blob_key',
        'created_at',
    ]

    def size_display(self, obj: FileRecord) -> str:
        """Display file size in human-readable format.

        Args:
            obj: FileRecord instance.

        Returns:
            Formatted size string (e.g., '1.5 MB', '234 KB').
        """
        return format_size(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def has_add_permission(self, request: HttpRequest) -> bool:
        """Records are only created by uploads."""
        return False

    def has_delete_permission(
        self,
        request: HttpRequest,
        obj: FileRecord | None = None,
    ) -> bool:
        """Records are only deleted together with their blob."""
        return False

    def get_queryset(self, request: HttpRequest) -> QuerySet[FileRecord]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('owner')
