"""Metadata helpers for blobs: keys, MIME types and display sizes."""

import mimetypes
import uuid
from pathlib import Path
from typing import Final

from django.core.exceptions import ValidationError

_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'
_SIZE_BASE: Final = 1024
_SIZE_UNITS: Final = ('Bytes', 'KB', 'MB', 'GB')

# Non text/* types that are still edited inline
_EDITABLE_MIME_TYPES: Final = frozenset((
    'application/json',
    'application/javascript',
))


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from filename.

    Uses Python's built-in mimetypes module to guess MIME type
    from filename extension. Used when the upload did not report
    a content type of its own.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def is_text_editable(content_type: str) -> bool:
    """Check whether content of this type is offered for inline editing.

    Args:
        content_type: MIME type of the record.

    Returns:
        True for text/* and a few textual application types.
    """
    return (
        content_type.startswith('text/')
        or content_type in _EDITABLE_MIME_TYPES
    )


def get_file_extension(filename: str) -> str:
    """Get file extension from filename.

    Args:
        filename: Filename (e.g., 'document.pdf').

    Returns:
        Extension without dot, lowercase (e.g., 'pdf').
        Returns empty string if no extension.
    """
    extension = Path(filename).suffix
    return extension.lstrip('.').lower()


def build_blob_key(owner_id: int, filename: str) -> str:
    """Generate a fresh blob key inside the owner's namespace.

    The original filename is not part of the key, only its extension,
    so two uploads of the same name never collide.

    Args:
        owner_id: Owner's user ID.
        filename: Original filename of the upload.

    Returns:
        Key such as '42/3f2a...9c.txt'.
    """
    extension = get_file_extension(filename)
    suffix = f'.{extension}' if extension else ''
    return f'{owner_id}/{uuid.uuid4().hex}{suffix}'


def owner_id_from_blob_key(blob_key: str) -> int:
    """Extract the owner namespace from a blob key.

    Args:
        blob_key: Key in storage (e.g., '42/3f2a...9c.txt').

    Returns:
        Owner's user ID.

    Raises:
        ValidationError: If the key is empty or not owner-namespaced.
    """
    if not blob_key:
        raise ValidationError('Blob key cannot be empty')

    first_component, separator, remainder = blob_key.partition('/')
    if not separator or not remainder:
        raise ValidationError('Blob key must be namespaced by owner ID')

    try:
        return int(first_component)
    except ValueError as error:
        raise ValidationError(
            'Blob key must start with owner ID',
        ) from error


def validate_blob_key(owner_id: int, blob_key: str) -> None:
    """Validate that a blob key lies in the owner's namespace.

    Args:
        owner_id: Owner's user ID.
        blob_key: Proposed blob key.

    Raises:
        ValidationError: If the key belongs to another owner or is invalid.
    """
    key_owner_id = owner_id_from_blob_key(blob_key)
    if key_owner_id != owner_id:
        raise ValidationError(
            f'Blob key owner ID ({key_owner_id}) does not match '
            f'owner ({owner_id})',
        )


def format_size(size_bytes: int) -> str:
    """Format a byte count for display.

    Example: 1536 -> '1.5 KB', 0 -> '0 Bytes'

    Args:
        size_bytes: Size in bytes.

    Returns:
        Size rounded to two decimals with a binary unit.
    """
    if size_bytes <= 0:
        return '0 Bytes'
    exponent = 0
    while (
        exponent < len(_SIZE_UNITS) - 1
        and size_bytes >= _SIZE_BASE ** (exponent + 1)
    ):
        exponent += 1
    scaled = round(size_bytes / _SIZE_BASE ** exponent, 2)
    return f'{scaled:g} {_SIZE_UNITS[exponent]}'
