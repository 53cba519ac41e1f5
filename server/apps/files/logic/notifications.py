"""Notification sinks for user-facing operation outcomes."""

import logging
from typing import TYPE_CHECKING, final

if TYPE_CHECKING:
    from django.core.management.base import BaseCommand

logger = logging.getLogger(__name__)


@final
class LoggingNotificationSink:
    """Send notifications to the application log."""

    def report_success(self, message: str) -> None:
        """Log a success message."""
        logger.info(message)

    def report_error(self, message: str) -> None:
        """Log an error message."""
        logger.warning(message)


@final
class CommandNotificationSink:
    """Write notifications to a management command's output streams."""

    def __init__(self, command: 'BaseCommand') -> None:
        """Initialize the sink.

        Args:
            command: Running command whose stdout/stderr receive messages.
        """
        self._command = command

    def report_success(self, message: str) -> None:
        """Write a success message to stdout."""
        self._command.stdout.write(self._command.style.SUCCESS(message))

    def report_error(self, message: str) -> None:
        """Write an error message to stderr."""
        self._command.stderr.write(self._command.style.ERROR(message))
