"""Compensating actions for writes spanning the blob and metadata stores.

Neither store can join the other's transaction, so a two-step write
is made safe by undoing the first step when the second one fails.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

_ResultT = TypeVar('_ResultT')


async def with_compensation(
    primary: Callable[[], Awaitable[_ResultT]],
    compensate: Callable[[], Awaitable[Any]],
    *,
    description: str,
    enabled: bool = True,
) -> _ResultT:
    """Run ``primary``, undoing the preceding write if it fails.

    Compensation is best effort: if ``compensate`` fails as well, the
    failure is logged and the error from ``primary`` still propagates.

    Args:
        primary: Step that completes the two-store write.
        compensate: Undo for the step that already succeeded.
        description: What is being written, for the logs.
        enabled: When False the partial write is left in place.

    Returns:
        Result of ``primary``.

    Raises:
        Exception: Whatever ``primary`` raised.
    """
    try:
        return await primary()
    except Exception:
        if not enabled:
            logger.warning(
                'Compensation disabled, partial write left behind: %s',
                description,
            )
            raise

        logger.warning('Rolling back partial write: %s', description)
        try:
            await compensate()
        except Exception:
            # Rollback is best-effort; reconcile_files collects leftovers
            logger.exception(
                'Failed to roll back partial write: %s',
                description,
            )
        else:
            logger.info('Rolled back partial write: %s', description)
        raise
