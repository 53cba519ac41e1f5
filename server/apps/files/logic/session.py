"""Process-wide view of the signed-in user.

The sync controller never talks to Django auth directly. It asks a
:class:`SessionContext` for the current owner ID and subscribes to
changes, which the context derives from Django's login/logout signals.
"""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, final

from django.contrib.auth.signals import user_logged_in, user_logged_out

from server.apps.files.logic.contracts import OwnerChangeCallback

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)


@final
class SessionContext:
    """Signed-in owner plus change subscriptions.

    Call `init` when the UI mounts and `teardown` when it unmounts;
    between the two the context follows logins and logouts.
    """

    def __init__(self) -> None:
        """Initialize an inactive context with no owner."""
        self._owner_id: int | None = None
        self._callbacks: list[OwnerChangeCallback] = []
        self._active = False

    @property
    def is_active(self) -> bool:
        """Whether `init` has been called without a matching `teardown`."""
        return self._active

    def init(self, user: 'AbstractBaseUser | None' = None) -> None:
        """Start following the auth state.

        Args:
            user: User already signed in when the UI mounts, if any.
        """
        if self._active:
            logger.debug('Session context already initialized')
            return

        user_logged_in.connect(
            self._handle_login,
            dispatch_uid=self._dispatch_uid('login'),
        )
        user_logged_out.connect(
            self._handle_logout,
            dispatch_uid=self._dispatch_uid('logout'),
        )
        self._active = True
        self.set_user(user)
        logger.info('Session context initialized (owner: %s)', self._owner_id)

    def teardown(self) -> None:
        """Stop following the auth state and drop all subscriptions."""
        if not self._active:
            return

        user_logged_in.disconnect(dispatch_uid=self._dispatch_uid('login'))
        user_logged_out.disconnect(dispatch_uid=self._dispatch_uid('logout'))
        self._active = False
        self._callbacks.clear()
        self._owner_id = None
        logger.info('Session context torn down')

    def current_owner_id(self) -> int | None:
        """Return the signed-in user's ID, or None when signed out."""
        return self._owner_id

    def on_change(
        self,
        callback: OwnerChangeCallback,
    ) -> Callable[[], None]:
        """Subscribe to owner changes.

        Args:
            callback: Called with the new owner ID (None on sign-out).

        Returns:
            Function that removes the subscription.
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def set_user(self, user: 'AbstractBaseUser | None') -> None:
        """Switch the signed-in user and notify subscribers on change.

        Args:
            user: New signed-in user, or None to sign out.
        """
        owner_id = user.pk if user is not None else None
        if owner_id == self._owner_id:
            return

        logger.info('Session owner changed: %s -> %s', self._owner_id, owner_id)
        self._owner_id = owner_id
        for callback in list(self._callbacks):
            callback(owner_id)

    def _handle_login(
        self,
        sender: type,
        user: 'AbstractBaseUser',
        **kwargs: Any,
    ) -> None:
        self.set_user(user)

    def _handle_logout(
        self,
        sender: type,
        user: 'AbstractBaseUser | None' = None,
        **kwargs: Any,
    ) -> None:
        self.set_user(None)

    def _dispatch_uid(self, event: str) -> str:
        return f'files-session-{event}-{id(self)}'


# Shared context for the running process
session_context = SessionContext()
