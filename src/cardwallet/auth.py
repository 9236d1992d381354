from __future__ import annotations

import logging
from typing import Callable

from .storage import LocalStore

logger = logging.getLogger(__name__)

TOKEN_KEY = "authToken"
USER_ID_KEY = "authUserId"
EMAIL_KEY = "authUserEmail"


class AuthSession:
    """Current login, persisted in the local store and passed to whoever needs it.

    `generation` increases on every login and logout, so a caller can tell
    whether the session it started a request under is still the current one.
    """

    def __init__(self, store: LocalStore):
        self.store = store
        self.token: str | None = None
        self.user_id: int | None = None
        self.email: str | None = None
        self.generation = 0
        self._logout_listeners: list[Callable[[], None]] = []
        self._restore()

    def _restore(self) -> None:
        token = self.store.get_item(TOKEN_KEY)
        user_id = self.store.get_item(USER_ID_KEY)
        email = self.store.get_item(EMAIL_KEY)
        if not (token and user_id and email):
            return
        try:
            self.user_id = int(user_id)
        except ValueError:
            logger.warning("Ignoring stored session with bad user id %r", user_id)
            return
        self.token = token
        self.email = email

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.user_id is not None

    def login(self, token: str, user_id: int, email: str) -> None:
        self.store.set_item(TOKEN_KEY, token)
        self.store.set_item(USER_ID_KEY, str(user_id))
        self.store.set_item(EMAIL_KEY, email)
        self.token, self.user_id, self.email = token, user_id, email
        self.generation += 1
        logger.info("Logged in as %s (user %s)", email, user_id)

    def logout(self) -> None:
        for key in (TOKEN_KEY, USER_ID_KEY, EMAIL_KEY):
            self.store.remove_item(key)
        self.token = self.user_id = self.email = None
        self.generation += 1
        for listener in list(self._logout_listeners):
            listener()

    def on_logout(self, listener: Callable[[], None]) -> None:
        self._logout_listeners.append(listener)
