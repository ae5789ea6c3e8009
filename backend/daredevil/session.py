"""Explicit holder for the signed-in user, passed to every service that needs it."""

import logging
from typing import Awaitable, Callable

from daredevil.errors import NotAuthenticated
from daredevil.models import UserSession

logger = logging.getLogger(__name__)

SessionListener = Callable[[UserSession | None], Awaitable[None]]


class SessionStore:
    def __init__(self) -> None:
        self._current: UserSession | None = None
        self._listeners: list[SessionListener] = []

    @property
    def current(self) -> UserSession | None:
        return self._current

    @property
    def is_authenticated(self) -> bool:
        return self._current is not None

    def require(self) -> UserSession:
        if self._current is None:
            raise NotAuthenticated()
        return self._current

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    async def set(self, session: UserSession | None) -> None:
        """Replace the session and notify listeners in subscription order."""
        previous = self._current
        self._current = session
        if previous == session:
            return
        logger.info(
            f"Session changed: {previous.username if previous else None} -> "
            f"{session.username if session else None}"
        )
        for listener in self._listeners:
            await listener(session)

    async def clear(self) -> None:
        await self.set(None)
