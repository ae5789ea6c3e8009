"""Points ledger view: last-known free/reserved balances for the signed-in user.

The ledger never mutates balances. It re-reads them from the backend on session
change, on the polling interval, and after every action expected to move points.
"""

import logging
from itertools import count

from daredevil.errors import (
    BetError,
    RemoteUnavailable,
    TransportError,
    translate_remote_error,
)
from daredevil.models import PointsBalance, PointsTransaction, UserSession
from daredevil.services.supabase import SupabaseAPIError, SupabaseClient
from daredevil.session import SessionStore

logger = logging.getLogger(__name__)


class PointsLedger:
    def __init__(
        self,
        client: SupabaseClient,
        sessions: SessionStore,
        transaction_limit: int = 50,
    ):
        self.client = client
        self.sessions = sessions
        self.transaction_limit = transaction_limit
        self.balance: PointsBalance | None = None
        self.transactions: list[PointsTransaction] = []
        self.last_error: str | None = None
        self._tickets = count(1)
        self._applied_ticket = 0

    async def get_balances(self, user_id: str | None = None) -> PointsBalance:
        """Read balances from the backend without touching the cached view."""
        session = self.sessions.require()
        target = user_id or session.auth_user_id
        try:
            return await self.client.get_point_balances(target)
        except SupabaseAPIError as e:
            error = translate_remote_error(e)
            if isinstance(error, TransportError):
                raise RemoteUnavailable() from e
            raise error from e

    async def refresh(self, user_id: str | None = None) -> PointsBalance | None:
        """Re-read balances into the view, keeping the last-known value on failure.

        ``user_id`` pins the read to a specific user; if the session has moved
        on by the time the read completes, the result is discarded.
        """
        session = self.sessions.current
        if session is None:
            return None
        target = user_id or session.auth_user_id
        if target != session.auth_user_id:
            logger.debug(f"Skipping balance refresh for stale user {target}")
            return self.balance

        ticket = next(self._tickets)
        try:
            balance = await self.get_balances(target)
        except TransportError as e:
            self.last_error = e.user_message
            logger.warning(f"Balance refresh failed, keeping last-known value: {e}")
            return self.balance

        current = self.sessions.current
        if current is None or current.auth_user_id != target:
            logger.debug(f"Discarding balance read for signed-out user {target}")
            return self.balance
        if ticket < self._applied_ticket:
            logger.debug(f"Discarding out-of-order balance read #{ticket}")
            return self.balance

        self._applied_ticket = ticket
        self.balance = balance
        self.last_error = None
        logger.debug(
            f"Balance for {target}: free={balance.free} reserved={balance.reserved}"
        )
        return balance

    async def free_points(self) -> int:
        """Free points from the last successful read, reading once if none yet."""
        session = self.sessions.require()
        if self.balance is None or self.balance.user_id != session.auth_user_id:
            await self.refresh()
        if self.balance is None:
            raise RemoteUnavailable()
        return self.balance.free

    async def get_transactions(self, limit: int | None = None) -> list[PointsTransaction]:
        session = self.sessions.require()
        try:
            self.transactions = await self.client.get_point_transactions(
                session.auth_user_id, limit or self.transaction_limit
            )
        except SupabaseAPIError as e:
            raise translate_remote_error(e) from e
        return self.transactions

    async def on_session_change(self, session: UserSession | None) -> None:
        self.balance = None
        self.transactions = []
        self.last_error = None
        if session is None:
            return
        # Must not raise; the poller is notified after the ledger.
        try:
            await self.refresh(session.auth_user_id)
        except BetError as e:
            self.last_error = e.user_message
            logger.warning(
                f"Initial balance read for {session.username} failed: {e.user_message}"
            )
