"""Explicit wiring of the client, session, ledger, poller, bet cache and controller."""

import logging
from typing import Any

from daredevil.bets import BetCache, BetLifecycleController
from daredevil.config import Settings
from daredevil.errors import AuthError, translate_remote_error
from daredevil.ledger import PointsLedger
from daredevil.matches import MatchLookup
from daredevil.models import StraightBet, UserSession
from daredevil.scheduler import BalancePoller
from daredevil.services.supabase import SupabaseAPIError, SupabaseClient
from daredevil.session import SessionStore

logger = logging.getLogger(__name__)


class DareDevilApp:
    """Owns one backend connection and the services built on top of it.

    Must be created and entered inside a running event loop, since the balance
    poller schedules its job on that loop.
    """

    def __init__(self, settings: Settings, client: SupabaseClient | None = None):
        self.settings = settings
        self.client = client or SupabaseClient(settings.supabase_config())
        self.sessions = SessionStore()
        self.ledger = PointsLedger(
            self.client,
            self.sessions,
            transaction_limit=settings.ledger.transaction_limit,
        )
        self.poller = BalancePoller(
            self.ledger, interval_seconds=settings.ledger.poll_interval_seconds
        )
        self.matches = MatchLookup(
            self.client, strict_pick_derivation=settings.bets.strict_pick_derivation
        )
        self.bets = BetCache(
            self.client,
            default_limit=settings.bets.default_limit,
            on_settled=self._on_bets_settled,
        )
        self.controller = BetLifecycleController(
            self.client,
            self.sessions,
            self.ledger,
            self.bets,
            self.matches,
            validate_picks=settings.bets.validate_picks,
        )

        # Ledger resets and re-reads before the poller starts for the new user.
        self.sessions.subscribe(self.ledger.on_session_change)
        self.sessions.subscribe(self.poller.on_session_change)

    async def __aenter__(self) -> "DareDevilApp":
        await self.client.__aenter__()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> None:
        await self.sign_out()
        self.poller.shutdown()
        await self.client.__aexit__(exc_type, exc_val, exc_tb)

    async def _on_bets_settled(self, bets: list[StraightBet]) -> None:
        session = self.sessions.current
        if session and any(b.involves(session.account_id) for b in bets):
            await self.ledger.refresh()

    async def sign_in(self, email: str, password: str) -> UserSession:
        try:
            tokens = await self.client.sign_in_with_password(email, password)
            account = await self.client.get_user_account(tokens.user_id)
        except SupabaseAPIError as e:
            raise translate_remote_error(e) from e
        if account is None:
            self.client.set_access_token(None)
            raise AuthError("User account not found. Please try signing in again.")

        session = UserSession(
            auth_user_id=tokens.user_id,
            account_id=account.id,
            username=account.username,
            access_token=tokens.access_token,
        )
        await self.sessions.set(session)
        logger.info(f"Signed in as {session.username}")
        return session

    async def sign_in_from_settings(self) -> UserSession:
        if not self.settings.supabase_email or not self.settings.supabase_password:
            raise AuthError(
                "Set SUPABASE_EMAIL and SUPABASE_PASSWORD to sign in"
            )
        return await self.sign_in(
            self.settings.supabase_email, self.settings.supabase_password
        )

    async def sign_out(self) -> None:
        if self.sessions.is_authenticated:
            await self.sessions.clear()
            self.client.set_access_token(None)
            logger.info("Signed out")
