"""Read-through cache of straight bet lists.

Every list call re-fetches from the backend and replaces its cached slice
wholesale. The cache never edits bets locally.
"""

import logging
from typing import Awaitable, Callable, Hashable

from daredevil.errors import translate_remote_error
from daredevil.models import BetStatus, StraightBet
from daredevil.services.supabase import SupabaseAPIError, SupabaseClient

logger = logging.getLogger(__name__)

SettledHook = Callable[[list[StraightBet]], Awaitable[None]]


class BetCache:
    def __init__(
        self,
        client: SupabaseClient,
        default_limit: int = 50,
        on_settled: SettledHook | None = None,
    ):
        self.client = client
        self.default_limit = default_limit
        self.on_settled = on_settled
        self.slices: dict[Hashable, list[StraightBet]] = {}
        self._known_status: dict[str, BetStatus] = {}

    async def _fetch(
        self,
        key: Hashable,
        status: BetStatus | None = None,
        match_id: str | None = None,
        user_id: str | None = None,
        limit: int | None = None,
    ) -> list[StraightBet]:
        try:
            bets = await self.client.get_straight_bets(
                status=status,
                match_id=match_id,
                user_id=user_id,
                limit=limit or self.default_limit,
            )
        except SupabaseAPIError as e:
            raise translate_remote_error(e) from e

        if status is not None:
            # The backend filter is authoritative, but a snapshot must never
            # contain rows outside the requested status.
            bets = [b for b in bets if b.status == status]
        self.slices[key] = bets
        await self._track(bets)
        return bets

    async def _track(self, bets: list[StraightBet]) -> None:
        settled: list[StraightBet] = []
        for bet in bets:
            previous = self._known_status.get(bet.id)
            self._known_status[bet.id] = bet.status
            if previous is None or previous == bet.status:
                continue
            if not previous.can_reach(bet.status):
                logger.warning(
                    f"Bet {bet.id} moved {previous.value} -> {bet.status.value}, "
                    "which is not a forward transition"
                )
            if bet.status == BetStatus.COMPLETED and not previous.is_terminal:
                settled.append(bet)

        if settled and self.on_settled:
            logger.info(f"{len(settled)} bet(s) settled since last refresh")
            await self.on_settled(settled)

    async def list_open(self, limit: int | None = None) -> list[StraightBet]:
        return await self._fetch("open", status=BetStatus.OPEN, limit=limit)

    async def list_by_status(
        self, status: BetStatus, limit: int | None = None
    ) -> list[StraightBet]:
        status = BetStatus(status)
        return await self._fetch(("status", status), status=status, limit=limit)

    async def list_by_user(
        self,
        user_id: str,
        status: BetStatus | None = None,
        limit: int | None = None,
    ) -> list[StraightBet]:
        status = BetStatus(status) if status is not None else None
        return await self._fetch(
            ("user", user_id, status), status=status, user_id=user_id, limit=limit
        )

    async def list_by_match(
        self, match_id: str, limit: int | None = None
    ) -> list[StraightBet]:
        return await self._fetch(("match", match_id), match_id=match_id, limit=limit)

    async def get_bet(self, bet_id: str) -> StraightBet | None:
        try:
            bet = await self.client.get_straight_bet(bet_id)
        except SupabaseAPIError as e:
            raise translate_remote_error(e) from e
        if bet is not None:
            await self._track([bet])
        return bet
