"""Bet lifecycle controller: validate locally, submit one RPC, re-read on completion.

Each user action runs Idle -> Validating -> Submitting -> Succeeded | Failed.
A failed local check returns to Idle without touching the backend. The
controller never applies balance or bet changes itself; after any outcome it
re-reads the ledger and the affected bets from the backend.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Literal
from uuid import uuid4

from pydantic import BaseModel

from daredevil.bets.cache import BetCache
from daredevil.errors import (
    BetError,
    NotAuthenticated,
    RemoteRejected,
    ValidationError,
    translate_remote_error,
)
from daredevil.ledger import PointsLedger
from daredevil.matches import MatchLookup
from daredevil.models import BetStatus, StraightBet, UserSession
from daredevil.services.supabase import SupabaseAPIError, SupabaseClient
from daredevil.session import SessionStore

logger = logging.getLogger(__name__)

ActionKind = Literal["create", "accept", "cancel"]


class ActionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_ACTION_TRANSITIONS: dict[ActionState, frozenset[ActionState]] = {
    ActionState.IDLE: frozenset({ActionState.VALIDATING}),
    ActionState.VALIDATING: frozenset({ActionState.IDLE, ActionState.SUBMITTING}),
    ActionState.SUBMITTING: frozenset({ActionState.SUCCEEDED, ActionState.FAILED}),
    ActionState.SUCCEEDED: frozenset(),
    ActionState.FAILED: frozenset(),
}


class BetAction(BaseModel):
    """One in-flight user action. Client-local, never persisted."""

    kind: ActionKind
    key: str
    state: ActionState = ActionState.IDLE
    correlation_id: str | None = None

    def advance(self, state: ActionState) -> None:
        if state not in _ACTION_TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid {self.kind} action transition {self.state.value} -> {state.value}"
            )
        self.state = state


class BetActionResult(BaseModel):
    kind: ActionKind
    success: bool
    state: ActionState
    message: str
    bet: StraightBet | None = None
    correlation_id: str | None = None
    error_type: str | None = None


class BetLifecycleController:
    def __init__(
        self,
        client: SupabaseClient,
        sessions: SessionStore,
        ledger: PointsLedger,
        bets: BetCache,
        matches: MatchLookup,
        validate_picks: bool = True,
    ):
        self.client = client
        self.sessions = sessions
        self.ledger = ledger
        self.bets = bets
        self.matches = matches
        self.validate_picks = validate_picks
        self.in_flight: dict[str, BetAction] = {}

    def is_busy(self, key: str) -> bool:
        return key in self.in_flight

    async def create_bet(
        self,
        match_id: str,
        pick_id: str,
        amount: int,
        note: str | None = None,
    ) -> BetActionResult:
        bet_id = str(uuid4())

        async def validate() -> UserSession:
            session = self._require_session("Please sign in to place bets")
            if not match_id or not pick_id or amount is None:
                raise ValidationError(
                    "Missing required fields: match, pick and amount are required"
                )
            self._check_amount(amount)
            await self._check_balance(amount)
            if self.validate_picks:
                try:
                    valid = await self.matches.is_valid_pick(match_id, pick_id)
                except SupabaseAPIError as e:
                    raise translate_remote_error(e) from e
                if not valid:
                    raise ValidationError(
                        f"Team/pick ID {pick_id} is not valid for match {match_id}"
                    )
            return session

        async def submit(session: UserSession, correlation_id: str) -> StraightBet | None:
            logger.info(
                f"Creating bet {bet_id}: {amount} points on {pick_id} "
                f"(match {match_id}) for {session.username}"
            )
            return await self.client.create_straight_bet_atomic(
                user_id=session.account_id,
                bet_id=bet_id,
                match_id=match_id,
                picks_id=pick_id,
                amount=amount,
                note=note or None,
                correlation_id=correlation_id,
            )

        return await self._run(
            "create",
            key=f"create:{match_id}",
            validate=validate,
            submit=submit,
            affected_bet_id=bet_id,
            success_message=f"Bet placed successfully! Wagered {amount} points.",
        )

    async def accept_bet(self, bet: StraightBet) -> BetActionResult:
        acceptors_pick: dict[str, str] = {}

        async def validate() -> UserSession:
            session = self._require_session("Please sign in to accept bets")
            if bet.creator_user_id == session.account_id:
                raise ValidationError("You cannot accept your own bet")
            if bet.status != BetStatus.OPEN:
                raise ValidationError("This bet is no longer open")
            await self._check_balance(bet.amount)
            try:
                acceptors_pick["id"] = await self.matches.acceptor_pick_for(
                    bet.match_id, bet.creators_pick_id
                )
            except SupabaseAPIError as e:
                raise translate_remote_error(e) from e
            return session

        async def submit(session: UserSession, correlation_id: str) -> None:
            logger.info(
                f"Accepting bet {bet.id} for {session.username} "
                f"(pick {acceptors_pick['id']})"
            )
            await self.client.accept_straight_bet_atomic(
                user_id=session.account_id,
                bet_id=bet.id,
                acceptors_pick_id=acceptors_pick["id"],
                correlation_id=correlation_id,
            )

        return await self._run(
            "accept",
            key=f"accept:{bet.id}",
            validate=validate,
            submit=submit,
            affected_bet_id=bet.id,
            success_message="Bet accepted successfully!",
        )

    async def cancel_bet(self, bet: StraightBet) -> BetActionResult:
        async def validate() -> UserSession:
            session = self._require_session("Please sign in to cancel bets")
            if bet.creator_user_id != session.account_id:
                raise ValidationError("Only the creator can cancel this bet")
            if bet.status != BetStatus.OPEN:
                raise ValidationError("Only open bets can be cancelled")
            return session

        async def submit(session: UserSession, correlation_id: str) -> None:
            logger.info(f"Cancelling bet {bet.id} for {session.username}")
            await self.client.delete_straight_bet_atomic(
                bet_id=bet.id, correlation_id=correlation_id
            )

        return await self._run(
            "cancel",
            key=f"cancel:{bet.id}",
            validate=validate,
            submit=submit,
            affected_bet_id=bet.id,
            success_message="Bet cancelled successfully",
        )

    def _require_session(self, message: str) -> UserSession:
        session = self.sessions.current
        if session is None:
            raise NotAuthenticated(message)
        return session

    @staticmethod
    def _check_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Please enter a valid bet amount")

    async def _check_balance(self, amount: int) -> None:
        free = await self.ledger.free_points()
        if amount > free:
            raise ValidationError(
                f"Insufficient Points: {amount} required, {free} available"
            )

    async def _run(
        self,
        kind: ActionKind,
        key: str,
        validate: Callable[[], Awaitable[UserSession]],
        submit: Callable[[UserSession, str], Awaitable[StraightBet | None]],
        affected_bet_id: str | None,
        success_message: str,
    ) -> BetActionResult:
        if self.is_busy(key):
            return BetActionResult(
                kind=kind,
                success=False,
                state=ActionState.IDLE,
                message="This action is already in progress",
                error_type="ValidationError",
            )

        action = BetAction(kind=kind, key=key)
        self.in_flight[key] = action
        try:
            action.advance(ActionState.VALIDATING)
            try:
                session = await validate()
            except BetError as e:
                action.advance(ActionState.IDLE)
                logger.info(f"{kind} blocked locally: {e.user_message}")
                return self._result(action, False, e.user_message, error=e)

            action.advance(ActionState.SUBMITTING)
            action.correlation_id = str(uuid4())
            try:
                bet = await submit(session, action.correlation_id)
            except SupabaseAPIError as e:
                error = translate_remote_error(e)
                action.advance(ActionState.FAILED)
                logger.warning(f"{kind} failed remotely: {error.user_message}")
                refreshed = None
                if isinstance(error, RemoteRejected):
                    refreshed = await self._refetch_after_rejection(affected_bet_id)
                return self._result(
                    action, False, error.user_message, bet=refreshed, error=error
                )

            action.advance(ActionState.SUCCEEDED)
            refreshed = await self._refresh_after_success(
                session, kind, affected_bet_id
            )
            return self._result(action, True, success_message, bet=bet or refreshed)
        finally:
            self.in_flight.pop(key, None)

    @staticmethod
    def _result(
        action: BetAction,
        success: bool,
        message: str,
        bet: StraightBet | None = None,
        error: BetError | None = None,
    ) -> BetActionResult:
        return BetActionResult(
            kind=action.kind,
            success=success,
            state=action.state,
            message=message,
            bet=bet,
            correlation_id=action.correlation_id,
            error_type=type(error).__name__ if error else None,
        )

    async def _refresh_after_success(
        self,
        session: UserSession,
        kind: ActionKind,
        bet_id: str | None,
    ) -> StraightBet | None:
        refreshed = None
        try:
            await self.ledger.refresh()
            await self.bets.list_by_user(session.account_id)
            if kind != "create":
                await self.bets.list_open()
            if bet_id:
                refreshed = await self.bets.get_bet(bet_id)
        except BetError as e:
            logger.warning(f"Post-{kind} refresh failed: {e.user_message}")
        return refreshed

    async def _refetch_after_rejection(self, bet_id: str | None) -> StraightBet | None:
        refreshed = None
        try:
            await self.ledger.refresh()
            if bet_id:
                refreshed = await self.bets.get_bet(bet_id)
        except BetError as e:
            logger.warning(f"Refetch after rejection failed: {e.user_message}")
        return refreshed
