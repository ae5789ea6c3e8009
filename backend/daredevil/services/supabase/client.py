from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from daredevil.models import (
    AuthTokens,
    BetStatus,
    Match,
    MatchSides,
    PointsBalance,
    PointsTransaction,
    StraightBet,
    UserAccount,
)

from .config import SupabaseConfig
from .exceptions import (
    SupabaseAPIError,
    SupabaseAuthError,
    SupabaseDataError,
    SupabaseNotFoundError,
    SupabaseRejectedError,
    SupabaseUnavailableError,
)

logger = logging.getLogger(__name__)

BET_COLUMNS = "*"
NBA_DETAILS_COLUMNS = (
    "*,home_team:teams_nba!home_team_id(name),away_team:teams_nba!away_team_id(name)"
)


def _error_message(response: httpx.Response) -> tuple[str, str | None]:
    """Pull the human-readable message out of a PostgREST or GoTrue error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None
    if not isinstance(body, dict):
        return str(body), None
    message = (
        body.get("message")
        or body.get("error_description")
        or body.get("msg")
        or body.get("error")
        or f"HTTP {response.status_code}"
    )
    code = body.get("code") or body.get("error_code")
    return str(message), str(code) if code is not None else None


def _parse_bet(row: dict[str, Any]) -> StraightBet:
    try:
        return StraightBet.from_api(row)
    except ValidationError as e:
        raise SupabaseDataError(
            f"Malformed straight_bets row {row.get('id')}: {e.error_count()} error(s)"
        ) from e


class SupabaseClient:
    def __init__(
        self,
        config: SupabaseConfig | None = None,
        access_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or SupabaseConfig()
        self.access_token = access_token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        logger.info(
            f"Initialized SupabaseClient (url={self.config.url}, "
            f"auth={'user' if access_token else 'anon'})"
        )

    async def __aenter__(self) -> SupabaseClient:
        limits = httpx.Limits(
            max_connections=self.config.max_connections,
            max_keepalive_connections=self.config.max_keepalive_connections,
        )
        self._client = httpx.AsyncClient(
            base_url=self.config.url.rstrip("/"),
            timeout=self.config.timeout_seconds,
            limits=limits,
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Closed SupabaseClient")

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "SupabaseClient must be used as async context manager"
            )
        return self._client

    def set_access_token(self, token: str | None) -> None:
        self.access_token = token

    def _headers(self) -> dict[str, str]:
        bearer = self.access_token or self.config.anon_key
        return {
            "apikey": self.config.anon_key,
            "Authorization": f"Bearer {bearer}",
            "Content-Type": "application/json",
        }

    def _raise_for_error(self, response: httpx.Response, endpoint: str) -> None:
        message, code = _error_message(response)
        status = response.status_code
        if status in (401, 403):
            raise SupabaseAuthError(message, status_code=status, code=code)
        if status == 404:
            raise SupabaseNotFoundError(
                f"Resource not found: {endpoint} ({message})",
                status_code=status,
                code=code,
            )
        if status >= 500:
            raise SupabaseUnavailableError(message, status_code=status, code=code)
        raise SupabaseRejectedError(message, status_code=status, code=code)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        retry: bool = True,
    ) -> Any:
        """Send one request; reads retry transient failures, mutations never do."""
        attempts = self.config.max_retries if retry else 1
        retry_count = 0
        last_error: Exception | None = None

        while retry_count < attempts:
            try:
                response = await self.client.request(
                    method=method,
                    url=endpoint,
                    params=params,
                    json=json_data,
                    headers=self._headers(),
                )
            except httpx.TimeoutException as e:
                last_error = e
                retry_count += 1
                if retry_count < attempts:
                    logger.warning(f"Timeout on {endpoint}, retrying ({retry_count})...")
                    await asyncio.sleep(2 ** retry_count)
                continue
            except httpx.RequestError as e:
                logger.error(f"Network error on {endpoint}: {e}")
                raise SupabaseUnavailableError(f"Network error: {e}") from e

            if response.status_code == 429 or response.status_code >= 500:
                last_error = SupabaseUnavailableError(
                    _error_message(response)[0], status_code=response.status_code
                )
                retry_count += 1
                if retry_count < attempts:
                    wait_time = 2 ** retry_count
                    logger.warning(
                        f"Server returned {response.status_code} on {endpoint}, "
                        f"retrying in {wait_time}s..."
                    )
                    await asyncio.sleep(wait_time)
                continue

            if response.status_code >= 400:
                self._raise_for_error(response, endpoint)

            if not response.content:
                return None
            return response.json()

        if isinstance(last_error, SupabaseAPIError):
            raise last_error
        raise SupabaseUnavailableError(
            f"Request to {endpoint} failed after {retry_count} attempts: {last_error}"
        )

    async def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"select": columns}
        if filters:
            params.update(filters)
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        logger.debug(f"SELECT {table} {params}")
        data = await self._request("GET", f"rest/v1/{table}", params=params)
        return data or []

    async def _select_one(
        self,
        table: str,
        filters: dict[str, Any],
        columns: str = "*",
    ) -> dict[str, Any] | None:
        rows = await self.select(table, filters, columns=columns, limit=1)
        return rows[0] if rows else None

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        logger.info(f"RPC {function} (event={params.get('common_event_id')})")
        return await self._request(
            "POST", f"rest/v1/rpc/{function}", json_data=params, retry=False
        )

    async def sign_in_with_password(self, email: str, password: str) -> AuthTokens:
        data = await self._request(
            "POST",
            "auth/v1/token",
            params={"grant_type": "password"},
            json_data={"email": email, "password": password},
            retry=False,
        )
        tokens = AuthTokens.from_api(data or {})
        if not tokens.access_token:
            raise SupabaseAuthError("Sign-in returned no access token")
        self.set_access_token(tokens.access_token)
        return tokens

    async def get_user_account(self, auth_user_id: str) -> UserAccount | None:
        row = await self._select_one(
            "user_accounts",
            {"user_id": f"eq.{auth_user_id}"},
            columns="id,user_id,email,wallet_address",
        )
        return UserAccount.from_api(row) if row else None

    async def get_point_balances(self, auth_user_id: str) -> PointsBalance:
        row = await self._select_one(
            "user_accounts",
            {"user_id": f"eq.{auth_user_id}"},
            columns="free_points,reserved_points",
        )
        if row is None:
            raise SupabaseNotFoundError(
                f"No user account for {auth_user_id}", status_code=404
            )
        try:
            return PointsBalance.from_api(auth_user_id, row)
        except ValidationError as e:
            raise SupabaseDataError(f"Malformed balances for {auth_user_id}: {e}") from e

    async def get_point_transactions(
        self, auth_user_id: str, limit: int = 50
    ) -> list[PointsTransaction]:
        rows = await self.select(
            "point_transactions",
            {"affected_user_id": f"eq.{auth_user_id}"},
            order="created_at.desc",
            limit=limit,
        )
        return [PointsTransaction.from_api(r) for r in rows]

    async def get_straight_bets(
        self,
        status: BetStatus | None = None,
        match_id: str | None = None,
        user_id: str | None = None,
        limit: int = 50,
    ) -> list[StraightBet]:
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = f"eq.{BetStatus(status).value}"
        if match_id:
            filters["match_id"] = f"eq.{match_id}"
        if user_id:
            filters["or"] = f"(creator_user_id.eq.{user_id},acceptor_user_id.eq.{user_id})"
        rows = await self.select(
            "straight_bets",
            filters,
            columns=BET_COLUMNS,
            order="created_at.desc",
            limit=limit,
        )
        bets = []
        for row in rows:
            try:
                bets.append(_parse_bet(row))
            except SupabaseDataError as e:
                logger.warning(f"Skipping bet row: {e}")
        return bets

    async def get_straight_bet(self, bet_id: str) -> StraightBet | None:
        row = await self._select_one("straight_bets", {"id": f"eq.{bet_id}"})
        return _parse_bet(row) if row else None

    async def get_match(self, match_id: str) -> Match | None:
        row = await self._select_one("matches", {"id": f"eq.{match_id}"})
        return Match.from_api(row) if row else None

    async def get_match_sides(self, match: Match) -> MatchSides | None:
        if match.event_type == "basketball_nba":
            row = await self._select_one(
                "match_details_basketball_nba",
                {"id": f"eq.{match.details_id}"},
                columns=NBA_DETAILS_COLUMNS,
            )
            return MatchSides.from_nba_details(match.id, row) if row else None
        if match.event_type == "sandbox_metaverse":
            row = await self._select_one(
                "match_details_sandbox_metaverse",
                {"id": f"eq.{match.details_id}"},
            )
            return MatchSides.from_sandbox_details(match.id, row) if row else None

        logger.warning(f"Unknown event type {match.event_type!r} for match {match.id}")
        return None

    async def create_straight_bet_atomic(
        self,
        user_id: str,
        bet_id: str,
        match_id: str,
        picks_id: str,
        amount: int,
        note: str | None,
        correlation_id: str,
    ) -> StraightBet | None:
        """Create the bet and reserve its points. Returns None if the stored
        row cannot be read back; the bet itself was still created."""
        data = await self.rpc(
            "create_straight_bet_atomic",
            {
                "user_id": user_id,
                "bet_id": bet_id,
                "match_id": match_id,
                "picks_id": picks_id,
                "amount": amount,
                "note": note,
                "common_event_id": correlation_id,
            },
        )
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            logger.warning(f"create_straight_bet_atomic returned no row for bet {bet_id}")
            return None
        try:
            return _parse_bet(data)
        except SupabaseDataError as e:
            logger.warning(f"Created bet {bet_id} but could not parse it: {e}")
            return None

    async def accept_straight_bet_atomic(
        self,
        user_id: str,
        bet_id: str,
        acceptors_pick_id: str,
        correlation_id: str,
    ) -> None:
        await self.rpc(
            "accept_straight_bet_atomic",
            {
                "user_id": user_id,
                "bet_id": bet_id,
                "acceptors_pick_id": acceptors_pick_id,
                "common_event_id": correlation_id,
            },
        )

    async def delete_straight_bet_atomic(
        self,
        bet_id: str,
        correlation_id: str,
    ) -> None:
        await self.rpc(
            "delete_straight_bet_atomic",
            {"bet_id": bet_id, "common_event_id": correlation_id},
        )
