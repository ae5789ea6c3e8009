"""Domain models shared by the ledger, bet cache, match lookup and controller."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


def _parse_timestamp(v: Any) -> datetime | None:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v
    try:
        return datetime.fromisoformat(str(v).replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None


def _to_points(v: Any) -> Any:
    """Coerce DECIMAL(10,2) columns ("100.00", 100.0) to whole points."""
    if v is None or isinstance(v, bool) or isinstance(v, int):
        return v
    try:
        value = Decimal(str(v))
    except InvalidOperation:
        return v
    if value != value.to_integral_value():
        raise ValueError(f"points must be whole numbers, got {v}")
    return int(value)


class BetStatus(str, Enum):
    OPEN = "open"
    WAITING_RESULT = "waiting_result"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BetStatus.COMPLETED, BetStatus.CANCELLED)

    def can_transition_to(self, target: BetStatus) -> bool:
        return target in _BET_TRANSITIONS[self]

    def can_reach(self, target: BetStatus) -> bool:
        """True if `target` follows from this status through zero or more transitions."""
        if target == self:
            return True
        return any(step.can_reach(target) for step in _BET_TRANSITIONS[self])


_BET_TRANSITIONS: dict[BetStatus, frozenset[BetStatus]] = {
    BetStatus.OPEN: frozenset({BetStatus.WAITING_RESULT, BetStatus.CANCELLED}),
    BetStatus.WAITING_RESULT: frozenset({BetStatus.COMPLETED}),
    BetStatus.COMPLETED: frozenset(),
    BetStatus.CANCELLED: frozenset(),
}


class PointsBalance(BaseModel):
    user_id: str
    free: int = Field(default=0, ge=0)
    reserved: int = Field(default=0, ge=0)
    fetched_at: datetime = Field(default_factory=datetime.now)

    @field_validator("free", "reserved", mode="before")
    @classmethod
    def coerce_points(cls, v: Any) -> Any:
        return 0 if v is None else _to_points(v)

    @property
    def total(self) -> int:
        return self.free + self.reserved

    @classmethod
    def from_api(cls, user_id: str, data: dict[str, Any]) -> PointsBalance:
        return cls(
            user_id=user_id,
            free=data.get("free_points"),
            reserved=data.get("reserved_points"),
        )


class PointsTransaction(BaseModel):
    id: str
    affected_user_id: str
    transaction_key: str
    affected_balance: Literal["FREE", "RESERVED"] = "FREE"
    amount: int = 0
    common_event_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        return _to_points(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created_at(cls, v: Any) -> datetime | None:
        return _parse_timestamp(v)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> PointsTransaction:
        return cls(
            id=str(data.get("id", "")),
            affected_user_id=str(data.get("affected_user_id", "")),
            transaction_key=data.get("transaction_key", ""),
            affected_balance=data.get("affected_balance") or "FREE",
            amount=data.get("amount", 0),
            common_event_id=data.get("common_event_id"),
            details=data.get("details") or {},
            created_at=data.get("created_at"),
        )


class StraightBet(BaseModel):
    id: str
    creator_user_id: str
    creator_username: str = ""
    match_id: str
    creators_pick_id: str
    amount: int = Field(gt=0)
    amount_currency: Literal["points"] = "points"
    creators_note: str | None = None
    status: BetStatus = BetStatus.OPEN
    acceptor_user_id: str | None = None
    acceptor_username: str | None = None
    acceptors_pick_id: str | None = None
    winner_user_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    accepted_at: datetime | None = None
    completed_at: datetime | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        return _to_points(v)

    @field_validator(
        "created_at", "updated_at", "accepted_at", "completed_at", mode="before"
    )
    @classmethod
    def parse_timestamps(cls, v: Any) -> datetime | None:
        return _parse_timestamp(v)

    @model_validator(mode="after")
    def check_picks_differ(self) -> StraightBet:
        if self.acceptors_pick_id and self.acceptors_pick_id == self.creators_pick_id:
            raise ValueError("acceptor must pick the opposing side of the creator")
        return self

    def involves(self, user_id: str) -> bool:
        return user_id in (self.creator_user_id, self.acceptor_user_id)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> StraightBet:
        return cls(
            id=str(data.get("id", "")),
            creator_user_id=str(data.get("creator_user_id", "")),
            creator_username=data.get("creator_username") or "",
            match_id=str(data.get("match_id", "")),
            creators_pick_id=str(data.get("creators_pick_id", "")),
            amount=data.get("amount"),
            creators_note=data.get("creators_note"),
            status=data.get("status", BetStatus.OPEN),
            acceptor_user_id=data.get("acceptor_user_id") or None,
            acceptor_username=data.get("acceptor_username") or None,
            acceptors_pick_id=data.get("acceptors_pick_id") or None,
            winner_user_id=data.get("winner_user_id") or None,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            accepted_at=data.get("accepted_at"),
            completed_at=data.get("completed_at"),
        )


EventType = Literal["basketball_nba", "sandbox_metaverse"]


class Match(BaseModel):
    id: str
    event_type: str
    details_id: str
    status: str = "upcoming"
    scheduled_start_time: datetime | None = None

    @field_validator("scheduled_start_time", mode="before")
    @classmethod
    def parse_start_time(cls, v: Any) -> datetime | None:
        return _parse_timestamp(v)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Match:
        return cls(
            id=str(data.get("id", "")),
            event_type=data.get("event_type", ""),
            details_id=str(data.get("details_id", "")),
            status=data.get("status") or "upcoming",
            scheduled_start_time=data.get("scheduled_start_time"),
        )


class MatchSides(BaseModel):
    """The two competing sides of a match (home/away teams or player 1/2)."""

    match_id: str
    event_type: EventType
    side_a_id: str
    side_a_name: str = ""
    side_b_id: str
    side_b_name: str = ""

    def has_side(self, pick_id: str) -> bool:
        return pick_id in (self.side_a_id, self.side_b_id)

    def name_for(self, pick_id: str) -> str | None:
        if pick_id == self.side_a_id:
            return self.side_a_name or None
        if pick_id == self.side_b_id:
            return self.side_b_name or None
        return None

    @property
    def display_name(self) -> str:
        return f"{self.side_a_name or self.side_a_id} vs {self.side_b_name or self.side_b_id}"

    @classmethod
    def from_nba_details(cls, match_id: str, data: dict[str, Any]) -> MatchSides:
        home = data.get("home_team") or {}
        away = data.get("away_team") or {}
        return cls(
            match_id=match_id,
            event_type="basketball_nba",
            side_a_id=str(data.get("home_team_id", "")),
            side_a_name=home.get("name") or data.get("home_team_name") or "",
            side_b_id=str(data.get("away_team_id", "")),
            side_b_name=away.get("name") or data.get("away_team_name") or "",
        )

    @classmethod
    def from_sandbox_details(cls, match_id: str, data: dict[str, Any]) -> MatchSides:
        return cls(
            match_id=match_id,
            event_type="sandbox_metaverse",
            side_a_id=str(data.get("player1_id", "")),
            side_a_name=data.get("player1_name") or "",
            side_b_id=str(data.get("player2_id", "")),
            side_b_name=data.get("player2_name") or "",
        )


class UserAccount(BaseModel):
    id: str
    user_id: str
    email: str | None = None
    wallet_address: str | None = None

    @property
    def username(self) -> str:
        return self.email or self.wallet_address or self.id

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> UserAccount:
        return cls(
            id=str(data.get("id", "")),
            user_id=str(data.get("user_id", "")),
            email=data.get("email"),
            wallet_address=data.get("wallet_address"),
        )


class AuthTokens(BaseModel):
    access_token: str
    refresh_token: str = ""
    expires_in: int = 3600
    user_id: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AuthTokens:
        user = data.get("user") or {}
        return cls(
            access_token=data.get("access_token", ""),
            refresh_token=data.get("refresh_token", ""),
            expires_in=data.get("expires_in", 3600),
            user_id=str(user.get("id", "")),
        )


class UserSession(BaseModel):
    """Signed-in user.

    ``auth_user_id`` keys the points ledger (``user_accounts.user_id``);
    ``account_id`` keys bet rows (``user_accounts.id``).
    """

    auth_user_id: str
    account_id: str
    username: str = ""
    access_token: str = ""
