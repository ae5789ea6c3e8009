import pydantic
import pytest

from daredevil.models import (
    BetStatus,
    MatchSides,
    PointsBalance,
    PointsTransaction,
    StraightBet,
    UserAccount,
)


def test_bet_status_forward_transitions_only() -> None:
    assert BetStatus.OPEN.can_transition_to(BetStatus.WAITING_RESULT)
    assert BetStatus.OPEN.can_transition_to(BetStatus.CANCELLED)
    assert BetStatus.WAITING_RESULT.can_transition_to(BetStatus.COMPLETED)

    assert not BetStatus.OPEN.can_transition_to(BetStatus.COMPLETED)
    assert not BetStatus.WAITING_RESULT.can_transition_to(BetStatus.OPEN)
    assert not BetStatus.WAITING_RESULT.can_transition_to(BetStatus.CANCELLED)
    for terminal in (BetStatus.COMPLETED, BetStatus.CANCELLED):
        assert terminal.is_terminal
        assert not any(terminal.can_transition_to(s) for s in BetStatus)


def test_bet_status_reachability() -> None:
    assert BetStatus.OPEN.can_reach(BetStatus.COMPLETED)
    assert BetStatus.OPEN.can_reach(BetStatus.OPEN)
    assert not BetStatus.CANCELLED.can_reach(BetStatus.COMPLETED)
    assert not BetStatus.COMPLETED.can_reach(BetStatus.WAITING_RESULT)


def test_straight_bet_from_api_coerces_amount_and_timestamps() -> None:
    bet = StraightBet.from_api(
        {
            "id": "bet-1",
            "creator_user_id": "acct-alice",
            "match_id": "match-1",
            "creators_pick_id": "team-lakers",
            "amount": "250.00",
            "status": "waiting_result",
            "acceptor_user_id": "acct-bob",
            "acceptors_pick_id": "team-celtics",
            "created_at": "2026-01-01T12:00:00Z",
            "accepted_at": "",
        }
    )
    assert bet.amount == 250
    assert bet.status == BetStatus.WAITING_RESULT
    assert bet.created_at is not None and bet.created_at.tzinfo is not None
    assert bet.accepted_at is None
    assert bet.involves("acct-bob")
    assert not bet.involves("acct-carol")


@pytest.mark.parametrize("amount", [0, -10, "12.50"])
def test_straight_bet_rejects_non_positive_or_fractional_amounts(amount) -> None:
    with pytest.raises(pydantic.ValidationError):
        StraightBet(
            id="bet-1",
            creator_user_id="acct-alice",
            match_id="match-1",
            creators_pick_id="team-lakers",
            amount=amount,
        )


def test_acceptor_pick_must_differ_from_creator_pick() -> None:
    with pytest.raises(pydantic.ValidationError):
        StraightBet(
            id="bet-1",
            creator_user_id="acct-alice",
            match_id="match-1",
            creators_pick_id="team-lakers",
            acceptors_pick_id="team-lakers",
            amount=10,
        )


def test_points_balance_rejects_negative_values() -> None:
    with pytest.raises(pydantic.ValidationError):
        PointsBalance(user_id="auth-alice", free=-1)

    balance = PointsBalance.from_api("auth-alice", {"free_points": None, "reserved_points": "20"})
    assert (balance.free, balance.reserved) == (0, 20)


def test_points_transaction_from_api() -> None:
    tx = PointsTransaction.from_api(
        {
            "id": 7,
            "affected_user_id": "auth-alice",
            "transaction_key": "BET_CREATED",
            "affected_balance": "RESERVED",
            "amount": "100.00",
            "common_event_id": "corr-1",
            "created_at": "2026-01-01T12:00:00+00:00",
        }
    )
    assert tx.id == "7"
    assert tx.amount == 100
    assert tx.affected_balance == "RESERVED"
    assert tx.details == {}


def test_match_sides_names_and_fallbacks() -> None:
    sides = MatchSides.from_sandbox_details(
        "match-2",
        {"player1_id": "p1", "player1_name": "Neo", "player2_id": "p2", "player2_name": ""},
    )
    assert sides.event_type == "sandbox_metaverse"
    assert sides.name_for("p1") == "Neo"
    assert sides.name_for("p2") is None
    assert sides.name_for("p3") is None
    assert sides.display_name == "Neo vs p2"
    assert sides.has_side("p2")


def test_user_account_username_prefers_email() -> None:
    assert UserAccount(id="a", user_id="u", email="x@example.com").username == "x@example.com"
    assert UserAccount(id="a", user_id="u", wallet_address="0xabc").username == "0xabc"
    assert UserAccount(id="a", user_id="u").username == "a"
