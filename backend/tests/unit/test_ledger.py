import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fakes import ALICE, BOB, FakeRemote

from daredevil.errors import NotAuthenticated, RemoteRejected, RemoteUnavailable
from daredevil.ledger import PointsLedger
from daredevil.models import PointsTransaction
from daredevil.services.supabase import SupabaseRejectedError, SupabaseUnavailableError
from daredevil.session import SessionStore


def _ledger(remote: FakeRemote) -> tuple[SessionStore, PointsLedger]:
    sessions = SessionStore()
    ledger = PointsLedger(remote, sessions)
    sessions.subscribe(ledger.on_session_change)
    return sessions, ledger


def test_get_balances_requires_session() -> None:
    _, ledger = _ledger(FakeRemote())

    with pytest.raises(NotAuthenticated):
        asyncio.run(ledger.get_balances())


def test_session_change_loads_balance() -> None:
    remote = FakeRemote()
    remote.add_user(ALICE, free=500)
    sessions, ledger = _ledger(remote)

    asyncio.run(sessions.set(ALICE))

    assert ledger.balance is not None
    assert ledger.balance.user_id == ALICE.auth_user_id
    assert ledger.balance.free == 500


def test_transport_failure_keeps_last_known_balance() -> None:
    remote = FakeRemote()
    remote.add_user(ALICE, free=500)
    sessions, ledger = _ledger(remote)

    async def run():
        await sessions.set(ALICE)
        remote.balances[ALICE.auth_user_id]["free"] = 100
        remote.failures["get_point_balances"] = SupabaseUnavailableError("down")
        return await ledger.refresh()

    balance = asyncio.run(run())
    assert balance.free == 500
    assert ledger.balance.free == 500
    assert ledger.last_error is not None


def test_get_balances_maps_transport_failure_to_remote_unavailable() -> None:
    remote = FakeRemote()
    remote.add_user(ALICE, free=500)
    sessions, ledger = _ledger(remote)

    async def run():
        await sessions.set(ALICE)
        remote.failures["get_point_balances"] = SupabaseUnavailableError("down")
        await ledger.get_balances()

    with pytest.raises(RemoteUnavailable):
        asyncio.run(run())


def test_refresh_propagates_rejection() -> None:
    remote = FakeRemote()
    remote.add_user(ALICE, free=500)
    sessions, ledger = _ledger(remote)

    async def run():
        await sessions.set(ALICE)
        remote.failures["get_point_balances"] = SupabaseRejectedError("permission denied", 400)
        await ledger.refresh()

    with pytest.raises(RemoteRejected):
        asyncio.run(run())


def test_refresh_for_previous_user_is_ignored() -> None:
    remote = FakeRemote()
    remote.add_user(ALICE, free=500)
    remote.add_user(BOB, free=70)
    sessions, ledger = _ledger(remote)

    async def run():
        await sessions.set(ALICE)
        await sessions.set(BOB)
        remote.calls.clear()
        return await ledger.refresh(ALICE.auth_user_id)

    balance = asyncio.run(run())
    assert balance.user_id == BOB.auth_user_id
    assert balance.free == 70
    assert remote.calls == []


def test_read_completing_after_sign_out_is_discarded() -> None:
    remote = FakeRemote()
    remote.add_user(ALICE, free=500)
    sessions, ledger = _ledger(remote)
    original = remote.get_point_balances

    async def slow_balances(auth_user_id):
        await sessions.clear()
        return await original(auth_user_id)

    async def run():
        await sessions.set(ALICE)
        remote.get_point_balances = slow_balances
        return await ledger.refresh()

    assert asyncio.run(run()) is None
    assert ledger.balance is None


def test_out_of_order_reads_keep_the_newest() -> None:
    remote = FakeRemote()
    remote.add_user(ALICE, free=500)
    sessions, ledger = _ledger(remote)
    original = remote.get_point_balances
    gates: list[asyncio.Event] = []

    async def gated_balances(auth_user_id):
        gate = asyncio.Event()
        gates.append(gate)
        snapshot = dict(remote.balances[auth_user_id])
        await gate.wait()
        remote.balances[auth_user_id] = snapshot
        return await original(auth_user_id)

    async def run():
        await sessions.set(ALICE)
        remote.get_point_balances = gated_balances

        first = asyncio.create_task(ledger.refresh())
        await asyncio.sleep(0)
        remote.balances[ALICE.auth_user_id]["free"] = 300
        second = asyncio.create_task(ledger.refresh())
        await asyncio.sleep(0)

        # Newer read lands first, then the older one completes.
        gates[1].set()
        await second
        gates[0].set()
        await first

    asyncio.run(run())
    assert ledger.balance.free == 300


def test_transactions_are_newest_first_and_limited() -> None:
    remote = FakeRemote()
    remote.add_user(ALICE, free=500)
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    remote.transactions[ALICE.auth_user_id] = [
        PointsTransaction(
            id=str(i),
            affected_user_id=ALICE.auth_user_id,
            transaction_key="BET_CREATED",
            amount=10,
            created_at=base + timedelta(minutes=i),
        )
        for i in range(5)
    ]
    sessions, ledger = _ledger(remote)

    async def run():
        await sessions.set(ALICE)
        return await ledger.get_transactions(limit=3)

    transactions = asyncio.run(run())
    assert [t.id for t in transactions] == ["4", "3", "2"]
    assert ledger.transactions == transactions


def test_sign_out_clears_view() -> None:
    remote = FakeRemote()
    remote.add_user(ALICE, free=500)
    sessions, ledger = _ledger(remote)

    async def run():
        await sessions.set(ALICE)
        await sessions.clear()

    asyncio.run(run())
    assert ledger.balance is None
    assert ledger.transactions == []
