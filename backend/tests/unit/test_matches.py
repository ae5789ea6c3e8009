import asyncio

import pytest
from fakes import NBA_SIDES, FakeRemote

from daredevil.errors import AmbiguousPickError, ValidationError
from daredevil.matches import MatchLookup, derive_acceptor_pick
from daredevil.services.supabase import SupabaseUnavailableError


def test_acceptor_pick_is_the_opposite_side() -> None:
    assert derive_acceptor_pick(NBA_SIDES.side_a_id, NBA_SIDES) == NBA_SIDES.side_b_id
    assert derive_acceptor_pick(NBA_SIDES.side_b_id, NBA_SIDES) == NBA_SIDES.side_a_id


def test_acceptor_pick_derivation_is_an_involution() -> None:
    for pick in (NBA_SIDES.side_a_id, NBA_SIDES.side_b_id):
        opposite = derive_acceptor_pick(pick, NBA_SIDES)
        assert derive_acceptor_pick(opposite, NBA_SIDES) == pick


def test_unknown_pick_falls_back_to_side_b() -> None:
    assert derive_acceptor_pick("team-knicks", NBA_SIDES) == NBA_SIDES.side_b_id


def test_unknown_pick_raises_when_strict() -> None:
    with pytest.raises(AmbiguousPickError) as exc_info:
        derive_acceptor_pick("team-knicks", NBA_SIDES, strict=True)
    assert exc_info.value.pick_id == "team-knicks"
    assert isinstance(exc_info.value, ValidationError)


def test_resolve_pick_name() -> None:
    remote = FakeRemote()
    lookup = MatchLookup(remote)

    async def run():
        return (
            await lookup.resolve_pick_name("match-1", "team-celtics"),
            await lookup.resolve_pick_name("match-1", "team-knicks"),
            await lookup.resolve_pick_name("match-1", ""),
            await lookup.resolve_pick_name("match-404", "team-lakers"),
        )

    assert asyncio.run(run()) == ("Celtics", "team-knicks", "N/A", "team-lakers")


def test_resolve_pick_name_falls_back_to_raw_id_on_remote_error() -> None:
    remote = FakeRemote()
    remote.failures["get_match"] = SupabaseUnavailableError("down")
    lookup = MatchLookup(remote)

    assert asyncio.run(lookup.resolve_pick_name("match-1", "team-lakers")) == "team-lakers"


def test_sides_are_memoised_per_match() -> None:
    remote = FakeRemote()
    lookup = MatchLookup(remote)

    async def run():
        await lookup.describe_match("match-1")
        await lookup.describe_match("match-1")
        return await lookup.describe_match("match-404")

    assert asyncio.run(run()) == "Match details unavailable"
    assert remote.call_names().count("get_match_sides") == 1


def test_acceptor_pick_for_missing_match_asks_to_retry() -> None:
    lookup = MatchLookup(FakeRemote())

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(lookup.acceptor_pick_for("match-404", "team-lakers"))
    assert exc_info.value.user_message == (
        "Unable to determine your pick automatically. Please try again."
    )


def test_acceptor_pick_for_honours_strict_setting() -> None:
    lookup = MatchLookup(FakeRemote(), strict_pick_derivation=True)

    with pytest.raises(AmbiguousPickError):
        asyncio.run(lookup.acceptor_pick_for("match-1", "team-knicks"))
