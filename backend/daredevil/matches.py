"""Match lookup: resolves pick ids to display names and derives the opposing pick."""

import logging

from daredevil.errors import AmbiguousPickError, ValidationError
from daredevil.models import MatchSides
from daredevil.services.supabase import SupabaseAPIError, SupabaseClient

logger = logging.getLogger(__name__)


def derive_acceptor_pick(
    creators_pick_id: str,
    sides: MatchSides,
    strict: bool = False,
) -> str:
    """Return the side opposite the creator's pick.

    A pick matching neither side falls back to side B, or raises
    ``AmbiguousPickError`` when ``strict`` is set.
    """
    if creators_pick_id == sides.side_a_id:
        return sides.side_b_id
    if creators_pick_id == sides.side_b_id:
        return sides.side_a_id
    if strict:
        raise AmbiguousPickError(sides.match_id, creators_pick_id)
    logger.warning(
        f"Pick {creators_pick_id} matches neither side of match {sides.match_id}; "
        f"defaulting acceptor to {sides.side_b_id}"
    )
    return sides.side_b_id


class MatchLookup:
    """Read-only label resolver for two-sided matches.

    Resolved sides are memoised per match id; match sides do not change once
    a match is scheduled.
    """

    def __init__(self, client: SupabaseClient, strict_pick_derivation: bool = False):
        self.client = client
        self.strict_pick_derivation = strict_pick_derivation
        self._sides: dict[str, MatchSides] = {}

    async def get_sides(self, match_id: str) -> MatchSides | None:
        """Fetch both sides of a match. Propagates remote errors."""
        if match_id in self._sides:
            return self._sides[match_id]
        match = await self.client.get_match(match_id)
        if match is None:
            return None
        sides = await self.client.get_match_sides(match)
        if sides is not None:
            self._sides[match_id] = sides
        return sides

    async def _try_sides(self, match_id: str) -> MatchSides | None:
        try:
            return await self.get_sides(match_id)
        except SupabaseAPIError as e:
            logger.warning(f"Could not load match {match_id}: {e}")
            return None

    async def resolve_pick_name(self, match_id: str, pick_id: str) -> str:
        """Display name for a pick, or the raw id when it cannot be resolved."""
        if not pick_id:
            return "N/A"
        sides = await self._try_sides(match_id)
        if sides is None:
            return pick_id
        return sides.name_for(pick_id) or pick_id

    async def describe_match(self, match_id: str) -> str:
        sides = await self._try_sides(match_id)
        if sides is None:
            return "Match details unavailable"
        return sides.display_name

    async def is_valid_pick(self, match_id: str, pick_id: str) -> bool:
        sides = await self.get_sides(match_id)
        return sides is not None and sides.has_side(pick_id)

    async def acceptor_pick_for(self, match_id: str, creators_pick_id: str) -> str:
        sides = await self.get_sides(match_id)
        if sides is None:
            raise ValidationError(
                "Unable to determine your pick automatically. Please try again."
            )
        return derive_acceptor_pick(
            creators_pick_id, sides, strict=self.strict_pick_derivation
        )
