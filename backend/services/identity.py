"""
Identity reconciliation between Sleeper roster slots and stable owner IDs.

Draft and traded-pick payloads address teams by a season-scoped roster slot
(1..N). The slot -> owner map is built once per sync pass from the season's
roster fetch; everything downstream works in owner-id space.
"""

import logging
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class UnresolvedSlotError(LookupError):
    """A roster slot has no owner in this season."""

    def __init__(self, slot, context: str = ""):
        self.slot = slot
        suffix = f" ({context})" if context else ""
        super().__init__(f"Roster slot {slot} has no owner{suffix}")


def build_slot_owner_map(rosters: List[Dict], league_id: str = "") -> Dict[int, str]:
    """
    Build the roster slot -> stable owner ID map for one season.

    Orphaned rosters (no owner) are left out and logged.

    Args:
        rosters: Sleeper roster dicts for the season
        league_id: League ID for log context

    Returns:
        Dict mapping roster slot to platform owner ID
    """
    slot_map: Dict[int, str] = {}
    for roster in rosters:
        slot = roster.get("roster_id")
        owner_id = roster.get("owner_id")
        if slot is None:
            continue
        if not owner_id:
            logger.warning(f"League {league_id}: roster slot {slot} has no owner, skipping")
            continue
        slot_map[int(slot)] = str(owner_id)
    return slot_map


def resolve_slot(slot_map: Dict[int, str], slot, context: str = "") -> str:
    """
    Translate a roster slot into a stable owner ID.

    Raises:
        UnresolvedSlotError: If the slot is not in the map
    """
    try:
        return slot_map[int(slot)]
    except (KeyError, TypeError, ValueError):
        raise UnresolvedSlotError(slot, context) from None


def index_users(users: Iterable[Dict]) -> Dict[str, Dict]:
    """Index Sleeper league users by user_id."""
    return {str(user["user_id"]): user for user in users if user.get("user_id")}


def find_commissioner(users: Iterable[Dict]) -> Optional[str]:
    """Return the user ID flagged as league owner (commissioner), if any."""
    for user in users:
        if user.get("is_owner") and user.get("user_id"):
            return str(user["user_id"])
    return None
