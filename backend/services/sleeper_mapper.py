"""
Utility functions to map Sleeper API payloads to persistence fields.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backend.session.models import TransactionType

logger = logging.getLogger(__name__)

LEAGUE_STATUS_MAP = {
    "pre_draft": "PRE_DRAFT",
    "drafting": "DRAFTING",
    "in_season": "IN_SEASON",
    "complete": "COMPLETE",
}

DRAFT_STATUS_MAP = {
    "pre_draft": "PRE_DRAFT",
    "drafting": "DRAFTING",
    "paused": "DRAFTING",
    "complete": "COMPLETE",
}

TRANSACTION_TYPE_MAP = {
    "trade": TransactionType.TRADE,
    "waiver": TransactionType.WAIVER,
    "free_agent": TransactionType.FREE_AGENT,
    "commissioner": TransactionType.COMMISSIONER,
}


def map_league_status(status: Optional[str]) -> str:
    """Map a Sleeper league status to the stored status (unknown -> PRE_DRAFT)."""
    return LEAGUE_STATUS_MAP.get(status or "", "PRE_DRAFT")


def map_draft_status(status: Optional[str]) -> str:
    """Map a Sleeper draft status to the stored status (unknown -> PRE_DRAFT)."""
    return DRAFT_STATUS_MAP.get(status or "", "PRE_DRAFT")


def map_draft_type(draft_type: Optional[str]) -> str:
    """Map a Sleeper draft type (snake, linear, auction)."""
    if draft_type == "auction":
        return "AUCTION"
    if draft_type == "linear":
        return "LINEAR"
    return "SNAKE"


def map_transaction_type(transaction_type: Optional[str]) -> Optional[TransactionType]:
    """Map a Sleeper transaction type, None when the kind is not tracked."""
    return TRANSACTION_TYPE_MAP.get(transaction_type or "")


def parse_season(value: Any) -> int:
    """Parse the season year Sleeper sends as a string."""
    return int(str(value).strip())


def ms_to_datetime(value: Any) -> Optional[datetime]:
    """Convert a Sleeper epoch-milliseconds timestamp to naive UTC."""
    if value in (None, "", 0):
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning(f"Ignoring unparseable timestamp {value!r}")
        return None


def normalize_league_id(value: Any) -> Optional[str]:
    """Sleeper reports a missing previous league as null, "" or "0"."""
    if value in (None, "", "0", 0):
        return None
    return str(value)


def map_league(league: Dict, default_rounds: int) -> Dict[str, Any]:
    """
    Map a Sleeper league payload to LeagueModel fields.

    Args:
        league: Sleeper league dict
        default_rounds: Rounds to assume when the league does not report them

    Returns:
        Dict of LeagueModel column values
    """
    league_settings = league.get("settings") or {}
    return {
        "name": league.get("name") or "",
        "season": parse_season(league.get("season")),
        "status": map_league_status(league.get("status")),
        "total_rosters": int(league.get("total_rosters") or 0),
        "draft_rounds": int(league_settings.get("draft_rounds") or default_rounds),
        "previous_league_id": normalize_league_id(league.get("previous_league_id")),
    }


def map_user(user: Dict) -> Dict[str, Any]:
    """Map a Sleeper league user to UserModel fields."""
    return {
        "sleeper_user_id": str(user["user_id"]),
        "username": user.get("username"),
        "display_name": user.get("display_name") or user.get("username") or "",
        "avatar": user.get("avatar"),
    }


def map_roster(roster: Dict, user: Optional[Dict] = None) -> Dict[str, Any]:
    """
    Map a Sleeper roster to RosterModel fields.

    Args:
        roster: Sleeper roster dict (must have an owner_id)
        user: Matching Sleeper league user, for the team name

    Returns:
        Dict of RosterModel column values
    """
    roster_settings = roster.get("settings") or {}
    metadata = (user or {}).get("metadata") or {}
    display_name = (user or {}).get("display_name")
    return {
        "owner_id": str(roster["owner_id"]),
        "roster_slot": int(roster["roster_id"]),
        "team_name": metadata.get("team_name") or display_name,
        "display_name": display_name,
        "wins": int(roster_settings.get("wins") or 0),
        "losses": int(roster_settings.get("losses") or 0),
        "ties": int(roster_settings.get("ties") or 0),
        "points_for": (roster_settings.get("fpts") or 0) + (roster_settings.get("fpts_decimal") or 0) / 100,
        "points_against": (
            (roster_settings.get("fpts_against") or 0) + (roster_settings.get("fpts_against_decimal") or 0) / 100
        ),
        "player_ids": sorted(str(p) for p in (roster.get("players") or [])),
    }


def map_draft(draft: Dict, default_rounds: int) -> Dict[str, Any]:
    """Map a Sleeper draft to DraftModel fields."""
    draft_settings = draft.get("settings") or {}
    return {
        "season": parse_season(draft.get("season")),
        "status": map_draft_status(draft.get("status")),
        "draft_type": map_draft_type(draft.get("type")),
        "rounds": int(draft_settings.get("rounds") or default_rounds),
        "start_time": ms_to_datetime(draft.get("start_time")),
    }


def map_player(player_id: str, player: Dict) -> Dict[str, Any]:
    """Map a Sleeper catalogue entry to PlayerModel fields."""
    first_name = player.get("first_name")
    last_name = player.get("last_name")
    full_name = player.get("full_name") or f"{first_name or ''} {last_name or ''}".strip()
    if not full_name and player.get("position") == "DEF":
        full_name = f"{player.get('team') or player_id} Defense"
    return {
        "sleeper_id": str(player_id),
        "full_name": full_name or "Unknown",
        "first_name": first_name,
        "last_name": last_name,
        "position": player.get("position"),
        "team": player.get("team"),
        "status": player.get("status"),
    }
