"""
Owner history across a league chain.

Season records come from stored rosters; playoff appearances and titles are
read from each season's winners bracket.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from backend.config import settings
from backend.errors import NotFoundError
from backend.services.league_chain import resolve_chain_leagues
from shared.models import OwnerHistory, SeasonRecord

logger = logging.getLogger(__name__)


def playoff_slots(bracket: List[Dict]) -> set:
    """Roster slots that appear in a winners bracket."""
    slots = set()
    for matchup in bracket or []:
        for key in ("t1", "t2"):
            value = matchup.get(key)
            if isinstance(value, int):
                slots.add(value)
    return slots


def champion_slot(bracket: List[Dict]) -> Optional[int]:
    """Winner of the championship matchup (placement 1), if decided."""
    for matchup in bracket or []:
        if matchup.get("p") == 1 and isinstance(matchup.get("w"), int):
            return matchup["w"]
    return None


def build_owner_history(repository, leagues, brackets: Dict[str, List[Dict]]) -> List[OwnerHistory]:
    """
    Fold stored rosters of several seasons into per-owner histories.

    Args:
        repository: KeeperLeagueRepository
        leagues: Stored LeagueModel rows, newest first
        brackets: Platform league ID -> winners bracket

    Returns:
        List of OwnerHistory sorted by championships, then wins
    """
    histories: Dict[str, OwnerHistory] = {}
    current = leagues[0] if leagues else None

    for league in leagues:
        bracket = brackets.get(league.external_id) or []
        in_playoffs = playoff_slots(bracket)
        champion = champion_slot(bracket)

        for roster in repository.get_rosters(league.id):
            history = histories.get(roster.owner_id)
            if history is None:
                history = OwnerHistory(owner_id=roster.owner_id, display_name=roster.display_name)
                histories[roster.owner_id] = history
            if current is not None and league.id == current.id:
                history.current_team_name = roster.team_name
                history.current_roster_id = roster.id

            record = SeasonRecord(
                season=league.season,
                league_id=league.external_id,
                team_name=roster.team_name,
                wins=roster.wins,
                losses=roster.losses,
                ties=roster.ties,
                points_for=roster.points_for,
                points_against=roster.points_against,
                made_playoffs=roster.roster_slot in in_playoffs,
                champion=champion is not None and roster.roster_slot == champion
            )
            history.seasons.append(record)

            totals = history.totals
            totals.wins += record.wins
            totals.losses += record.losses
            totals.ties += record.ties
            totals.points_for = round(totals.points_for + record.points_for, 2)
            totals.points_against = round(totals.points_against + record.points_against, 2)
            totals.playoff_appearances += int(record.made_playoffs)
            totals.championships += int(record.champion)
            totals.seasons_played += 1

    return sorted(
        histories.values(),
        key=lambda h: (-h.totals.championships, -h.totals.wins, h.owner_id)
    )


async def get_owner_history(repository, sleeper, external_league_id: str,
                            max_depth: Optional[int] = None) -> List[OwnerHistory]:
    """
    Owner history for every stored season in a league's chain.

    A bracket that cannot be fetched only loses that season's playoff data.

    Raises:
        NotFoundError: If the league is not stored
    """
    leagues = resolve_chain_leagues(repository, external_league_id, max_depth or settings.MAX_CHAIN_DEPTH)
    if not leagues:
        raise NotFoundError("League", external_league_id)

    results = await asyncio.gather(
        *(sleeper.get_winners_bracket(league.external_id) for league in leagues),
        return_exceptions=True
    )
    brackets: Dict[str, List[Dict]] = {}
    for league, result in zip(leagues, results):
        if isinstance(result, Exception):
            logger.warning(f"Winners bracket unavailable for {league.external_id} ({league.season}): {result}")
            continue
        brackets[league.external_id] = result

    histories = build_owner_history(repository, leagues, brackets)
    logger.info(f"Owner history for {external_league_id}: {len(histories)} owners over {len(leagues)} season(s)")
    return histories
