"""
League chain resolution.

Sleeper issues a new league ID every season and links each season to the one
before it through ``previous_league_id``. These helpers walk that pointer
backwards, newest season first. A missing or broken link ends the chain
quietly; a pointer cycle or the depth limit stops the walk.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Optional

from backend.session.models import LeagueModel
from backend.services.sleeper_mapper import normalize_league_id, parse_season
from shared.models import ChainLink

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10


def resolve_chain(repository, external_id: str, max_depth: int = DEFAULT_MAX_DEPTH) -> List[ChainLink]:
    """
    Follow stored league rows backwards from ``external_id``.

    Args:
        repository: KeeperLeagueRepository
        external_id: Platform league ID to start from
        max_depth: Maximum number of previous seasons to follow

    Returns:
        List of ChainLink, newest first (empty if the start league is unknown)
    """
    return [
        ChainLink(external_id=league.external_id, season=league.season)
        for league in resolve_chain_leagues(repository, external_id, max_depth)
    ]


def resolve_chain_leagues(repository, external_id: str, max_depth: int = DEFAULT_MAX_DEPTH) -> List[LeagueModel]:
    """Same walk as :func:`resolve_chain` but returning the stored rows."""
    league = repository.get_league_by_external_id(external_id)
    if league is None:
        return []

    chain = [league]
    visited = {league.external_id}
    pointer = league.previous_league_id
    depth = 0

    while pointer and depth < max_depth:
        if pointer in visited:
            logger.warning(f"League chain cycle at {pointer} (from {external_id}), stopping")
            break
        try:
            previous = repository.get_league_by_external_id(pointer)
        except Exception as e:
            logger.warning(f"Failed to look up league {pointer} in chain of {external_id}: {e}")
            break
        if previous is None:
            logger.debug(f"League {pointer} not stored, chain of {external_id} ends at {chain[-1].season}")
            break
        chain.append(previous)
        visited.add(previous.external_id)
        pointer = previous.previous_league_id
        depth += 1

    return chain


async def resolve_remote_chain(
    fetch_league: Callable[[str], Awaitable[Optional[Dict]]],
    external_id: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    repository=None
) -> List[ChainLink]:
    """
    Follow ``previous_league_id`` through the platform API.

    Seasons already stored locally are read from the repository; missing ones
    are fetched so their pointer can be followed.

    Args:
        fetch_league: Coroutine returning a Sleeper league dict or None
        external_id: Platform league ID to start from
        max_depth: Maximum number of previous seasons to follow
        repository: Optional KeeperLeagueRepository consulted before fetching

    Returns:
        List of ChainLink, newest first
    """
    chain: List[ChainLink] = []
    visited = set()
    pointer: Optional[str] = external_id

    while pointer and len(chain) <= max_depth:
        if pointer in visited:
            logger.warning(f"League chain cycle at {pointer} (from {external_id}), stopping")
            break
        visited.add(pointer)

        link, next_pointer = await _lookup_link(fetch_league, pointer, repository)
        if link is None:
            break
        chain.append(link)
        pointer = next_pointer

    logger.info(f"Resolved {len(chain)} season(s) in chain of {external_id}")
    return chain


async def _lookup_link(fetch_league, external_id: str, repository):
    """Return (ChainLink, previous pointer) for one season, or (None, None)."""
    if repository is not None:
        try:
            stored = repository.get_league_by_external_id(external_id)
        except Exception as e:
            logger.warning(f"Failed to read stored league {external_id}: {e}")
            stored = None
        if stored is not None and stored.previous_league_id is not None:
            return ChainLink(external_id=stored.external_id, season=stored.season), stored.previous_league_id

    try:
        data = await fetch_league(external_id)
    except Exception as e:
        logger.warning(f"Failed to fetch historical league {external_id}: {e}")
        return None, None
    if not data:
        logger.warning(f"Historical league {external_id} not found, chain ends")
        return None, None

    try:
        season = parse_season(data.get("season"))
    except (TypeError, ValueError):
        logger.warning(f"League {external_id} has no usable season, chain ends")
        return None, None
    return ChainLink(external_id=external_id, season=season), normalize_league_id(data.get("previous_league_id"))
