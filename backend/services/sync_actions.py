"""
Sync action dispatch.

Maps the action names accepted by ``POST /api/sync`` (including deprecated
aliases) onto SyncService operations, with a per-caller throttle.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from backend.config import settings
from backend.errors import RateLimitedError, ValidationError
from backend.services.access import require_caller, require_league_access
from backend.services.sleeper_mapper import normalize_league_id, parse_season
from shared.models import LeagueSummary, SyncResult

logger = logging.getLogger(__name__)

ACTIONS = ("refresh", "sync", "sync-history", "sync-drafts", "update-keepers", "sync-players", "user-leagues")

ALIASES = {
    "league": "sync",
    "quick": "refresh",
    "full-sync": "sync-history",
    "populate-keepers": "update-keepers",
    "recalculate-keeper-years": "update-keepers",
    "sync-drafts-only": "sync-drafts",
    "sync-league-history": "sync-history",
    "sync-league-chain": "sync-history",
    "sync-traded-picks": "sync",
    "sync-transactions": "sync",
}

LEAGUE_ACTIONS = {"refresh", "sync", "sync-history", "sync-drafts", "update-keepers"}
USER_LEAGUES_CACHE_TTL = 300


def resolve_action(action: Optional[str]) -> str:
    """
    Normalize an action name, following deprecated aliases.

    Raises:
        ValidationError: If the action is unknown
    """
    name = (action or "").strip().lower()
    if name in ALIASES:
        logger.info(f"Sync action '{name}' is deprecated, using '{ALIASES[name]}'")
        return ALIASES[name]
    if name not in ACTIONS:
        valid = list(ACTIONS) + sorted(ALIASES)
        raise ValidationError(
            f"Invalid action. Valid actions: {', '.join(valid)}", {"valid_actions": valid}
        )
    return name


class SyncDispatcher:
    """Routes sync actions to the sync service."""

    def __init__(self, sync_service, redis_service=None):
        self.sync_service = sync_service
        self.redis = redis_service

    def _throttle(self, owner_id: str, league_id: Optional[str], action: str) -> None:
        """Allow one request per caller, league and action per throttle window. No-op without Redis."""
        if self.redis is None or settings.SYNC_THROTTLE_SECONDS <= 0:
            return
        key = f"{settings.SYNC_THROTTLE_KEY_PREFIX}:{owner_id}:{league_id or '-'}:{action}"
        if not self.redis.acquire_throttle(key, settings.SYNC_THROTTLE_SECONDS):
            retry_after = self.redis.get_ttl(key)
            retry_after = retry_after if retry_after > 0 else settings.SYNC_THROTTLE_SECONDS
            logger.info(f"Throttled '{action}' for {owner_id}, retry in {retry_after}s")
            raise RateLimitedError(retry_after)

    def _check_access(self, league_id: str, owner_id: str) -> None:
        """Stored leagues require membership; a first import has no members to check yet."""
        repository = self.sync_service.repository
        league = repository.get_league_by_external_id(league_id)
        if league is not None:
            require_league_access(repository, league, owner_id)

    async def dispatch(self, action: str, owner_id: Optional[str], league_id: Optional[str] = None,
                       season: Optional[str] = None, force: bool = False,
                       include_history: bool = True) -> SyncResult:
        """
        Run one sync action for a caller.

        Args:
            action: Action name or deprecated alias
            owner_id: Caller's platform owner ID
            league_id: Platform league ID (required for league actions)
            season: Season for user-leagues (defaults to the current year)
            force: Overwrite commissioner overrides on recompute
            include_history: update-keepers across the whole chain

        Returns:
            SyncResult

        Raises:
            ValidationError: Unknown action or missing league ID
            UnauthorizedError / ForbiddenError: Caller lacks access
            RateLimitedError: Caller synced too recently
        """
        name = resolve_action(action)
        owner_id = require_caller(owner_id)

        if name in LEAGUE_ACTIONS:
            if not league_id:
                raise ValidationError(f"leagueId is required for {name}")
            self._check_access(league_id, owner_id)

        self._throttle(owner_id, league_id, name)
        logger.info(f"Sync action '{name}' for league {league_id} by {owner_id}")

        if name == "refresh":
            return await self.sync_service.refresh(league_id)
        if name == "sync":
            return await self.sync_service.sync(league_id, force=force)
        if name == "sync-history":
            return await self.sync_service.sync_history(league_id, force=force)
        if name == "sync-drafts":
            return await self.sync_service.sync_drafts(league_id)
        if name == "update-keepers":
            return self.sync_service.update_keepers(league_id, include_history=include_history, force=force)
        if name == "sync-players":
            return await self.sync_service.sync_players()
        return await self.user_leagues(owner_id, season)

    async def user_leagues(self, owner_id: str, season: Optional[str] = None) -> SyncResult:
        """List the caller's platform leagues for a season, flagging those already stored."""
        season = str(season or datetime.utcnow().year)
        cache_key = f"sync:user-leagues:{owner_id}:{season}"

        leagues: Optional[List[Dict]] = self.redis.get_json(cache_key) if self.redis else None
        if leagues is None:
            leagues = await self.sync_service.sleeper.get_user_leagues(owner_id, season)
            if self.redis:
                self.redis.set_json(cache_key, leagues, ttl=USER_LEAGUES_CACHE_TTL)

        stored = self.sync_service.repository.get_leagues_by_external_ids(
            str(league["league_id"]) for league in leagues if league.get("league_id")
        )
        summaries = []
        for league in leagues:
            if not league.get("league_id"):
                continue
            league_id = str(league["league_id"])
            summaries.append(LeagueSummary(
                league_id=league_id,
                name=league.get("name") or "",
                season=parse_season(league.get("season") or season),
                total_rosters=int(league.get("total_rosters") or 0),
                previous_league_id=normalize_league_id(league.get("previous_league_id")),
                synced=league_id in stored
            ))

        return SyncResult(
            action="user-leagues",
            message=f"Found {len(summaries)} league(s) for season {season}",
            leagues=summaries
        )
