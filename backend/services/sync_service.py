"""
Sync orchestrator.

Pulls league seasons from Sleeper into the local store in three tiers:

- refresh: rosters and users only
- sync: refresh plus drafts, traded picks and every transaction week, then a
  keeper recompute for that season
- sync-history: sync for every season in the league chain (oldest first),
  then keeper recompute oldest to newest

Every write is an upsert keyed by natural identity, so re-running any tier
with unchanged remote data changes nothing. Per-record problems (unknown
roster slot, malformed transaction) are skipped and reported as warnings.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from backend.config import settings
from backend.errors import AppError, NotFoundError
from backend.services.identity import (
    UnresolvedSlotError, build_slot_owner_map, find_commissioner, index_users, resolve_slot
)
from backend.services.keeper_service import KeeperService
from backend.services.league_chain import resolve_chain_leagues, resolve_remote_chain
from backend.services.sleeper_mapper import (
    map_draft, map_league, map_player, map_roster, map_transaction_type, map_user, ms_to_datetime,
    parse_season
)
from backend.session.models import LeagueModel
from shared.models import CronSyncReport, SyncResult, TradedPick

logger = logging.getLogger(__name__)


class SyncService:
    """Orchestrates Sleeper -> local store synchronization."""

    def __init__(self, repository, sleeper, keeper_service: Optional[KeeperService] = None):
        self.repository = repository
        self.sleeper = sleeper
        self.keeper_service = keeper_service or KeeperService(repository)

    def _require_league(self, external_id: str) -> LeagueModel:
        league = self.repository.get_league_by_external_id(external_id)
        if league is None:
            raise NotFoundError("League", external_id)
        return league

    # ===== Tier 1: Refresh =====

    async def refresh(self, external_id: str) -> SyncResult:
        """
        Refresh rosters and users of a stored league season.

        Raises:
            NotFoundError: If the league has never been synced
        """
        league = self._require_league(external_id)
        result = SyncResult(action="refresh", league_id=external_id)

        rosters, users = await asyncio.gather(
            self.sleeper.get_rosters(external_id),
            self.sleeper.get_users(external_id)
        )
        self._store_members(league, rosters, users, result)
        self.repository.mark_league_synced(league.id)

        result.message = f"Refreshed {result.counts.rosters} rosters"
        logger.info(f"Refresh of {external_id}: {result.counts.rosters} rosters, {result.counts.users} users")
        return result

    # ===== Tier 2: Sync =====

    async def sync(self, external_id: str, recompute: bool = True, force: bool = False) -> SyncResult:
        """
        Full sync of one league season.

        Args:
            external_id: Platform league ID
            recompute: Run the keeper engine for the season afterwards
            force: Let the recompute overwrite commissioner overrides

        Returns:
            SyncResult with counts and per-record warnings

        Raises:
            NotFoundError: If the platform does not know the league
            ExternalServiceError: If a required fetch fails
        """
        result = SyncResult(action="sync", league_id=external_id)
        league = await self._sync_league(external_id, result)
        if recompute:
            self._recompute(league, result, force)
        self.repository.mark_league_synced(league.id)

        result.message = (
            f"Synced {result.counts.rosters} rosters, {result.counts.picks} picks, "
            f"{result.counts.transactions} new transactions, {result.counts.keepers} keepers"
        )
        return result

    async def _sync_league(self, external_id: str, result: SyncResult,
                           include_transactions: bool = True) -> LeagueModel:
        """Fetch and upsert one season. Writes are sequenced: rosters before picks and trades."""
        league_data, rosters, users, drafts, traded_picks = await asyncio.gather(
            self.sleeper.get_league(external_id),
            self.sleeper.get_rosters(external_id),
            self.sleeper.get_users(external_id),
            self.sleeper.get_drafts(external_id),
            self.sleeper.get_traded_picks(external_id) if include_transactions else _empty()
        )
        if not league_data:
            raise NotFoundError("League", external_id)

        fields = map_league(league_data, settings.DEFAULT_DRAFT_ROUNDS)
        commissioner = find_commissioner(users)
        if commissioner:
            fields["commissioner_owner_id"] = commissioner
        league, created = self.repository.upsert_league(external_id, **fields)
        if created:
            logger.info(f"New league season {external_id} ({league.season})")

        slot_map = self._store_members(league, rosters, users, result)
        await self._store_drafts(league, drafts, slot_map, result)

        if include_transactions:
            self._store_traded_picks(league, traded_picks, slot_map, result)
            await self._store_transactions(league, slot_map, result)

        result.counts.seasons += 1
        return league

    def _store_members(self, league: LeagueModel, rosters: List[Dict], users: List[Dict],
                       result: SyncResult) -> Dict[int, str]:
        """Upsert users and rosters; return the season's slot -> owner map."""
        slot_map = build_slot_owner_map(rosters, league.external_id)
        users_by_id = index_users(users)

        result.counts.users += self.repository.upsert_users([map_user(user) for user in users_by_id.values()])
        roster_rows = []
        for roster in rosters:
            if not roster.get("owner_id"):
                result.warnings.append(f"{league.season}: roster slot {roster.get('roster_id')} has no owner")
                continue
            roster_rows.append(map_roster(roster, users_by_id.get(str(roster["owner_id"]))))
        result.counts.rosters += self.repository.upsert_rosters(league.id, roster_rows)
        return slot_map

    async def _store_drafts(self, league: LeagueModel, drafts: List[Dict], slot_map: Dict[int, str],
                            result: SyncResult) -> None:
        if not drafts:
            return
        roster_index = self.repository.get_roster_index(league.id)
        pick_lists = await asyncio.gather(
            *(self.sleeper.get_draft_picks(str(draft["draft_id"])) for draft in drafts)
        )

        for draft_data, picks in zip(drafts, pick_lists):
            draft, was_complete = self.repository.upsert_draft(
                league.id, str(draft_data["draft_id"]), **map_draft(draft_data, league.draft_rounds)
            )
            result.counts.drafts += 1

            rows = []
            for pick in picks:
                try:
                    owner_id = resolve_slot(slot_map, pick.get("roster_id"), f"draft {draft.external_id}")
                    rows.append({
                        "round": int(pick["round"]),
                        "pick_no": int(pick["pick_no"]),
                        "draft_slot": pick.get("draft_slot"),
                        "roster_id": roster_index[owner_id],
                        "owner_id": owner_id,
                        "player_id": str(pick["player_id"]) if pick.get("player_id") else None,
                        "is_keeper": bool(pick.get("is_keeper")),
                    })
                except (UnresolvedSlotError, KeyError, TypeError, ValueError) as e:
                    logger.warning(f"League {league.external_id}: skipping pick {pick.get('pick_no')}: {e}")
                    result.warnings.append(f"{league.season} draft pick {pick.get('pick_no')}: {e}")

            self.repository.ensure_players(row["player_id"] for row in rows)
            result.counts.picks += self.repository.upsert_draft_picks(draft.id, rows, locked=was_complete)

    def _store_traded_picks(self, league: LeagueModel, traded_picks: List[Dict], slot_map: Dict[int, str],
                            result: SyncResult) -> None:
        picks = []
        for pick in traded_picks:
            context = f"traded pick {pick.get('season')} round {pick.get('round')}"
            try:
                picks.append(TradedPick(
                    season=parse_season(pick.get("season")),
                    round=int(pick["round"]),
                    original_owner_id=resolve_slot(slot_map, pick.get("roster_id"), context),
                    current_owner_id=resolve_slot(slot_map, pick.get("owner_id"), context)
                ))
            except (UnresolvedSlotError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"League {league.external_id}: skipping {context}: {e}")
                result.warnings.append(f"{league.season} {context}: {e}")
        result.counts.traded_picks += self.repository.upsert_traded_picks(league.id, picks)

    async def _fetch_week(self, league: LeagueModel, week: int, result: SyncResult) -> List[Dict]:
        try:
            return await self.sleeper.get_transactions(league.external_id, week)
        except AppError as e:
            logger.warning(f"League {league.external_id}: transactions for week {week} unavailable: {e}")
            result.warnings.append(f"{league.season} week {week} transactions unavailable")
            return []

    async def _store_transactions(self, league: LeagueModel, slot_map: Dict[int, str], result: SyncResult) -> None:
        weeks = await asyncio.gather(
            *(self._fetch_week(league, week, result) for week in range(settings.TRANSACTION_WEEK_CAP + 1))
        )
        known = self.repository.get_transaction_external_ids(league.id)
        roster_index = self.repository.get_roster_index(league.id)

        for transaction in (tx for week in weeks for tx in week):
            external_id = transaction.get("transaction_id") or f"{transaction.get('type')}-{transaction.get('created')}"
            if external_id in known:
                continue
            known.add(external_id)
            if transaction.get("status") != "complete":
                continue
            try:
                if self._store_transaction(league, external_id, transaction, slot_map, roster_index):
                    result.counts.transactions += 1
            except Exception as e:
                logger.warning(f"League {league.external_id}: skipping transaction {external_id}: {e}")
                result.warnings.append(f"{league.season} transaction {external_id}: {e}")

    def _store_transaction(self, league: LeagueModel, external_id: str, transaction: Dict,
                           slot_map: Dict[int, str], roster_index: Dict[str, int]) -> bool:
        transaction_type = map_transaction_type(transaction.get("type"))
        if transaction_type is None:
            logger.debug(f"Ignoring {transaction.get('type')} transaction {external_id}")
            return False

        adds = transaction.get("adds") or {}
        drops = transaction.get("drops") or {}
        items = []
        for player_id, slot in adds.items():
            to_owner = resolve_slot(slot_map, slot, f"transaction {external_id}")
            from_owner = resolve_slot(slot_map, drops[player_id], f"transaction {external_id}") if player_id in drops else None
            items.append(_line_item(player_id, from_owner, to_owner, roster_index))
        for player_id, slot in drops.items():
            if player_id in adds:
                continue
            from_owner = resolve_slot(slot_map, slot, f"transaction {external_id}")
            items.append(_line_item(player_id, from_owner, None, roster_index))

        self.repository.ensure_players(item["player_id"] for item in items)
        return self.repository.create_transaction(
            league.id, external_id, items,
            type=transaction_type.value,
            status=transaction.get("status") or "complete",
            week=transaction.get("leg") or None,
            created_at=ms_to_datetime(transaction.get("created"))
        )

    def _recompute(self, league: LeagueModel, result: SyncResult, force: bool = False) -> None:
        counts = self.keeper_service.recompute_keepers(league, force=force)
        result.counts.keepers += counts["created"] + counts["updated"]
        if counts["skipped"]:
            result.warnings.append(
                f"{league.season}: {counts['skipped']} commissioner keeper(s) preserved"
            )

    # ===== Tier 3: History =====

    async def sync_history(self, external_id: str, force: bool = False) -> SyncResult:
        """
        Sync every season of the league chain, then recompute keepers oldest first.

        One failing season is reported in ``errors`` without stopping the rest.

        Raises:
            NotFoundError: If not even the starting season could be resolved
        """
        result = SyncResult(action="sync-history", league_id=external_id)
        chain = await resolve_remote_chain(
            self.sleeper.get_league, external_id, settings.MAX_CHAIN_DEPTH, self.repository
        )
        if not chain:
            raise NotFoundError("League", external_id)

        leagues = await self._sync_seasons(chain, result, include_transactions=True)
        for league in leagues:
            self._recompute(league, result, force)
            self.repository.mark_league_synced(league.id)

        result.success = bool(leagues)
        result.message = (
            f"Synced {len(leagues)} of {len(chain)} season(s); {result.counts.keepers} keepers written"
        )
        logger.info(f"History sync of {external_id}: {result.message}")
        return result

    async def _sync_seasons(self, chain, result: SyncResult, include_transactions: bool) -> List[LeagueModel]:
        """Sync chain links oldest first, isolating failures per season."""
        leagues = []
        for link in reversed(chain):
            try:
                leagues.append(await self._sync_league(link.external_id, result, include_transactions))
            except Exception as e:
                logger.error(f"Failed to sync season {link.season} ({link.external_id}): {e}")
                result.errors.append(f"{link.season}: {e}")
        return leagues

    async def sync_drafts(self, external_id: str) -> SyncResult:
        """Sync rosters and drafts for every season of the chain, then recompute keepers."""
        result = SyncResult(action="sync-drafts", league_id=external_id)
        chain = await resolve_remote_chain(
            self.sleeper.get_league, external_id, settings.MAX_CHAIN_DEPTH, self.repository
        )
        if not chain:
            raise NotFoundError("League", external_id)

        leagues = await self._sync_seasons(chain, result, include_transactions=False)
        for league in leagues:
            self._recompute(league, result)

        result.success = bool(leagues)
        result.message = f"Synced {result.counts.drafts} draft(s) and {result.counts.picks} picks"
        return result

    # ===== Keepers & Players =====

    def update_keepers(self, external_id: str, include_history: bool = True, force: bool = False) -> SyncResult:
        """
        Recompute keeper rows from stored data only.

        Args:
            external_id: Platform league ID
            include_history: Recompute every stored season of the chain, oldest first
            force: Overwrite commissioner overrides
        """
        league = self._require_league(external_id)
        result = SyncResult(action="update-keepers", league_id=external_id)

        leagues = (
            list(reversed(resolve_chain_leagues(self.repository, external_id, settings.MAX_CHAIN_DEPTH)))
            if include_history else [league]
        )
        for season_league in leagues:
            self._recompute(season_league, result, force)
            result.counts.seasons += 1

        result.message = f"Updated {result.counts.keepers} keepers across {len(leagues)} season(s)"
        return result

    async def sync_players(self) -> SyncResult:
        """Upsert the platform player catalogue."""
        result = SyncResult(action="sync-players")
        catalogue = await self.sleeper.get_nfl_players()
        rows = [map_player(player_id, player or {}) for player_id, player in catalogue.items()]
        result.counts.players = self.repository.upsert_players(rows, settings.PLAYER_BATCH_SIZE)
        result.message = f"Synced {result.counts.players} players"
        logger.info(result.message)
        return result

    # ===== Status & Cron =====

    def sync_status(self, external_id: str) -> Dict[str, Any]:
        """Report when a league was last synced and whether it is stale."""
        league = self._require_league(external_id)
        return {
            "league_id": league.external_id,
            "name": league.name,
            "season": league.season,
            "last_synced_at": league.last_synced_at,
            "roster_count": len(self.repository.get_rosters(league.id)),
            "needs_sync": needs_sync(league.last_synced_at),
        }

    async def sync_all_leagues(self, time_budget: Optional[float] = None) -> CronSyncReport:
        """
        Background sync of every league synced at least once.

        Leagues run one at a time; a failing league is recorded and the run
        moves on. Leagues not reached within the time budget are left for the
        next run.
        """
        budget = settings.CRON_TIME_BUDGET_SECONDS if time_budget is None else time_budget
        report = CronSyncReport()
        started = time.monotonic()

        for league in self.repository.list_synced_leagues():
            if time.monotonic() - started > budget:
                report.skipped.append(league.external_id)
                continue
            try:
                await self.sync(league.external_id)
                report.synced.append(league.external_id)
            except Exception as e:
                logger.error(f"[CRON] Sync failed for league {league.external_id}: {e}")
                report.failed[league.external_id] = str(e)

        report.duration_seconds = round(time.monotonic() - started, 2)
        return report


def needs_sync(last_synced_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """A league is stale when never synced or synced longer ago than the staleness window."""
    if last_synced_at is None:
        return True
    now = now or datetime.utcnow()
    return now - last_synced_at > timedelta(seconds=settings.SYNC_STALE_SECONDS)


def _line_item(player_id: str, from_owner: Optional[str], to_owner: Optional[str],
               roster_index: Dict[str, int]) -> Dict[str, Any]:
    return {
        "player_id": str(player_id),
        "from_owner_id": from_owner,
        "to_owner_id": to_owner,
        "from_roster_id": roster_index.get(from_owner) if from_owner else None,
        "to_roster_id": roster_index.get(to_owner) if to_owner else None,
    }


async def _empty() -> List:
    return []
