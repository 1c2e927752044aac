"""
Keeper service.

Glue between the stored league data and the pure keeper engine: settings
lifecycle, history assembly, recompute, commissioner overrides and read
models (keeper list, eligible keeper preview, draft board).
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from backend.config import settings
from backend.errors import NotFoundError, ValidationError
from backend.services.access import require_commissioner
from backend.services.keeper_engine import (
    SETTINGS_FIELDS, build_rules, check_caps, compute_final_cost, compute_season_keepers
)
from backend.services.pick_ownership import build_draft_board, build_pick_ownership
from backend.session.models import KeeperModel, KeeperSettingsModel, LeagueModel
from shared.models import (
    CapViolation, ComputedKeeper, DraftBoard, KeeperCandidate, KeeperHistory, KeeperRules, KeeperType
)

logger = logging.getLogger(__name__)

OVERRIDE_NOTE_PREFIX = "[Commissioner Override] "
OVERRIDE_AUDIT_ENTITY = "KeeperOverride"
SETTINGS_AUDIT_ENTITY = "KeeperSettings"
OVERRIDE_ACTIONS = ("add", "remove", "update")


def settings_values(row: KeeperSettingsModel) -> Dict[str, Any]:
    """Extract rule values from a settings row."""
    return {field: getattr(row, field) for field in SETTINGS_FIELDS}


class KeeperService:
    """Keeper settings, recompute and override operations for stored leagues."""

    def __init__(self, repository):
        self.repository = repository

    # ===== Settings =====

    def ensure_settings(self, league: LeagueModel) -> KeeperSettingsModel:
        """
        Get a league's settings row, creating it on first use.

        A new season copies the previous season's settings when that season is
        stored; otherwise the defaults apply.
        """
        row = self.repository.get_keeper_settings(league.id)
        if row is not None:
            return row

        values: Dict[str, Any] = {}
        if league.previous_league_id:
            previous = self.repository.get_league_by_external_id(league.previous_league_id)
            previous_row = self.repository.get_keeper_settings(previous.id) if previous else None
            if previous_row is not None:
                values = settings_values(previous_row)
                logger.info(f"Copied keeper settings from {previous.external_id} to {league.external_id}")
        if not values:
            values = {"trade_deadline_week": settings.DEFAULT_TRADE_DEADLINE_WEEK}
        return self.repository.save_keeper_settings(league.id, values)

    def get_rules(self, league: LeagueModel) -> KeeperRules:
        """Build the engine rules for a league season."""
        row = self.ensure_settings(league)
        return KeeperRules(**settings_values(row), max_rounds=league.draft_rounds)

    def update_settings(self, league: LeagueModel, actor_owner_id: Optional[str],
                        updates: Dict[str, Any]) -> KeeperSettingsModel:
        """
        Apply a commissioner settings change.

        Args:
            league: League season
            actor_owner_id: Caller's platform owner ID
            updates: Partial setting values

        Returns:
            The stored settings row

        Raises:
            ForbiddenError: If the caller is not the commissioner
            ValidationError: If a value is out of bounds or the caps are inconsistent
        """
        require_commissioner(league, actor_owner_id)
        current = settings_values(self.ensure_settings(league))
        unknown = sorted(set(updates) - set(SETTINGS_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown keeper settings: {', '.join(unknown)}")

        merged = {**current, **{k: v for k, v in updates.items() if v is not None}}
        rules = build_rules(merged, league.draft_rounds)
        values = {field: getattr(rules, field) for field in SETTINGS_FIELDS}

        row = self.repository.save_keeper_settings(league.id, values)
        changes = {field: {"from": current[field], "to": values[field]}
                   for field in SETTINGS_FIELDS if current[field] != values[field]}
        self.repository.add_audit_log(
            SETTINGS_AUDIT_ENTITY, league.external_id, "update", actor_owner_id, {"changes": changes}
        )
        logger.info(f"Keeper settings for {league.external_id} updated by {actor_owner_id}: {sorted(changes)}")
        return row

    # ===== History & Recompute =====

    def get_previous_league(self, league: LeagueModel) -> Optional[LeagueModel]:
        """Stored league of the season before, if any."""
        if not league.previous_league_id:
            return None
        return self.repository.get_league_by_external_id(league.previous_league_id)

    def build_history(self, league: LeagueModel, previous: Optional[LeagueModel] = None,
                      season: Optional[int] = None) -> KeeperHistory:
        """
        Assemble the engine input for keeping players into a season.

        When ``season`` is the league's own season, the previous league's draft
        and keepers are the history and the window runs from the previous draft
        to this league's draft. When ``season`` is the next one (preview), the
        league itself is the history.

        Args:
            league: League season
            previous: Previous league season (looked up when omitted)
            season: Season players are kept into (defaults to the league season)

        Returns:
            KeeperHistory
        """
        season = season or league.season
        if season > league.season:
            source, current = league, None
        else:
            source, current = previous or self.get_previous_league(league), league

        history = KeeperHistory(season=season)
        if source is not None:
            source_start = self.repository.get_draft_start(source.id)
            history.previous_selections = self.repository.get_draft_selections(source.id)
            history.previous_keepers = self.repository.get_prior_keepers(source.id, source.season)
            history.acquisitions.extend(self.repository.get_acquisitions(source.id, after=source_start))

        if current is not None:
            current_start = self.repository.get_draft_start(current.id)
            if current_start is not None:
                history.acquisitions.extend(self.repository.get_acquisitions(current.id, before=current_start))
        return history

    def keeper_candidates(self, league: LeagueModel) -> List[KeeperCandidate]:
        """
        Keeper picks of a league season's draft as engine candidates.

        The keeper type comes from an existing row when one is stored.
        """
        roster_index = self.repository.get_roster_index(league.id)
        existing = {
            (row.roster_id, row.player_id): row
            for row in self.repository.get_keepers(league.id, league.season, include_removed=True)
        }
        candidates = []
        seen = set()
        for selection in self.repository.get_draft_selections(league.id):
            if not selection.is_keeper:
                continue
            roster_id = roster_index.get(selection.owner_id)
            if roster_id is None:
                logger.warning(
                    f"Keeper pick {selection.player_id} in {league.external_id} has no roster for owner "
                    f"{selection.owner_id}, skipping"
                )
                continue
            if (roster_id, selection.player_id) in seen:
                continue
            seen.add((roster_id, selection.player_id))
            row = existing.get((roster_id, selection.player_id))
            candidates.append(KeeperCandidate(
                player_id=selection.player_id,
                owner_id=selection.owner_id,
                roster_id=roster_id,
                type=KeeperType(row.type) if row else KeeperType.REGULAR
            ))
        return candidates

    def recompute_keepers(self, league: LeagueModel, force: bool = False) -> Dict[str, int]:
        """
        Recompute engine keeper rows for a league season.

        Commissioner rows are preserved unless ``force`` is set. Rows are never
        deleted.

        Args:
            league: League season
            force: Overwrite commissioner overrides

        Returns:
            Dict of write outcome -> count
        """
        rules = self.get_rules(league)
        candidates = self.keeper_candidates(league)
        counts = {"created": 0, "updated": 0, "unchanged": 0, "skipped": 0}
        if not candidates:
            logger.info(f"No keeper picks in {league.external_id} ({league.season})")
            return counts

        history = self.build_history(league)
        for keeper in compute_season_keepers(candidates, history, rules):
            outcome = self.repository.upsert_engine_keeper(keeper, force=force)
            counts[outcome] += 1

        logger.info(
            f"Recomputed keepers for {league.external_id} ({league.season}): "
            f"{counts['created']} created, {counts['updated']} updated, {counts['skipped']} preserved"
        )
        return counts

    # ===== Commissioner Override =====

    def apply_override(self, league: LeagueModel, actor_owner_id: Optional[str], action: str,
                       player_id: str, roster_id: int, season: int, reason: str,
                       keeper_type: Optional[KeeperType] = None,
                       final_cost: Optional[int] = None) -> KeeperModel:
        """
        Force-add, remove or retype a keeper outside normal eligibility.

        Args:
            league: League season
            actor_owner_id: Caller's platform owner ID
            action: "add", "remove" or "update"
            player_id: Platform player ID
            roster_id: Local roster ID in this league season
            season: Keeper season (must be the league season)
            reason: Mandatory free-text reason
            keeper_type: Requested keeper type
            final_cost: Explicit round cost

        Returns:
            The stored KeeperModel

        Raises:
            ForbiddenError: If the caller is not the commissioner
            NotFoundError: If the roster or keeper does not exist
            ValidationError: If the request is malformed
        """
        require_commissioner(league, actor_owner_id)
        if action not in OVERRIDE_ACTIONS:
            raise ValidationError(f"Invalid override action '{action}'", {"valid_actions": list(OVERRIDE_ACTIONS)})
        if not reason or not reason.strip():
            raise ValidationError("A reason is required for commissioner overrides")
        if season != league.season:
            raise ValidationError(
                f"Overrides apply to season {league.season} of this league", {"season": season}
            )

        roster = self.repository.get_roster(roster_id)
        if roster is None or roster.league_id != league.id:
            raise NotFoundError("Roster", roster_id)

        rules = self.get_rules(league)
        if final_cost is not None and not 1 <= final_cost <= rules.max_rounds:
            raise ValidationError(
                f"Final cost must be between 1 and {rules.max_rounds}", {"final_cost": final_cost}
            )

        existing = self.repository.get_keeper(roster.id, player_id, season)
        notes = OVERRIDE_NOTE_PREFIX + reason.strip()
        before = self._snapshot(existing)

        if action == "remove":
            if existing is None:
                raise NotFoundError("Keeper", player_id)
            row = self.repository.save_commissioner_keeper(
                roster.id, roster.owner_id, player_id, season, is_removed=True, notes=notes
            )
        elif action == "update":
            if existing is None:
                raise NotFoundError("Keeper", player_id)
            new_type = keeper_type or KeeperType(existing.type)
            cost = final_cost if final_cost is not None else compute_final_cost(
                new_type, existing.base_cost, existing.years_kept, rules
            )
            row = self.repository.save_commissioner_keeper(
                roster.id, roster.owner_id, player_id, season,
                type=new_type.value, final_cost=cost, is_removed=False, notes=notes
            )
        else:
            row = self._add_keeper(league, roster, player_id, season, rules, keeper_type, final_cost, notes)

        self.repository.add_audit_log(
            OVERRIDE_AUDIT_ENTITY, league.external_id, action, actor_owner_id,
            {
                "player_id": player_id,
                "roster_id": roster.id,
                "owner_id": roster.owner_id,
                "season": season,
                "reason": reason.strip(),
                "before": before,
                "after": self._snapshot(row),
            }
        )
        logger.info(f"Commissioner {actor_owner_id} applied '{action}' to keeper {player_id} in {league.external_id}")
        return row

    def _add_keeper(self, league, roster, player_id, season, rules, keeper_type, final_cost, notes) -> KeeperModel:
        keeper_type = keeper_type or KeeperType.REGULAR
        computed = compute_season_keepers(
            [KeeperCandidate(player_id=player_id, owner_id=roster.owner_id, roster_id=roster.id, type=keeper_type)],
            self.build_history(league),
            rules
        )[0]
        return self.repository.save_commissioner_keeper(
            roster.id, roster.owner_id, player_id, season,
            type=keeper_type.value,
            base_cost=computed.base_cost,
            final_cost=final_cost if final_cost is not None else computed.final_cost,
            years_kept=computed.years_kept,
            acquisition=computed.acquisition.value,
            is_removed=False,
            notes=notes
        )

    @staticmethod
    def _snapshot(row: Optional[KeeperModel]) -> Optional[Dict[str, Any]]:
        if row is None:
            return None
        return {
            "type": row.type,
            "base_cost": row.base_cost,
            "final_cost": row.final_cost,
            "years_kept": row.years_kept,
            "is_removed": row.is_removed,
            "source": row.source,
        }

    def get_override_log(self, league: LeagueModel, limit: int = 100):
        """Audit trail of commissioner overrides, newest first."""
        return self.repository.get_audit_logs(OVERRIDE_AUDIT_ENTITY, league.external_id, limit)

    # ===== Read Models =====

    def list_keepers(self, league: LeagueModel, season: Optional[int] = None) -> Tuple[List[KeeperModel], List[CapViolation]]:
        """
        Active keepers of a season with the advisory cap report.

        Returns:
            Tuple: (keeper rows, cap violations)
        """
        season = season or league.season
        rows = self.repository.get_keepers(league.id, season)
        return rows, check_caps(rows, self.get_rules(league))

    def preview_eligible_keepers(self, league: LeagueModel, owner_id: str) -> Tuple[List[ComputedKeeper], List[CapViolation]]:
        """
        Cost every player on an owner's current roster as a keeper for next season.

        Only per-player year-cap breaches are reported; roster-size caps apply
        to the final selection, not the candidate pool.

        Raises:
            NotFoundError: If the owner has no roster in the league
        """
        roster = self.repository.get_roster_by_owner(league.id, owner_id)
        if roster is None:
            raise NotFoundError("Roster", owner_id)

        rules = self.get_rules(league)
        history = self.build_history(league, season=league.season + 1)
        candidates = [
            KeeperCandidate(player_id=player_id, owner_id=owner_id, roster_id=roster.id)
            for player_id in roster.player_ids or []
        ]
        computed = compute_season_keepers(candidates, history, rules)
        violations = [v for v in check_caps(computed, rules) if v.rule == "regular_keeper_max_years"]
        return computed, violations

    def draft_board(self, league: LeagueModel) -> DraftBoard:
        """Pick ownership and keeper placement for the league season's draft."""
        rules = self.get_rules(league)
        owners = [roster.owner_id for roster in self.repository.get_rosters(league.id)]
        ownership = build_pick_ownership(
            owners, self.repository.get_traded_picks(league.id, league.season), league.season, rules.max_rounds
        )
        keepers = self.repository.get_keepers(league.id, league.season)
        return build_draft_board(ownership, keepers, league.season, rules.max_rounds, rules.minimum_round)
