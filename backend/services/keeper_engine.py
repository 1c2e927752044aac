"""
Keeper cost engine.

Pure functions over draft, keeper and transaction history. League rules are
passed in as a KeeperRules object so every result is a deterministic function
of (history, rules).

Conventions:
- ``years_kept`` counts the consecutive seasons the same owner kept the player
  *before* this keep: 0 on the first keep, 1 on the second, and so on.
- ``base_cost`` is fixed when an owner's run starts (draft round of the season
  kept from, or the undrafted round) and carried unchanged while the run lasts.
  A trade after the deadline (or in the offseason) always restarts the run at
  the undrafted round.
- ``final_cost = max(minimum_round, base_cost - cost_reduction_per_year * years_kept)``,
  never above ``base_cost``; franchise tags always cost round 1.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from backend.errors import ValidationError
from shared.models import (
    AcquisitionKind, CapViolation, ComputedKeeper, DraftSelection, KeeperCandidate,
    KeeperHistory, KeeperRules, KeeperType, PlayerAcquisition, PriorKeeper
)

logger = logging.getLogger(__name__)

MAX_TRADE_INHERITANCE_DEPTH = 10
SETTINGS_FIELDS = (
    "max_keepers", "max_franchise_tags", "max_regular_keepers", "regular_keeper_max_years",
    "undrafted_round", "minimum_round", "cost_reduction_per_year", "trade_deadline_week",
)


# ===== Rules =====

def validate_rules(rules: KeeperRules) -> KeeperRules:
    """
    Enforce the cross-field cap rule.

    Raises:
        ValidationError: If franchise tags plus regular keepers exceed max keepers
    """
    if rules.max_franchise_tags + rules.max_regular_keepers > rules.max_keepers:
        raise ValidationError(
            f"Franchise tags ({rules.max_franchise_tags}) + regular keepers "
            f"({rules.max_regular_keepers}) cannot exceed max keepers ({rules.max_keepers})",
            {
                "max_keepers": rules.max_keepers,
                "max_franchise_tags": rules.max_franchise_tags,
                "max_regular_keepers": rules.max_regular_keepers,
            }
        )
    return rules


def build_rules(values: Dict, max_rounds: Optional[int] = None) -> KeeperRules:
    """
    Build and validate KeeperRules from raw setting values.

    Args:
        values: Setting values (unknown keys ignored)
        max_rounds: Draft rounds of the league

    Returns:
        Validated KeeperRules

    Raises:
        ValidationError: If a value is out of bounds or the caps are inconsistent
    """
    data = {key: values[key] for key in SETTINGS_FIELDS if values.get(key) is not None}
    if max_rounds is not None:
        data["max_rounds"] = max_rounds
    try:
        rules = KeeperRules(**data)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in e.errors()
        ]
        raise ValidationError("Invalid keeper settings", {"errors": errors}) from None
    return validate_rules(rules)


# ===== Costs =====

def clamp_base_cost(round_number: int, rules: KeeperRules) -> int:
    """Keep a base cost inside [minimum_round, max_rounds]."""
    return min(max(round_number, rules.minimum_round), rules.max_rounds)


def compute_final_cost(keeper_type: KeeperType, base_cost: int, years_kept: int, rules: KeeperRules) -> int:
    """
    Apply the cascade to a base cost.

    Args:
        keeper_type: REGULAR or FRANCHISE
        base_cost: Round cost before cascade
        years_kept: Consecutive prior keeps
        rules: League rules

    Returns:
        Final round cost
    """
    if keeper_type == KeeperType.FRANCHISE:
        return 1
    reduced = base_cost - rules.cost_reduction_per_year * years_kept
    return min(base_cost, max(rules.minimum_round, reduced))


# ===== Trade Deadline =====

def is_trade_after_deadline(week: Optional[int], occurred_at: Optional[datetime],
                            season: int, deadline_week: int) -> bool:
    """
    Decide whether a trade happened after the league's trade deadline.

    The league week is authoritative. Without one, the timestamp is compared
    against the season calendar: up to October of the season year is before
    the deadline, November is after once the day passes the deadline week's
    offset, December and the following January through August are after,
    and September of the following year starts a new season.

    Args:
        week: League week the trade was recorded in
        occurred_at: Trade timestamp
        season: Season of the league the trade belongs to
        deadline_week: Configured trade deadline week

    Returns:
        True if the trade is after the deadline
    """
    if week is not None:
        return week > deadline_week
    if occurred_at is None:
        return False

    if occurred_at.year == season:
        if occurred_at.month <= 10:
            return False
        if occurred_at.month == 11:
            return occurred_at.day > 7 + (deadline_week - 1) * 7
        return True
    if occurred_at.year == season + 1:
        return occurred_at.month < 9
    return False


# ===== Resolution =====

def _acquisition_sort_key(acquisition: PlayerAcquisition):
    occurred = acquisition.occurred_at.timestamp() if acquisition.occurred_at else float("-inf")
    week = acquisition.week if acquisition.week is not None else -1
    return acquisition.league_season, week, occurred


def _live_selection(selections: Iterable[DraftSelection], player_id: str,
                    owner_id: Optional[str] = None) -> Optional[DraftSelection]:
    for selection in selections:
        if selection.player_id != player_id or selection.is_keeper:
            continue
        if owner_id is None or selection.owner_id == owner_id:
            return selection
    return None


def _keeper_selection(selections: Iterable[DraftSelection], player_id: str, owner_id: str) -> Optional[DraftSelection]:
    for selection in selections:
        if selection.player_id == player_id and selection.owner_id == owner_id and selection.is_keeper:
            return selection
    return None


def _fresh_base(history: KeeperHistory, player_id: str, rules: KeeperRules) -> int:
    """Draft round of the season kept from, or the undrafted round."""
    selection = _live_selection(history.previous_selections, player_id)
    return selection.round if selection else rules.undrafted_round


class _Resolver:
    """Resolves (base_cost, years_kept, acquisition) for one season's history."""

    def __init__(self, history: KeeperHistory, rules: KeeperRules):
        self.history = history
        self.rules = rules
        self.acquisitions = sorted(history.acquisitions, key=_acquisition_sort_key)
        self.prior: Dict[Tuple[str, str], PriorKeeper] = {
            (keeper.player_id, keeper.owner_id): keeper for keeper in history.previous_keepers
        }

    def resolve(self, player_id: str, owner_id: str) -> Tuple[int, int, AcquisitionKind]:
        return self._resolve(player_id, owner_id, len(self.acquisitions), 0)

    def _resolve(self, player_id: str, owner_id: str, limit: int, depth: int) -> Tuple[int, int, AcquisitionKind]:
        own_moves = [
            index for index in range(limit)
            if self.acquisitions[index].player_id == player_id and self.acquisitions[index].to_owner_id == owner_id
        ]
        prior = self.prior.get((player_id, owner_id))

        if not own_moves:
            if prior is not None:
                return prior.base_cost, prior.years_kept + 1, AcquisitionKind.KEPT
            drafted = _live_selection(self.history.previous_selections, player_id, owner_id)
            if drafted is not None:
                return drafted.round, 0, AcquisitionKind.DRAFTED
            kept = _keeper_selection(self.history.previous_selections, player_id, owner_id)
            if kept is not None:
                return kept.round, 1, AcquisitionKind.KEPT
            return _fresh_base(self.history, player_id, self.rules), 0, AcquisitionKind.UNKNOWN

        latest_index = own_moves[-1]
        latest = self.acquisitions[latest_index]

        if latest.kind == AcquisitionKind.TRADE:
            offseason = latest.league_season >= self.history.season
            after_deadline = offseason or is_trade_after_deadline(
                latest.week, latest.occurred_at, latest.league_season, self.rules.trade_deadline_week
            )
            if after_deadline:
                return self.rules.undrafted_round, 0, AcquisitionKind.TRADE
            if latest.from_owner_id:
                if depth >= MAX_TRADE_INHERITANCE_DEPTH:
                    logger.warning(f"Trade chain for player {player_id} deeper than {depth}, treating as fresh")
                else:
                    base, years, _ = self._resolve(player_id, latest.from_owner_id, latest_index, depth + 1)
                    return base, years, AcquisitionKind.TRADE
            return _fresh_base(self.history, player_id, self.rules), 0, AcquisitionKind.TRADE

        return _fresh_base(self.history, player_id, self.rules), 0, latest.kind


def compute_keeper(candidate: KeeperCandidate, history: KeeperHistory, rules: KeeperRules) -> ComputedKeeper:
    """Compute type, costs and years for a single candidate."""
    return compute_season_keepers([candidate], history, rules)[0]


def compute_season_keepers(candidates: Iterable[KeeperCandidate], history: KeeperHistory,
                           rules: KeeperRules) -> List[ComputedKeeper]:
    """
    Compute every candidate's keeper cost for ``history.season``.

    Caps are not applied here; see :func:`check_caps`.

    Args:
        candidates: Players kept (or proposed) into the season
        history: Previous-season picks and keepers plus transactions since
        rules: League rules

    Returns:
        List of ComputedKeeper in candidate order
    """
    resolver = _Resolver(history, rules)
    results = []
    for candidate in candidates:
        base, years, acquisition = resolver.resolve(candidate.player_id, candidate.owner_id)
        base = clamp_base_cost(base, rules)
        results.append(ComputedKeeper(
            player_id=candidate.player_id,
            owner_id=candidate.owner_id,
            roster_id=candidate.roster_id,
            season=history.season,
            type=candidate.type,
            base_cost=base,
            final_cost=compute_final_cost(candidate.type, base, years, rules),
            years_kept=years,
            acquisition=acquisition
        ))
    return results


# ===== Caps =====

def check_caps(keepers: Iterable, rules: KeeperRules) -> List[CapViolation]:
    """
    Report keeper cap breaches without removing anyone.

    Args:
        keepers: Objects with owner_id, player_id, type and years_kept
        rules: League rules

    Returns:
        List of CapViolation, grouped by owner
    """
    by_owner: Dict[str, List] = {}
    for keeper in keepers:
        by_owner.setdefault(keeper.owner_id, []).append(keeper)

    violations: List[CapViolation] = []
    for owner_id in sorted(by_owner):
        owned = by_owner[owner_id]
        franchise = [k for k in owned if KeeperType(k.type) == KeeperType.FRANCHISE]
        regular = [k for k in owned if KeeperType(k.type) == KeeperType.REGULAR]

        for rule, limit, actual in (
            ("max_keepers", rules.max_keepers, len(owned)),
            ("max_franchise_tags", rules.max_franchise_tags, len(franchise)),
            ("max_regular_keepers", rules.max_regular_keepers, len(regular)),
        ):
            if actual > limit:
                violations.append(CapViolation(
                    owner_id=owner_id,
                    rule=rule,
                    limit=limit,
                    actual=actual,
                    message=f"{actual} keepers counted against {rule} (limit {limit})"
                ))

        for keeper in regular:
            if keeper.years_kept >= rules.regular_keeper_max_years:
                violations.append(CapViolation(
                    owner_id=owner_id,
                    rule="regular_keeper_max_years",
                    limit=rules.regular_keeper_max_years,
                    actual=keeper.years_kept,
                    player_id=keeper.player_id,
                    message=(
                        f"Player {keeper.player_id} already kept {keeper.years_kept} year(s); "
                        f"only a franchise tag can keep the player again"
                    )
                ))
    return violations
