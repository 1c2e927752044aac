"""
Draft pick ownership and keeper placement.

Each owner starts a season holding one pick per round. Traded picks move a
(round, original owner) pick to its current owner, so the number of picks per
round never changes. Keepers are then placed at their cost round, moving to
the next better round the owner still holds when that round is taken or
traded away.
"""

import logging
from typing import Dict, Iterable, List, Optional

from shared.models import BoardSlot, DraftBoard, KeeperType, OwnedPick, TradedPick

logger = logging.getLogger(__name__)


def build_pick_ownership(owner_ids: Iterable[str], traded_picks: Iterable[TradedPick],
                         season: int, rounds: int) -> Dict[str, List[OwnedPick]]:
    """
    Resolve who holds every pick of a season.

    Args:
        owner_ids: Stable owner IDs of the league's rosters
        traded_picks: Traded picks in owner-id space (other seasons are ignored)
        season: Draft season
        rounds: Number of draft rounds

    Returns:
        Dict mapping owner ID to owned picks sorted by round
    """
    ownership: Dict[str, List[OwnedPick]] = {
        owner_id: [OwnedPick(round=r, original_owner_id=owner_id) for r in range(1, rounds + 1)]
        for owner_id in owner_ids
    }

    for pick in traded_picks:
        if pick.season != season or pick.round < 1 or pick.round > rounds:
            continue
        if pick.original_owner_id == pick.current_owner_id:
            continue
        if pick.original_owner_id not in ownership or pick.current_owner_id not in ownership:
            logger.warning(
                f"Season {season} round {pick.round}: pick of {pick.original_owner_id} held by "
                f"{pick.current_owner_id} references an owner outside the league, ignoring"
            )
            continue
        moved = _take_pick(ownership, pick.round, pick.original_owner_id)
        if moved is None:
            logger.warning(f"Season {season} round {pick.round}: pick of {pick.original_owner_id} already moved")
            continue
        ownership[pick.current_owner_id].append(moved)

    for picks in ownership.values():
        picks.sort(key=lambda p: (p.round, p.original_owner_id))
    return ownership


def _take_pick(ownership: Dict[str, List[OwnedPick]], round_number: int, original_owner_id: str) -> Optional[OwnedPick]:
    holder = ownership[original_owner_id]
    for index, pick in enumerate(holder):
        if pick.round == round_number and pick.original_owner_id == original_owner_id:
            return holder.pop(index)
    return None


def picks_per_round(ownership: Dict[str, List[OwnedPick]], rounds: int) -> Dict[int, int]:
    """Count picks held in each round across all owners."""
    counts = {r: 0 for r in range(1, rounds + 1)}
    for picks in ownership.values():
        for pick in picks:
            counts[pick.round] = counts.get(pick.round, 0) + 1
    return counts


def build_draft_board(ownership: Dict[str, List[OwnedPick]], keepers: Iterable,
                      season: int, rounds: int, minimum_round: int = 1) -> DraftBoard:
    """
    Place keepers on the picks their owners hold.

    Keepers are placed cheapest round first (franchise tags before regular
    keepers on ties). A keeper whose round is taken or traded away moves to the
    owner's next better round; when none is left it is reported as a conflict.

    Args:
        ownership: Result of :func:`build_pick_ownership`
        keepers: Objects with owner_id, player_id, type and final_cost
        season: Draft season
        rounds: Number of draft rounds
        minimum_round: Best round a keeper may cascade to

    Returns:
        DraftBoard
    """
    board = DraftBoard(season=season, rounds=rounds, picks=ownership)
    used: Dict[str, set] = {}

    ordered = sorted(
        keepers,
        key=lambda k: (k.final_cost, KeeperType(k.type) != KeeperType.FRANCHISE, k.owner_id, k.player_id)
    )
    for keeper in ordered:
        owned = ownership.get(keeper.owner_id, [])
        taken = used.setdefault(keeper.owner_id, set())
        slot = BoardSlot(owner_id=keeper.owner_id, player_id=keeper.player_id, final_cost=keeper.final_cost)

        target = min(keeper.final_cost, rounds)
        while target >= minimum_round:
            index = next(
                (i for i, pick in enumerate(owned) if pick.round == target and i not in taken),
                None
            )
            if index is not None:
                taken.add(index)
                slot.round = target
                slot.original_owner_id = owned[index].original_owner_id
                break
            target -= 1

        if slot.round is None:
            logger.info(f"Season {season}: no pick available for keeper {keeper.player_id} of {keeper.owner_id}")
            board.conflicts.append(slot)
        board.keepers.append(slot)

    return board
