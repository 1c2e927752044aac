"""
Tests for owner history across a league chain.
"""

import pytest

from backend.errors import NotFoundError
from backend.services.owner_history_service import champion_slot, get_owner_history, playoff_slots
from backend.services.sync_service import SyncService


class TestBrackets:
    """Winners bracket parsing."""

    def test_playoff_slots_ignore_placeholders(self):
        bracket = [
            {"r": 1, "m": 1, "t1": 3, "t2": 6},
            {"r": 2, "m": 3, "t1": {"w": 1}, "t2": 2},
        ]
        assert playoff_slots(bracket) == {2, 3, 6}

    def test_champion_from_first_place_game(self):
        bracket = [
            {"r": 3, "m": 6, "t1": 1, "t2": 4, "w": 4, "l": 1, "p": 1},
            {"r": 3, "m": 7, "t1": 2, "t2": 3, "w": 2, "l": 3, "p": 3},
        ]
        assert champion_slot(bracket) == 4

    def test_undecided_final(self):
        assert champion_slot([{"r": 3, "m": 6, "t1": 1, "t2": 4, "w": None, "p": 1}]) is None
        assert champion_slot([]) is None


class TestOwnerHistory:
    """Per-owner records folded across seasons."""

    @pytest.mark.asyncio
    async def test_records_follow_owner_across_slots(self, repository, scenario):
        await SyncService(repository, scenario).sync_history("L2024")

        histories = await get_owner_history(repository, scenario, "L2024")

        assert [h.owner_id for h in histories] == ["u1", "u2"]
        alpha, bravo = histories
        assert alpha.totals.championships == 1
        assert alpha.totals.playoff_appearances == 1
        assert (alpha.totals.wins, alpha.totals.losses, alpha.totals.seasons_played) == (11, 7, 2)
        assert alpha.totals.points_for == 2011.0
        assert alpha.current_team_name == "Alpha Team"
        current = repository.get_league_by_external_id("L2024")
        assert alpha.current_roster_id == repository.get_roster_by_owner(current.id, "u1").id
        assert (bravo.totals.wins, bravo.totals.championships) == (7, 0)
        assert [s.season for s in bravo.seasons] == [2024, 2023]

    @pytest.mark.asyncio
    async def test_bracket_failure_only_loses_playoffs(self, repository, scenario):
        await SyncService(repository, scenario).sync_history("L2024")
        scenario.failing.add(("get_winners_bracket", "L2023"))

        histories = await get_owner_history(repository, scenario, "L2024")

        alpha = next(h for h in histories if h.owner_id == "u1")
        assert alpha.totals.championships == 0
        assert alpha.totals.wins == 11

    @pytest.mark.asyncio
    async def test_unknown_league(self, repository, scenario):
        with pytest.raises(NotFoundError):
            await get_owner_history(repository, scenario, "nope")
