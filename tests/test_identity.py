"""
Tests for slot -> owner reconciliation and Sleeper payload mapping.
"""

from datetime import datetime

import pytest

from backend.services.identity import (
    UnresolvedSlotError, build_slot_owner_map, find_commissioner, resolve_slot
)
from backend.services.sleeper_mapper import (
    map_league, map_player, map_roster, map_transaction_type, ms_to_datetime, normalize_league_id
)
from backend.session.models import TransactionType


class TestSlotMap:
    """Season-scoped roster slot translation."""

    def test_map_and_resolve(self):
        slot_map = build_slot_owner_map([
            {"roster_id": 1, "owner_id": "u2"},
            {"roster_id": 2, "owner_id": "u1"},
        ], "L1")
        assert slot_map == {1: "u2", 2: "u1"}
        assert resolve_slot(slot_map, "2") == "u1"

    def test_orphan_roster_left_out(self):
        slot_map = build_slot_owner_map([
            {"roster_id": 1, "owner_id": None},
            {"roster_id": 2, "owner_id": "u1"},
        ])
        assert slot_map == {2: "u1"}

    def test_unknown_slot_raises(self):
        with pytest.raises(UnresolvedSlotError) as exc_info:
            resolve_slot({1: "u1"}, 9, "traded pick")
        assert exc_info.value.slot == 9
        assert "traded pick" in str(exc_info.value)

    def test_garbage_slot_raises(self):
        with pytest.raises(UnresolvedSlotError):
            resolve_slot({1: "u1"}, None)

    def test_commissioner(self):
        users = [{"user_id": "a"}, {"user_id": "b", "is_owner": True}]
        assert find_commissioner(users) == "b"
        assert find_commissioner([{"user_id": "a"}]) is None


class TestMapper:
    """Sleeper payload mapping."""

    def test_league_defaults(self):
        fields = map_league({"season": "2024", "previous_league_id": "0", "status": "weird"}, 16)
        assert fields["season"] == 2024
        assert fields["draft_rounds"] == 16
        assert fields["previous_league_id"] is None
        assert fields["status"] == "PRE_DRAFT"

    def test_previous_league_id_normalized(self):
        assert normalize_league_id("") is None
        assert normalize_league_id(123) == "123"

    def test_roster_points_and_team_name(self):
        fields = map_roster(
            {"roster_id": 3, "owner_id": "u1", "players": ["9", "1"],
             "settings": {"wins": 5, "fpts": 1200, "fpts_decimal": 45}},
            {"display_name": "Alpha", "metadata": {"team_name": "Alpha Team"}}
        )
        assert fields["roster_slot"] == 3
        assert fields["points_for"] == pytest.approx(1200.45)
        assert fields["team_name"] == "Alpha Team"
        assert fields["player_ids"] == ["1", "9"]

    def test_team_name_falls_back_to_display_name(self):
        fields = map_roster({"roster_id": 1, "owner_id": "u1"}, {"display_name": "Alpha"})
        assert fields["team_name"] == "Alpha"

    def test_timestamps(self):
        assert ms_to_datetime(1693353600000) == datetime(2023, 8, 30, 0, 0)
        assert ms_to_datetime(None) is None
        assert ms_to_datetime("bad") is None

    def test_transaction_types(self):
        assert map_transaction_type("trade") == TransactionType.TRADE
        assert map_transaction_type("free_agent") == TransactionType.FREE_AGENT
        assert map_transaction_type("something_else") is None

    def test_defense_player_name(self):
        assert map_player("DAL", {"position": "DEF", "team": "DAL"})["full_name"] == "DAL Defense"
        assert map_player("1", {"first_name": "Sam", "last_name": "Lee"})["full_name"] == "Sam Lee"
