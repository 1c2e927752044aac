"""
Tests for keeper settings, commissioner overrides and keeper read models.
"""

import asyncio

import pytest

from backend.errors import ForbiddenError, NotFoundError, UnauthorizedError, ValidationError
from backend.services.keeper_service import (
    OVERRIDE_NOTE_PREFIX, SETTINGS_AUDIT_ENTITY, KeeperService
)
from backend.services.sync_service import SyncService
from shared.models import KeeperSource, KeeperType


@pytest.fixture
def synced(repository, scenario):
    """Repository holding both scenario seasons after a history sync."""
    asyncio.run(SyncService(repository, scenario).sync_history("L2024"))
    return repository


def league(repository, external_id="L2024"):
    return repository.get_league_by_external_id(external_id)


def roster_id(repository, owner_id, external_id="L2024"):
    return repository.get_roster_by_owner(league(repository, external_id).id, owner_id).id


class TestKeeperSettings:
    """Settings lifecycle and validation."""

    def test_defaults_created_on_first_use(self, synced):
        service = KeeperService(synced)
        rules = service.get_rules(league(synced, "L2023"))
        assert rules.max_keepers == 7
        assert rules.trade_deadline_week == 11
        assert rules.max_rounds == 16

    def test_update_by_commissioner(self, synced):
        service = KeeperService(synced)
        row = service.update_settings(league(synced), "u1", {"undrafted_round": 10})

        assert row.undrafted_round == 10
        entries = synced.get_audit_logs(SETTINGS_AUDIT_ENTITY, "L2024")
        assert entries[0].details["changes"] == {"undrafted_round": {"from": 8, "to": 10}}

    def test_cap_sum_rejected_before_save(self, synced):
        service = KeeperService(synced)
        with pytest.raises(ValidationError):
            service.update_settings(league(synced), "u1", {"max_franchise_tags": 3})
        assert service.get_rules(league(synced)).max_franchise_tags == 2

    def test_unknown_setting_rejected(self, synced):
        with pytest.raises(ValidationError):
            KeeperService(synced).update_settings(league(synced), "u1", {"salary_cap": 200})

    def test_non_commissioner_forbidden(self, synced):
        with pytest.raises(ForbiddenError):
            KeeperService(synced).update_settings(league(synced), "u2", {"undrafted_round": 10})

    def test_anonymous_rejected(self, synced):
        with pytest.raises(UnauthorizedError):
            KeeperService(synced).update_settings(league(synced), None, {"undrafted_round": 10})

    def test_new_season_copies_previous_settings(self, repository):
        service = KeeperService(repository)
        old, _ = repository.upsert_league("OLD", season=2023, commissioner_owner_id="c")
        new, _ = repository.upsert_league("NEW", season=2024, previous_league_id="OLD")
        service.update_settings(old, "c", {"trade_deadline_week": 9, "minimum_round": 2})

        rules = service.get_rules(new)
        assert (rules.trade_deadline_week, rules.minimum_round) == (9, 2)


class TestCommissionerOverride:
    """Add, remove and update overrides with audit entries."""

    def test_remove_tombstones_row(self, synced):
        service = KeeperService(synced)
        row = service.apply_override(
            league(synced), "u1", "remove", "p5", roster_id(synced, "u1"), 2024, "Late declaration"
        )

        assert row.is_removed is True
        assert row.source == KeeperSource.COMMISSIONER.value
        assert row.notes == OVERRIDE_NOTE_PREFIX + "Late declaration"
        keepers, _ = service.list_keepers(league(synced))
        assert "p5" not in {k.player_id for k in keepers}

        entry = service.get_override_log(league(synced))[0]
        assert entry.action == "remove"
        assert entry.actor_owner_id == "u1"
        assert entry.details["before"]["is_removed"] is False
        assert entry.details["after"]["is_removed"] is True

    def test_update_to_franchise(self, synced):
        row = KeeperService(synced).apply_override(
            league(synced), "u1", "update", "p5", roster_id(synced, "u1"), 2024, "Tag",
            keeper_type=KeeperType.FRANCHISE
        )
        assert row.type == KeeperType.FRANCHISE.value
        assert row.final_cost == 1
        assert row.base_cost == 8

    def test_add_player_outside_keeper_picks(self, synced):
        row = KeeperService(synced).apply_override(
            league(synced), "u1", "add", "p8", roster_id(synced, "u1"), 2024, "Injury exception", final_cost=12
        )
        assert row.final_cost == 12
        assert row.source == KeeperSource.COMMISSIONER.value

    def test_override_survives_recompute(self, synced):
        service = KeeperService(synced)
        service.apply_override(league(synced), "u1", "remove", "p5", roster_id(synced, "u1"), 2024, "Dispute")

        counts = service.recompute_keepers(league(synced))
        assert counts["skipped"] == 1
        assert synced.get_keeper(roster_id(synced, "u1"), "p5", 2024).is_removed is True

        forced = service.recompute_keepers(league(synced), force=True)
        row = synced.get_keeper(roster_id(synced, "u1"), "p5", 2024)
        assert forced["updated"] == 1
        assert row.is_removed is False
        assert row.source == KeeperSource.ENGINE.value

    def test_non_commissioner_forbidden(self, synced):
        with pytest.raises(ForbiddenError):
            KeeperService(synced).apply_override(
                league(synced), "u2", "remove", "p5", roster_id(synced, "u1"), 2024, "Nope"
            )

    def test_reason_required(self, synced):
        with pytest.raises(ValidationError):
            KeeperService(synced).apply_override(
                league(synced), "u1", "remove", "p5", roster_id(synced, "u1"), 2024, "   "
            )

    def test_roster_from_other_season_rejected(self, synced):
        with pytest.raises(NotFoundError):
            KeeperService(synced).apply_override(
                league(synced), "u1", "add", "p1", roster_id(synced, "u1", "L2023"), 2024, "Wrong season"
            )

    def test_remove_missing_keeper(self, synced):
        with pytest.raises(NotFoundError):
            KeeperService(synced).apply_override(
                league(synced), "u1", "remove", "p7", roster_id(synced, "u2"), 2024, "Not a keeper"
            )

    def test_final_cost_bounds(self, synced):
        with pytest.raises(ValidationError):
            KeeperService(synced).apply_override(
                league(synced), "u1", "add", "p8", roster_id(synced, "u1"), 2024, "Too deep", final_cost=17
            )


class TestReadModels:
    """Keeper list, eligible keeper preview and draft board."""

    def test_list_keepers(self, synced):
        keepers, violations = KeeperService(synced).list_keepers(league(synced))
        assert sorted((k.owner_id, k.player_id) for k in keepers) == [("u1", "p3"), ("u1", "p5"), ("u2", "p2")]
        assert violations == []

    def test_eligible_keepers_for_next_season(self, synced):
        computed, violations = KeeperService(synced).preview_eligible_keepers(league(synced), "u1")
        by_player = {k.player_id: k for k in computed}

        assert set(by_player) == {"p3", "p5", "p8"}
        # p3 and p5 were kept into 2024, so a 2025 keep is their second year
        assert (by_player["p3"].base_cost, by_player["p3"].years_kept, by_player["p3"].final_cost) == (2, 1, 1)
        assert (by_player["p5"].base_cost, by_player["p5"].years_kept, by_player["p5"].final_cost) == (8, 1, 7)
        assert (by_player["p8"].base_cost, by_player["p8"].years_kept) == (1, 0)
        assert violations == []

    def test_eligible_keepers_unknown_owner(self, synced):
        with pytest.raises(NotFoundError):
            KeeperService(synced).preview_eligible_keepers(league(synced), "stranger")

    def test_draft_board(self, synced):
        board = KeeperService(synced).draft_board(league(synced))

        assert [p.round for p in board.picks["u1"]].count(3) == 2
        assert [p.round for p in board.picks["u2"]].count(3) == 0
        placed = {slot.player_id: slot.round for slot in board.keepers}
        assert placed == {"p2": 1, "p3": 2, "p5": 8}
        assert board.conflicts == []
