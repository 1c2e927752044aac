"""
Unit tests for the keeper cost engine.
"""

from datetime import datetime

import pytest

from backend.errors import ValidationError
from backend.services.keeper_engine import (
    build_rules, check_caps, clamp_base_cost, compute_final_cost, compute_keeper,
    compute_season_keepers, is_trade_after_deadline
)
from shared.models import (
    AcquisitionKind, DraftSelection, KeeperCandidate, KeeperHistory, KeeperRules, KeeperType,
    PlayerAcquisition, PriorKeeper
)


def selection(player_id, owner_id, season, round_number, is_keeper=False):
    return DraftSelection(player_id=player_id, owner_id=owner_id, season=season, round=round_number,
                          is_keeper=is_keeper)


def acquisition(player_id, kind, to_owner, season, week=None, from_owner=None, occurred_at=None):
    return PlayerAcquisition(player_id=player_id, kind=kind, to_owner_id=to_owner, from_owner_id=from_owner,
                             league_season=season, week=week, occurred_at=occurred_at)


class TestCosts:
    """Base and final cost arithmetic."""

    def setup_method(self):
        self.rules = KeeperRules()

    def test_final_cost_cascades_per_year(self):
        assert compute_final_cost(KeeperType.REGULAR, 8, 0, self.rules) == 8
        assert compute_final_cost(KeeperType.REGULAR, 8, 1, self.rules) == 7
        assert compute_final_cost(KeeperType.REGULAR, 8, 2, self.rules) == 6

    def test_final_cost_never_below_minimum_round(self):
        rules = KeeperRules(minimum_round=2, cost_reduction_per_year=3)
        assert compute_final_cost(KeeperType.REGULAR, 5, 4, rules) == 2

    def test_final_cost_never_above_base(self):
        rules = KeeperRules(minimum_round=3)
        base = clamp_base_cost(1, rules)
        assert base == 3
        assert compute_final_cost(KeeperType.REGULAR, base, 0, rules) == 3

    def test_franchise_always_round_one(self):
        rules = KeeperRules(cost_reduction_per_year=0, minimum_round=4)
        for years in range(0, 6):
            assert compute_final_cost(KeeperType.FRANCHISE, 12, years, rules) == 1

    def test_base_cost_clamped_to_draft_rounds(self):
        rules = KeeperRules(max_rounds=6)
        assert clamp_base_cost(8, rules) == 6


class TestTradeDeadline:
    """Week rule and the calendar fallback for trades without a week."""

    def test_week_is_authoritative(self):
        assert is_trade_after_deadline(12, None, 2023, 11) is True
        assert is_trade_after_deadline(11, None, 2023, 11) is False
        # A week overrides any timestamp
        assert is_trade_after_deadline(3, datetime(2023, 12, 20), 2023, 11) is False

    def test_no_week_no_timestamp_is_before(self):
        assert is_trade_after_deadline(None, None, 2023, 11) is False

    def test_season_year_calendar(self):
        assert is_trade_after_deadline(None, datetime(2023, 10, 31), 2023, 11) is False
        assert is_trade_after_deadline(None, datetime(2023, 12, 1), 2023, 11) is True

    def test_november_threshold(self):
        # deadline week 2 -> after once the day exceeds 14
        assert is_trade_after_deadline(None, datetime(2023, 11, 14), 2023, 2) is False
        assert is_trade_after_deadline(None, datetime(2023, 11, 15), 2023, 2) is True
        # deadline week 11 puts the threshold past the end of November
        assert is_trade_after_deadline(None, datetime(2023, 11, 30), 2023, 11) is False

    def test_following_year(self):
        assert is_trade_after_deadline(None, datetime(2024, 3, 1), 2023, 11) is True
        assert is_trade_after_deadline(None, datetime(2024, 8, 31), 2023, 11) is True
        assert is_trade_after_deadline(None, datetime(2024, 9, 1), 2023, 11) is False

    def test_other_years_are_before(self):
        assert is_trade_after_deadline(None, datetime(2022, 12, 1), 2023, 11) is False


class TestResolution:
    """Base cost, years and acquisition resolution from history."""

    def setup_method(self):
        self.rules = KeeperRules(undrafted_round=8, minimum_round=1, cost_reduction_per_year=1)

    def test_waiver_pickup_kept_three_seasons(self):
        """A waiver player kept by the same owner costs 8, then 7, then 6."""
        first = compute_keeper(
            KeeperCandidate(player_id="p", owner_id="A"),
            KeeperHistory(season=2022, acquisitions=[acquisition("p", AcquisitionKind.WAIVER, "A", 2021, week=4)]),
            self.rules
        )
        assert (first.base_cost, first.years_kept, first.final_cost) == (8, 0, 8)
        assert first.acquisition == AcquisitionKind.WAIVER

        costs = [first.final_cost]
        years = [first.years_kept]
        previous = first
        for season in (2023, 2024):
            history = KeeperHistory(
                season=season,
                previous_selections=[selection("p", "A", season - 1, previous.final_cost, is_keeper=True)],
                previous_keepers=[PriorKeeper(
                    player_id="p", owner_id="A", season=season - 1, base_cost=previous.base_cost,
                    final_cost=previous.final_cost, years_kept=previous.years_kept
                )]
            )
            previous = compute_keeper(KeeperCandidate(player_id="p", owner_id="A"), history, self.rules)
            costs.append(previous.final_cost)
            years.append(previous.years_kept)

        assert costs == [8, 7, 6]
        assert years == [0, 1, 2]

    def test_drafted_player_uses_draft_round(self):
        history = KeeperHistory(season=2024, previous_selections=[selection("p", "A", 2023, 5)])
        result = compute_keeper(KeeperCandidate(player_id="p", owner_id="A"), history, self.rules)
        assert (result.base_cost, result.years_kept, result.acquisition) == (5, 0, AcquisitionKind.DRAFTED)

    def test_keeper_pick_without_prior_row_counts_one_year(self):
        history = KeeperHistory(season=2024, previous_selections=[selection("p", "A", 2023, 4, is_keeper=True)])
        result = compute_keeper(KeeperCandidate(player_id="p", owner_id="A"), history, self.rules)
        assert (result.base_cost, result.years_kept, result.final_cost) == (4, 1, 3)

    def test_unknown_history_uses_undrafted_round(self):
        result = compute_keeper(KeeperCandidate(player_id="p", owner_id="A"), KeeperHistory(season=2024), self.rules)
        assert (result.base_cost, result.years_kept, result.acquisition) == (8, 0, AcquisitionKind.UNKNOWN)

    def test_trade_before_deadline_carries_years(self):
        history = KeeperHistory(
            season=2024,
            previous_selections=[selection("p", "B", 2023, 5, is_keeper=True)],
            previous_keepers=[PriorKeeper(player_id="p", owner_id="B", season=2023, base_cost=5,
                                          final_cost=5, years_kept=1)],
            acquisitions=[acquisition("p", AcquisitionKind.TRADE, "A", 2023, week=5, from_owner="B")]
        )
        result = compute_keeper(KeeperCandidate(player_id="p", owner_id="A"), history, self.rules)
        assert (result.base_cost, result.years_kept, result.final_cost) == (5, 2, 3)
        assert result.acquisition == AcquisitionKind.TRADE

    def test_trade_after_deadline_resets_to_undrafted_round(self):
        history = KeeperHistory(
            season=2024,
            previous_selections=[selection("p", "B", 2023, 3)],
            previous_keepers=[PriorKeeper(player_id="p", owner_id="B", season=2023, base_cost=3,
                                          final_cost=3, years_kept=1)],
            acquisitions=[acquisition("p", AcquisitionKind.TRADE, "A", 2023, week=12, from_owner="B")]
        )
        result = compute_keeper(KeeperCandidate(player_id="p", owner_id="A"), history, self.rules)
        assert result.years_kept == 0
        assert result.base_cost == self.rules.undrafted_round
        assert result.acquisition == AcquisitionKind.TRADE

    def test_early_round_pick_traded_after_deadline_costs_undrafted_round(self):
        history = KeeperHistory(
            season=2024,
            previous_selections=[selection("p", "A", 2023, 2)],
            acquisitions=[acquisition("p", AcquisitionKind.TRADE, "B", 2023, week=13, from_owner="A")]
        )
        result = compute_keeper(KeeperCandidate(player_id="p", owner_id="B"), history, self.rules)
        assert (result.base_cost, result.final_cost, result.years_kept) == (8, 8, 0)

    def test_offseason_trade_resets_to_undrafted_round(self):
        history = KeeperHistory(
            season=2024,
            previous_selections=[selection("p", "B", 2023, 6)],
            acquisitions=[acquisition("p", AcquisitionKind.TRADE, "A", 2024, week=None, from_owner="B",
                                      occurred_at=datetime(2024, 3, 1))]
        )
        result = compute_keeper(KeeperCandidate(player_id="p", owner_id="A"), history, self.rules)
        assert (result.base_cost, result.years_kept) == (8, 0)

    def test_chained_trades_inherit_through_each_owner(self):
        history = KeeperHistory(
            season=2024,
            previous_selections=[selection("p", "C", 2023, 7)],
            acquisitions=[
                acquisition("p", AcquisitionKind.TRADE, "B", 2023, week=2, from_owner="C"),
                acquisition("p", AcquisitionKind.TRADE, "A", 2023, week=6, from_owner="B"),
            ]
        )
        result = compute_keeper(KeeperCandidate(player_id="p", owner_id="A"), history, self.rules)
        assert (result.base_cost, result.years_kept, result.acquisition) == (7, 0, AcquisitionKind.TRADE)

    def test_reacquired_after_drop_is_fresh(self):
        history = KeeperHistory(
            season=2024,
            previous_selections=[selection("p", "A", 2023, 2)],
            acquisitions=[acquisition("p", AcquisitionKind.FREE_AGENT, "A", 2023, week=9)]
        )
        result = compute_keeper(KeeperCandidate(player_id="p", owner_id="A"), history, self.rules)
        assert result.acquisition == AcquisitionKind.FREE_AGENT
        assert (result.base_cost, result.years_kept) == (2, 0)

    def test_season_results_keep_candidate_order(self):
        candidates = [
            KeeperCandidate(player_id="x", owner_id="A", type=KeeperType.FRANCHISE),
            KeeperCandidate(player_id="y", owner_id="B"),
        ]
        results = compute_season_keepers(candidates, KeeperHistory(season=2024), self.rules)
        assert [r.player_id for r in results] == ["x", "y"]
        assert results[0].final_cost == 1
        assert all(r.season == 2024 for r in results)


class TestCaps:
    """Advisory cap report."""

    def test_caps_are_reported_not_enforced(self):
        rules = KeeperRules(max_keepers=3, max_franchise_tags=1, max_regular_keepers=2, regular_keeper_max_years=2)
        keepers = [
            KeeperCandidate(player_id="a", owner_id="A", type=KeeperType.FRANCHISE),
            KeeperCandidate(player_id="b", owner_id="A", type=KeeperType.FRANCHISE),
            KeeperCandidate(player_id="c", owner_id="A"),
            KeeperCandidate(player_id="d", owner_id="A"),
        ]
        computed = compute_season_keepers(keepers, KeeperHistory(season=2024), rules)
        violations = check_caps(computed, rules)

        assert len(computed) == 4
        assert {v.rule for v in violations} == {"max_keepers", "max_franchise_tags"}

    def test_year_cap_flags_regular_keepers_only(self):
        rules = KeeperRules(regular_keeper_max_years=2)
        history = KeeperHistory(
            season=2024,
            previous_keepers=[
                PriorKeeper(player_id="a", owner_id="A", season=2023, base_cost=5, final_cost=4, years_kept=1),
                PriorKeeper(player_id="b", owner_id="A", season=2023, type=KeeperType.FRANCHISE,
                            base_cost=5, final_cost=1, years_kept=1),
            ]
        )
        computed = compute_season_keepers(
            [KeeperCandidate(player_id="a", owner_id="A"),
             KeeperCandidate(player_id="b", owner_id="A", type=KeeperType.FRANCHISE)],
            history, rules
        )
        violations = check_caps(computed, rules)
        assert [(v.rule, v.player_id) for v in violations] == [("regular_keeper_max_years", "a")]


class TestRules:
    """Settings validation."""

    def test_defaults(self):
        rules = build_rules({})
        assert (rules.max_keepers, rules.max_franchise_tags, rules.max_regular_keepers) == (7, 2, 5)
        assert (rules.regular_keeper_max_years, rules.undrafted_round, rules.minimum_round) == (2, 8, 1)
        assert rules.cost_reduction_per_year == 1

    def test_cap_sum_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            build_rules({"max_keepers": 7, "max_franchise_tags": 3, "max_regular_keepers": 5})
        assert "cannot exceed max keepers" in exc_info.value.message

    def test_out_of_bounds_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            build_rules({"minimum_round": 6})
        assert exc_info.value.details["errors"][0]["field"] == "minimum_round"
