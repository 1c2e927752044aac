"""
Tests for league chain resolution.
"""

import pytest

from backend.errors import ExternalServiceError
from backend.services.league_chain import resolve_chain, resolve_chain_leagues, resolve_remote_chain


def store_league(repository, external_id, season, previous=None):
    league, _ = repository.upsert_league(external_id, name="Chain", season=season, previous_league_id=previous)
    return league


class TestStoredChain:
    """Walking stored league rows."""

    def test_newest_first(self, repository):
        store_league(repository, "A", 2022)
        store_league(repository, "B", 2023, previous="A")
        store_league(repository, "C", 2024, previous="B")

        chain = resolve_chain(repository, "C")
        assert [(link.external_id, link.season) for link in chain] == [("C", 2024), ("B", 2023), ("A", 2022)]

    def test_unknown_start_is_empty(self, repository):
        assert resolve_chain(repository, "missing") == []

    def test_broken_link_ends_quietly(self, repository):
        store_league(repository, "B", 2023, previous="gone")
        store_league(repository, "C", 2024, previous="B")

        assert [link.external_id for link in resolve_chain(repository, "C")] == ["C", "B"]

    def test_cycle_stops(self, repository):
        store_league(repository, "A", 2023, previous="B")
        store_league(repository, "B", 2024, previous="A")

        chain = resolve_chain_leagues(repository, "B")
        assert [league.external_id for league in chain] == ["B", "A"]

    def test_depth_limit(self, repository):
        previous = None
        for season in range(2015, 2025):
            store_league(repository, f"L{season}", season, previous=previous)
            previous = f"L{season}"

        chain = resolve_chain(repository, "L2024", max_depth=3)
        assert [link.season for link in chain] == [2024, 2023, 2022, 2021]


class TestRemoteChain:
    """Walking previous_league_id through the platform API."""

    @pytest.mark.asyncio
    async def test_follows_pointers(self, scenario):
        chain = await resolve_remote_chain(scenario.get_league, "L2024")
        assert [(link.external_id, link.season) for link in chain] == [("L2024", 2024), ("L2023", 2023)]

    @pytest.mark.asyncio
    async def test_fetch_failure_ends_chain(self, scenario):
        scenario.failing.add(("get_league", "L2023"))
        chain = await resolve_remote_chain(scenario.get_league, "L2024")
        assert [link.external_id for link in chain] == ["L2024"]

    @pytest.mark.asyncio
    async def test_zero_previous_id_ends_chain(self, sleeper):
        sleeper.leagues["X"] = {"league_id": "X", "season": "2024", "previous_league_id": "0"}
        chain = await resolve_remote_chain(sleeper.get_league, "X")
        assert [link.external_id for link in chain] == ["X"]

    @pytest.mark.asyncio
    async def test_remote_cycle_stops(self, sleeper):
        sleeper.leagues["X"] = {"league_id": "X", "season": "2024", "previous_league_id": "Y"}
        sleeper.leagues["Y"] = {"league_id": "Y", "season": "2023", "previous_league_id": "X"}
        chain = await resolve_remote_chain(sleeper.get_league, "X")
        assert [link.external_id for link in chain] == ["X", "Y"]

    @pytest.mark.asyncio
    async def test_stored_seasons_skip_fetch(self, repository, scenario):
        store_league(repository, "L2024", 2024, previous="L2023")
        chain = await resolve_remote_chain(scenario.get_league, "L2024", repository=repository)

        assert [link.external_id for link in chain] == ["L2024", "L2023"]
        assert ("get_league", "L2024") not in scenario.calls
        assert ("get_league", "L2023") in scenario.calls

    @pytest.mark.asyncio
    async def test_first_fetch_failure_is_empty(self, sleeper):
        async def broken(league_id):
            raise ExternalServiceError("Sleeper API", "down")

        assert await resolve_remote_chain(broken, "X") == []
