"""
API tests through FastAPI's TestClient with the scripted Sleeper client.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from backend import main
from backend.dependencies import get_sleeper_service, get_sync_dispatcher, get_sync_service
from backend.services.sync_actions import SyncDispatcher
from backend.services.sync_service import SyncService

COMMISSIONER = {"X-Owner-Id": "u1"}
MEMBER = {"X-Owner-Id": "u2"}
STRANGER = {"X-Owner-Id": "stranger"}


@pytest.fixture
def client(repository, scenario, monkeypatch):
    """TestClient over a synced two-season league; lifespan is not run."""
    asyncio.run(SyncService(repository, scenario).sync_history("L2024"))
    monkeypatch.setattr(main, "get_redis_service", lambda: None)

    main.app.dependency_overrides[get_sleeper_service] = lambda: scenario
    main.app.dependency_overrides[get_sync_service] = lambda: SyncService(repository, scenario)
    main.app.dependency_overrides[get_sync_dispatcher] = lambda: SyncDispatcher(SyncService(repository, scenario))
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


class TestHealth:
    """Root and health endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "Keeper League Sync API"

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["database_connected"] is True
        assert data["redis_connected"] is False


class TestSyncEndpoints:
    """POST /api/sync, sync status and cron."""

    def test_sync_action_with_alias(self, client):
        response = client.post("/api/sync", json={"action": "quick", "leagueId": "L2024"}, headers=MEMBER)
        assert response.status_code == 200
        assert response.json()["action"] == "refresh"

    def test_invalid_action(self, client):
        response = client.post("/api/sync", json={"action": "nuke", "leagueId": "L2024"}, headers=MEMBER)
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["message"].startswith("Invalid action. Valid actions:")

    def test_missing_caller(self, client):
        response = client.post("/api/sync", json={"action": "sync", "leagueId": "L2024"})
        assert response.status_code == 401

    def test_stranger_forbidden(self, client):
        response = client.post("/api/sync", json={"action": "sync", "leagueId": "L2024"}, headers=STRANGER)
        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"

    def test_missing_action_is_400(self, client):
        response = client.post("/api/sync", json={"leagueId": "L2024"}, headers=MEMBER)
        assert response.status_code == 400
        assert response.json()["details"]["errors"][0]["field"] == "body.action"

    def test_sync_status(self, client):
        response = client.get("/api/leagues/L2024/sync-status", headers=MEMBER)
        assert response.status_code == 200
        body = response.json()
        assert body["roster_count"] == 2
        assert body["needs_sync"] is False

    def test_unknown_league_is_404(self, client):
        response = client.get("/api/leagues/nope/sync-status", headers=MEMBER)
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    def test_cron_secret(self, client, monkeypatch):
        monkeypatch.setattr(main.settings, "CRON_SECRET", "s3cret")
        assert client.get("/api/cron/sync").status_code == 401

        response = client.get("/api/cron/sync", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200
        assert sorted(response.json()["report"]["synced"]) == ["L2023", "L2024"]


class TestKeeperEndpoints:
    """Settings, keepers, overrides, preview and board."""

    def test_settings_read(self, client):
        body = client.get("/api/leagues/L2024/settings", headers=MEMBER).json()
        assert body["max_keepers"] == 7
        assert body["is_commissioner"] is False

    def test_settings_update_by_commissioner(self, client):
        response = client.put("/api/leagues/L2024/settings", json={"undrafted_round": 10}, headers=COMMISSIONER)
        assert response.status_code == 200
        assert response.json()["undrafted_round"] == 10
        assert response.json()["is_commissioner"] is True

    def test_settings_update_by_member_forbidden(self, client):
        response = client.put("/api/leagues/L2024/settings", json={"undrafted_round": 10}, headers=MEMBER)
        assert response.status_code == 403

    def test_settings_cap_sum_rejected(self, client):
        response = client.put("/api/leagues/L2024/settings", json={"max_franchise_tags": 3}, headers=COMMISSIONER)
        assert response.status_code == 400
        assert "cannot exceed max keepers" in response.json()["message"]

    def test_settings_unknown_field_rejected(self, client):
        response = client.put("/api/leagues/L2024/settings", json={"salary_cap": 1}, headers=COMMISSIONER)
        assert response.status_code == 400

    def test_list_keepers(self, client):
        body = client.get("/api/leagues/L2024/keepers", headers=MEMBER).json()
        assert body["season"] == 2024
        assert {(k["owner_id"], k["player_id"], k["final_cost"]) for k in body["keepers"]} == {
            ("u1", "p3", 2), ("u1", "p5", 8), ("u2", "p2", 1),
        }

    def test_override_and_audit(self, client, repository):
        league = repository.get_league_by_external_id("L2024")
        roster = repository.get_roster_by_owner(league.id, "u1")

        response = client.post(
            "/api/leagues/L2024/keepers/override",
            json={"action": "remove", "playerId": "p5", "rosterId": roster.id, "season": 2024,
                  "reason": "Missed the deadline"},
            headers=COMMISSIONER
        )
        assert response.status_code == 200
        assert response.json()["is_removed"] is True

        log = client.get("/api/leagues/L2024/keepers/override", headers=MEMBER).json()
        assert log["entries"][0]["action"] == "remove"
        assert log["entries"][0]["details"]["reason"] == "Missed the deadline"

    def test_override_requires_reason(self, client, repository):
        league = repository.get_league_by_external_id("L2024")
        roster = repository.get_roster_by_owner(league.id, "u1")
        response = client.post(
            "/api/leagues/L2024/keepers/override",
            json={"action": "remove", "playerId": "p5", "rosterId": roster.id, "season": 2024},
            headers=COMMISSIONER
        )
        assert response.status_code == 400

    def test_eligible_keepers(self, client):
        body = client.get("/api/leagues/L2024/rosters/u1/eligible-keepers", headers=MEMBER).json()
        assert body["season"] == 2025
        assert {p["player_id"] for p in body["players"]} == {"p3", "p5", "p8"}

    def test_draft_board(self, client):
        body = client.get("/api/leagues/L2024/draft-board", headers=MEMBER).json()
        assert body["conflicts"] == []
        assert {slot["player_id"]: slot["round"] for slot in body["keepers"]} == {"p2": 1, "p3": 2, "p5": 8}


class TestHistoryEndpoints:
    """Timeline and owner history."""

    def test_player_timeline(self, client):
        body = client.get("/api/leagues/L2024/players/p3/timeline", headers=MEMBER).json()
        assert [e["event_type"] for e in body["events"]] == ["DRAFTED", "TRADED", "KEPT_REGULAR"]

    def test_timeline_forbidden_for_stranger(self, client):
        response = client.get("/api/leagues/L2024/players/p3/timeline", headers=STRANGER)
        assert response.status_code == 403

    def test_owner_history(self, client):
        body = client.get("/api/leagues/L2024/owner-history", headers=MEMBER).json()
        assert body["owners"][0]["owner_id"] == "u1"
        assert body["owners"][0]["totals"]["championships"] == 1
