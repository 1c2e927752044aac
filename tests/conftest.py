"""
Shared fixtures: an in-memory repository and a scripted Sleeper client.

The scenario league runs two seasons. Owners u1 and u2 swap roster slots
between 2023 and 2024, so any code that joins on slots instead of owner IDs
gets the wrong answer.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from backend.errors import ExternalServiceError
from backend.session.database import init_database, get_repository


def ms(dt: datetime) -> int:
    """Naive UTC datetime -> Sleeper epoch milliseconds."""
    return int(dt.replace(tzinfo=timezone.utc).timestamp() * 1000)


DRAFT_2023_START = datetime(2023, 8, 30, 0, 0)
DRAFT_2024_START = datetime(2024, 8, 28, 0, 0)


class FakeSleeperService:
    """Scripted stand-in for SleeperService with the same coroutine surface."""

    def __init__(self):
        self.leagues: Dict[str, Dict] = {}
        self.rosters: Dict[str, List[Dict]] = {}
        self.users: Dict[str, List[Dict]] = {}
        self.drafts: Dict[str, List[Dict]] = {}
        self.draft_picks: Dict[str, List[Dict]] = {}
        self.traded_picks: Dict[str, List[Dict]] = {}
        self.transactions: Dict[tuple, List[Dict]] = {}
        self.winners_brackets: Dict[str, List[Dict]] = {}
        self.user_leagues: Dict[tuple, List[Dict]] = {}
        self.players: Dict[str, Dict] = {}
        self.failing: set = set()
        self.calls: List[tuple] = []

    def _check(self, name: str, key):
        self.calls.append((name, key))
        if (name, key) in self.failing or name in self.failing:
            raise ExternalServiceError("Sleeper API", f"{name} failed for {key}")

    async def get_league(self, league_id: str) -> Optional[Dict]:
        self._check("get_league", league_id)
        return self.leagues.get(league_id)

    async def get_rosters(self, league_id: str) -> List[Dict]:
        self._check("get_rosters", league_id)
        return self.rosters.get(league_id, [])

    async def get_users(self, league_id: str) -> List[Dict]:
        self._check("get_users", league_id)
        return self.users.get(league_id, [])

    async def get_drafts(self, league_id: str) -> List[Dict]:
        self._check("get_drafts", league_id)
        return self.drafts.get(league_id, [])

    async def get_draft_picks(self, draft_id: str) -> List[Dict]:
        self._check("get_draft_picks", draft_id)
        return self.draft_picks.get(draft_id, [])

    async def get_traded_picks(self, league_id: str) -> List[Dict]:
        self._check("get_traded_picks", league_id)
        return self.traded_picks.get(league_id, [])

    async def get_transactions(self, league_id: str, week: int) -> List[Dict]:
        self._check("get_transactions", (league_id, week))
        return self.transactions.get((league_id, week), [])

    async def get_winners_bracket(self, league_id: str) -> List[Dict]:
        self._check("get_winners_bracket", league_id)
        return self.winners_brackets.get(league_id, [])

    async def get_user_leagues(self, user_id: str, season: str) -> List[Dict]:
        self._check("get_user_leagues", (user_id, season))
        return self.user_leagues.get((user_id, season), [])

    async def get_nfl_players(self) -> Dict[str, Dict]:
        self._check("get_nfl_players", None)
        return self.players

    async def close(self):
        pass


class FakeRedisService:
    """In-memory stand-in for RedisService."""

    def __init__(self):
        self.keys: Dict[str, object] = {}

    def acquire_throttle(self, key: str, ttl: int) -> bool:
        if key in self.keys:
            return False
        self.keys[key] = "1"
        return True

    def get_ttl(self, key: str) -> int:
        return 25 if key in self.keys else -2

    def get_json(self, key: str):
        return self.keys.get(key)

    def set_json(self, key: str, data, ttl=None) -> bool:
        self.keys[key] = data
        return True

    def is_connected(self) -> bool:
        return True


def roster(slot: int, owner_id: Optional[str], players: List[str], wins: int = 0, losses: int = 0) -> Dict:
    return {
        "roster_id": slot,
        "owner_id": owner_id,
        "players": players,
        "settings": {"wins": wins, "losses": losses, "ties": 0, "fpts": 1000 + wins, "fpts_against": 900},
    }


def pick(round_number: int, pick_no: int, slot: int, player_id: str, is_keeper: bool = False) -> Dict:
    return {
        "round": round_number,
        "pick_no": pick_no,
        "draft_slot": slot,
        "roster_id": slot,
        "player_id": player_id,
        "is_keeper": is_keeper,
    }


def transaction(transaction_id: str, kind: str, week: int, created: datetime,
                adds: Optional[Dict] = None, drops: Optional[Dict] = None, status: str = "complete") -> Dict:
    return {
        "transaction_id": transaction_id,
        "type": kind,
        "status": status,
        "leg": week,
        "created": ms(created),
        "adds": adds,
        "drops": drops,
    }


def build_scenario(sleeper: FakeSleeperService) -> FakeSleeperService:
    """Two-season league: L2023 -> L2024 with reassigned roster slots."""
    users = [
        {"user_id": "u1", "display_name": "Alpha", "is_owner": True, "metadata": {"team_name": "Alpha Team"}},
        {"user_id": "u2", "display_name": "Bravo"},
    ]

    # 2023: u1 is slot 1, u2 is slot 2
    sleeper.leagues["L2023"] = {
        "league_id": "L2023", "name": "Keeper League", "season": "2023", "status": "complete",
        "total_rosters": 2, "previous_league_id": None, "settings": {"draft_rounds": 16},
    }
    sleeper.users["L2023"] = users
    sleeper.rosters["L2023"] = [
        roster(1, "u1", ["p1", "p3", "p4", "p5"], wins=10, losses=4),
        roster(2, "u2", ["p2"], wins=4, losses=10),
    ]
    sleeper.drafts["L2023"] = [{
        "draft_id": "D2023", "season": "2023", "status": "complete", "type": "snake",
        "start_time": ms(DRAFT_2023_START), "settings": {"rounds": 16},
    }]
    sleeper.draft_picks["D2023"] = [
        pick(1, 1, 1, "p1"),
        pick(1, 2, 2, "p2"),
        pick(2, 3, 2, "p3"),
        pick(2, 4, 1, "p4"),
    ]
    sleeper.transactions[("L2023", 0)] = [
        # Draft-day correction: p4 dropped to the pool just before the draft
        transaction("t-drop", "free_agent", 0, datetime(2023, 8, 29, 20, 0), drops={"p4": 1}),
    ]
    sleeper.transactions[("L2023", 3)] = [
        transaction("t-trade", "trade", 3, datetime(2023, 9, 25, 12, 0), adds={"p3": 1}, drops={"p3": 2}),
    ]
    sleeper.transactions[("L2023", 5)] = [
        transaction("t-waiver", "waiver", 5, datetime(2023, 10, 5, 9, 0), adds={"p5": 1}),
        transaction("t-failed", "waiver", 5, datetime(2023, 10, 5, 9, 0), adds={"p6": 1}, status="failed"),
    ]
    sleeper.winners_brackets["L2023"] = [
        {"r": 1, "m": 1, "t1": 1, "t2": 2, "w": 1, "l": 2, "p": 1},
    ]

    # 2024: u1 is slot 2, u2 is slot 1
    sleeper.leagues["L2024"] = {
        "league_id": "L2024", "name": "Keeper League", "season": "2024", "status": "in_season",
        "total_rosters": 2, "previous_league_id": "L2023", "settings": {"draft_rounds": 16},
    }
    sleeper.users["L2024"] = users
    sleeper.rosters["L2024"] = [
        roster(1, "u2", ["p2", "p7"], wins=3, losses=1),
        roster(2, "u1", ["p3", "p5", "p8"], wins=1, losses=3),
    ]
    sleeper.drafts["L2024"] = [{
        "draft_id": "D2024", "season": "2024", "status": "complete", "type": "snake",
        "start_time": ms(DRAFT_2024_START), "settings": {"rounds": 16},
    }]
    sleeper.draft_picks["D2024"] = [
        pick(1, 1, 1, "p2", is_keeper=True),
        pick(1, 2, 2, "p8"),
        pick(2, 3, 2, "p3", is_keeper=True),
        pick(2, 4, 1, "p7"),
        pick(4, 8, 2, "p5", is_keeper=True),
    ]
    sleeper.traded_picks["L2024"] = [
        # u2's (slot 1) 2024 third-rounder now belongs to u1 (slot 2)
        {"season": "2024", "round": 3, "roster_id": 1, "owner_id": 2, "previous_owner_id": 1},
        {"season": "2025", "round": 1, "roster_id": 9, "owner_id": 2, "previous_owner_id": 9},
    ]
    return sleeper


@pytest.fixture
def repository():
    """Fresh in-memory store per test."""
    init_database("sqlite://")
    return get_repository()


@pytest.fixture
def sleeper():
    return FakeSleeperService()


@pytest.fixture
def scenario(sleeper):
    return build_scenario(sleeper)


@pytest.fixture
def fake_redis():
    return FakeRedisService()
