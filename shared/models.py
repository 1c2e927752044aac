"""
Pydantic models shared by the keeper engine, the sync services and the API.
"""

from typing import List, Optional, Dict
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field


class KeeperType(str, Enum):
    """Keeper designation."""
    REGULAR = "REGULAR"
    FRANCHISE = "FRANCHISE"


class KeeperSource(str, Enum):
    """Who produced a keeper row."""
    ENGINE = "ENGINE"
    COMMISSIONER = "COMMISSIONER"


class AcquisitionKind(str, Enum):
    """How a roster came to hold a player."""
    DRAFTED = "DRAFTED"
    KEPT = "KEPT"
    TRADE = "TRADE"
    WAIVER = "WAIVER"
    FREE_AGENT = "FREE_AGENT"
    COMMISSIONER = "COMMISSIONER"
    UNKNOWN = "UNKNOWN"


class TimelineEventType(str, Enum):
    """Player history event types."""
    DRAFTED = "DRAFTED"
    TRADED = "TRADED"
    WAIVER = "WAIVER"
    FREE_AGENT = "FREE_AGENT"
    DROPPED = "DROPPED"
    KEPT_REGULAR = "KEPT_REGULAR"
    KEPT_FRANCHISE = "KEPT_FRANCHISE"


# ===== Keeper Rules =====

class KeeperRules(BaseModel):
    """League keeper rules passed explicitly into the keeper engine."""

    max_keepers: int = Field(7, ge=1, le=20, description="Maximum keepers per roster")
    max_franchise_tags: int = Field(2, ge=0, le=5, description="Maximum franchise tags per roster")
    max_regular_keepers: int = Field(5, ge=0, le=20, description="Maximum regular keepers per roster")
    regular_keeper_max_years: int = Field(2, ge=1, le=10, description="Years a regular keeper may be kept")
    undrafted_round: int = Field(8, ge=1, le=20, description="Cost round for players without a draft record")
    minimum_round: int = Field(1, ge=1, le=5, description="Round below which cost cannot cascade")
    cost_reduction_per_year: int = Field(1, ge=0, le=3, description="Rounds removed per consecutive year kept")
    trade_deadline_week: int = Field(11, ge=1, le=18, description="Last week a traded player keeps its keeper history")
    max_rounds: int = Field(16, ge=1, le=30, description="Number of draft rounds")


# ===== League Chain =====

class ChainLink(BaseModel):
    """One season of a continuing league."""
    external_id: str = Field(..., description="Platform league ID")
    season: int = Field(..., description="Season year")


# ===== Keeper Engine Inputs =====

class DraftSelection(BaseModel):
    """A draft pick in stable owner-id space."""
    player_id: str = Field(..., description="Platform player ID")
    owner_id: str = Field(..., description="Owner who made the pick")
    season: int = Field(..., description="Draft season")
    round: int = Field(..., description="Draft round")
    pick_no: int = Field(0, description="Overall pick number")
    is_keeper: bool = Field(False, description="Pick consumed by a kept player")


class PlayerAcquisition(BaseModel):
    """A player joining a roster through a transaction."""
    player_id: str = Field(..., description="Platform player ID")
    kind: AcquisitionKind = Field(..., description="Transaction kind")
    to_owner_id: str = Field(..., description="Owner receiving the player")
    from_owner_id: Optional[str] = Field(None, description="Owner giving up the player (trades)")
    league_season: int = Field(..., description="Season of the league the transaction was recorded in")
    week: Optional[int] = Field(None, description="League week")
    occurred_at: Optional[datetime] = Field(None, description="Transaction timestamp")


class PriorKeeper(BaseModel):
    """A keeper row from the season before the one being computed."""
    player_id: str = Field(..., description="Platform player ID")
    owner_id: str = Field(..., description="Keeping owner")
    season: int = Field(..., description="Season kept into")
    type: KeeperType = Field(KeeperType.REGULAR, description="Keeper type")
    base_cost: int = Field(..., description="Base cost")
    final_cost: int = Field(..., description="Final cost")
    years_kept: int = Field(0, description="Consecutive prior keeps")


class KeeperHistory(BaseModel):
    """Everything the engine needs to cost keepers into ``season``."""
    season: int = Field(..., description="Season players are kept into")
    previous_selections: List[DraftSelection] = Field(default_factory=list, description="Draft picks of the previous season")
    previous_keepers: List[PriorKeeper] = Field(default_factory=list, description="Keeper rows of the previous season")
    acquisitions: List[PlayerAcquisition] = Field(default_factory=list, description="Transactions since the previous draft")


class KeeperCandidate(BaseModel):
    """A player an owner keeps (or may keep) into the season."""
    player_id: str = Field(..., description="Platform player ID")
    owner_id: str = Field(..., description="Keeping owner")
    roster_id: Optional[int] = Field(None, description="Local roster row for the season")
    type: KeeperType = Field(KeeperType.REGULAR, description="Requested keeper type")


class ComputedKeeper(BaseModel):
    """Engine output for one candidate."""
    player_id: str
    owner_id: str
    roster_id: Optional[int] = None
    season: int
    type: KeeperType
    base_cost: int
    final_cost: int
    years_kept: int
    acquisition: AcquisitionKind


class CapViolation(BaseModel):
    """Advisory keeper cap breach surfaced to the commissioner."""
    owner_id: str = Field(..., description="Owner over the cap")
    rule: str = Field(..., description="Breached rule name")
    limit: int = Field(..., description="Configured limit")
    actual: int = Field(..., description="Observed value")
    player_id: Optional[str] = Field(None, description="Player the breach applies to")
    message: str = Field(..., description="Human-readable description")


# ===== Pick Ownership =====

class TradedPick(BaseModel):
    """Traded pick in stable owner-id space."""
    season: int
    round: int
    original_owner_id: str
    current_owner_id: str


class OwnedPick(BaseModel):
    """A pick an owner holds for the season."""
    round: int = Field(..., description="Draft round")
    original_owner_id: str = Field(..., description="Owner the pick originally belonged to")


class BoardSlot(BaseModel):
    """A keeper placed on the draft board."""
    owner_id: str
    player_id: str
    final_cost: int = Field(..., description="Keeper cost round")
    round: Optional[int] = Field(None, description="Round actually used, None when no pick was available")
    original_owner_id: Optional[str] = Field(None, description="Original owner of the pick used")


class DraftBoard(BaseModel):
    """Pick ownership and keeper placement for one season."""
    season: int
    rounds: int
    picks: Dict[str, List[OwnedPick]] = Field(default_factory=dict, description="Owner ID -> owned picks")
    keepers: List[BoardSlot] = Field(default_factory=list)
    conflicts: List[BoardSlot] = Field(default_factory=list, description="Keepers without an available pick")


# ===== Timeline =====

class TimelineEvent(BaseModel):
    """One event in a player's history."""
    event_type: TimelineEventType
    season: int
    league_id: str = Field(..., description="Platform league ID the event was recorded in")
    occurred_at: Optional[datetime] = None
    week: Optional[int] = None
    owner_id: Optional[str] = Field(None, description="Owner receiving or keeping the player")
    from_owner_id: Optional[str] = None
    round: Optional[int] = None
    cost: Optional[int] = None
    transaction_id: Optional[str] = None


class TimelineSummary(BaseModel):
    """Counts of events in a player timeline."""
    drafted: int = 0
    kept: int = 0
    franchise: int = 0
    regular: int = 0
    trades: int = 0
    waiver_pickups: int = 0
    fa_pickups: int = 0
    drops: int = 0


class PlayerTimeline(BaseModel):
    """Chronological player history across a league chain."""
    player_id: str
    player_name: Optional[str] = None
    events: List[TimelineEvent] = Field(default_factory=list)
    by_league: Dict[str, List[TimelineEvent]] = Field(default_factory=dict)
    summary: TimelineSummary = Field(default_factory=TimelineSummary)
    removed_glitches: int = 0


# ===== Owner History =====

class SeasonRecord(BaseModel):
    """One owner's record in one season."""
    season: int
    league_id: str
    team_name: Optional[str] = None
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    made_playoffs: bool = False
    champion: bool = False


class OwnerTotals(BaseModel):
    """Career totals across seasons."""
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    championships: int = 0
    playoff_appearances: int = 0
    seasons_played: int = 0


class OwnerHistory(BaseModel):
    """Cross-season history for one stable owner."""
    owner_id: str
    display_name: Optional[str] = None
    current_team_name: Optional[str] = None
    current_roster_id: Optional[int] = None
    seasons: List[SeasonRecord] = Field(default_factory=list)
    totals: OwnerTotals = Field(default_factory=OwnerTotals)


# ===== Sync Results =====

class LeagueSummary(BaseModel):
    """A platform league the caller belongs to."""
    league_id: str
    name: str = ""
    season: int
    total_rosters: int = 0
    previous_league_id: Optional[str] = None
    synced: bool = Field(False, description="League season already stored locally")


class SyncCounts(BaseModel):
    """Rows written by a sync operation."""
    rosters: int = 0
    users: int = 0
    drafts: int = 0
    picks: int = 0
    traded_picks: int = 0
    transactions: int = 0
    keepers: int = 0
    players: int = 0
    seasons: int = 0


class SyncResult(BaseModel):
    """Outcome of a sync action, reported even on partial failure."""
    success: bool = True
    action: str
    league_id: Optional[str] = None
    message: str = ""
    counts: SyncCounts = Field(default_factory=SyncCounts)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    leagues: List[LeagueSummary] = Field(default_factory=list, description="Caller leagues (user-leagues action)")


class CronSyncReport(BaseModel):
    """Outcome of one background sync run over every stored league."""
    synced: List[str] = Field(default_factory=list, description="League IDs synced successfully")
    failed: Dict[str, str] = Field(default_factory=dict, description="League ID -> error message")
    skipped: List[str] = Field(default_factory=list, description="League IDs left for the next run (time budget)")
    duration_seconds: float = 0.0
