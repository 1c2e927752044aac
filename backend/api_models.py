"""
FastAPI request/response models for the Keeper League Sync API.
"""

from typing import List, Dict, Any, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from shared.models import (
    CapViolation, ComputedKeeper, KeeperType, OwnerHistory, SyncCounts, LeagueSummary, CronSyncReport
)


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    details: Dict[str, Any] = Field(default_factory=dict, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Service status")
    database_connected: bool = Field(..., description="Database connection status")
    redis_connected: bool = Field(..., description="Redis connection status")
    timestamp: str = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")


# ===== Sync =====

class SyncRequest(BaseModel):
    """Body of POST /api/sync."""

    model_config = ConfigDict(populate_by_name=True)

    action: str = Field(..., description="Sync action or deprecated alias")
    league_id: Optional[str] = Field(None, alias="leagueId", description="Platform league ID")
    season: Optional[str] = Field(None, description="Season for user-leagues")
    force: bool = Field(False, description="Overwrite commissioner overrides on recompute")
    include_history: bool = Field(True, alias="includeHistory", description="update-keepers across the whole chain")


class SyncResponse(BaseModel):
    """Result of a sync action."""

    success: bool = Field(..., description="Whether the action completed")
    action: str = Field(..., description="Canonical action that ran")
    league_id: Optional[str] = Field(None, description="Platform league ID")
    message: str = Field(..., description="Summary message")
    counts: SyncCounts = Field(..., description="Rows written")
    warnings: List[str] = Field(default_factory=list, description="Skipped records")
    errors: List[str] = Field(default_factory=list, description="Failed seasons")
    leagues: List[LeagueSummary] = Field(default_factory=list, description="Caller leagues (user-leagues)")


class SyncStatusResponse(BaseModel):
    """Last sync time and staleness of a league season."""

    league_id: str = Field(..., description="Platform league ID")
    name: str = Field(..., description="League name")
    season: int = Field(..., description="Season year")
    last_synced_at: Optional[datetime] = Field(None, description="Last successful sync")
    roster_count: int = Field(..., description="Stored rosters")
    needs_sync: bool = Field(..., description="Never synced or older than the staleness window")


class CronSyncResponse(BaseModel):
    """Result of the cron sync entry point."""

    success: bool = Field(..., description="No league failed")
    report: CronSyncReport = Field(..., description="Per-league outcome")


# ===== Keeper Settings =====

class KeeperSettingsUpdate(BaseModel):
    """Partial keeper settings change (commissioner only)."""

    model_config = ConfigDict(extra="forbid")

    max_keepers: Optional[int] = Field(None, ge=1, le=20)
    max_franchise_tags: Optional[int] = Field(None, ge=0, le=5)
    max_regular_keepers: Optional[int] = Field(None, ge=0, le=20)
    regular_keeper_max_years: Optional[int] = Field(None, ge=1, le=10)
    undrafted_round: Optional[int] = Field(None, ge=1, le=20)
    minimum_round: Optional[int] = Field(None, ge=1, le=5)
    cost_reduction_per_year: Optional[int] = Field(None, ge=0, le=3)
    trade_deadline_week: Optional[int] = Field(None, ge=1, le=18)


class KeeperSettingsResponse(BaseModel):
    """Keeper settings of a league season."""

    league_id: str = Field(..., description="Platform league ID")
    season: int = Field(..., description="Season year")
    max_keepers: int
    max_franchise_tags: int
    max_regular_keepers: int
    regular_keeper_max_years: int
    undrafted_round: int
    minimum_round: int
    cost_reduction_per_year: int
    trade_deadline_week: int
    max_rounds: int = Field(..., description="Draft rounds")
    is_commissioner: bool = Field(False, description="Caller may edit")


# ===== Keepers =====

class KeeperResponse(BaseModel):
    """A stored keeper row."""

    id: int
    roster_id: int
    owner_id: str
    player_id: str
    season: int
    type: KeeperType
    base_cost: int
    final_cost: int
    years_kept: int
    is_locked: bool
    source: str
    is_removed: bool
    acquisition: Optional[str] = None
    notes: Optional[str] = None


class KeeperListResponse(BaseModel):
    """Keepers of a season with advisory cap violations."""

    league_id: str
    season: int
    keepers: List[KeeperResponse] = Field(default_factory=list)
    violations: List[CapViolation] = Field(default_factory=list)


class KeeperOverrideRequest(BaseModel):
    """Commissioner override of one keeper."""

    model_config = ConfigDict(populate_by_name=True)

    action: Literal["add", "remove", "update"] = Field(..., description="Override action")
    player_id: str = Field(..., alias="playerId", description="Platform player ID")
    roster_id: int = Field(..., alias="rosterId", description="Local roster ID")
    season: int = Field(..., description="Keeper season")
    type: Optional[KeeperType] = Field(None, description="Keeper type")
    final_cost: Optional[int] = Field(None, alias="finalCost", ge=1, le=16, description="Explicit round cost")
    reason: str = Field(..., min_length=1, max_length=500, description="Why the override was made")


class AuditLogResponse(BaseModel):
    """One audit entry."""

    id: int
    entity: str
    entity_id: str
    action: str
    actor_owner_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class AuditLogListResponse(BaseModel):
    """Override audit trail of a league."""

    league_id: str
    entries: List[AuditLogResponse] = Field(default_factory=list)


class EligibleKeepersResponse(BaseModel):
    """Keeper costs of every player on an owner's roster for next season."""

    league_id: str
    owner_id: str
    season: int = Field(..., description="Season the players would be kept into")
    players: List[ComputedKeeper] = Field(default_factory=list)
    violations: List[CapViolation] = Field(default_factory=list)


class OwnerHistoryResponse(BaseModel):
    """Per-owner records across the league chain."""

    league_id: str
    owners: List[OwnerHistory] = Field(default_factory=list)
