"""
SQLModel database table definitions for the Keeper League Sync store.

Roster rows are season scoped: the same fantasy team is a new RosterModel row
every season, and cross-season joins go through ``owner_id`` (the platform's
stable user id), never through ``rosters.id``.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from enum import Enum
from sqlmodel import SQLModel, Field, Relationship, UniqueConstraint
from sqlalchemy import Column, JSON
from shared.models import KeeperType, KeeperSource


class TransactionType(str, Enum):
    """Transaction kinds mirrored from the platform."""
    TRADE = "TRADE"
    WAIVER = "WAIVER"
    FREE_AGENT = "FREE_AGENT"
    COMMISSIONER = "COMMISSIONER"


class LeagueModel(SQLModel, table=True):
    """One league season (the platform issues a new league id every year)."""

    __tablename__ = "leagues"

    id: Optional[int] = Field(default=None, primary_key=True)
    external_id: str = Field(unique=True, index=True, description="Platform league ID")
    name: str = Field(default="", description="League name")
    season: int = Field(index=True, description="Season year")
    status: str = Field(default="PRE_DRAFT", description="League status")
    total_rosters: int = Field(default=0, description="Number of rosters in the league")
    draft_rounds: int = Field(default=16, description="Number of draft rounds")
    previous_league_id: Optional[str] = Field(default=None, index=True, description="Platform ID of the prior season's league")
    commissioner_owner_id: Optional[str] = Field(default=None, description="Platform user ID of the commissioner")
    last_synced_at: Optional[datetime] = Field(default=None, description="Last successful sync timestamp")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")

    # Relationships (delete cascades to season children)
    rosters: List["RosterModel"] = Relationship(
        back_populates="league", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    drafts: List["DraftModel"] = Relationship(
        back_populates="league", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    traded_picks: List["TradedPickModel"] = Relationship(
        back_populates="league", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    transactions: List["TransactionModel"] = Relationship(
        back_populates="league", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    keeper_settings: Optional["KeeperSettingsModel"] = Relationship(
        back_populates="league", sa_relationship_kwargs={"cascade": "all, delete-orphan", "uselist": False}
    )


class UserModel(SQLModel, table=True):
    """Stable platform identity that persists across seasons."""

    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    sleeper_user_id: str = Field(unique=True, index=True, description="Platform user ID")
    username: Optional[str] = Field(default=None, description="Platform username")
    display_name: str = Field(default="", description="Display name")
    avatar: Optional[str] = Field(default=None, description="Avatar ID")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")


class RosterModel(SQLModel, table=True):
    """One team in one league season."""

    __tablename__ = "rosters"
    __table_args__ = (UniqueConstraint("league_id", "owner_id", name="uq_roster_league_owner"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="leagues.id", index=True, description="League season")
    owner_id: str = Field(index=True, description="Platform user ID of the owner (stable across seasons)")
    roster_slot: int = Field(description="Season-scoped platform roster slot")
    team_name: Optional[str] = Field(default=None, description="Team name")
    display_name: Optional[str] = Field(default=None, description="Owner display name")
    wins: int = Field(default=0, description="Season wins")
    losses: int = Field(default=0, description="Season losses")
    ties: int = Field(default=0, description="Season ties")
    points_for: float = Field(default=0.0, description="Season points for")
    points_against: float = Field(default=0.0, description="Season points against")
    player_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON), description="Current platform player IDs")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")

    # Relationships
    league: Optional[LeagueModel] = Relationship(back_populates="rosters")
    keepers: List["KeeperModel"] = Relationship(
        back_populates="roster", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class PlayerModel(SQLModel, table=True):
    """NFL player catalogue entry."""

    __tablename__ = "players"

    id: Optional[int] = Field(default=None, primary_key=True)
    sleeper_id: str = Field(unique=True, index=True, description="Platform player ID")
    full_name: str = Field(default="", description="Player full name")
    first_name: Optional[str] = Field(default=None, description="First name")
    last_name: Optional[str] = Field(default=None, description="Last name")
    position: Optional[str] = Field(default=None, description="Position")
    team: Optional[str] = Field(default=None, description="NFL team abbreviation")
    status: Optional[str] = Field(default=None, description="Player status")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")


class DraftModel(SQLModel, table=True):
    """Draft for one league season."""

    __tablename__ = "drafts"

    id: Optional[int] = Field(default=None, primary_key=True)
    external_id: str = Field(unique=True, index=True, description="Platform draft ID")
    league_id: int = Field(foreign_key="leagues.id", index=True, description="League season")
    season: int = Field(description="Season year")
    status: str = Field(default="PRE_DRAFT", description="Draft status")
    draft_type: str = Field(default="SNAKE", description="SNAKE, LINEAR or AUCTION")
    rounds: int = Field(default=16, description="Number of rounds")
    start_time: Optional[datetime] = Field(default=None, description="Draft start time")

    # Relationships
    league: Optional[LeagueModel] = Relationship(back_populates="drafts")
    picks: List["DraftPickModel"] = Relationship(
        back_populates="draft", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class DraftPickModel(SQLModel, table=True):
    """A single selection in a draft."""

    __tablename__ = "draft_picks"
    __table_args__ = (UniqueConstraint("draft_id", "round", "pick_no", name="uq_draft_pick"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    draft_id: int = Field(foreign_key="drafts.id", index=True, description="Draft")
    round: int = Field(description="Draft round")
    pick_no: int = Field(description="Overall pick number")
    draft_slot: Optional[int] = Field(default=None, description="Draft slot within the round")
    roster_id: int = Field(foreign_key="rosters.id", index=True, description="Roster that made the pick")
    owner_id: str = Field(index=True, description="Platform user ID of the picking owner")
    player_id: Optional[str] = Field(default=None, index=True, description="Platform player ID")
    is_keeper: bool = Field(default=False, description="Pick consumed by a kept player")

    # Relationships
    draft: Optional[DraftModel] = Relationship(back_populates="picks")


class TradedPickModel(SQLModel, table=True):
    """Current owner of a future draft pick, in stable owner-id space."""

    __tablename__ = "traded_picks"
    __table_args__ = (
        UniqueConstraint("league_id", "season", "round", "original_owner_id", name="uq_traded_pick"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="leagues.id", index=True, description="League season")
    season: int = Field(description="Season the pick belongs to")
    round: int = Field(description="Draft round")
    original_owner_id: str = Field(description="Platform user ID of the original owner")
    current_owner_id: str = Field(description="Platform user ID of the current owner")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")

    # Relationships
    league: Optional[LeagueModel] = Relationship(back_populates="traded_picks")


class KeeperModel(SQLModel, table=True):
    """Keeper declaration for one player on one roster season."""

    __tablename__ = "keepers"
    __table_args__ = (UniqueConstraint("roster_id", "player_id", "season", name="uq_keeper"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    roster_id: int = Field(foreign_key="rosters.id", index=True, description="Roster season")
    owner_id: str = Field(index=True, description="Platform user ID of the keeping owner")
    player_id: str = Field(index=True, description="Platform player ID")
    season: int = Field(index=True, description="Season the player is kept into")
    type: str = Field(default=KeeperType.REGULAR.value, description="REGULAR or FRANCHISE")
    base_cost: int = Field(description="Round cost before cascade")
    final_cost: int = Field(description="Round cost after cascade")
    years_kept: int = Field(default=0, description="Consecutive prior keeps by this owner")
    is_locked: bool = Field(default=False, description="Keeper is locked in")
    source: str = Field(default=KeeperSource.ENGINE.value, description="ENGINE or COMMISSIONER")
    is_removed: bool = Field(default=False, description="Removed by commissioner override")
    acquisition: Optional[str] = Field(default=None, description="How the keeping owner acquired the player")
    notes: Optional[str] = Field(default=None, description="Override annotation")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")

    # Relationships
    roster: Optional[RosterModel] = Relationship(back_populates="keepers")


class TransactionModel(SQLModel, table=True):
    """Trade, waiver or free-agent transaction."""

    __tablename__ = "transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    external_id: str = Field(unique=True, index=True, description="Platform transaction ID")
    league_id: int = Field(foreign_key="leagues.id", index=True, description="League season")
    type: str = Field(description="TRADE, WAIVER, FREE_AGENT or COMMISSIONER")
    status: str = Field(default="complete", description="Platform status")
    week: Optional[int] = Field(default=None, description="League week (leg)")
    created_at: Optional[datetime] = Field(default=None, description="Platform timestamp")

    # Relationships
    league: Optional[LeagueModel] = Relationship(back_populates="transactions")
    players: List["TransactionPlayerModel"] = Relationship(
        back_populates="transaction", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class TransactionPlayerModel(SQLModel, table=True):
    """Player movement line item. A null ``to_roster_id`` is a drop."""

    __tablename__ = "transaction_players"

    id: Optional[int] = Field(default=None, primary_key=True)
    transaction_id: int = Field(foreign_key="transactions.id", index=True, description="Transaction")
    player_id: str = Field(index=True, description="Platform player ID")
    from_roster_id: Optional[int] = Field(default=None, foreign_key="rosters.id", description="Roster the player left")
    to_roster_id: Optional[int] = Field(default=None, foreign_key="rosters.id", description="Roster the player joined")
    from_owner_id: Optional[str] = Field(default=None, description="Platform user ID the player left")
    to_owner_id: Optional[str] = Field(default=None, description="Platform user ID the player joined")

    # Relationships
    transaction: Optional[TransactionModel] = Relationship(back_populates="players")


class KeeperSettingsModel(SQLModel, table=True):
    """Per-league keeper rules."""

    __tablename__ = "keeper_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(foreign_key="leagues.id", unique=True, index=True, description="League season")
    max_keepers: int = Field(default=7, description="Maximum keepers per roster")
    max_franchise_tags: int = Field(default=2, description="Maximum franchise tags per roster")
    max_regular_keepers: int = Field(default=5, description="Maximum regular keepers per roster")
    regular_keeper_max_years: int = Field(default=2, description="Years a regular keeper may be kept")
    undrafted_round: int = Field(default=8, description="Cost round for undrafted players")
    minimum_round: int = Field(default=1, description="Cascade floor round")
    cost_reduction_per_year: int = Field(default=1, description="Rounds removed per year kept")
    trade_deadline_week: int = Field(default=11, description="Trade deadline week")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")

    # Relationships
    league: Optional[LeagueModel] = Relationship(back_populates="keeper_settings")


class AuditLogModel(SQLModel, table=True):
    """Append-only audit trail."""

    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    entity: str = Field(index=True, description="Audited entity type")
    entity_id: str = Field(index=True, description="Audited entity ID")
    action: str = Field(description="Action performed")
    actor_owner_id: Optional[str] = Field(default=None, description="Platform user ID of the actor")
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON), description="Action details")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
