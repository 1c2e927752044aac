"""
Repository for database operations in the Keeper League Sync store.

Every write is an upsert keyed by natural identity so that repeated syncs with
unchanged remote data leave the store untouched.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
from sqlmodel import Session, select, func
from sqlalchemy import text
import logging

from .models import (
    LeagueModel, UserModel, RosterModel, PlayerModel, DraftModel, DraftPickModel,
    TradedPickModel, KeeperModel, TransactionModel, TransactionPlayerModel,
    KeeperSettingsModel, AuditLogModel
)
from shared.models import (
    AcquisitionKind, ComputedKeeper, DraftSelection, KeeperSource, KeeperType,
    PlayerAcquisition, PriorKeeper, TradedPick
)

logger = logging.getLogger(__name__)


def _apply_fields(model: Any, fields: Dict[str, Any]) -> bool:
    """Set only the fields whose value differs. Returns True when anything changed."""
    changed = False
    for key, value in fields.items():
        if getattr(model, key) != value:
            setattr(model, key, value)
            changed = True
    if changed and hasattr(model, "updated_at"):
        model.updated_at = datetime.utcnow()
    return changed


class KeeperLeagueRepository:
    """Repository for league, roster, draft, transaction and keeper persistence."""

    def __init__(self, engine):
        """Initialize repository with database engine."""
        self.engine = engine

    @contextmanager
    def get_session(self):
        """
        Context manager for database sessions with automatic commit/rollback.

        Yields:
            Session: SQLModel database session
        """
        session = Session(self.engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        """Run a trivial query to check the connection."""
        with self.get_session() as session:
            session.connection().execute(text("SELECT 1"))
        return True

    def count_rows(self, model) -> int:
        """Count rows of a table model."""
        with self.get_session() as session:
            return session.exec(select(func.count()).select_from(model)).one()

    # League Methods

    def get_league(self, league_id: int) -> Optional[LeagueModel]:
        """
        Retrieve a league season by local ID.

        Args:
            league_id: Local league ID

        Returns:
            LeagueModel instance or None if not found
        """
        try:
            with self.get_session() as session:
                return session.get(LeagueModel, league_id)
        except Exception as e:
            logger.error(f"Error retrieving league {league_id}: {e}")
            raise

    def get_league_by_external_id(self, external_id: str) -> Optional[LeagueModel]:
        """
        Retrieve a league season by platform league ID.

        Args:
            external_id: Platform league ID

        Returns:
            LeagueModel instance or None if not found
        """
        try:
            with self.get_session() as session:
                statement = select(LeagueModel).where(LeagueModel.external_id == external_id)
                return session.exec(statement).first()
        except Exception as e:
            logger.error(f"Error retrieving league {external_id}: {e}")
            raise

    def get_leagues_by_external_ids(self, external_ids: Iterable[str]) -> Dict[str, LeagueModel]:
        """Map platform league IDs to stored league seasons."""
        ids = list(external_ids)
        if not ids:
            return {}
        with self.get_session() as session:
            statement = select(LeagueModel).where(LeagueModel.external_id.in_(ids))
            return {league.external_id: league for league in session.exec(statement).all()}

    def upsert_league(self, external_id: str, **fields) -> Tuple[LeagueModel, bool]:
        """
        Create the league season on first sync, update it afterwards.

        Args:
            external_id: Platform league ID
            **fields: Column values to store

        Returns:
            Tuple: (league, created)
        """
        try:
            with self.get_session() as session:
                statement = select(LeagueModel).where(LeagueModel.external_id == external_id)
                league = session.exec(statement).first()
                created = league is None
                if created:
                    league = LeagueModel(external_id=external_id, **fields)
                    session.add(league)
                    logger.info(f"Created league {external_id} ({fields.get('season')})")
                else:
                    _apply_fields(league, fields)
                session.flush()
                session.refresh(league)
                return league, created
        except Exception as e:
            logger.error(f"Error upserting league {external_id}: {e}")
            raise

    def mark_league_synced(self, league_id: int, synced_at: Optional[datetime] = None) -> None:
        """Record a successful sync."""
        with self.get_session() as session:
            league = session.get(LeagueModel, league_id)
            if league:
                league.last_synced_at = synced_at or datetime.utcnow()
                session.add(league)

    def list_synced_leagues(self) -> List[LeagueModel]:
        """
        Get every league that has been synced at least once.

        Returns:
            List of LeagueModel ordered by local ID
        """
        with self.get_session() as session:
            statement = (
                select(LeagueModel)
                .where(LeagueModel.last_synced_at.is_not(None))
                .order_by(LeagueModel.id)
            )
            return list(session.exec(statement).all())

    # User Methods

    def upsert_users(self, users: List[Dict[str, Any]]) -> int:
        """
        Upsert stable platform identities.

        Args:
            users: Dicts with sleeper_user_id plus display fields

        Returns:
            Number of users written
        """
        if not users:
            return 0
        try:
            with self.get_session() as session:
                ids = [user["sleeper_user_id"] for user in users]
                statement = select(UserModel).where(UserModel.sleeper_user_id.in_(ids))
                existing = {user.sleeper_user_id: user for user in session.exec(statement).all()}
                for data in users:
                    fields = {k: v for k, v in data.items() if k != "sleeper_user_id"}
                    row = existing.get(data["sleeper_user_id"])
                    if row is None:
                        row = UserModel(**data)
                        existing[row.sleeper_user_id] = row
                        session.add(row)
                    else:
                        _apply_fields(row, fields)
                return len(users)
        except Exception as e:
            logger.error(f"Error upserting {len(users)} users: {e}")
            raise

    def get_users(self, owner_ids: Iterable[str]) -> Dict[str, UserModel]:
        """Map platform user IDs to stored users."""
        ids = list(owner_ids)
        if not ids:
            return {}
        with self.get_session() as session:
            statement = select(UserModel).where(UserModel.sleeper_user_id.in_(ids))
            return {user.sleeper_user_id: user for user in session.exec(statement).all()}

    # Roster Methods

    def upsert_rosters(self, league_id: int, rosters: List[Dict[str, Any]]) -> int:
        """
        Upsert roster seasons keyed by (league, owner).

        Args:
            league_id: Local league ID
            rosters: Dicts with owner_id plus roster fields

        Returns:
            Number of rosters written
        """
        try:
            with self.get_session() as session:
                statement = select(RosterModel).where(RosterModel.league_id == league_id)
                existing = {roster.owner_id: roster for roster in session.exec(statement).all()}
                for data in rosters:
                    row = existing.get(data["owner_id"])
                    if row is None:
                        row = RosterModel(league_id=league_id, **data)
                        existing[row.owner_id] = row
                        session.add(row)
                    else:
                        _apply_fields(row, {k: v for k, v in data.items() if k != "owner_id"})
                logger.info(f"Upserted {len(rosters)} rosters for league {league_id}")
                return len(rosters)
        except Exception as e:
            logger.error(f"Error upserting rosters for league {league_id}: {e}")
            raise

    def get_rosters(self, league_id: int) -> List[RosterModel]:
        """Get every roster of a league season ordered by slot."""
        with self.get_session() as session:
            statement = (
                select(RosterModel)
                .where(RosterModel.league_id == league_id)
                .order_by(RosterModel.roster_slot)
            )
            return list(session.exec(statement).all())

    def get_roster(self, roster_id: int) -> Optional[RosterModel]:
        """Retrieve a roster by local ID."""
        with self.get_session() as session:
            return session.get(RosterModel, roster_id)

    def get_roster_by_owner(self, league_id: int, owner_id: str) -> Optional[RosterModel]:
        """Retrieve the roster an owner holds in a league season."""
        with self.get_session() as session:
            statement = select(RosterModel).where(
                RosterModel.league_id == league_id, RosterModel.owner_id == owner_id
            )
            return session.exec(statement).first()

    def get_roster_index(self, league_id: int) -> Dict[str, int]:
        """
        Build the owner ID -> roster ID index for one season.

        Args:
            league_id: Local league ID

        Returns:
            Dict mapping platform owner ID to local roster ID
        """
        return {roster.owner_id: roster.id for roster in self.get_rosters(league_id)}

    # Player Methods

    def upsert_players(self, players: List[Dict[str, Any]], batch_size: int = 100) -> int:
        """
        Upsert the player catalogue in batches.

        Args:
            players: Dicts with sleeper_id plus player fields
            batch_size: Rows written per transaction

        Returns:
            Number of players written
        """
        written = 0
        for start in range(0, len(players), batch_size):
            batch = players[start:start + batch_size]
            try:
                with self.get_session() as session:
                    ids = [player["sleeper_id"] for player in batch]
                    statement = select(PlayerModel).where(PlayerModel.sleeper_id.in_(ids))
                    existing = {p.sleeper_id: p for p in session.exec(statement).all()}
                    for data in batch:
                        row = existing.get(data["sleeper_id"])
                        if row is None:
                            row = PlayerModel(**data)
                            existing[row.sleeper_id] = row
                            session.add(row)
                        else:
                            _apply_fields(row, {k: v for k, v in data.items() if k != "sleeper_id"})
                written += len(batch)
            except Exception as e:
                logger.error(f"Error writing player batch starting at {start}: {e}")
                raise
        return written

    def ensure_players(self, player_ids: Iterable[str]) -> int:
        """
        Create stub rows for players not yet in the catalogue.

        Returns:
            Number of stubs created
        """
        ids = {pid for pid in player_ids if pid}
        if not ids:
            return 0
        with self.get_session() as session:
            statement = select(PlayerModel.sleeper_id).where(PlayerModel.sleeper_id.in_(list(ids)))
            known = set(session.exec(statement).all())
            missing = sorted(ids - known)
            for player_id in missing:
                session.add(PlayerModel(sleeper_id=player_id))
            return len(missing)

    def get_player(self, sleeper_id: str) -> Optional[PlayerModel]:
        """Retrieve a player by platform ID."""
        with self.get_session() as session:
            statement = select(PlayerModel).where(PlayerModel.sleeper_id == sleeper_id)
            return session.exec(statement).first()

    # Draft Methods

    def upsert_draft(self, league_id: int, external_id: str, **fields) -> Tuple[DraftModel, bool]:
        """
        Upsert a draft.

        Args:
            league_id: Local league ID
            external_id: Platform draft ID
            **fields: Column values to store

        Returns:
            Tuple: (draft, was_complete) where was_complete reflects the stored
            status before this write
        """
        with self.get_session() as session:
            statement = select(DraftModel).where(DraftModel.external_id == external_id)
            draft = session.exec(statement).first()
            was_complete = False
            if draft is None:
                draft = DraftModel(external_id=external_id, league_id=league_id, **fields)
                session.add(draft)
            else:
                was_complete = draft.status == "COMPLETE"
                _apply_fields(draft, fields)
            session.flush()
            session.refresh(draft)
            return draft, was_complete

    def upsert_draft_picks(self, draft_id: int, picks: List[Dict[str, Any]], locked: bool = False) -> int:
        """
        Upsert picks keyed by (draft, round, pick number).

        Picks of a completed draft are immutable except for the keeper flag.

        Args:
            draft_id: Local draft ID
            picks: Dicts with round, pick_no and pick fields
            locked: Draft was already complete before this sync

        Returns:
            Number of picks written
        """
        try:
            with self.get_session() as session:
                statement = select(DraftPickModel).where(DraftPickModel.draft_id == draft_id)
                existing = {(p.round, p.pick_no): p for p in session.exec(statement).all()}
                for data in picks:
                    row = existing.get((data["round"], data["pick_no"]))
                    if row is None:
                        row = DraftPickModel(draft_id=draft_id, **data)
                        existing[(row.round, row.pick_no)] = row
                        session.add(row)
                    elif locked:
                        _apply_fields(row, {"is_keeper": data.get("is_keeper", False)})
                    else:
                        _apply_fields(row, {k: v for k, v in data.items() if k not in ("round", "pick_no")})
                return len(picks)
        except Exception as e:
            logger.error(f"Error upserting picks for draft {draft_id}: {e}")
            raise

    def get_drafts(self, league_id: int) -> List[DraftModel]:
        """Get drafts of a league season."""
        with self.get_session() as session:
            statement = select(DraftModel).where(DraftModel.league_id == league_id).order_by(DraftModel.id)
            return list(session.exec(statement).all())

    def get_draft_start(self, league_id: int) -> Optional[datetime]:
        """Earliest known draft start time of a league season."""
        starts = [draft.start_time for draft in self.get_drafts(league_id) if draft.start_time]
        return min(starts) if starts else None

    def get_draft_selections(self, league_id: int, player_id: Optional[str] = None) -> List[DraftSelection]:
        """
        Get a league season's draft picks in stable owner-id space.

        Args:
            league_id: Local league ID
            player_id: Restrict to one player

        Returns:
            List of DraftSelection ordered by pick number
        """
        with self.get_session() as session:
            statement = (
                select(DraftPickModel, DraftModel)
                .join(DraftModel, DraftPickModel.draft_id == DraftModel.id)
                .where(DraftModel.league_id == league_id, DraftPickModel.player_id.is_not(None))
                .order_by(DraftPickModel.pick_no)
            )
            if player_id:
                statement = statement.where(DraftPickModel.player_id == player_id)
            return [
                DraftSelection(
                    player_id=pick.player_id,
                    owner_id=pick.owner_id,
                    season=draft.season,
                    round=pick.round,
                    pick_no=pick.pick_no,
                    is_keeper=pick.is_keeper
                )
                for pick, draft in session.exec(statement).all()
            ]

    # Traded Pick Methods

    def upsert_traded_picks(self, league_id: int, picks: List[TradedPick]) -> int:
        """
        Upsert traded picks keyed by (league, season, round, original owner).

        Only the current owner is updated on an existing row.

        Returns:
            Number of traded picks written
        """
        try:
            with self.get_session() as session:
                statement = select(TradedPickModel).where(TradedPickModel.league_id == league_id)
                existing = {
                    (p.season, p.round, p.original_owner_id): p for p in session.exec(statement).all()
                }
                for pick in picks:
                    key = (pick.season, pick.round, pick.original_owner_id)
                    row = existing.get(key)
                    if row is None:
                        row = TradedPickModel(league_id=league_id, **pick.model_dump())
                        existing[key] = row
                        session.add(row)
                    else:
                        _apply_fields(row, {"current_owner_id": pick.current_owner_id})
                return len(picks)
        except Exception as e:
            logger.error(f"Error upserting traded picks for league {league_id}: {e}")
            raise

    def get_traded_picks(self, league_id: int, season: Optional[int] = None) -> List[TradedPick]:
        """Get traded picks of a league season, optionally for one draft season."""
        with self.get_session() as session:
            statement = select(TradedPickModel).where(TradedPickModel.league_id == league_id)
            if season is not None:
                statement = statement.where(TradedPickModel.season == season)
            return [
                TradedPick(
                    season=row.season,
                    round=row.round,
                    original_owner_id=row.original_owner_id,
                    current_owner_id=row.current_owner_id
                )
                for row in session.exec(statement).all()
            ]

    # Transaction Methods

    def get_transaction_external_ids(self, league_id: int) -> Set[str]:
        """Platform IDs of transactions already stored for a league season."""
        with self.get_session() as session:
            statement = select(TransactionModel.external_id).where(TransactionModel.league_id == league_id)
            return set(session.exec(statement).all())

    def create_transaction(self, league_id: int, external_id: str, line_items: List[Dict[str, Any]], **fields) -> bool:
        """
        Store a transaction and its player line items once.

        Args:
            league_id: Local league ID
            external_id: Platform transaction ID
            line_items: Dicts with player_id and optional from/to roster and owner IDs
            **fields: Transaction column values

        Returns:
            True if created, False if it already existed
        """
        with self.get_session() as session:
            statement = select(TransactionModel.id).where(TransactionModel.external_id == external_id)
            if session.exec(statement).first() is not None:
                return False
            transaction = TransactionModel(league_id=league_id, external_id=external_id, **fields)
            session.add(transaction)
            session.flush()
            for item in line_items:
                session.add(TransactionPlayerModel(transaction_id=transaction.id, **item))
            return True

    def get_acquisitions(self, league_id: int, before: Optional[datetime] = None,
                         after: Optional[datetime] = None) -> List[PlayerAcquisition]:
        """
        Get player acquisitions (line items with a receiving owner) for a league season.

        Args:
            league_id: Local league ID
            before: Only transactions dated strictly before this time
            after: Only transactions dated at or after this time (undated ones are kept)

        Returns:
            List of PlayerAcquisition in stored order
        """
        with self.get_session() as session:
            league = session.get(LeagueModel, league_id)
            if league is None:
                return []
            statement = (
                select(TransactionPlayerModel, TransactionModel)
                .join(TransactionModel, TransactionPlayerModel.transaction_id == TransactionModel.id)
                .where(TransactionModel.league_id == league_id, TransactionPlayerModel.to_owner_id.is_not(None))
                .order_by(TransactionModel.id, TransactionPlayerModel.id)
            )
            if before is not None:
                statement = statement.where(TransactionModel.created_at < before)
            if after is not None:
                statement = statement.where(
                    (TransactionModel.created_at.is_(None)) | (TransactionModel.created_at >= after)
                )
            acquisitions = []
            for item, transaction in session.exec(statement).all():
                try:
                    kind = AcquisitionKind(transaction.type)
                except ValueError:
                    kind = AcquisitionKind.UNKNOWN
                acquisitions.append(PlayerAcquisition(
                    player_id=item.player_id,
                    kind=kind,
                    to_owner_id=item.to_owner_id,
                    from_owner_id=item.from_owner_id,
                    league_season=league.season,
                    week=transaction.week,
                    occurred_at=transaction.created_at
                ))
            return acquisitions

    def get_player_transactions(self, league_id: int, player_id: str) -> List[Tuple[TransactionModel, TransactionPlayerModel]]:
        """Get every line item for one player in a league season with its transaction."""
        with self.get_session() as session:
            statement = (
                select(TransactionModel, TransactionPlayerModel)
                .join(TransactionPlayerModel, TransactionPlayerModel.transaction_id == TransactionModel.id)
                .where(TransactionModel.league_id == league_id, TransactionPlayerModel.player_id == player_id)
                .order_by(TransactionModel.id)
            )
            return list(session.exec(statement).all())

    # Keeper Methods

    def get_keepers(self, league_id: int, season: Optional[int] = None,
                    include_removed: bool = False, player_id: Optional[str] = None) -> List[KeeperModel]:
        """
        Get keeper rows attached to a league season's rosters.

        Args:
            league_id: Local league ID
            season: Restrict to one keeper season
            include_removed: Include commissioner-removed tombstones
            player_id: Restrict to one player

        Returns:
            List of KeeperModel
        """
        with self.get_session() as session:
            statement = (
                select(KeeperModel)
                .join(RosterModel, KeeperModel.roster_id == RosterModel.id)
                .where(RosterModel.league_id == league_id)
                .order_by(KeeperModel.owner_id, KeeperModel.final_cost, KeeperModel.player_id)
            )
            if season is not None:
                statement = statement.where(KeeperModel.season == season)
            if not include_removed:
                statement = statement.where(KeeperModel.is_removed == False)  # noqa: E712
            if player_id:
                statement = statement.where(KeeperModel.player_id == player_id)
            return list(session.exec(statement).all())

    def get_prior_keepers(self, league_id: int, season: int) -> List[PriorKeeper]:
        """Active keeper rows of a league season as engine history."""
        return [
            PriorKeeper(
                player_id=row.player_id,
                owner_id=row.owner_id,
                season=row.season,
                type=KeeperType(row.type),
                base_cost=row.base_cost,
                final_cost=row.final_cost,
                years_kept=row.years_kept
            )
            for row in self.get_keepers(league_id, season)
        ]

    def get_keeper(self, roster_id: int, player_id: str, season: int) -> Optional[KeeperModel]:
        """Retrieve a keeper row by its natural key."""
        with self.get_session() as session:
            statement = select(KeeperModel).where(
                KeeperModel.roster_id == roster_id,
                KeeperModel.player_id == player_id,
                KeeperModel.season == season
            )
            return session.exec(statement).first()

    def upsert_engine_keeper(self, keeper: ComputedKeeper, force: bool = False) -> str:
        """
        Write an engine-derived keeper row keyed by (roster, player, season).

        Commissioner rows are left untouched unless ``force`` is set.

        Args:
            keeper: Engine output
            force: Overwrite commissioner overrides

        Returns:
            "created", "updated", "unchanged" or "skipped"
        """
        with self.get_session() as session:
            statement = select(KeeperModel).where(
                KeeperModel.roster_id == keeper.roster_id,
                KeeperModel.player_id == keeper.player_id,
                KeeperModel.season == keeper.season
            )
            row = session.exec(statement).first()
            fields = {
                "owner_id": keeper.owner_id,
                "type": keeper.type.value,
                "base_cost": keeper.base_cost,
                "final_cost": keeper.final_cost,
                "years_kept": keeper.years_kept,
                "acquisition": keeper.acquisition.value,
            }
            if row is None:
                session.add(KeeperModel(
                    roster_id=keeper.roster_id,
                    player_id=keeper.player_id,
                    season=keeper.season,
                    source=KeeperSource.ENGINE.value,
                    **fields
                ))
                return "created"
            if row.source == KeeperSource.COMMISSIONER.value:
                if not force:
                    logger.info(
                        f"Preserving commissioner keeper {keeper.player_id} on roster {keeper.roster_id} ({keeper.season})"
                    )
                    return "skipped"
                fields.update({"source": KeeperSource.ENGINE.value, "is_removed": False, "notes": None})
            return "updated" if _apply_fields(row, fields) else "unchanged"

    def save_commissioner_keeper(self, roster_id: int, owner_id: str, player_id: str,
                                 season: int, **fields) -> KeeperModel:
        """
        Create or update a keeper row tagged as a commissioner override.

        Args:
            roster_id: Local roster ID
            owner_id: Platform owner ID of the roster
            player_id: Platform player ID
            season: Keeper season
            **fields: Keeper columns to set

        Returns:
            The stored KeeperModel
        """
        try:
            with self.get_session() as session:
                statement = select(KeeperModel).where(
                    KeeperModel.roster_id == roster_id,
                    KeeperModel.player_id == player_id,
                    KeeperModel.season == season
                )
                row = session.exec(statement).first()
                fields["source"] = KeeperSource.COMMISSIONER.value
                if row is None:
                    row = KeeperModel(
                        roster_id=roster_id, owner_id=owner_id, player_id=player_id, season=season, **fields
                    )
                    session.add(row)
                else:
                    _apply_fields(row, fields)
                    row.updated_at = datetime.utcnow()
                session.flush()
                session.refresh(row)
                return row
        except Exception as e:
            logger.error(f"Error saving commissioner keeper {player_id} on roster {roster_id}: {e}")
            raise

    # Keeper Settings Methods

    def get_keeper_settings(self, league_id: int) -> Optional[KeeperSettingsModel]:
        """Retrieve the keeper settings row of a league season."""
        with self.get_session() as session:
            statement = select(KeeperSettingsModel).where(KeeperSettingsModel.league_id == league_id)
            return session.exec(statement).first()

    def save_keeper_settings(self, league_id: int, values: Dict[str, Any]) -> KeeperSettingsModel:
        """
        Create or update keeper settings for a league season.

        Args:
            league_id: Local league ID
            values: Column values (already validated)

        Returns:
            The stored KeeperSettingsModel
        """
        try:
            with self.get_session() as session:
                statement = select(KeeperSettingsModel).where(KeeperSettingsModel.league_id == league_id)
                row = session.exec(statement).first()
                if row is None:
                    row = KeeperSettingsModel(league_id=league_id, **values)
                    session.add(row)
                else:
                    _apply_fields(row, values)
                session.flush()
                session.refresh(row)
                logger.info(f"Saved keeper settings for league {league_id}")
                return row
        except Exception as e:
            logger.error(f"Error saving keeper settings for league {league_id}: {e}")
            raise

    # Audit Log Methods

    def add_audit_log(self, entity: str, entity_id: str, action: str,
                      actor_owner_id: Optional[str], details: Dict[str, Any]) -> AuditLogModel:
        """Append an audit entry."""
        with self.get_session() as session:
            entry = AuditLogModel(
                entity=entity,
                entity_id=entity_id,
                action=action,
                actor_owner_id=actor_owner_id,
                details=details
            )
            session.add(entry)
            session.flush()
            session.refresh(entry)
            return entry

    def get_audit_logs(self, entity: str, entity_id: str, limit: int = 100) -> List[AuditLogModel]:
        """Get audit entries for an entity, newest first."""
        with self.get_session() as session:
            statement = (
                select(AuditLogModel)
                .where(AuditLogModel.entity == entity, AuditLogModel.entity_id == entity_id)
                .order_by(AuditLogModel.created_at.desc(), AuditLogModel.id.desc())
                .limit(limit)
            )
            return list(session.exec(statement).all())
