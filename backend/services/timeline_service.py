"""
Player transaction timeline.

Merges draft picks, keeper rows and transaction line items into one
chronological history per player, then removes draft-day corrections: a
player dropped into the pool and re-drafted by the same league within a day
shows up as a DROPPED/DRAFTED pair that never reflected a real move.
"""

import logging
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from backend.config import settings
from backend.errors import NotFoundError
from backend.services.league_chain import resolve_chain_leagues
from shared.models import KeeperType, PlayerTimeline, TimelineEvent, TimelineEventType, TimelineSummary

logger = logging.getLogger(__name__)

EVENT_PRIORITY = {
    TimelineEventType.DRAFTED: 1,
    TimelineEventType.TRADED: 2,
    TimelineEventType.WAIVER: 3,
    TimelineEventType.FREE_AGENT: 4,
    TimelineEventType.DROPPED: 5,
    TimelineEventType.KEPT_REGULAR: 6,
    TimelineEventType.KEPT_FRANCHISE: 7,
}

GLITCH_WINDOW = timedelta(days=1)
GLITCH_LOOKAHEAD = 3

TRANSACTION_EVENT_TYPES = {
    "TRADE": TimelineEventType.TRADED,
    "WAIVER": TimelineEventType.WAIVER,
    "FREE_AGENT": TimelineEventType.FREE_AGENT,
    "COMMISSIONER": TimelineEventType.FREE_AGENT,
}


def event_sort_key(event: TimelineEvent):
    """Season, then timestamp (undated first), then event-type priority."""
    timestamp = event.occurred_at.timestamp() if event.occurred_at else float("-inf")
    return event.season, timestamp, EVENT_PRIORITY[event.event_type]


def sort_events(events: Iterable[TimelineEvent]) -> List[TimelineEvent]:
    """Order events chronologically."""
    return sorted(events, key=event_sort_key)


def filter_draft_glitches(events: Iterable[TimelineEvent], window: timedelta = GLITCH_WINDOW,
                          lookahead: int = GLITCH_LOOKAHEAD) -> Tuple[List[TimelineEvent], int]:
    """
    Drop DROPPED -> DRAFTED correction pairs.

    From every DROPPED event, the next ``lookahead`` events are scanned for a
    DRAFTED event in the same league within ``window``; both are removed.
    DRAFTED events carry the draft start time, so a drop made while the draft
    is running sorts after its re-draft: the preceding ``lookahead`` events
    are scanned too when nothing follows. Re-acquisitions through waivers or
    free agency never match.

    Args:
        events: Timeline events
        window: Maximum gap between the drop and the re-draft
        lookahead: Number of neighbouring events to scan on each side

    Returns:
        Tuple: (remaining events in chronological order, number of pairs removed)
    """
    ordered = sort_events(events)
    removed = set()
    pairs = 0

    for index, event in enumerate(ordered):
        if index in removed or event.event_type != TimelineEventType.DROPPED or event.occurred_at is None:
            continue
        neighbours = [index + offset for offset in range(1, lookahead + 1)]
        neighbours += [index - offset for offset in range(1, lookahead + 1)]
        for candidate_index in neighbours:
            if candidate_index < 0 or candidate_index >= len(ordered) or candidate_index in removed:
                continue
            candidate = ordered[candidate_index]
            if candidate.event_type != TimelineEventType.DRAFTED or candidate.league_id != event.league_id:
                continue
            if candidate.occurred_at is None:
                continue
            if abs(candidate.occurred_at - event.occurred_at) <= window:
                removed.update((index, candidate_index))
                pairs += 1
                logger.debug(f"Removed draft-day correction for league {event.league_id} at {event.occurred_at}")
                break

    return [event for index, event in enumerate(ordered) if index not in removed], pairs


def summarize(events: Iterable[TimelineEvent]) -> TimelineSummary:
    """Count events by kind."""
    summary = TimelineSummary()
    for event in events:
        if event.event_type == TimelineEventType.DRAFTED:
            summary.drafted += 1
        elif event.event_type == TimelineEventType.KEPT_FRANCHISE:
            summary.kept += 1
            summary.franchise += 1
        elif event.event_type == TimelineEventType.KEPT_REGULAR:
            summary.kept += 1
            summary.regular += 1
        elif event.event_type == TimelineEventType.TRADED:
            summary.trades += 1
        elif event.event_type == TimelineEventType.WAIVER:
            summary.waiver_pickups += 1
        elif event.event_type == TimelineEventType.FREE_AGENT:
            summary.fa_pickups += 1
        elif event.event_type == TimelineEventType.DROPPED:
            summary.drops += 1
    return summary


def group_by_league(events: Iterable[TimelineEvent]) -> Dict[str, List[TimelineEvent]]:
    """Group events by the league they were recorded in, preserving order."""
    grouped: Dict[str, List[TimelineEvent]] = {}
    for event in events:
        grouped.setdefault(event.league_id, []).append(event)
    return grouped


class TimelineService:
    """Builds player timelines from stored league data."""

    def __init__(self, repository):
        self.repository = repository

    def league_events(self, league, player_id: str) -> List[TimelineEvent]:
        """
        Collect one player's events in a single league season.

        Args:
            league: Stored LeagueModel
            player_id: Platform player ID

        Returns:
            Unsorted list of TimelineEvent
        """
        events: List[TimelineEvent] = []
        draft_start = self.repository.get_draft_start(league.id)

        for selection in self.repository.get_draft_selections(league.id, player_id=player_id):
            if selection.is_keeper:
                continue
            events.append(TimelineEvent(
                event_type=TimelineEventType.DRAFTED,
                season=league.season,
                league_id=league.external_id,
                occurred_at=draft_start,
                owner_id=selection.owner_id,
                round=selection.round
            ))

        for keeper in self.repository.get_keepers(league.id, player_id=player_id):
            kept_type = (
                TimelineEventType.KEPT_FRANCHISE
                if keeper.type == KeeperType.FRANCHISE.value else TimelineEventType.KEPT_REGULAR
            )
            events.append(TimelineEvent(
                event_type=kept_type,
                season=keeper.season,
                league_id=league.external_id,
                occurred_at=draft_start,
                owner_id=keeper.owner_id,
                cost=keeper.final_cost
            ))

        for transaction, item in self.repository.get_player_transactions(league.id, player_id):
            if item.to_owner_id is None:
                if item.from_owner_id is None:
                    continue
                event_type = TimelineEventType.DROPPED
            else:
                event_type = TRANSACTION_EVENT_TYPES.get(transaction.type)
                if event_type is None:
                    continue
            events.append(TimelineEvent(
                event_type=event_type,
                season=league.season,
                league_id=league.external_id,
                occurred_at=transaction.created_at,
                week=transaction.week,
                owner_id=item.to_owner_id,
                from_owner_id=item.from_owner_id,
                transaction_id=transaction.external_id
            ))

        return events

    def get_player_timeline(self, external_league_id: str, player_id: str,
                            max_depth: Optional[int] = None) -> PlayerTimeline:
        """
        Build a player's filtered timeline across the league chain.

        Args:
            external_league_id: Any season's platform league ID
            player_id: Platform player ID
            max_depth: Chain depth limit (defaults to settings)

        Returns:
            PlayerTimeline

        Raises:
            NotFoundError: If the league is not stored
        """
        leagues = resolve_chain_leagues(
            self.repository, external_league_id, max_depth or settings.MAX_CHAIN_DEPTH
        )
        if not leagues:
            raise NotFoundError("League", external_league_id)

        raw_events: List[TimelineEvent] = []
        for league in leagues:
            raw_events.extend(self.league_events(league, player_id))

        events, removed = filter_draft_glitches(raw_events)
        player = self.repository.get_player(player_id)
        logger.info(
            f"Timeline for player {player_id}: {len(events)} events across {len(leagues)} season(s), "
            f"{removed} draft-day correction(s) removed"
        )
        return PlayerTimeline(
            player_id=player_id,
            player_name=player.full_name if player and player.full_name else None,
            events=events,
            by_league=group_by_league(events),
            summary=summarize(events),
            removed_glitches=removed
        )
