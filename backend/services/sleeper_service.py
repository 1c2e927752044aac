"""
Sleeper API integration service for fetching NFL league data.

All responses are season-scoped JSON keyed by the platform's own roster slots
and string IDs; nothing here translates identities.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional
import httpx

from backend.config import settings
from backend.errors import ExternalServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "Sleeper API"
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class SleeperService:
    """Service for interacting with Sleeper API."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 max_retries: Optional[int] = None, retry_delay: Optional[float] = None):
        """Initialize Sleeper service with HTTP client."""
        self.base_url = base_url or settings.SLEEPER_API_BASE_URL
        self.timeout = timeout or settings.SLEEPER_API_TIMEOUT
        self.max_retries = settings.SLEEPER_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = settings.SLEEPER_RETRY_DELAY if retry_delay is None else retry_delay
        self.client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _ensure_client(self):
        """Ensure the HTTP client is open and ready."""
        if self.client is None or self.client.is_closed:
            logger.info("Creating Sleeper HTTP client")
            self.client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"User-Agent": "Keeper League Sync"}
            )

    async def close(self):
        """Close the HTTP client."""
        if self.client and not self.client.is_closed:
            await self.client.aclose()

    async def _get_json(self, path: str, allow_not_found: bool = False,
                        timeout: Optional[float] = None) -> Any:
        """
        GET a Sleeper endpoint with retries on rate limiting and server errors.

        Args:
            path: Endpoint path relative to the base URL
            allow_not_found: Return None on 404 instead of raising
            timeout: Per-request timeout override

        Returns:
            Decoded JSON body (None on an allowed 404)

        Raises:
            ExternalServiceError: When the API stays unreachable or answers with
                an error or undecodable body
        """
        self._ensure_client()
        request_timeout = timeout or self.timeout

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.get(path, timeout=request_timeout)
            except httpx.RequestError as e:
                if attempt < self.max_retries:
                    await self._backoff(path, attempt, f"{type(e).__name__}: {e}")
                    continue
                logger.error(f"Request error fetching {path}: {e}")
                raise ExternalServiceError(SERVICE_NAME, f"request to {path} failed: {e}", {"path": path}) from e

            if response.status_code == 404 and allow_not_found:
                logger.warning(f"Sleeper resource not found: {path}")
                return None

            if response.status_code in RETRYABLE_STATUS_CODES:
                if attempt < self.max_retries:
                    await self._backoff(path, attempt, f"HTTP {response.status_code}")
                    continue
                logger.error(f"Sleeper API gave up on {path} after {attempt + 1} attempts (HTTP {response.status_code})")

            if response.status_code >= 400:
                raise ExternalServiceError(
                    SERVICE_NAME,
                    f"HTTP {response.status_code} for {path}",
                    {"path": path, "status_code": response.status_code}
                )

            try:
                return response.json()
            except ValueError as e:
                logger.error(f"JSON decode error fetching {path}: {e}")
                raise ExternalServiceError(SERVICE_NAME, f"malformed JSON from {path}", {"path": path}) from e

        raise ExternalServiceError(SERVICE_NAME, f"retries exhausted for {path}", {"path": path})

    async def _backoff(self, path: str, attempt: int, reason: str):
        """Sleep before the next attempt (exponential backoff)."""
        delay = self.retry_delay * (2 ** attempt)
        logger.warning(f"Retrying {path} in {delay:.1f}s (attempt {attempt + 1}/{self.max_retries}): {reason}")
        await asyncio.sleep(delay)

    async def _get_list(self, path: str) -> List[Dict]:
        """GET an endpoint that returns a JSON array (null is treated as empty)."""
        data = await self._get_json(path)
        if data is None:
            return []
        if not isinstance(data, list):
            raise ExternalServiceError(SERVICE_NAME, f"expected a list from {path}", {"path": path})
        return data

    async def get_league(self, league_id: str) -> Optional[Dict]:
        """
        Get league metadata.

        Args:
            league_id: Sleeper league ID

        Returns:
            Dict: League data including season and previous_league_id, or None if not found
        """
        logger.info(f"Fetching Sleeper league {league_id}")
        data = await self._get_json(f"/league/{league_id}", allow_not_found=True)
        if data is not None and not isinstance(data, dict):
            raise ExternalServiceError(SERVICE_NAME, f"expected an object for league {league_id}")
        return data

    async def get_rosters(self, league_id: str) -> List[Dict]:
        """
        Get all rosters in a league.

        Args:
            league_id: Sleeper league ID

        Returns:
            List of roster dicts keyed by roster_id (slot) and owner_id
        """
        return await self._get_list(f"/league/{league_id}/rosters")

    async def get_users(self, league_id: str) -> List[Dict]:
        """
        Get all users in a league.

        Args:
            league_id: Sleeper league ID

        Returns:
            List of user dicts with user_id, display_name and metadata.team_name
        """
        return await self._get_list(f"/league/{league_id}/users")

    async def get_drafts(self, league_id: str) -> List[Dict]:
        """Get drafts of a league season."""
        return await self._get_list(f"/league/{league_id}/drafts")

    async def get_draft_picks(self, draft_id: str) -> List[Dict]:
        """Get every pick of a draft (roster_id is the season roster slot)."""
        return await self._get_list(f"/draft/{draft_id}/picks")

    async def get_traded_picks(self, league_id: str) -> List[Dict]:
        """
        Get traded future picks.

        Args:
            league_id: Sleeper league ID

        Returns:
            List of dicts where roster_id is the original owner's slot and
            owner_id is the current owner's slot
        """
        return await self._get_list(f"/league/{league_id}/traded_picks")

    async def get_transactions(self, league_id: str, week: int) -> List[Dict]:
        """
        Get transactions recorded in one league week.

        Args:
            league_id: Sleeper league ID
            week: League week (leg)

        Returns:
            List of transaction dicts
        """
        return await self._get_list(f"/league/{league_id}/transactions/{week}")

    async def get_winners_bracket(self, league_id: str) -> List[Dict]:
        """Get the playoff winners bracket."""
        return await self._get_list(f"/league/{league_id}/winners_bracket")

    async def get_losers_bracket(self, league_id: str) -> List[Dict]:
        """Get the playoff losers (consolation) bracket."""
        return await self._get_list(f"/league/{league_id}/losers_bracket")

    async def get_user_leagues(self, user_id: str, season: str) -> List[Dict]:
        """
        Get all NFL leagues for a user in a season.

        Args:
            user_id: Sleeper user ID
            season: Season year

        Returns:
            List of league dicts
        """
        return await self._get_list(f"/user/{user_id}/leagues/nfl/{season}")

    async def get_nfl_players(self) -> Dict[str, Dict]:
        """
        Get all NFL players from Sleeper API.

        Returns:
            Dict: Dictionary of {player_id: player_data}
        """
        logger.info("Fetching NFL players from Sleeper API (this may take 30+ seconds)")
        start_time = time.time()
        data = await self._get_json("/players/nfl", timeout=settings.SLEEPER_PLAYERS_TIMEOUT)
        if not isinstance(data, dict):
            raise ExternalServiceError(SERVICE_NAME, "expected an object for the player catalogue")
        logger.info(f"Retrieved {len(data)} NFL players in {time.time() - start_time:.2f}s")
        return data


# Singleton instance for dependency injection
sleeper_service = SleeperService()
