"""
Shared dependency injection functions for FastAPI.
"""

from typing import Optional
import logging

from fastapi import Header

from backend.session.database import get_repository
from backend.session.repository import KeeperLeagueRepository
from backend.services.redis_service import RedisService
from backend.services.sleeper_service import sleeper_service
from backend.services.keeper_service import KeeperService
from backend.services.timeline_service import TimelineService
from backend.services.sync_service import SyncService
from backend.services.sync_actions import SyncDispatcher
from backend.config import settings

logger = logging.getLogger(__name__)

# Global service instances
_redis_service = None
_redis_checked = False


def get_keeper_repository() -> KeeperLeagueRepository:
    """
    Dependency to get the keeper league repository.

    Returns:
        KeeperLeagueRepository: Singleton repository instance
    """
    return get_repository()


def get_redis_service() -> Optional[RedisService]:
    """
    Dependency to get the Redis service.

    Returns:
        RedisService: Singleton Redis service instance or None if unavailable
    """
    global _redis_service, _redis_checked

    if _redis_service is None and not _redis_checked:
        _redis_checked = True
        try:
            service = RedisService(
                redis_host=settings.REDIS_HOST,
                redis_port=settings.REDIS_PORT,
                redis_db=settings.REDIS_DB,
                redis_password=settings.REDIS_PASSWORD,
                redis_ssl=settings.REDIS_SSL,
                decode_responses=settings.REDIS_DECODE_RESPONSES
            )
            if service.is_connected():
                _redis_service = service
            else:
                logger.warning("Redis service created but connection failed, sync throttling disabled")
        except Exception as e:
            logger.error(f"Failed to create Redis service: {e}")

    return _redis_service


def get_sleeper_service():
    """
    Dependency to get the Sleeper service.

    Returns:
        SleeperService: Singleton Sleeper service instance
    """
    return sleeper_service


def get_keeper_service() -> KeeperService:
    """Dependency to get the keeper service."""
    return KeeperService(get_repository())


def get_timeline_service() -> TimelineService:
    """Dependency to get the timeline service."""
    return TimelineService(get_repository())


def get_sync_service() -> SyncService:
    """Dependency to get the sync orchestrator."""
    repository = get_repository()
    return SyncService(repository, get_sleeper_service(), KeeperService(repository))


def get_sync_dispatcher() -> SyncDispatcher:
    """Dependency to get the sync action dispatcher."""
    return SyncDispatcher(get_sync_service(), get_redis_service())


def get_caller_owner_id(x_owner_id: Optional[str] = Header(None, alias="X-Owner-Id")) -> Optional[str]:
    """
    Caller identity: the platform owner ID forwarded by the authenticating front end.

    Returns:
        Owner ID or None when the header is absent
    """
    return x_owner_id.strip() if x_owner_id and x_owner_id.strip() else None
