"""
League access checks.

Authorization is a plain ownership test: a caller may act on a league when they
own one of its rosters or are its commissioner.
"""

import logging
from typing import Optional

from backend.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)


def is_commissioner(league, owner_id: Optional[str]) -> bool:
    """True when the caller is the league's commissioner."""
    return bool(owner_id) and league.commissioner_owner_id == owner_id


def require_caller(owner_id: Optional[str]) -> str:
    """Reject anonymous callers."""
    if not owner_id:
        raise UnauthorizedError("Caller owner ID is required")
    return owner_id


def require_league_access(repository, league, owner_id: Optional[str]) -> str:
    """
    Ensure the caller owns a roster in the league or is its commissioner.

    Raises:
        UnauthorizedError: If no caller identity was supplied
        ForbiddenError: If the caller has no stake in the league
    """
    owner_id = require_caller(owner_id)
    if is_commissioner(league, owner_id):
        return owner_id
    if repository.get_roster_by_owner(league.id, owner_id) is None:
        logger.warning(f"Owner {owner_id} denied access to league {league.external_id}")
        raise ForbiddenError("You don't have access to this league", {"league_id": league.external_id})
    return owner_id


def require_commissioner(league, owner_id: Optional[str]) -> str:
    """
    Ensure the caller is the league's commissioner.

    Raises:
        UnauthorizedError: If no caller identity was supplied
        ForbiddenError: If the caller is not the commissioner
    """
    owner_id = require_caller(owner_id)
    if not is_commissioner(league, owner_id):
        logger.warning(f"Owner {owner_id} attempted a commissioner action on league {league.external_id}")
        raise ForbiddenError("Only the commissioner can perform this action", {"league_id": league.external_id})
    return owner_id
