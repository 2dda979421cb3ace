"""Roster endpoints."""

from fastapi import APIRouter, Depends

from iks_audit.api.deps import _get_roster_service
from iks_audit.core.logging import get_logger
from iks_audit.models.user import UserListResponse
from iks_audit.services.roster import RosterService

router = APIRouter(prefix="/users", tags=["users"])
logger = get_logger(__name__)


@router.get("", response_model=UserListResponse)
async def list_users(
    roster: RosterService = Depends(_get_roster_service),
) -> UserListResponse:
    """List the users taking part in the audit cycle.

    Any roster member may be sent as ``X-User-Id`` to act as that user.
    """
    return UserListResponse(data=await roster.list_users())


@router.post("/refresh", response_model=UserListResponse)
async def refresh_users(
    roster: RosterService = Depends(_get_roster_service),
) -> UserListResponse:
    """Re-read the roster from case management."""
    users = await roster.refresh()
    logger.info("roster_refreshed", count=len(users))
    return UserListResponse(data=users)
