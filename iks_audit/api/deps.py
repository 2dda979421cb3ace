"""Dependency injection for API routes.

This module provides FastAPI dependencies for:
- The acting user, resolved from the ``X-User-Id`` header against the roster
- Service instances (selection, verification, roster)
- Translation of workflow errors into structured HTTP errors

There is no login: whoever the header names is the acting user, and
switching identity is simply sending a different header.
"""

from fastapi import Depends, Header, HTTPException, status

from iks_audit.core.exceptions import WorkflowError
from iks_audit.core.logging import get_logger
from iks_audit.models.user import User
from iks_audit.services.roster import RosterService, get_roster_service
from iks_audit.services.selection import (
    QuarterSelectionService,
    get_quarter_selection_service,
)
from iks_audit.services.verification import (
    VerificationService,
    get_verification_service,
)

logger = get_logger(__name__)

USER_HEADER = "X-User-Id"


def _get_roster_service() -> RosterService:
    return get_roster_service()


def _get_selection_service() -> QuarterSelectionService:
    return get_quarter_selection_service()


def _get_verification_service() -> VerificationService:
    return get_verification_service()


def workflow_http_error(e: WorkflowError) -> HTTPException:
    """HTTPException carrying the error's status and structured body."""
    return HTTPException(status_code=e.status_code, detail=e.to_error_detail())


async def get_acting_user(
    x_user_id: str | None = Header(None, alias=USER_HEADER),
    roster: RosterService = Depends(_get_roster_service),
) -> User:
    """Resolve the acting user from the request header.

    Raises:
        HTTPException: 401 if the header is missing or names no roster user.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "USER_REQUIRED",
                    "message": f"Missing {USER_HEADER} header",
                    "details": {},
                }
            },
        )

    user = await roster.get_user(x_user_id)
    if user is None:
        logger.warning("acting_user_unknown", user_id=x_user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "UNKNOWN_USER",
                    "message": f"User {x_user_id} is not on the roster",
                    "details": {"userId": x_user_id},
                }
            },
        )

    return user
