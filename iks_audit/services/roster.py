"""Roster of users taking part in the audit cycle.

The roster is read from case management once per process and then served
from memory; it does not change during a session. Without a configured
case-management boundary the built-in demo roster is used.
"""

from __future__ import annotations

import asyncio
import threading

from iks_audit.core.logging import get_logger
from iks_audit.models.user import User, UserRole
from iks_audit.services.case_management import (
    CaseManagementClient,
    get_case_management_client,
)

logger = get_logger(__name__)

DEMO_ROSTER: tuple[User, ...] = (
    User(id="1", name="John Smith", role=UserRole.SPECIALIST),
    User(id="2", name="Jane Doe", role=UserRole.STAFF),
    User(id="3", name="Robert Johnson", role=UserRole.STAFF),
    User(id="4", name="Emily Davis", role=UserRole.TEAM_LEADER),
    User(id="5", name="Michael Brown", role=UserRole.STAFF),
    User(id="6", name="Sarah Wilson", role=UserRole.SPECIALIST),
    User(id="7", name="David Thompson", role=UserRole.STAFF),
    User(id="8", name="Lisa Garcia", role=UserRole.STAFF),
)


class RosterService:
    """Cached roster lookup."""

    def __init__(self, client: CaseManagementClient | None = None) -> None:
        self._client = client or get_case_management_client()
        self._users: list[User] | None = None
        self._lock = asyncio.Lock()

    async def list_users(self) -> list[User]:
        """Roster in source order; read on first use.

        An empty read is not cached, so an unreachable case-management
        system is asked again on the next call.
        """
        if self._users is None:
            async with self._lock:
                if self._users is None:
                    users = await self._load()
                    if not users:
                        return []
                    self._users = users
        return list(self._users)

    async def refresh(self) -> list[User]:
        """Drop the cached roster and read it again."""
        async with self._lock:
            self._users = None
        return await self.list_users()

    async def get_user(self, user_id: str) -> User | None:
        for user in await self.list_users():
            if user.id == user_id:
                return user
        return None

    async def _load(self) -> list[User]:
        if not self._client.is_configured:
            logger.info("roster_loaded", source="demo", count=len(DEMO_ROSTER))
            return list(DEMO_ROSTER)

        users = await self._client.fetch_users()
        logger.info("roster_loaded", source="case_management", count=len(users))
        return users


# =============================================================================
# Singleton Factory
# =============================================================================

_roster_service: RosterService | None = None
_roster_lock = threading.Lock()


def get_roster_service() -> RosterService:
    """Get singleton RosterService instance."""
    global _roster_service  # noqa: PLW0603

    if _roster_service is None:
        with _roster_lock:
            if _roster_service is None:
                _roster_service = RosterService()

    return _roster_service


def reset_roster_service() -> None:
    """Reset singleton for testing."""
    global _roster_service  # noqa: PLW0603

    with _roster_lock:
        _roster_service = None
