"""Pytest configuration and shared fixtures."""

import random
from collections.abc import Callable, Iterator

import pytest

from iks_audit.core.config import get_settings
from iks_audit.models.audit import AuditCase, CaseType
from iks_audit.models.user import User, UserRole
from iks_audit.services.case_management import reset_case_management_client
from iks_audit.services.roster import reset_roster_service
from iks_audit.services.selection import reset_quarter_selection_service
from iks_audit.services.verification import (
    reset_verification_repository,
    reset_verification_service,
)


@pytest.fixture(autouse=True)
def isolated_services(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Run every test without case management and with fresh singletons."""
    monkeypatch.delenv("CASE_MANAGEMENT_URL", raising=False)
    get_settings.cache_clear()

    def reset_all() -> None:
        reset_verification_service()
        reset_verification_repository()
        reset_quarter_selection_service()
        reset_roster_service()
        reset_case_management_client()

    reset_all()
    yield
    reset_all()
    get_settings.cache_clear()


@pytest.fixture
def anyio_backend() -> str:
    """Configure anyio backend for async tests."""
    return "asyncio"


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source for reproducible selections."""
    return random.Random(20250401)


# =============================================================================
# Roster
# =============================================================================


@pytest.fixture
def specialist() -> User:
    return User(id="1", name="John Smith", role=UserRole.SPECIALIST)


@pytest.fixture
def staff() -> User:
    return User(id="2", name="Jane Doe", role=UserRole.STAFF)


@pytest.fixture
def team_leader() -> User:
    return User(id="4", name="Emily Davis", role=UserRole.TEAM_LEADER)


@pytest.fixture
def second_specialist() -> User:
    return User(id="6", name="Sarah Wilson", role=UserRole.SPECIALIST)


@pytest.fixture
def second_staff() -> User:
    return User(id="7", name="David Thompson", role=UserRole.STAFF)


@pytest.fixture
def reader() -> User:
    return User(id="9", name="Rita Reader", role=UserRole.READER)


@pytest.fixture
def inactive_specialist() -> User:
    return User(id="10", name="Former Specialist", role=UserRole.SPECIALIST, is_active=False)


@pytest.fixture
def roster(
    specialist: User,
    staff: User,
    team_leader: User,
    second_specialist: User,
    reader: User,
    inactive_specialist: User,
) -> list[User]:
    """Four eligible users, one reader, one inactive user."""
    return [specialist, staff, team_leader, second_specialist, reader, inactive_specialist]


# =============================================================================
# Audit cases
# =============================================================================


@pytest.fixture
def make_case() -> Callable[..., AuditCase]:
    """Factory for audit cases in Q2-2025."""

    def _make(
        audit_id: str,
        owning_user_id: str | None = None,
        coverage_amount: float = 12000,
        quarter_key: str = "Q2-2025",
        case_type: CaseType = CaseType.QUARTER_DISPLAY,
        **metadata: object,
    ) -> AuditCase:
        return AuditCase(
            id=audit_id,
            owning_user_id=owning_user_id,
            coverage_amount=coverage_amount,
            quarter_key=quarter_key,
            case_type=case_type,
            **metadata,
        )

    return _make
