"""Quarterly auto-selection of audit cases.

Builds the candidate set for a quarter:
- one CURRENT_QUARTER_USER candidate per eligible user (active, not a reader),
  coverage drawn from [1000, floor(0.8 * coverage limit of the role))
- exactly RANDOM_AUDIT_COUNT PREVIOUS_QUARTER_RANDOM filler candidates with
  coverage drawn from [5000, 105000], not tied to any user

All randomness comes from the ``rng`` argument so a seeded ``random.Random``
reproduces a selection exactly.
"""

from __future__ import annotations

import math
import random
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Final

from iks_audit.core.logging import get_logger
from iks_audit.core.quarters import format_quarter_key, parse_quarter_key, previous_quarter
from iks_audit.models.audit import (
    AuditCase,
    CaseType,
    SelectionCandidate,
    SelectionOrigin,
    SelectionResult,
)
from iks_audit.models.user import User, UserRole
from iks_audit.services.access_policy import coverage_limit

logger = get_logger(__name__)

RANDOM_AUDIT_COUNT: Final[int] = 2

USER_COVERAGE_MIN: Final[int] = 1000
USER_COVERAGE_FACTOR: Final[float] = 0.8

RANDOM_COVERAGE_MIN: Final[int] = 5000
RANDOM_COVERAGE_MAX: Final[int] = 105000

# Generated ids look like case numbers: 40000000 .. 40099999
CASE_ID_BASE: Final[int] = 40000000
CASE_ID_SPAN: Final[int] = 100000


def eligible_users(roster: Iterable[User]) -> list[User]:
    """Active users who are not readers, in roster order."""
    return [user for user in roster if user.is_active and user.role != UserRole.READER]


def user_coverage_bounds(role: UserRole) -> tuple[int, int]:
    """Half-open ``[low, high)`` coverage range for a user's candidate."""
    high = math.floor(USER_COVERAGE_FACTOR * coverage_limit(role))
    return USER_COVERAGE_MIN, max(high, USER_COVERAGE_MIN + 1)


def _draw_case_id(rng: random.Random, taken: set[str]) -> str:
    if len(taken) >= CASE_ID_SPAN:
        raise RuntimeError("Case id space exhausted")
    while True:
        case_id = str(CASE_ID_BASE + rng.randrange(CASE_ID_SPAN))
        if case_id not in taken:
            taken.add(case_id)
            return case_id


def _user_candidate(
    user: User,
    quarter_key: str,
    rng: random.Random,
    taken: set[str],
) -> SelectionCandidate:
    low, high = user_coverage_bounds(user.role)
    case_id = _draw_case_id(rng, taken)
    audit_case = AuditCase(
        id=case_id,
        owning_user_id=user.id,
        coverage_amount=rng.randrange(low, high),
        quarter_key=quarter_key,
        case_type=CaseType.USER_QUARTERLY,
        client_name=f"Client {case_id}",
        policy_number=case_id,
        case_number=case_id,
    )
    return SelectionCandidate(audit_case=audit_case, origin=SelectionOrigin.CURRENT_QUARTER_USER)


def _random_candidate(
    quarter_key: str,
    prior_cases: Sequence[AuditCase],
    rng: random.Random,
    taken: set[str],
) -> SelectionCandidate:
    case_id = _draw_case_id(rng, taken)
    coverage = rng.randint(RANDOM_COVERAGE_MIN, RANDOM_COVERAGE_MAX)

    if prior_cases:
        source = rng.choice(prior_cases)
        metadata = {
            "client_name": source.client_name or f"Client {case_id}",
            "policy_number": source.policy_number or case_id,
            "case_number": source.case_number or source.id,
            "claims_status": source.claims_status,
            "notified_currency": source.notified_currency,
        }
    else:
        metadata = {
            "client_name": f"Client {case_id}",
            "policy_number": case_id,
            "case_number": case_id,
        }

    audit_case = AuditCase(
        id=case_id,
        owning_user_id=None,
        coverage_amount=coverage,
        quarter_key=quarter_key,
        case_type=CaseType.PREVIOUS_QUARTER_RANDOM,
        **metadata,
    )
    return SelectionCandidate(audit_case=audit_case, origin=SelectionOrigin.PREVIOUS_QUARTER_RANDOM)


def auto_select(
    roster: Iterable[User],
    prior_cases: Sequence[AuditCase],
    current_quarter: str,
    rng: random.Random | None = None,
    reserved_ids: Iterable[str] = (),
) -> SelectionResult:
    """Build a fresh candidate set for ``current_quarter``.

    Args:
        roster: Users to sample for; inactive users and readers are skipped.
        prior_cases: Cases of the previous quarter. Filler candidates borrow
            their metadata; an empty list yields synthetic metadata.
        current_quarter: Quarter key, e.g. "Q2-2025".
        rng: Source of randomness. Defaults to an unseeded Random.
        reserved_ids: Ids already in use elsewhere; never generated.

    Returns:
        User candidates in roster order followed by RANDOM_AUDIT_COUNT
        filler candidates. Ids are unique within the result.

    Raises:
        ValidationError: If ``current_quarter`` is not a quarter key.
    """
    rng = rng or random.Random()
    quarter = parse_quarter_key(current_quarter)
    quarter_key = quarter.key
    previous_key = format_quarter_key(*previous_quarter(quarter.quarter, quarter.year))

    taken = set(reserved_ids)
    eligible = eligible_users(roster)

    candidates = [_user_candidate(user, quarter_key, rng, taken) for user in eligible]

    if not prior_cases:
        logger.warning(
            "prior_quarter_cases_missing",
            quarter_key=quarter_key,
            previous_quarter_key=previous_key,
        )
    candidates.extend(
        _random_candidate(quarter_key, prior_cases, rng, taken)
        for _ in range(RANDOM_AUDIT_COUNT)
    )

    return SelectionResult(
        quarter_key=quarter_key,
        previous_quarter_key=previous_key,
        candidates=candidates,
        selected_at=datetime.now(UTC),
    )
