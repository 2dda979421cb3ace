"""Quarter selection service.

Owns a quarter's working set: runs auto-selection or manual quarter
selection, persists one NOT_VERIFIED record per selected case, resets a
quarter and reports its progress.
"""

from __future__ import annotations

import random
import threading

from iks_audit.core.logging import get_logger
from iks_audit.core.quarters import parse_quarter_key, previous_quarter_key
from iks_audit.models.audit import (
    AuditCase,
    CaseType,
    QuarterAuditItem,
    QuarterStats,
    SelectionResult,
)
from iks_audit.models.user import User
from iks_audit.models.verification import VerificationState
from iks_audit.services.case_management import (
    CaseManagementClient,
    get_case_management_client,
)
from iks_audit.services.roster import RosterService, get_roster_service
from iks_audit.services.selection.auto_selection import auto_select
from iks_audit.services.verification.repository import (
    VerificationRepository,
    get_verification_repository,
)

logger = get_logger(__name__)

# A new selection replaces every selected case of the quarter
WORKING_SET_TYPES: frozenset[CaseType] = frozenset(CaseType)


class QuarterSelectionService:
    """Builds and reports on quarterly working sets.

    Example:
        >>> service = get_quarter_selection_service()
        >>> result = await service.auto_select_quarter("Q2-2025")
        >>> len(result.random_candidates)
        2
    """

    def __init__(
        self,
        repository: VerificationRepository | None = None,
        client: CaseManagementClient | None = None,
        roster: RosterService | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._repository = repository or get_verification_repository()
        self._client = client or get_case_management_client()
        self._roster = roster or get_roster_service()
        self._rng = rng or random.Random()

    async def auto_select_quarter(
        self,
        quarter_key: str,
        roster: list[User] | None = None,
    ) -> SelectionResult:
        """Run auto-selection and replace the quarter's working set.

        Args:
            quarter_key: Quarter to select for.
            roster: Users to sample; defaults to the current roster.

        Raises:
            ValidationError: If ``quarter_key`` is malformed.
        """
        quarter_key = parse_quarter_key(quarter_key).key
        if roster is None:
            roster = await self._roster.list_users()

        prior_cases = await self._client.fetch_audits_by_quarter(
            previous_quarter_key(quarter_key)
        )

        result = auto_select(
            roster,
            prior_cases,
            quarter_key,
            rng=self._rng,
            reserved_ids=self._repository.existing_ids(),
        )

        self._repository.replace_quarter(
            quarter_key,
            [candidate.audit_case for candidate in result.candidates],
            WORKING_SET_TYPES,
        )

        logger.info(
            "auto_selection_completed",
            quarter_key=quarter_key,
            user_candidates=len(result.user_candidates),
            random_candidates=len(result.random_candidates),
            prior_cases=len(prior_cases),
        )
        return result

    async def select_quarter_cases(self, quarter_key: str) -> list[QuarterAuditItem]:
        """Replace the working set with the quarter's cases from case management."""
        quarter_key = parse_quarter_key(quarter_key).key
        fetched = await self._client.fetch_audits_by_quarter(quarter_key)

        cases: list[AuditCase] = []
        seen: set[str] = set()
        for case in fetched:
            if case.id in seen:
                logger.warning("duplicate_audit_skipped", quarter_key=quarter_key, audit_id=case.id)
                continue
            seen.add(case.id)
            cases.append(
                case.model_copy(
                    update={"quarter_key": quarter_key, "case_type": CaseType.QUARTER_DISPLAY}
                )
            )

        self._repository.replace_quarter(quarter_key, cases, WORKING_SET_TYPES)

        logger.info("quarter_selection_completed", quarter_key=quarter_key, count=len(cases))
        return self.list_quarter(quarter_key)

    def reset_quarter(self, quarter_key: str) -> int:
        """Destroy every record of the quarter."""
        return self._repository.reset_quarter(parse_quarter_key(quarter_key).key)

    def list_quarter(self, quarter_key: str) -> list[QuarterAuditItem]:
        quarter_key = parse_quarter_key(quarter_key).key
        return [
            QuarterAuditItem(audit_case=case, verification=record)
            for case, record in self._repository.list_quarter(quarter_key)
        ]

    def get_quarter_stats(self, quarter_key: str) -> QuarterStats:
        """Counts by state and origin plus per-user completion.

        A user's quarter counts as completed once any case they own is
        VERIFIED.
        """
        quarter_key = parse_quarter_key(quarter_key).key
        items = self._repository.list_quarter(quarter_key)

        by_state = {state: 0 for state in VerificationState}
        by_type = {case_type: 0 for case_type in CaseType}
        completed_users: set[str] = set()

        for case, record in items:
            by_state[record.state] += 1
            by_type[case.case_type] += 1
            if record.is_verified and case.owning_user_id:
                completed_users.add(case.owning_user_id)

        total = len(items)
        verified = by_state[VerificationState.VERIFIED]

        return QuarterStats(
            quarter_key=quarter_key,
            total=total,
            not_verified_count=by_state[VerificationState.NOT_VERIFIED],
            in_progress_count=by_state[VerificationState.IN_PROGRESS],
            verified_count=verified,
            user_quarterly_count=by_type[CaseType.USER_QUARTERLY],
            previous_quarter_random_count=by_type[CaseType.PREVIOUS_QUARTER_RANDOM],
            completion_pct=round(verified / total * 100, 1) if total else 0.0,
            completed_user_ids=sorted(completed_users),
        )


# =============================================================================
# Singleton Factory
# =============================================================================

_selection_service: QuarterSelectionService | None = None
_selection_lock = threading.Lock()


def get_quarter_selection_service() -> QuarterSelectionService:
    """Get singleton QuarterSelectionService instance."""
    global _selection_service  # noqa: PLW0603

    if _selection_service is None:
        with _selection_lock:
            if _selection_service is None:
                _selection_service = QuarterSelectionService()

    return _selection_service


def reset_quarter_selection_service() -> None:
    """Reset singleton for testing."""
    global _selection_service  # noqa: PLW0603

    with _selection_lock:
        _selection_service = None
