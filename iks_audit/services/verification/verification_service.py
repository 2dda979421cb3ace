"""Verification lifecycle for audit cases.

This service provides:
- start_or_resume: NOT_VERIFIED -> IN_PROGRESS, resume by the holder,
  takeover by a specialist or team leader
- save_draft: merge auditor input into the holder's in-progress record
- finalize: IN_PROGRESS (or NOT_VERIFIED) -> VERIFIED with a rating
- publish: re-send a committed record to case management
- report: publish on behalf of the record's verifier

Every transition is authorised by the access policy against the acting user
and written with a compare-and-set on the record the caller observed, so a
stale snapshot fails with ConflictError. The local write is committed before
the completion report is sent; a failed report surfaces as
CompletionSubmissionError carrying the committed record.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from iks_audit.core.exceptions import (
    CompletionSubmissionError,
    ConflictError,
    PermissionDeniedError,
    ValidationError,
    WorkflowError,
)
from iks_audit.core.logging import get_logger
from iks_audit.models.audit import AuditCase
from iks_audit.models.user import User
from iks_audit.models.verification import (
    AuditPermissions,
    CompletionPayload,
    RatingValue,
    VerificationFields,
    VerificationRecord,
    VerificationState,
)
from iks_audit.services.access_policy import (
    NOT_HOLDER,
    deny_reason,
    holds_record,
    permitted_actions,
)
from iks_audit.services.case_management import (
    CaseManagementClient,
    get_case_management_client,
)
from iks_audit.services.verification.repository import (
    VerificationRepository,
    get_verification_repository,
)

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def merge_fields(record: VerificationRecord, fields: VerificationFields) -> dict[str, Any]:
    """Update dict applying the provided fields on top of the record.

    Finding flags are merged per name; unset fields keep their value.
    """
    update: dict[str, Any] = {}
    if fields.rating is not None:
        update["rating"] = fields.rating
    if fields.comment is not None:
        update["comment"] = fields.comment
    if fields.special_findings is not None:
        update["special_findings"] = {**record.special_findings, **fields.special_findings}
    if fields.detailed_findings is not None:
        update["detailed_findings"] = {**record.detailed_findings, **fields.detailed_findings}
    return update


class VerificationService:
    """State machine for verification records.

    Example:
        >>> service = get_verification_service()
        >>> record = service.snapshot("40012345")
        >>> record = await service.start_or_resume(user, record)
        >>> record = await service.finalize(
        ...     user, record, VerificationFields(rating=RatingValue.MOSTLY_FULFILLED)
        ... )
    """

    def __init__(
        self,
        repository: VerificationRepository | None = None,
        client: CaseManagementClient | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository or get_verification_repository()
        self._client = client or get_case_management_client()
        self._clock = clock

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def snapshot(
        self,
        audit_id: str,
        expected_state: VerificationState | None = None,
        expected_verifier_id: str | None = None,
    ) -> VerificationRecord:
        """Stored record, checked against the caller's observed lock token.

        Omitted expectations default to the stored values.

        Raises:
            AuditNotFoundError: If the audit has no record.
            ConflictError: If the record no longer matches the expectation.
        """
        stored = self._repository.get_record(audit_id)
        if expected_state is None and expected_verifier_id is None:
            return stored

        expected = {
            "state": (expected_state or stored.state).value,
            "verifierId": expected_verifier_id
            if expected_verifier_id is not None
            else stored.verifier_id,
        }
        if expected != stored.lock_token():
            logger.info(
                "verification_snapshot_stale",
                audit_id=audit_id,
                expected=expected,
                actual=stored.lock_token(),
            )
            raise ConflictError(audit_id, expected, stored.lock_token())
        return stored

    def permissions(self, acting_user: User, audit_id: str) -> AuditPermissions:
        """Permission booleans for the acting user on one audit."""
        audit_case = self._repository.get_case(audit_id)
        record = self._repository.get_record(audit_id)
        return permitted_actions(acting_user, audit_case, record)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _authorise(
        self,
        action: str,
        acting_user: User,
        audit_case: AuditCase,
        record: VerificationRecord,
        require_holder: bool = False,
    ) -> None:
        reason = deny_reason(acting_user, audit_case, record)
        if reason is None and require_holder and not holds_record(acting_user, record):
            reason = NOT_HOLDER
        if reason is not None:
            logger.info(
                "verification_denied",
                action=action,
                audit_id=record.audit_id,
                user_id=acting_user.id,
                reason=reason,
            )
            raise PermissionDeniedError(action, acting_user.id, reason)

    async def start_or_resume(
        self,
        acting_user: User,
        record: VerificationRecord,
    ) -> VerificationRecord:
        """Claim the record for the acting user.

        The holder resuming is a no-op: nothing is written or reported.

        Raises:
            PermissionDeniedError: If the policy denies the user.
            ConflictError: If ``record`` is stale.
        """
        audit_case = self._repository.get_case(record.audit_id)
        self._authorise("start verification", acting_user, audit_case, record)

        if holds_record(acting_user, record):
            current = self._repository.get_record(record.audit_id)
            if current.lock_token() != record.lock_token():
                raise ConflictError(record.audit_id, record.lock_token(), current.lock_token())
            logger.info("verification_resumed", audit_id=record.audit_id, user_id=acting_user.id)
            return current

        if record.state == VerificationState.IN_PROGRESS:
            logger.info(
                "verification_taken_over",
                audit_id=record.audit_id,
                user_id=acting_user.id,
                previous_verifier_id=record.verifier_id,
            )
        updated = record.model_copy(
            update={"state": VerificationState.IN_PROGRESS, "verifier_id": acting_user.id}
        )
        stored = self._repository.compare_and_set(record, updated)

        logger.info(
            "verification_started",
            audit_id=stored.audit_id,
            user_id=acting_user.id,
            version=stored.version,
        )
        await self._report(stored)
        return stored

    async def save_draft(
        self,
        acting_user: User,
        record: VerificationRecord,
        fields: VerificationFields,
    ) -> VerificationRecord:
        """Merge auditor input into the holder's in-progress record.

        Raises:
            PermissionDeniedError: If the user does not hold the record.
            ConflictError: If ``record`` is stale.
        """
        audit_case = self._repository.get_case(record.audit_id)
        self._authorise("save draft", acting_user, audit_case, record, require_holder=True)

        updated = record.model_copy(update=merge_fields(record, fields))
        stored = self._repository.compare_and_set(record, updated)

        logger.info("verification_draft_saved", audit_id=stored.audit_id, user_id=acting_user.id)
        await self._report(stored)
        return stored

    async def finalize(
        self,
        acting_user: User,
        record: VerificationRecord,
        fields: VerificationFields,
    ) -> VerificationRecord:
        """Complete the verification.

        Raises:
            PermissionDeniedError: If the policy denies the user.
            ValidationError: If no rating is given or stored.
            ConflictError: If ``record`` is stale.
        """
        audit_case = self._repository.get_case(record.audit_id)
        self._authorise("finalize verification", acting_user, audit_case, record)

        update = merge_fields(record, fields)
        if update.get("rating", record.rating) == RatingValue.EMPTY:
            raise ValidationError("rating", "A rating is required to finalize a verification")

        update.update(
            state=VerificationState.VERIFIED,
            verifier_id=acting_user.id,
            completion_date=self._clock(),
        )
        stored = self._repository.compare_and_set(record, record.model_copy(update=update))

        logger.info(
            "verification_finalized",
            audit_id=stored.audit_id,
            user_id=acting_user.id,
            rating=stored.rating.value,
        )
        await self._report(stored)
        return stored

    async def publish(self, record: VerificationRecord) -> None:
        """Re-send a committed record to case management.

        Raises:
            CompletionSubmissionError: If the report fails again.
        """
        await self._report(record)

    async def report(
        self,
        acting_user: User,
        record: VerificationRecord,
    ) -> VerificationRecord:
        """Re-send the record's last committed transition for its verifier.

        Raises:
            PermissionDeniedError: If the acting user is not the record's
                verifier (a NOT_VERIFIED record has none).
            CompletionSubmissionError: If the report fails again.
        """
        if record.verifier_id != acting_user.id:
            logger.info(
                "verification_denied",
                action="report verification",
                audit_id=record.audit_id,
                user_id=acting_user.id,
                reason=NOT_HOLDER,
            )
            raise PermissionDeniedError("report verification", acting_user.id, NOT_HOLDER)

        await self.publish(record)
        logger.info(
            "verification_reported",
            audit_id=record.audit_id,
            user_id=acting_user.id,
            state=record.state.value,
        )
        return record

    async def _report(self, record: VerificationRecord) -> None:
        payload = CompletionPayload.from_record(record)
        try:
            await self._client.submit_completion(record.audit_id, payload)
        except WorkflowError as e:
            logger.error(
                "completion_submission_failed",
                audit_id=record.audit_id,
                status=payload.status,
                error=e.message,
            )
            raise CompletionSubmissionError(record.audit_id, record, e.message) from e


# =============================================================================
# Singleton Factory
# =============================================================================

_verification_service: VerificationService | None = None
_service_lock = threading.Lock()


def get_verification_service() -> VerificationService:
    """Get singleton VerificationService instance."""
    global _verification_service  # noqa: PLW0603

    if _verification_service is None:
        with _service_lock:
            if _verification_service is None:
                _verification_service = VerificationService()

    return _verification_service


def reset_verification_service() -> None:
    """Reset singleton for testing."""
    global _verification_service  # noqa: PLW0603

    with _service_lock:
        _verification_service = None
