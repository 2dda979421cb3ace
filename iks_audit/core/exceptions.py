"""Typed failures of the verification workflow.

PermissionDeniedError and ConflictError are expected, user-facing outcomes:
the caller re-renders the current state. ValidationError blocks a single
transition and names the offending field. DataUnavailableError never leaves
the case-management boundary; readers degrade to empty results.
"""

from typing import Any


class WorkflowError(Exception):
    """Base exception for workflow operations."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "WORKFLOW_ERROR",
        is_retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.is_retryable = is_retryable
        self.details = details or {}
        super().__init__(message)

    def to_error_detail(self) -> dict[str, Any]:
        """Structured body used by every API error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class PermissionDeniedError(WorkflowError):
    """Access policy refused the acting user."""

    status_code = 403

    def __init__(self, action: str, user_id: str, reason: str | None = None) -> None:
        super().__init__(
            f"User {user_id} is not permitted to {action}",
            code="PERMISSION_DENIED",
            details={"action": action, "userId": user_id, "reason": reason},
        )
        self.reason = reason


class ValidationError(WorkflowError):
    """Mandatory field missing or malformed."""

    status_code = 422

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Field '{field}' is required",
            code="VALIDATION_ERROR",
            details={"field": field},
        )
        self.field = field


class ConflictError(WorkflowError):
    """Transition observed a stale record state."""

    status_code = 409

    def __init__(
        self,
        audit_id: str,
        expected: dict[str, Any],
        actual: dict[str, Any],
    ) -> None:
        super().__init__(
            f"Verification for audit {audit_id} was modified concurrently",
            code="VERIFICATION_CONFLICT",
            details={"auditId": audit_id, "expected": expected, "actual": actual},
        )


class DataUnavailableError(WorkflowError):
    """External fetch returned malformed or non-list data."""

    status_code = 503

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(
            f"No data available from {source}: {reason}",
            code="DATA_UNAVAILABLE",
            is_retryable=True,
            details={"source": source},
        )


class AuditNotFoundError(WorkflowError):
    """No audit case or verification record under this id."""

    status_code = 404

    def __init__(self, audit_id: str) -> None:
        super().__init__(
            f"Audit not found: {audit_id}",
            code="AUDIT_NOT_FOUND",
            details={"auditId": audit_id},
        )


class CompletionSubmissionError(WorkflowError):
    """Transition was committed locally but could not be reported.

    The committed record travels with the error so the caller can re-send
    it; the core never retries on its own.
    """

    status_code = 502

    def __init__(self, audit_id: str, record: Any, reason: str) -> None:
        details: dict[str, Any] = {"auditId": audit_id}
        if record is not None:
            details["record"] = record.model_dump(mode="json", by_alias=True)
        super().__init__(
            f"Failed to report verification for audit {audit_id}: {reason}",
            code="COMPLETION_SUBMISSION_FAILED",
            is_retryable=True,
            details=details,
        )
        self.record = record
