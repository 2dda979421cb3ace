"""Verification models for the quarterly audit workflow.

These models define the structure of a case's verification:
- VerificationState: NOT_VERIFIED -> IN_PROGRESS -> VERIFIED, never backwards
- VerificationRecord: one per selected audit case, frozen; transitions copy it
- VerificationFields: rating, comment and findings entered by the auditor
- CompletionPayload: the seven-field report sent to case management
- AuditPermissions: one boolean per permission-gated UI action

Invariant: verifier_id is set if and only if state is not NOT_VERIFIED.
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

# =============================================================================
# Enums
# =============================================================================


class VerificationState(str, Enum):
    """Lifecycle state of a verification record."""

    NOT_VERIFIED = "NOT_VERIFIED"
    IN_PROGRESS = "IN_PROGRESS"
    VERIFIED = "VERIFIED"


class RatingValue(str, Enum):
    """Auditor's overall rating of the handled case."""

    NOT_FULFILLED = "NOT_FULFILLED"
    PARTIALLY_FULFILLED = "PARTIALLY_FULFILLED"
    MOSTLY_FULFILLED = "MOSTLY_FULFILLED"
    SUCCESSFULLY_FULFILLED = "SUCCESSFULLY_FULFILLED"
    EXCELLENTLY_FULFILLED = "EXCELLENTLY_FULFILLED"
    EMPTY = ""  # Not rated yet


class SpecialFinding(str, Enum):
    """Positive findings worth highlighting."""

    FEEDBACK = "feedback"
    COMMUNICATION = "communication"
    RECOURSE = "recourse"
    NEGOTIATION = "negotiation"
    PERFECT_TIMING = "perfect_timing"


class DetailedFinding(str, Enum):
    """Handling errors found during the audit."""

    FACTS_INCORRECT = "facts_incorrect"
    TERMS_INCORRECT = "terms_incorrect"
    COVERAGE_INCORRECT = "coverage_incorrect"
    ADDITIONAL_COVERAGE_MISSED = "additional_coverage_missed"
    DECISION_NOT_COMMUNICATED = "decision_not_communicated"
    COLLECTION_INCORRECT = "collection_incorrect"
    RECOURSE_WRONG = "recourse_wrong"
    COST_RISK_WRONG = "cost_risk_wrong"
    BPR_WRONG = "bpr_wrong"
    COMMUNICATION_POOR = "communication_poor"


SPECIAL_FINDING_LABELS: dict[SpecialFinding, str] = {
    SpecialFinding.FEEDBACK: "Feedback",
    SpecialFinding.COMMUNICATION: "Communication",
    SpecialFinding.RECOURSE: "Recourse",
    SpecialFinding.NEGOTIATION: "Negotiation",
    SpecialFinding.PERFECT_TIMING: "Perfect timing",
}

DETAILED_FINDING_LABELS: dict[DetailedFinding, str] = {
    DetailedFinding.FACTS_INCORRECT: "Facts incorrect",
    DetailedFinding.TERMS_INCORRECT: "Terms incorrect",
    DetailedFinding.COVERAGE_INCORRECT: "Coverage incorrect",
    DetailedFinding.ADDITIONAL_COVERAGE_MISSED: "Additional coverage missed",
    DetailedFinding.DECISION_NOT_COMMUNICATED: "Decision not communicated",
    DetailedFinding.COLLECTION_INCORRECT: "Collection incorrect",
    DetailedFinding.RECOURSE_WRONG: "Recourse wrong",
    DetailedFinding.COST_RISK_WRONG: "Cost risk wrong",
    DetailedFinding.BPR_WRONG: "BPR wrong",
    DetailedFinding.COMMUNICATION_POOR: "Communication poor",
}


def empty_special_findings() -> dict[str, bool]:
    return {finding.value: False for finding in SpecialFinding}


def empty_detailed_findings() -> dict[str, bool]:
    return {finding.value: False for finding in DetailedFinding}


def _check_finding_names(value: dict[str, bool], allowed: type[Enum]) -> dict[str, bool]:
    known = {member.value for member in allowed}
    unknown = sorted(set(value) - known)
    if unknown:
        raise ValueError(f"Unknown finding flags: {', '.join(unknown)}")
    return value


# =============================================================================
# Auditor Input
# =============================================================================


class VerificationFields(BaseModel):
    """Auditor input. Unset fields are left untouched when merged into a draft."""

    model_config = ConfigDict(populate_by_name=True)

    rating: RatingValue | None = Field(None, description="Overall rating")
    comment: str | None = Field(None, max_length=5000, description="Auditor comment")
    special_findings: dict[str, bool] | None = Field(None, alias="specialFindings")
    detailed_findings: dict[str, bool] | None = Field(None, alias="detailedFindings")

    @field_validator("special_findings")
    @classmethod
    def _known_special_findings(cls, value: dict[str, bool] | None) -> dict[str, bool] | None:
        return None if value is None else _check_finding_names(value, SpecialFinding)

    @field_validator("detailed_findings")
    @classmethod
    def _known_detailed_findings(cls, value: dict[str, bool] | None) -> dict[str, bool] | None:
        return None if value is None else _check_finding_names(value, DetailedFinding)


# =============================================================================
# Verification Record
# =============================================================================


class VerificationRecord(BaseModel):
    """Verification state of one selected audit case."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    audit_id: str = Field(..., alias="auditId")
    quarter_key: str = Field(..., alias="quarterKey")
    state: VerificationState = Field(VerificationState.NOT_VERIFIED)
    verifier_id: str | None = Field(
        None,
        alias="verifierId",
        description="User holding or having completed the verification",
    )
    rating: RatingValue = Field(RatingValue.EMPTY)
    comment: str = Field("")
    special_findings: dict[str, bool] = Field(
        default_factory=empty_special_findings, alias="specialFindings"
    )
    detailed_findings: dict[str, bool] = Field(
        default_factory=empty_detailed_findings, alias="detailedFindings"
    )
    completion_date: datetime | None = Field(None, alias="completionDate")
    version: int = Field(0, ge=0, description="Write counter")

    @model_validator(mode="after")
    def _verifier_matches_state(self) -> "VerificationRecord":
        has_verifier = self.verifier_id is not None
        if has_verifier != (self.state != VerificationState.NOT_VERIFIED):
            raise ValueError("verifierId must be set exactly when state is not NOT_VERIFIED")
        return self

    @computed_field(alias="isVerified")  # type: ignore[prop-decorator]
    @property
    def is_verified(self) -> bool:
        return self.state == VerificationState.VERIFIED

    @computed_field(alias="isCompleted")  # type: ignore[prop-decorator]
    @property
    def is_completed(self) -> bool:
        return self.state == VerificationState.VERIFIED

    def lock_token(self) -> dict[str, str | None]:
        """The fields a writer must have observed for its write to apply."""
        return {"state": self.state.value, "verifierId": self.verifier_id}


# =============================================================================
# Persistence Boundary Payload
# =============================================================================


class CompletionPayload(BaseModel):
    """Report sent to case management after each transition.

    Exactly seven fields; status is "completed" once finalized.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    auditor: str
    rating: str
    comment: str
    special_findings: dict[str, bool] = Field(..., alias="specialFindings")
    detailed_findings: dict[str, bool] = Field(..., alias="detailedFindings")
    status: Literal["in_progress", "completed"]
    is_completed: bool = Field(..., alias="isCompleted")

    @classmethod
    def from_record(cls, record: VerificationRecord) -> "CompletionPayload":
        return cls(
            auditor=record.verifier_id or "",
            rating=record.rating.value,
            comment=record.comment,
            special_findings=dict(record.special_findings),
            detailed_findings=dict(record.detailed_findings),
            status="completed" if record.is_completed else "in_progress",
            is_completed=record.is_completed,
        )


# =============================================================================
# Permissions
# =============================================================================


class AuditPermissions(BaseModel):
    """Permission-gated actions for one acting user on one audit."""

    model_config = ConfigDict(populate_by_name=True)

    audit_id: str = Field(..., alias="auditId")
    user_id: str = Field(..., alias="userId")
    can_view: bool = Field(False, alias="canView")
    can_start: bool = Field(False, alias="canStart")
    can_save_draft: bool = Field(False, alias="canSaveDraft")
    can_finalize: bool = Field(False, alias="canFinalize")
    deny_reason: str | None = Field(None, alias="denyReason")


# =============================================================================
# API Request/Response Models
# =============================================================================


class LockTokenMixin(BaseModel):
    """Observed record state; omitted values default to the stored record."""

    model_config = ConfigDict(populate_by_name=True)

    expected_state: VerificationState | None = Field(None, alias="expectedState")
    expected_verifier_id: str | None = Field(None, alias="expectedVerifierId")


class StartVerificationRequest(LockTokenMixin):
    """Request body for start-or-resume."""


class ReportVerificationRequest(LockTokenMixin):
    """Request body for re-sending a committed verification."""


class SaveDraftRequest(LockTokenMixin):
    """Request body for saving a draft."""

    fields: VerificationFields = Field(default_factory=VerificationFields)


class FinalizeVerificationRequest(LockTokenMixin):
    """Request body for finalizing a verification."""

    fields: VerificationFields = Field(default_factory=VerificationFields)


class VerificationResponse(BaseModel):
    """Response for a single verification record."""

    data: VerificationRecord


class PermissionsResponse(BaseModel):
    """Response for the permissions endpoint."""

    data: AuditPermissions
