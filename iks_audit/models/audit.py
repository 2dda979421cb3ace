"""Audit case and quarterly selection models.

Audit cases are created by the case-management system and are read-only to
this service. A SelectionResult is the candidate set built for one quarter;
it is never merged with an earlier selection, only replaced.
"""

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from iks_audit.models.verification import VerificationRecord


class CaseType(str, Enum):
    """How a case entered the quarter's working set."""

    USER_QUARTERLY = "USER_QUARTERLY"  # One per eligible user, auto-selected
    PREVIOUS_QUARTER_RANDOM = "PREVIOUS_QUARTER_RANDOM"  # Prior-quarter filler
    QUARTER_DISPLAY = "QUARTER_DISPLAY"  # Manual quarter selection


class ClaimsStatus(str, Enum):
    """Claim decision recorded on the case."""

    FULL_COVER = "FULL_COVER"
    PARTIAL_COVER = "PARTIAL_COVER"
    DECLINED = "DECLINED"
    PENDING = "PENDING"


class SelectionOrigin(str, Enum):
    """Origin tag of an auto-selected candidate."""

    CURRENT_QUARTER_USER = "CURRENT_QUARTER_USER"
    PREVIOUS_QUARTER_RANDOM = "PREVIOUS_QUARTER_RANDOM"


class AuditCase(BaseModel):
    """A case whose handling is subject to audit."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1, description="Unique audit identifier")
    owning_user_id: str | None = Field(
        None,
        validation_alias=AliasChoices("owningUserId", "userId", "owning_user_id"),
        serialization_alias="owningUserId",
        description="Original handler whose work is reviewed (None for filler cases)",
    )
    coverage_amount: float = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("coverageAmount", "coverage_amount"),
        serialization_alias="coverageAmount",
    )
    quarter_key: str = Field(
        ...,
        validation_alias=AliasChoices("quarterKey", "quarter", "quarter_key"),
        serialization_alias="quarterKey",
    )
    case_type: CaseType = Field(
        CaseType.QUARTER_DISPLAY,
        validation_alias=AliasChoices("caseType", "case_type"),
        serialization_alias="caseType",
    )

    # Case metadata
    client_name: str | None = Field(
        None,
        validation_alias=AliasChoices("clientName", "client_name"),
        serialization_alias="clientName",
    )
    policy_number: str | None = Field(
        None,
        validation_alias=AliasChoices("policyNumber", "policy_number"),
        serialization_alias="policyNumber",
    )
    case_number: str | None = Field(
        None,
        validation_alias=AliasChoices("caseNumber", "case_number"),
        serialization_alias="caseNumber",
    )
    claims_status: ClaimsStatus = Field(
        ClaimsStatus.FULL_COVER,
        validation_alias=AliasChoices("claimsStatus", "claims_status"),
        serialization_alias="claimsStatus",
    )
    notified_currency: str = Field(
        "CHF",
        validation_alias=AliasChoices("notifiedCurrency", "notified_currency"),
        serialization_alias="notifiedCurrency",
    )


class SelectionCandidate(BaseModel):
    """One entry of a SelectionResult."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    audit_case: AuditCase = Field(..., alias="auditCase")
    origin: SelectionOrigin = Field(..., description="Quarter-origin tag")


class SelectionResult(BaseModel):
    """Ordered candidate set for a quarter: user candidates, then filler."""

    model_config = ConfigDict(populate_by_name=True)

    quarter_key: str = Field(..., alias="quarterKey")
    previous_quarter_key: str = Field(..., alias="previousQuarterKey")
    candidates: list[SelectionCandidate] = Field(default_factory=list)
    selected_at: datetime = Field(..., alias="selectedAt")

    @property
    def user_candidates(self) -> list[SelectionCandidate]:
        return [c for c in self.candidates if c.origin == SelectionOrigin.CURRENT_QUARTER_USER]

    @property
    def random_candidates(self) -> list[SelectionCandidate]:
        return [c for c in self.candidates if c.origin == SelectionOrigin.PREVIOUS_QUARTER_RANDOM]

    @property
    def audit_ids(self) -> list[str]:
        return [c.audit_case.id for c in self.candidates]


# =============================================================================
# API Response Models
# =============================================================================


class SelectionResponse(BaseModel):
    """Response for auto-selection endpoint."""

    data: SelectionResult


class QuarterAuditItem(BaseModel):
    """Audit case joined with its verification record for the working set."""

    model_config = ConfigDict(populate_by_name=True)

    audit_case: AuditCase = Field(..., alias="auditCase")
    verification: VerificationRecord


class QuarterAuditsResponse(BaseModel):
    """Response for a quarter's working set."""

    data: list[QuarterAuditItem] = Field(default_factory=list)
    meta: dict = Field(default_factory=dict)


class QuarterStats(BaseModel):
    """Progress of a quarter's audit cycle."""

    model_config = ConfigDict(populate_by_name=True)

    quarter_key: str = Field(..., alias="quarterKey")
    total: int = Field(0, ge=0)
    not_verified_count: int = Field(0, ge=0, alias="notVerifiedCount")
    in_progress_count: int = Field(0, ge=0, alias="inProgressCount")
    verified_count: int = Field(0, ge=0, alias="verifiedCount")
    user_quarterly_count: int = Field(0, ge=0, alias="userQuarterlyCount")
    previous_quarter_random_count: int = Field(0, ge=0, alias="previousQuarterRandomCount")
    completion_pct: float = Field(0.0, ge=0, le=100, alias="completionPct")
    completed_user_ids: list[str] = Field(default_factory=list, alias="completedUserIds")


class QuarterStatsResponse(BaseModel):
    """Response for quarter statistics endpoint."""

    data: QuarterStats


class CurrentQuarterResponse(BaseModel):
    """Current and previous quarter keys plus the year's options."""

    model_config = ConfigDict(populate_by_name=True)

    quarter_key: str = Field(..., alias="quarterKey")
    previous_quarter_key: str = Field(..., alias="previousQuarterKey")
    options: list[str] = Field(default_factory=list)
