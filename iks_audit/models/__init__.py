"""Pydantic models module."""

from iks_audit.models.audit import (
    AuditCase,
    CaseType,
    ClaimsStatus,
    QuarterStats,
    SelectionCandidate,
    SelectionOrigin,
    SelectionResult,
)
from iks_audit.models.user import User, UserRole
from iks_audit.models.verification import (
    AuditPermissions,
    CompletionPayload,
    DetailedFinding,
    RatingValue,
    SpecialFinding,
    VerificationFields,
    VerificationRecord,
    VerificationState,
)

__all__ = [
    # Roster
    "User",
    "UserRole",
    # Audit cases and selection
    "AuditCase",
    "CaseType",
    "ClaimsStatus",
    "QuarterStats",
    "SelectionCandidate",
    "SelectionOrigin",
    "SelectionResult",
    # Verification
    "AuditPermissions",
    "CompletionPayload",
    "DetailedFinding",
    "RatingValue",
    "SpecialFinding",
    "VerificationFields",
    "VerificationRecord",
    "VerificationState",
]
