"""Access control policy for audit verifications.

A single pure decision function gates every lifecycle transition and every
permission-gated UI action. It is evaluated fresh on every call against the
acting user, so switching identity never requires invalidating anything.

Rules, first match wins:
1. Inactive users are denied.
2. Readers are denied.
3. VERIFIED records are immutable.
4. IN_PROGRESS: the holder may resume; staff may not take over; specialists
   and team leaders may take over (escalation).
5. NOT_VERIFIED: a team leader may not review a case they handled (four-eyes
   rule); specialists and team leaders may start; staff may not.
"""

from typing import Final

from iks_audit.models.audit import AuditCase
from iks_audit.models.user import User, UserRole
from iks_audit.models.verification import (
    AuditPermissions,
    VerificationRecord,
    VerificationState,
)

# Maximum coverage amount a role may be assigned for audit sampling
COVERAGE_LIMITS: Final[dict[UserRole, int]] = {
    UserRole.STAFF: 30000,
    UserRole.SPECIALIST: 150000,
    UserRole.TEAM_LEADER: 150000,
}

REVIEWER_ROLES: Final[frozenset[UserRole]] = frozenset(
    {UserRole.SPECIALIST, UserRole.TEAM_LEADER}
)

# Deny reason codes, surfaced to the UI next to disabled buttons
USER_INACTIVE: Final[str] = "USER_INACTIVE"
READER_ROLE: Final[str] = "READER_ROLE"
ALREADY_VERIFIED: Final[str] = "ALREADY_VERIFIED"
HELD_BY_OTHER_USER: Final[str] = "HELD_BY_OTHER_USER"
OWN_CASE: Final[str] = "OWN_CASE"
ROLE_CANNOT_INITIATE: Final[str] = "ROLE_CANNOT_INITIATE"
NOT_HOLDER: Final[str] = "NOT_HOLDER"


def coverage_limit(role: UserRole | str | None) -> int:
    """Sampling bound for synthetic coverage amounts; 0 for any other role."""
    try:
        return COVERAGE_LIMITS.get(UserRole(role), 0)
    except ValueError:
        return 0


def deny_reason(
    acting_user: User,
    audit_case: AuditCase,
    record: VerificationRecord,
) -> str | None:
    """Code of the first rule that denies the user, or None if allowed."""
    if not acting_user.is_active:
        return USER_INACTIVE
    if acting_user.role == UserRole.READER:
        return READER_ROLE
    if record.state == VerificationState.VERIFIED:
        return ALREADY_VERIFIED

    if record.state == VerificationState.IN_PROGRESS:
        if record.verifier_id == acting_user.id:
            return None
        if acting_user.role in REVIEWER_ROLES:
            return None
        return HELD_BY_OTHER_USER

    # NOT_VERIFIED
    if (
        acting_user.role == UserRole.TEAM_LEADER
        and acting_user.id == audit_case.owning_user_id
    ):
        return OWN_CASE
    if acting_user.role in REVIEWER_ROLES:
        return None
    return ROLE_CANNOT_INITIATE


def can_verify(
    acting_user: User,
    audit_case: AuditCase,
    record: VerificationRecord,
) -> bool:
    """Whether the acting user may start, resume, take over or finalize."""
    return deny_reason(acting_user, audit_case, record) is None


def holds_record(acting_user: User, record: VerificationRecord) -> bool:
    """Whether the user currently owns the in-progress verification."""
    return (
        record.state == VerificationState.IN_PROGRESS
        and record.verifier_id == acting_user.id
    )


def permitted_actions(
    acting_user: User,
    audit_case: AuditCase,
    record: VerificationRecord,
) -> AuditPermissions:
    """One boolean per permission-gated action button."""
    reason = deny_reason(acting_user, audit_case, record)
    allowed = reason is None
    can_save_draft = allowed and holds_record(acting_user, record)

    if allowed and not can_save_draft and record.state == VerificationState.IN_PROGRESS:
        # Takeover is allowed, but drafts belong to the holder until then
        draft_reason: str | None = NOT_HOLDER
    else:
        draft_reason = None

    return AuditPermissions(
        audit_id=audit_case.id,
        user_id=acting_user.id,
        can_view=acting_user.is_active,
        can_start=allowed,
        can_save_draft=can_save_draft,
        can_finalize=allowed,
        deny_reason=reason or draft_reason,
    )
