"""Tests for verification and roster models."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from iks_audit.models.audit import AuditCase
from iks_audit.models.user import User, UserRole
from iks_audit.models.verification import (
    CompletionPayload,
    RatingValue,
    VerificationFields,
    VerificationRecord,
    VerificationState,
    empty_detailed_findings,
    empty_special_findings,
)

PAYLOAD_KEYS = {
    "auditor",
    "rating",
    "comment",
    "specialFindings",
    "detailedFindings",
    "status",
    "isCompleted",
}


class TestVerificationRecord:
    """Test record invariants."""

    def test_new_record_is_not_verified(self) -> None:
        record = VerificationRecord(audit_id="40000001", quarter_key="Q2-2025")

        assert record.state == VerificationState.NOT_VERIFIED
        assert record.verifier_id is None
        assert record.rating == RatingValue.EMPTY
        assert record.special_findings == empty_special_findings()
        assert record.detailed_findings == empty_detailed_findings()
        assert record.is_verified is False

    def test_verifier_required_once_started(self) -> None:
        with pytest.raises(PydanticValidationError):
            VerificationRecord(
                audit_id="40000001",
                quarter_key="Q2-2025",
                state=VerificationState.IN_PROGRESS,
            )

    def test_verifier_forbidden_when_not_verified(self) -> None:
        with pytest.raises(PydanticValidationError):
            VerificationRecord(audit_id="40000001", quarter_key="Q2-2025", verifier_id="1")

    def test_serializes_camel_case(self) -> None:
        record = VerificationRecord(
            audit_id="40000001",
            quarter_key="Q2-2025",
            state=VerificationState.VERIFIED,
            verifier_id="1",
        )

        data = record.model_dump(by_alias=True, mode="json")

        assert data["auditId"] == "40000001"
        assert data["verifierId"] == "1"
        assert data["isVerified"] is True
        assert data["isCompleted"] is True

    def test_lock_token(self) -> None:
        record = VerificationRecord(audit_id="40000001", quarter_key="Q2-2025")

        assert record.lock_token() == {"state": "NOT_VERIFIED", "verifierId": None}


class TestVerificationFields:
    """Test auditor input validation."""

    def test_accepts_known_findings(self) -> None:
        fields = VerificationFields.model_validate(
            {"specialFindings": {"feedback": True}, "detailedFindings": {"bpr_wrong": True}}
        )

        assert fields.special_findings == {"feedback": True}
        assert fields.detailed_findings == {"bpr_wrong": True}

    def test_rejects_unknown_findings(self) -> None:
        with pytest.raises(PydanticValidationError):
            VerificationFields.model_validate({"specialFindings": {"charm": True}})

    def test_empty_string_is_empty_rating(self) -> None:
        assert VerificationFields.model_validate({"rating": ""}).rating == RatingValue.EMPTY

    def test_rejects_unknown_rating(self) -> None:
        with pytest.raises(PydanticValidationError):
            VerificationFields.model_validate({"rating": "GREAT"})


class TestCompletionPayload:
    """Test the report sent to case management."""

    def test_has_exactly_seven_fields(self) -> None:
        record = VerificationRecord(
            audit_id="40000001",
            quarter_key="Q2-2025",
            state=VerificationState.IN_PROGRESS,
            verifier_id="1",
            comment="Looks fine",
        )

        data = CompletionPayload.from_record(record).model_dump(by_alias=True)

        assert set(data) == PAYLOAD_KEYS
        assert data["auditor"] == "1"
        assert data["status"] == "in_progress"
        assert data["isCompleted"] is False

    def test_completed_status(self) -> None:
        record = VerificationRecord(
            audit_id="40000001",
            quarter_key="Q2-2025",
            state=VerificationState.VERIFIED,
            verifier_id="4",
            rating=RatingValue.MOSTLY_FULFILLED,
        )

        payload = CompletionPayload.from_record(record)

        assert payload.status == "completed"
        assert payload.is_completed is True
        assert payload.rating == "MOSTLY_FULFILLED"

    def test_rejects_extra_fields(self) -> None:
        with pytest.raises(PydanticValidationError):
            CompletionPayload.model_validate(
                {
                    "auditor": "1",
                    "rating": "",
                    "comment": "",
                    "specialFindings": {},
                    "detailedFindings": {},
                    "status": "in_progress",
                    "isCompleted": False,
                    "version": 3,
                }
            )


class TestWireFormats:
    """Test parsing of case-management payloads."""

    def test_user_wire_format(self) -> None:
        user = User.model_validate(
            {"id": "3", "name": "Robert Johnson", "role": "STAFF", "isActive": False}
        )

        assert user.role == UserRole.STAFF
        assert user.is_active is False
        assert user.model_dump(by_alias=True)["isActive"] is False

    def test_user_legacy_wire_format(self) -> None:
        user = User.model_validate(
            {"id": "4", "displayName": "Emily Davis", "authorities": "TEAM_LEADER", "enabled": True}
        )

        assert user.name == "Emily Davis"
        assert user.role == UserRole.TEAM_LEADER

    def test_audit_case_accepts_user_id_alias(self) -> None:
        case = AuditCase.model_validate(
            {"id": "40000001", "userId": "2", "coverageAmount": 5000, "quarter": "Q2-2025"}
        )

        assert case.owning_user_id == "2"
        assert case.quarter_key == "Q2-2025"

    def test_audit_case_rejects_negative_coverage(self) -> None:
        with pytest.raises(PydanticValidationError):
            AuditCase(id="1", coverage_amount=-1, quarter_key="Q2-2025")
