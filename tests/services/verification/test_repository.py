"""Tests for the verification repository."""

import threading

import pytest

from iks_audit.core.exceptions import AuditNotFoundError, ConflictError
from iks_audit.models.audit import CaseType
from iks_audit.models.verification import VerificationState
from iks_audit.services.verification.repository import (
    VerificationRepository,
    get_verification_repository,
    reset_verification_repository,
)


@pytest.fixture
def repository(make_case) -> VerificationRepository:
    repo = VerificationRepository()
    repo.replace_quarter(
        "Q2-2025",
        [
            make_case("40000001", owning_user_id="2", case_type=CaseType.USER_QUARTERLY),
            make_case("40000002", case_type=CaseType.PREVIOUS_QUARTER_RANDOM),
        ],
        [CaseType.USER_QUARTERLY, CaseType.PREVIOUS_QUARTER_RANDOM],
    )
    return repo


class TestReplaceQuarter:
    """Test working set replacement."""

    def test_creates_fresh_records(self, repository) -> None:
        record = repository.get_record("40000001")

        assert record.state == VerificationState.NOT_VERIFIED
        assert record.quarter_key == "Q2-2025"
        assert record.version == 0

    def test_replaces_only_given_types(self, repository, make_case) -> None:
        repository.replace_quarter(
            "Q2-2025",
            [make_case("40000003", case_type=CaseType.QUARTER_DISPLAY)],
            [CaseType.QUARTER_DISPLAY],
        )
        repository.replace_quarter(
            "Q2-2025",
            [make_case("40000004", owning_user_id="2", case_type=CaseType.USER_QUARTERLY)],
            [CaseType.USER_QUARTERLY, CaseType.PREVIOUS_QUARTER_RANDOM],
        )

        ids = [case.id for case, _ in repository.list_quarter("Q2-2025")]
        assert ids == ["40000003", "40000004"]

    def test_other_quarter_untouched(self, repository, make_case) -> None:
        repository.replace_quarter(
            "Q3-2025",
            [make_case("40000009", quarter_key="Q3-2025", case_type=CaseType.USER_QUARTERLY)],
            [CaseType.USER_QUARTERLY],
        )

        assert len(repository.list_quarter("Q2-2025")) == 2
        assert repository.existing_ids() == {"40000001", "40000002", "40000009"}

    def test_skips_id_held_by_other_quarter(self, repository, make_case) -> None:
        created = repository.replace_quarter(
            "Q3-2025",
            [
                make_case("40000001", quarter_key="Q3-2025"),
                make_case("40000010", quarter_key="Q3-2025"),
            ],
            [CaseType.QUARTER_DISPLAY],
        )

        assert [record.audit_id for record in created] == ["40000010"]
        assert repository.get_record("40000001").quarter_key == "Q2-2025"
        assert repository.get_case("40000001").case_type == CaseType.USER_QUARTERLY


class TestResetQuarter:
    """Test quarter reset."""

    def test_removes_cases_and_records(self, repository) -> None:
        assert repository.reset_quarter("Q2-2025") == 2
        assert repository.list_quarter("Q2-2025") == []

        with pytest.raises(AuditNotFoundError):
            repository.get_record("40000001")

    def test_unknown_quarter(self, repository) -> None:
        assert repository.reset_quarter("Q4-2030") == 0


class TestCompareAndSet:
    """Test optimistic-lock writes."""

    def test_applies_when_unchanged(self, repository) -> None:
        observed = repository.get_record("40000001")
        updated = observed.model_copy(
            update={"state": VerificationState.IN_PROGRESS, "verifier_id": "1"}
        )

        stored = repository.compare_and_set(observed, updated)

        assert stored.state == VerificationState.IN_PROGRESS
        assert stored.version == 1
        assert repository.get_record("40000001") == stored

    def test_rejects_stale_observation(self, repository) -> None:
        observed = repository.get_record("40000001")
        repository.compare_and_set(
            observed,
            observed.model_copy(update={"state": VerificationState.IN_PROGRESS, "verifier_id": "1"}),
        )

        with pytest.raises(ConflictError) as exc_info:
            repository.compare_and_set(
                observed,
                observed.model_copy(
                    update={"state": VerificationState.IN_PROGRESS, "verifier_id": "6"}
                ),
            )

        assert exc_info.value.details["actual"] == {"state": "IN_PROGRESS", "verifierId": "1"}
        assert repository.get_record("40000001").verifier_id == "1"

    def test_draft_write_keeps_token_valid(self, repository) -> None:
        observed = repository.get_record("40000001")
        started = repository.compare_and_set(
            observed,
            observed.model_copy(update={"state": VerificationState.IN_PROGRESS, "verifier_id": "1"}),
        )

        saved = repository.compare_and_set(started, started.model_copy(update={"comment": "a"}))
        again = repository.compare_and_set(started, saved.model_copy(update={"comment": "b"}))

        assert again.comment == "b"
        assert again.version == 3

    def test_missing_record(self, repository) -> None:
        observed = repository.get_record("40000001")
        repository.reset_quarter("Q2-2025")

        with pytest.raises(AuditNotFoundError):
            repository.compare_and_set(observed, observed)

    def test_concurrent_starts_have_one_winner(self, repository) -> None:
        observed = repository.get_record("40000001")
        outcomes: list[str] = []

        def start(user_id: str) -> None:
            try:
                repository.compare_and_set(
                    observed,
                    observed.model_copy(
                        update={"state": VerificationState.IN_PROGRESS, "verifier_id": user_id}
                    ),
                )
                outcomes.append("won")
            except ConflictError:
                outcomes.append("conflict")

        threads = [threading.Thread(target=start, args=(str(i),)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("won") == 1
        assert outcomes.count("conflict") == 7


class TestLookups:
    """Test single lookups."""

    def test_get_case(self, repository) -> None:
        assert repository.get_case("40000001").owning_user_id == "2"

    def test_unknown_audit(self, repository) -> None:
        with pytest.raises(AuditNotFoundError):
            repository.get_case("99999999")


class TestSingleton:
    """Test the repository factory."""

    def test_reset_creates_new_instance(self) -> None:
        first = get_verification_repository()
        assert get_verification_repository() is first

        reset_verification_repository()

        assert get_verification_repository() is not first
