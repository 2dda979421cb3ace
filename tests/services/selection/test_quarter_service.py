"""Tests for the quarter selection service."""

import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from iks_audit.core.exceptions import ValidationError
from iks_audit.models.audit import CaseType
from iks_audit.models.verification import RatingValue, VerificationState
from iks_audit.services.selection.quarter_service import (
    QuarterSelectionService,
    get_quarter_selection_service,
    reset_quarter_selection_service,
)
from iks_audit.services.verification.repository import VerificationRepository


@pytest.fixture
def repository() -> VerificationRepository:
    return VerificationRepository()


@pytest.fixture
def mock_client():
    """Case-management client returning no cases by default."""
    client = MagicMock()
    client.fetch_audits_by_quarter = AsyncMock(return_value=[])
    return client


@pytest.fixture
def mock_roster(roster):
    service = MagicMock()
    service.list_users = AsyncMock(return_value=roster)
    return service


@pytest.fixture
def selection_service(repository, mock_client, mock_roster) -> QuarterSelectionService:
    return QuarterSelectionService(
        repository=repository,
        client=mock_client,
        roster=mock_roster,
        rng=random.Random(42),
    )


def _finalize(repository: VerificationRepository, audit_id: str, verifier_id: str) -> None:
    record = repository.get_record(audit_id)
    repository.compare_and_set(
        record,
        record.model_copy(
            update={
                "state": VerificationState.VERIFIED,
                "verifier_id": verifier_id,
                "rating": RatingValue.SUCCESSFULLY_FULFILLED,
            }
        ),
    )


class TestAutoSelectQuarter:
    """Test persisted auto-selection."""

    @pytest.mark.asyncio
    async def test_creates_not_verified_records(self, selection_service) -> None:
        result = await selection_service.auto_select_quarter("Q2-2025")

        items = selection_service.list_quarter("Q2-2025")
        assert [item.audit_case.id for item in items] == result.audit_ids
        assert all(item.verification.state == VerificationState.NOT_VERIFIED for item in items)

    @pytest.mark.asyncio
    async def test_repeated_runs_never_accumulate(self, selection_service) -> None:
        await selection_service.auto_select_quarter("Q2-2025")
        await selection_service.auto_select_quarter("Q2-2025")

        assert len(selection_service.list_quarter("Q2-2025")) == 6

    @pytest.mark.asyncio
    async def test_rerun_replaces_progress(self, selection_service, repository) -> None:
        first = await selection_service.auto_select_quarter("Q2-2025")
        _finalize(repository, first.audit_ids[0], "6")

        second = await selection_service.auto_select_quarter("Q2-2025")

        ids = {item.audit_case.id for item in selection_service.list_quarter("Q2-2025")}
        assert ids == set(second.audit_ids)
        assert first.audit_ids[0] not in ids

    @pytest.mark.asyncio
    async def test_fetches_previous_quarter(self, selection_service, mock_client) -> None:
        await selection_service.auto_select_quarter("Q1-2025")

        mock_client.fetch_audits_by_quarter.assert_awaited_once_with("Q4-2024")

    @pytest.mark.asyncio
    async def test_explicit_roster(self, selection_service, mock_roster, staff) -> None:
        result = await selection_service.auto_select_quarter("Q2-2025", roster=[staff])

        assert len(result.candidates) == 3
        mock_roster.list_users.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_quarters_untouched(self, selection_service) -> None:
        await selection_service.auto_select_quarter("Q1-2025")
        await selection_service.auto_select_quarter("Q2-2025")

        assert len(selection_service.list_quarter("Q1-2025")) == 6

    @pytest.mark.asyncio
    async def test_invalid_quarter_key(self, selection_service) -> None:
        with pytest.raises(ValidationError):
            await selection_service.auto_select_quarter("second quarter")


class TestSelectQuarterCases:
    """Test manual quarter selection."""

    @pytest.mark.asyncio
    async def test_replaces_working_set_with_quarter_cases(
        self, selection_service, mock_client, make_case
    ) -> None:
        await selection_service.auto_select_quarter("Q2-2025")
        mock_client.fetch_audits_by_quarter.return_value = [
            make_case("50000001", owning_user_id="2", case_type=CaseType.USER_QUARTERLY),
            make_case("50000002", owning_user_id="3"),
            make_case("50000002", owning_user_id="3"),
        ]

        items = await selection_service.select_quarter_cases("Q2 2025")

        assert [item.audit_case.id for item in items] == ["50000001", "50000002"]
        assert all(item.audit_case.case_type == CaseType.QUARTER_DISPLAY for item in items)
        assert all(item.verification.state == VerificationState.NOT_VERIFIED for item in items)

    @pytest.mark.asyncio
    async def test_id_held_by_other_quarter_keeps_its_record(
        self, selection_service, repository, mock_client, make_case
    ) -> None:
        """A fetched id already verified in Q1 must not replace the Q1 record."""
        mock_client.fetch_audits_by_quarter.return_value = [
            make_case("40012345", owning_user_id="2", quarter_key="Q1-2025")
        ]
        await selection_service.select_quarter_cases("Q1-2025")
        _finalize(repository, "40012345", "6")

        mock_client.fetch_audits_by_quarter.return_value = [
            make_case("40012345", owning_user_id="2"),
            make_case("50000003", owning_user_id="3"),
        ]
        items = await selection_service.select_quarter_cases("Q2-2025")

        assert [item.audit_case.id for item in items] == ["50000003"]
        q1_items = selection_service.list_quarter("Q1-2025")
        assert len(q1_items) == 1
        assert q1_items[0].verification.state == VerificationState.VERIFIED
        assert q1_items[0].verification.verifier_id == "6"

    @pytest.mark.asyncio
    async def test_unavailable_source_empties_working_set(self, selection_service) -> None:
        items = await selection_service.select_quarter_cases("Q2-2025")

        assert items == []


class TestResetQuarter:
    """Test quarter reset."""

    @pytest.mark.asyncio
    async def test_destroys_quarter_records(self, selection_service) -> None:
        await selection_service.auto_select_quarter("Q1-2025")
        await selection_service.auto_select_quarter("Q2-2025")

        removed = selection_service.reset_quarter("Q2-2025")

        assert removed == 6
        assert selection_service.list_quarter("Q2-2025") == []
        assert len(selection_service.list_quarter("Q1-2025")) == 6


class TestQuarterStats:
    """Test quarter progress reporting."""

    @pytest.mark.asyncio
    async def test_counts_by_state_and_origin(self, selection_service, repository) -> None:
        result = await selection_service.auto_select_quarter("Q2-2025")
        staff_case = next(
            c.audit_case for c in result.user_candidates if c.audit_case.owning_user_id == "2"
        )
        _finalize(repository, staff_case.id, "1")
        filler = result.random_candidates[0].audit_case
        _finalize(repository, filler.id, "6")

        stats = selection_service.get_quarter_stats("Q2-2025")

        assert stats.total == 6
        assert stats.verified_count == 2
        assert stats.not_verified_count == 4
        assert stats.in_progress_count == 0
        assert stats.user_quarterly_count == 4
        assert stats.previous_quarter_random_count == 2
        assert stats.completion_pct == 33.3
        assert stats.completed_user_ids == ["2"]

    def test_empty_quarter(self, selection_service) -> None:
        stats = selection_service.get_quarter_stats("Q3-2025")

        assert stats.total == 0
        assert stats.completion_pct == 0.0


class TestSingleton:
    """Test the service factory."""

    def test_returns_same_instance(self) -> None:
        assert get_quarter_selection_service() is get_quarter_selection_service()

    def test_reset_creates_new_instance(self) -> None:
        first = get_quarter_selection_service()
        reset_quarter_selection_service()

        assert get_quarter_selection_service() is not first
