"""HTTP client for the case-management / reporting system.

This is the only I/O boundary of the workflow core:
- fetch_audits_by_quarter: cases of a quarter (never raises; degrades to [])
- fetch_users: current roster (never raises; degrades to [])
- submit_completion: seven-field completion report after each transition

Reads log a ``data_unavailable`` event and return an empty list when the
system is unreachable, answers with an error status, or returns anything
other than a JSON list. Submissions raise CaseManagementError so the caller
can decide whether to re-send; nothing here retries.
"""

from __future__ import annotations

import threading
from typing import Any, Final

import httpx
from pydantic import ValidationError as PydanticValidationError

from iks_audit.core.config import get_settings
from iks_audit.core.correlation import CORRELATION_HEADER, get_correlation_id
from iks_audit.core.exceptions import DataUnavailableError, WorkflowError
from iks_audit.core.logging import get_logger
from iks_audit.models.audit import AuditCase
from iks_audit.models.user import User
from iks_audit.models.verification import CompletionPayload

logger = get_logger(__name__)

DEFAULT_HEADERS: Final[dict[str, str]] = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}

_QUARTER_FIELDS: Final[tuple[str, ...]] = ("quarterKey", "quarter", "quarter_key")


class CaseManagementError(WorkflowError):
    """Completion report was not accepted by case management."""

    status_code = 502

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(
            message,
            code="CASE_MANAGEMENT_ERROR",
            is_retryable=True,
            details={"status": status} if status is not None else {},
        )


class CaseManagementClient:
    """Async client for the case-management REST API.

    Example:
        >>> async with CaseManagementClient() as client:
        ...     cases = await client.fetch_audits_by_quarter("Q2-2025")
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url if base_url is not None else settings.case_management_url).rstrip("/")
        self.request_timeout = timeout if timeout is not None else settings.case_management_timeout
        self._api_key = api_key if api_key is not None else settings.case_management_api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    async def __aenter__(self) -> CaseManagementClient:
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating if necessary."""
        if self._client is None:
            headers = dict(DEFAULT_HEADERS)
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.request_timeout,
                transport=self._transport,
            )
        return self._client

    def _request_headers(self) -> dict[str, str]:
        correlation_id = get_correlation_id()
        return {CORRELATION_HEADER: correlation_id} if correlation_id else {}

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def _fetch_list(self, path: str) -> list[Any]:
        """GET a JSON list.

        Raises:
            DataUnavailableError: On transport errors, error statuses,
                undecodable bodies or non-list payloads.
        """
        if not self.is_configured:
            raise DataUnavailableError(path, "case management not configured")

        try:
            response = await self._get_client().get(path, headers=self._request_headers())
        except httpx.HTTPError as e:
            raise DataUnavailableError(path, f"request failed: {e}") from e

        if response.status_code >= 400:
            raise DataUnavailableError(path, f"status {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise DataUnavailableError(path, "response is not JSON") from e

        if not isinstance(body, list):
            raise DataUnavailableError(path, f"expected a list, got {type(body).__name__}")

        return body

    async def fetch_audits_by_quarter(self, quarter_key: str) -> list[AuditCase]:
        """Cases of a quarter; empty on any failure."""
        path = f"/audits/quarter/{quarter_key}"
        try:
            items = await self._fetch_list(path)
        except DataUnavailableError as e:
            logger.warning(
                "data_unavailable",
                source=path,
                quarter_key=quarter_key,
                reason=e.message,
            )
            return []

        cases: list[AuditCase] = []
        for item in items:
            if not isinstance(item, dict):
                logger.warning("audit_case_skipped", quarter_key=quarter_key, reason="not an object")
                continue
            if not any(field in item for field in _QUARTER_FIELDS):
                item = {**item, "quarterKey": quarter_key}
            try:
                cases.append(AuditCase.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(
                    "audit_case_skipped",
                    quarter_key=quarter_key,
                    audit_id=item.get("id"),
                    error_count=e.error_count(),
                )

        logger.info("audits_fetched", quarter_key=quarter_key, count=len(cases))
        return cases

    async def fetch_users(self) -> list[User]:
        """Current roster; empty on any failure, malformed entries skipped."""
        path = "/users"
        try:
            items = await self._fetch_list(path)
        except DataUnavailableError as e:
            logger.warning("data_unavailable", source=path, reason=e.message)
            return []

        users: list[User] = []
        for item in items:
            try:
                users.append(User.model_validate(item))
            except PydanticValidationError as e:
                logger.warning("roster_entry_skipped", error_count=e.error_count())

        return users

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def submit_completion(self, audit_id: str, payload: CompletionPayload) -> None:
        """Report a verification transition.

        Finalized verifications are POSTed to ``/audit/{id}/complete``;
        in-progress saves are PUT to ``/audit-completion/{id}``.

        Raises:
            CaseManagementError: If the report is not accepted.
        """
        if not self.is_configured:
            logger.debug("completion_report_skipped", audit_id=audit_id, status=payload.status)
            return

        body = payload.model_dump(mode="json", by_alias=True)
        client = self._get_client()

        try:
            if payload.is_completed:
                response = await client.post(
                    f"/audit/{audit_id}/complete", json=body, headers=self._request_headers()
                )
            else:
                response = await client.put(
                    f"/audit-completion/{audit_id}", json=body, headers=self._request_headers()
                )
        except httpx.HTTPError as e:
            logger.error("completion_report_failed", audit_id=audit_id, error=str(e))
            raise CaseManagementError(f"Completion report failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "completion_report_rejected",
                audit_id=audit_id,
                status=response.status_code,
            )
            raise CaseManagementError(
                f"Completion report rejected with status {response.status_code}",
                status=response.status_code,
            )

        logger.info("completion_reported", audit_id=audit_id, status=payload.status)


# =============================================================================
# Singleton Factory
# =============================================================================

_client: CaseManagementClient | None = None
_client_lock = threading.Lock()


def get_case_management_client() -> CaseManagementClient:
    """Get singleton CaseManagementClient instance."""
    global _client  # noqa: PLW0603

    if _client is None:
        with _client_lock:
            if _client is None:
                _client = CaseManagementClient()

    return _client


def reset_case_management_client() -> None:
    """Reset singleton for testing."""
    global _client  # noqa: PLW0603

    with _client_lock:
        _client = None
