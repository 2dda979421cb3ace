"""In-process store for the quarter working sets and their verification records.

Writes to a record go through ``compare_and_set``: the writer passes the
record it observed and the write only applies if the stored record still
carries the same state and verifier. A stale observation is rejected with
ConflictError instead of overwriting a concurrent transition.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from iks_audit.core.exceptions import AuditNotFoundError, ConflictError
from iks_audit.core.logging import get_logger
from iks_audit.models.audit import AuditCase, CaseType
from iks_audit.models.verification import VerificationRecord

logger = get_logger(__name__)


class VerificationRepository:
    """Audit cases and verification records keyed by audit id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cases: dict[str, AuditCase] = {}
        self._records: dict[str, VerificationRecord] = {}

    # -------------------------------------------------------------------------
    # Quarter working sets
    # -------------------------------------------------------------------------

    def replace_quarter(
        self,
        quarter_key: str,
        cases: Iterable[AuditCase],
        replace_types: Iterable[CaseType],
    ) -> list[VerificationRecord]:
        """Swap the quarter's cases of the given types for ``cases``.

        Every new case gets a fresh NOT_VERIFIED record. Cases of other
        types in the quarter are left alone. A case whose id is already held
        by another quarter is skipped; that quarter's record is kept.

        Returns:
            The created records, in the order of ``cases``.
        """
        replace = set(replace_types)
        cases = list(cases)

        with self._lock:
            stale_ids = [
                audit_id
                for audit_id, case in self._cases.items()
                if case.quarter_key == quarter_key and case.case_type in replace
            ]
            for audit_id in stale_ids:
                del self._cases[audit_id]
                self._records.pop(audit_id, None)

            created: list[VerificationRecord] = []
            skipped: list[tuple[str, str]] = []
            for case in cases:
                owner = self._cases.get(case.id)
                if owner is not None and owner.quarter_key != quarter_key:
                    skipped.append((case.id, owner.quarter_key))
                    continue
                record = VerificationRecord(audit_id=case.id, quarter_key=quarter_key)
                self._cases[case.id] = case
                self._records[case.id] = record
                created.append(record)

        for audit_id, owning_quarter in skipped:
            logger.warning(
                "audit_id_held_by_other_quarter",
                quarter_key=quarter_key,
                audit_id=audit_id,
                owning_quarter=owning_quarter,
            )

        logger.info(
            "quarter_working_set_replaced",
            quarter_key=quarter_key,
            removed=len(stale_ids),
            created=len(created),
            skipped=len(skipped),
        )
        return created

    def reset_quarter(self, quarter_key: str) -> int:
        """Destroy every case and record of the quarter.

        Returns:
            Number of records removed.
        """
        with self._lock:
            audit_ids = [
                audit_id
                for audit_id, case in self._cases.items()
                if case.quarter_key == quarter_key
            ]
            for audit_id in audit_ids:
                del self._cases[audit_id]
                self._records.pop(audit_id, None)

        logger.info("quarter_reset", quarter_key=quarter_key, removed=len(audit_ids))
        return len(audit_ids)

    def list_quarter(self, quarter_key: str) -> list[tuple[AuditCase, VerificationRecord]]:
        """Cases of the quarter with their records, in insertion order."""
        with self._lock:
            return [
                (case, self._records[audit_id])
                for audit_id, case in self._cases.items()
                if case.quarter_key == quarter_key and audit_id in self._records
            ]

    def existing_ids(self) -> set[str]:
        with self._lock:
            return set(self._cases)

    # -------------------------------------------------------------------------
    # Single records
    # -------------------------------------------------------------------------

    def get_case(self, audit_id: str) -> AuditCase:
        with self._lock:
            case = self._cases.get(audit_id)
        if case is None:
            raise AuditNotFoundError(audit_id)
        return case

    def get_record(self, audit_id: str) -> VerificationRecord:
        with self._lock:
            record = self._records.get(audit_id)
        if record is None:
            raise AuditNotFoundError(audit_id)
        return record

    def compare_and_set(
        self,
        observed: VerificationRecord,
        updated: VerificationRecord,
    ) -> VerificationRecord:
        """Store ``updated`` if the record still matches ``observed``.

        Raises:
            AuditNotFoundError: If the record no longer exists.
            ConflictError: If the stored state or verifier changed since
                ``observed`` was read.
        """
        audit_id = observed.audit_id

        with self._lock:
            current = self._records.get(audit_id)
            if current is None:
                raise AuditNotFoundError(audit_id)

            if current.lock_token() != observed.lock_token():
                logger.warning(
                    "verification_write_conflict",
                    audit_id=audit_id,
                    expected=observed.lock_token(),
                    actual=current.lock_token(),
                )
                raise ConflictError(audit_id, observed.lock_token(), current.lock_token())

            stored = updated.model_copy(update={"version": current.version + 1})
            self._records[audit_id] = stored

        return stored


# =============================================================================
# Singleton Factory
# =============================================================================

_repository: VerificationRepository | None = None
_repository_lock = threading.Lock()


def get_verification_repository() -> VerificationRepository:
    """Get singleton VerificationRepository instance."""
    global _repository  # noqa: PLW0603

    if _repository is None:
        with _repository_lock:
            # Double-check locking pattern
            if _repository is None:
                _repository = VerificationRepository()

    return _repository


def reset_verification_repository() -> None:
    """Reset singleton for testing."""
    global _repository  # noqa: PLW0603

    with _repository_lock:
        _repository = None

    logger.debug("verification_repository_reset")
