"""Verification API routes for the quarterly audit workflow.

Provides endpoints for:
- Permission booleans of the acting user on an audit
- Starting, resuming or taking over a verification
- Saving a draft
- Finalizing a verification
- Re-sending a committed verification whose report failed

The acting user comes from the ``X-User-Id`` header. Transition requests may
carry the record state the user saw (``expectedState`` and
``expectedVerifierId``); a record changed in the meantime answers 409.
"""

from fastapi import APIRouter, Body, Depends, Path

from iks_audit.api.deps import (
    _get_verification_service,
    get_acting_user,
    workflow_http_error,
)
from iks_audit.core.exceptions import (
    CompletionSubmissionError,
    ConflictError,
    PermissionDeniedError,
    WorkflowError,
)
from iks_audit.core.logging import get_logger
from iks_audit.models.user import User
from iks_audit.models.verification import (
    FinalizeVerificationRequest,
    PermissionsResponse,
    ReportVerificationRequest,
    SaveDraftRequest,
    StartVerificationRequest,
    VerificationResponse,
)
from iks_audit.services.verification import VerificationService

router = APIRouter(prefix="/audits/{audit_id}", tags=["verifications"])
logger = get_logger(__name__)

TRANSITION_RESPONSES = {
    403: {"description": "Acting user may not perform this transition"},
    404: {"description": "Audit not found"},
    409: {"description": "Record changed since it was read"},
    502: {"description": "Committed locally but not reported to case management"},
}


def _log_failure(event: str, audit_id: str, user: User, e: WorkflowError) -> None:
    if isinstance(e, (PermissionDeniedError, ConflictError)):
        logger.info(event, audit_id=audit_id, user_id=user.id, code=e.code)
    elif isinstance(e, CompletionSubmissionError):
        logger.error(event, audit_id=audit_id, user_id=user.id, code=e.code, error=e.message)
    else:
        logger.warning(event, audit_id=audit_id, user_id=user.id, code=e.code)


@router.get("/permissions", response_model=PermissionsResponse)
async def get_permissions(
    audit_id: str = Path(..., description="Audit id"),
    user: User = Depends(get_acting_user),
    service: VerificationService = Depends(_get_verification_service),
) -> PermissionsResponse:
    """Which verification actions the acting user may take on the audit."""
    try:
        return PermissionsResponse(data=service.permissions(user, audit_id))
    except WorkflowError as e:
        raise workflow_http_error(e) from e


@router.post(
    "/verification/start",
    response_model=VerificationResponse,
    responses=TRANSITION_RESPONSES,
)
async def start_verification(
    audit_id: str = Path(..., description="Audit id"),
    request: StartVerificationRequest | None = Body(None),
    user: User = Depends(get_acting_user),
    service: VerificationService = Depends(_get_verification_service),
) -> VerificationResponse:
    """Start, resume or take over the audit's verification."""
    request = request or StartVerificationRequest()
    try:
        record = service.snapshot(audit_id, request.expected_state, request.expected_verifier_id)
        return VerificationResponse(data=await service.start_or_resume(user, record))
    except WorkflowError as e:
        _log_failure("start_verification_failed", audit_id, user, e)
        raise workflow_http_error(e) from e


@router.put(
    "/verification/draft",
    response_model=VerificationResponse,
    responses={**TRANSITION_RESPONSES, 422: {"description": "Malformed input"}},
)
async def save_draft(
    request: SaveDraftRequest,
    audit_id: str = Path(..., description="Audit id"),
    user: User = Depends(get_acting_user),
    service: VerificationService = Depends(_get_verification_service),
) -> VerificationResponse:
    """Save the holder's draft; the verification stays in progress."""
    try:
        record = service.snapshot(audit_id, request.expected_state, request.expected_verifier_id)
        return VerificationResponse(data=await service.save_draft(user, record, request.fields))
    except WorkflowError as e:
        _log_failure("save_draft_failed", audit_id, user, e)
        raise workflow_http_error(e) from e


@router.post(
    "/verification/finalize",
    response_model=VerificationResponse,
    responses={**TRANSITION_RESPONSES, 422: {"description": "Rating missing"}},
)
async def finalize_verification(
    request: FinalizeVerificationRequest,
    audit_id: str = Path(..., description="Audit id"),
    user: User = Depends(get_acting_user),
    service: VerificationService = Depends(_get_verification_service),
) -> VerificationResponse:
    """Finalize the verification with a rating."""
    try:
        record = service.snapshot(audit_id, request.expected_state, request.expected_verifier_id)
        return VerificationResponse(data=await service.finalize(user, record, request.fields))
    except WorkflowError as e:
        _log_failure("finalize_verification_failed", audit_id, user, e)
        raise workflow_http_error(e) from e


@router.post(
    "/verification/report",
    response_model=VerificationResponse,
    responses=TRANSITION_RESPONSES,
)
async def report_verification(
    audit_id: str = Path(..., description="Audit id"),
    request: ReportVerificationRequest | None = Body(None),
    user: User = Depends(get_acting_user),
    service: VerificationService = Depends(_get_verification_service),
) -> VerificationResponse:
    """Re-send the committed verification to case management after a 502."""
    request = request or ReportVerificationRequest()
    try:
        record = service.snapshot(audit_id, request.expected_state, request.expected_verifier_id)
        return VerificationResponse(data=await service.report(user, record))
    except WorkflowError as e:
        _log_failure("report_verification_failed", audit_id, user, e)
        raise workflow_http_error(e) from e
