"""Quarter API routes.

Provides endpoints for:
- The current quarter and the quarter drop-down options
- Auto-selection and manual quarter selection of a working set
- Listing a quarter's working set with verification records
- Quarter statistics
- Resetting a quarter's cycle
"""

from typing import Any

from fastapi import APIRouter, Depends, Path, status

from iks_audit.api.deps import _get_selection_service, workflow_http_error
from iks_audit.core.exceptions import WorkflowError
from iks_audit.core.logging import get_logger
from iks_audit.core.quarters import (
    current_quarter_key,
    parse_quarter_key,
    previous_quarter_key,
    quarter_options,
)
from iks_audit.models.audit import (
    CurrentQuarterResponse,
    QuarterAuditsResponse,
    QuarterStatsResponse,
    SelectionResponse,
)
from iks_audit.services.selection import QuarterSelectionService

router = APIRouter(prefix="/quarters", tags=["quarters"])
logger = get_logger(__name__)


@router.get("/current")
async def get_current_quarter() -> dict[str, Any]:
    """Current and previous quarter keys plus this year's quarter options."""
    key = current_quarter_key()
    current = CurrentQuarterResponse(
        quarter_key=key,
        previous_quarter_key=previous_quarter_key(key),
        options=quarter_options(parse_quarter_key(key).year),
    )
    return {"data": current.model_dump(by_alias=True)}


@router.post(
    "/{quarter_key}/auto-select",
    response_model=SelectionResponse,
    responses={
        200: {"description": "Fresh candidate set for the quarter"},
        422: {"description": "Invalid quarter key"},
    },
)
async def auto_select_quarter(
    quarter_key: str = Path(..., description="Quarter key, e.g. Q2-2025"),
    service: QuarterSelectionService = Depends(_get_selection_service),
) -> SelectionResponse:
    """Run auto-selection for the quarter.

    Replaces the quarter's working set in full; running it twice never
    accumulates candidates.
    """
    try:
        result = await service.auto_select_quarter(quarter_key)
        return SelectionResponse(data=result)
    except WorkflowError as e:
        logger.warning("auto_select_failed", quarter_key=quarter_key, error=e.message)
        raise workflow_http_error(e) from e


@router.post(
    "/{quarter_key}/select",
    response_model=QuarterAuditsResponse,
    responses={
        200: {"description": "Quarter working set from case management"},
        422: {"description": "Invalid quarter key"},
    },
)
async def select_quarter(
    quarter_key: str = Path(..., description="Quarter key, e.g. Q2-2025"),
    service: QuarterSelectionService = Depends(_get_selection_service),
) -> QuarterAuditsResponse:
    """Select the quarter's cases from case management as its working set."""
    try:
        items = await service.select_quarter_cases(quarter_key)
        return QuarterAuditsResponse(data=items, meta={"count": len(items)})
    except WorkflowError as e:
        logger.warning("quarter_select_failed", quarter_key=quarter_key, error=e.message)
        raise workflow_http_error(e) from e


@router.get("/{quarter_key}/audits", response_model=QuarterAuditsResponse)
async def list_quarter_audits(
    quarter_key: str = Path(..., description="Quarter key, e.g. Q2-2025"),
    service: QuarterSelectionService = Depends(_get_selection_service),
) -> QuarterAuditsResponse:
    """Working set of the quarter with each case's verification record."""
    try:
        items = service.list_quarter(quarter_key)
        return QuarterAuditsResponse(data=items, meta={"count": len(items)})
    except WorkflowError as e:
        raise workflow_http_error(e) from e


@router.get("/{quarter_key}/stats", response_model=QuarterStatsResponse)
async def get_quarter_stats(
    quarter_key: str = Path(..., description="Quarter key, e.g. Q2-2025"),
    service: QuarterSelectionService = Depends(_get_selection_service),
) -> QuarterStatsResponse:
    """Verification progress of the quarter."""
    try:
        return QuarterStatsResponse(data=service.get_quarter_stats(quarter_key))
    except WorkflowError as e:
        raise workflow_http_error(e) from e


@router.delete("/{quarter_key}", status_code=status.HTTP_200_OK)
async def reset_quarter(
    quarter_key: str = Path(..., description="Quarter key, e.g. Q2-2025"),
    service: QuarterSelectionService = Depends(_get_selection_service),
) -> dict[str, Any]:
    """Reset the quarter's cycle, destroying every record in it."""
    try:
        removed = service.reset_quarter(quarter_key)
    except WorkflowError as e:
        raise workflow_http_error(e) from e

    logger.info("quarter_reset_requested", quarter_key=quarter_key, removed=removed)
    return {"data": {"quarterKey": parse_quarter_key(quarter_key).key, "removed": removed}}
