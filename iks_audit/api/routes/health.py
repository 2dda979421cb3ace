"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from iks_audit import __version__
from iks_audit.core.config import Settings, get_settings
from iks_audit.core.logging import get_logger

router = APIRouter(prefix="/health", tags=["health"])
logger = get_logger(__name__)


@router.get("")
async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version info.
    """
    return {
        "data": {
            "status": "healthy",
            "service": "iks-audit-backend",
            "version": __version__,
        }
    }


@router.get("/ready")
async def readiness_check(
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Readiness check with dependency status.

    The service runs without case management (demo roster, reports
    skipped), so readiness only reports whether the boundary is configured.
    """
    checks: dict[str, bool] = {
        "case_management_configured": settings.is_case_management_configured,
    }

    logger.debug("readiness_check", checks=checks)

    return {
        "data": {
            "status": "ready",
            "checks": checks,
        }
    }
