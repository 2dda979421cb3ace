"""Verification lifecycle.

Exports:
    - VerificationService: start/resume, draft, finalize, publish
    - VerificationRepository: In-process record store with compare-and-set
    - get_verification_service / reset_verification_service
    - get_verification_repository / reset_verification_repository
"""

from iks_audit.services.verification.repository import (
    VerificationRepository,
    get_verification_repository,
    reset_verification_repository,
)
from iks_audit.services.verification.verification_service import (
    VerificationService,
    get_verification_service,
    reset_verification_service,
)

__all__ = [
    "VerificationRepository",
    "VerificationService",
    "get_verification_repository",
    "get_verification_service",
    "reset_verification_repository",
    "reset_verification_service",
]
