"""Case-management boundary.

Exports:
    - CaseManagementClient: Async HTTP client (audits, roster, completions)
    - CaseManagementError: Raised when a completion report is not accepted
    - get_case_management_client: Factory for singleton client instance
    - reset_case_management_client: Reset singleton for testing
"""

from iks_audit.services.case_management.client import (
    CaseManagementClient,
    CaseManagementError,
    get_case_management_client,
    reset_case_management_client,
)

__all__ = [
    "CaseManagementClient",
    "CaseManagementError",
    "get_case_management_client",
    "reset_case_management_client",
]
