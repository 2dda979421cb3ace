"""Quarterly case selection.

Exports:
    - auto_select: Build a quarter's candidate set
    - RANDOM_AUDIT_COUNT: Number of prior-quarter filler candidates
    - QuarterSelectionService: Persist, reset and report on working sets
    - get_quarter_selection_service: Factory for singleton service instance
    - reset_quarter_selection_service: Reset singleton for testing
"""

from iks_audit.services.selection.auto_selection import (
    RANDOM_AUDIT_COUNT,
    auto_select,
    eligible_users,
)
from iks_audit.services.selection.quarter_service import (
    QuarterSelectionService,
    get_quarter_selection_service,
    reset_quarter_selection_service,
)

__all__ = [
    "RANDOM_AUDIT_COUNT",
    "QuarterSelectionService",
    "auto_select",
    "eligible_users",
    "get_quarter_selection_service",
    "reset_quarter_selection_service",
]
