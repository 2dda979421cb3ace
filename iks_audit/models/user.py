"""Roster models.

The roster is supplied by the case-management system and is immutable for
the duration of a session. Wire format: ``{id, name, role, isActive}``; the
older ``{displayName, authorities, enabled}`` spelling is accepted as well.
"""

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """Authority of a roster member in the audit workflow."""

    STAFF = "STAFF"  # Handles cases, never reviews
    SPECIALIST = "SPECIALIST"
    TEAM_LEADER = "TEAM_LEADER"
    READER = "READER"  # Read-only, never acts as auditor


class User(BaseModel):
    """Roster member."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1, description="Unique user identifier")
    name: str = Field(
        ...,
        validation_alias=AliasChoices("name", "displayName"),
        description="Display name",
    )
    role: UserRole = Field(
        ...,
        validation_alias=AliasChoices("role", "authorities"),
        description="Workflow role",
    )
    is_active: bool = Field(
        True,
        validation_alias=AliasChoices("isActive", "enabled", "is_active"),
        serialization_alias="isActive",
        description="Active flag",
    )


class UserListResponse(BaseModel):
    """Response for roster endpoint."""

    data: list[User] = Field(default_factory=list, description="Current roster")
