"""
Pydantic schemas for organization-related requests and responses.

Role inputs accept a single name, a comma-joined string or a list; they are
normalized to a set of role names here, before reaching the services.
"""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field, field_validator

from orgaccess.features.access.registry import normalize_roles
from orgaccess.features.organizations.models import Member, Organization
from orgaccess.utils import ensure_utc


SLUG_PATTERN = "^[a-z0-9][a-z0-9-]*$"


def _roles(value: Any) -> frozenset[str]:
    roles = normalize_roles(value)
    if not roles:
        raise ValueError("At least one role is required")
    return roles


class OrganizationCreate(BaseModel):
    """Schema for creating a new organization."""
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=SLUG_PATTERN)
    logo: str | None = Field(None, max_length=500)
    metadata: dict[str, Any] | None = None


class OrganizationUpdate(BaseModel):
    """Schema for updating organization information."""
    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, min_length=1, max_length=255, pattern=SLUG_PATTERN)
    logo: str | None = Field(None, max_length=500)
    metadata: dict[str, Any] | None = None


class OrganizationResponse(BaseModel):
    id: str
    name: str
    slug: str
    logo: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime

    @classmethod
    def from_model(cls, organization: Organization) -> "OrganizationResponse":
        return cls(
            id=organization.id,
            name=organization.name,
            slug=organization.slug,
            logo=organization.logo,
            metadata=organization.metadata_,
            created_at=ensure_utc(organization.created_at),
        )


class MemberResponse(BaseModel):
    id: str
    user_id: str
    organization_id: str
    roles: list[str]
    team_id: str | None = None
    created_at: datetime

    @classmethod
    def from_model(cls, member: Member) -> "MemberResponse":
        return cls(
            id=member.id,
            user_id=member.user_id,
            organization_id=member.organization_id,
            roles=sorted(member.roles),
            team_id=member.team_id,
            created_at=ensure_utc(member.created_at),
        )


class CreatedOrganizationResponse(OrganizationResponse):
    member: MemberResponse


class AddMemberRequest(BaseModel):
    """Schema for adding a user to an organization directly (server side)."""
    user_id: str = Field(..., description="ID of the user to add")
    role: frozenset[str] = Field(..., description="Role name(s): 'admin', 'admin,member' or ['admin', 'member']")
    team_id: str | None = None

    normalize_role = field_validator("role", mode="before")(_roles)


class UpdateMemberRoleRequest(BaseModel):
    role: frozenset[str] = Field(..., description="New role name(s)")

    normalize_role = field_validator("role", mode="before")(_roles)


class SetActiveOrganizationRequest(BaseModel):
    """None clears the active organization."""
    organization_id: str | None = Field(None, description="Organization ID or slug")


class SlugCheckResponse(BaseModel):
    slug: str
    available: bool


class ActiveOrganizationResponse(BaseModel):
    active_organization_id: str | None = None
    organization: OrganizationResponse | None = None
