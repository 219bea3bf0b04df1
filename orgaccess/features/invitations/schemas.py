"""
Pydantic schemas for invitation requests and responses.
"""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, EmailStr, Field, field_validator

from orgaccess.features.access.registry import normalize_roles
from orgaccess.features.invitations.models import Invitation, InvitationStatus
from orgaccess.features.organizations.schemas import MemberResponse
from orgaccess.utils import ensure_utc


class InvitationCreate(BaseModel):
    email: EmailStr
    role: frozenset[str] = Field(..., description="Role name(s): 'member', 'admin,member' or ['admin', 'member']")
    organization_id: str
    team_id: str | None = None
    resend: bool = Field(False, description="Refresh and re-send an existing pending invitation")

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v: Any) -> frozenset[str]:
        roles = normalize_roles(v)
        if not roles:
            raise ValueError("At least one role is required")
        return roles


class InvitationResponse(BaseModel):
    id: str
    email: str
    inviter_id: str
    organization_id: str
    roles: list[str]
    team_id: str | None = None
    status: InvitationStatus
    expires_at: datetime
    created_at: datetime
    expired: bool = Field(False, description="Past expires_at at the time of the read")

    @classmethod
    def from_model(cls, invitation: Invitation, now: datetime) -> "InvitationResponse":
        return cls(
            id=invitation.id,
            email=invitation.email,
            inviter_id=invitation.inviter_id,
            organization_id=invitation.organization_id,
            roles=sorted(invitation.roles),
            team_id=invitation.team_id,
            status=invitation.status,
            expires_at=ensure_utc(invitation.expires_at),
            created_at=ensure_utc(invitation.created_at),
            expired=invitation.is_expired(now),
        )


class AcceptInvitationResponse(BaseModel):
    invitation: InvitationResponse
    member: MemberResponse
