"""
Invitation routes.

Recipients act on invitations addressed to their own email; organization
members manage the invitations of their organization.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from orgaccess.core.database.engine import get_db
from orgaccess.features.invitations.models import InvitationStatus
from orgaccess.features.invitations.schemas import (
    AcceptInvitationResponse,
    InvitationCreate,
    InvitationResponse,
)
from orgaccess.features.invitations.service import InvitationEngine
from orgaccess.features.organizations.dependencies import get_invitation_engine, get_organization_manager
from orgaccess.features.organizations.schemas import MemberResponse
from orgaccess.features.organizations.service import OrganizationManager
from orgaccess.features.users.dependencies import get_current_user
from orgaccess.features.users.models import User
from orgaccess.utils import utcnow


router = APIRouter(tags=["invitations"])

Engine = Annotated[InvitationEngine, Depends(get_invitation_engine)]
CurrentUser = Annotated[User, Depends(get_current_user)]


@router.post("/", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(invitation_data: InvitationCreate, user: CurrentUser, engine: Engine):
    """Invite an email address to an organization (invitation:create)."""
    invitation = await engine.create_invitation(
        user.id,
        invitation_data.organization_id,
        invitation_data.email,
        invitation_data.role,
        team_id=invitation_data.team_id,
        resend=invitation_data.resend,
    )
    return InvitationResponse.from_model(invitation, utcnow())


@router.get("/mine", response_model=list[InvitationResponse])
async def list_my_invitations(user: CurrentUser, engine: Engine):
    """Invitations addressed to the current user's email, any status."""
    now = utcnow()
    return [InvitationResponse.from_model(inv, now) for inv in await engine.list_user_invitations(user.email)]


@router.get("/", response_model=list[InvitationResponse])
async def list_invitations(
    user: CurrentUser,
    engine: Engine,
    manager: Annotated[OrganizationManager, Depends(get_organization_manager)],
    organization_id: str = Query(...),
    invitation_status: InvitationStatus | None = Query(None, alias="status"),
):
    """Invitations of an organization the current user belongs to."""
    await manager.get_active_member(user.id, organization_id)
    now = utcnow()
    return [
        InvitationResponse.from_model(inv, now)
        for inv in await engine.list_invitations(organization_id, invitation_status)
    ]


@router.get("/{invitation_id}", response_model=InvitationResponse)
async def get_invitation(
    invitation_id: str,
    user: CurrentUser,
    engine: Engine,
    manager: Annotated[OrganizationManager, Depends(get_organization_manager)],
):
    """Readable by the recipient and by members of the inviting organization."""
    invitation = await engine.get_invitation(invitation_id)
    if user.email.lower() != invitation.email:
        await manager.get_active_member(user.id, invitation.organization_id)
    return InvitationResponse.from_model(invitation, utcnow())


@router.post("/{invitation_id}/accept", response_model=AcceptInvitationResponse)
async def accept_invitation(
    invitation_id: str,
    user: CurrentUser,
    engine: Engine,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Accept an invitation; the joined organization becomes the active one."""
    invitation, member = await engine.accept_invitation(invitation_id, user.id)
    user.active_organization_id = member.organization_id
    await db.commit()
    return AcceptInvitationResponse(
        invitation=InvitationResponse.from_model(invitation, utcnow()),
        member=MemberResponse.from_model(member),
    )


@router.post("/{invitation_id}/reject", response_model=InvitationResponse)
async def reject_invitation(invitation_id: str, user: CurrentUser, engine: Engine):
    invitation = await engine.reject_invitation(invitation_id, user.id)
    return InvitationResponse.from_model(invitation, utcnow())


@router.post("/{invitation_id}/cancel", response_model=InvitationResponse)
async def cancel_invitation(invitation_id: str, user: CurrentUser, engine: Engine):
    """Withdraw a pending invitation (invitation:cancel)."""
    invitation = await engine.cancel_invitation(invitation_id, user.id)
    return InvitationResponse.from_model(invitation, utcnow())
