"""
Organization feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from orgaccess.core.database.engine import get_db
from orgaccess.features.invitations.schemas import InvitationResponse
from orgaccess.features.organizations.dependencies import get_organization_manager
from orgaccess.features.organizations.schemas import (
    ActiveOrganizationResponse,
    AddMemberRequest,
    CreatedOrganizationResponse,
    MemberResponse,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
    SetActiveOrganizationRequest,
    SlugCheckResponse,
    UpdateMemberRoleRequest,
)
from orgaccess.features.organizations.service import OrganizationManager
from orgaccess.features.teams.schemas import TeamResponse
from orgaccess.features.users.dependencies import get_current_user
from orgaccess.features.users.models import User
from orgaccess.utils import utcnow


router = APIRouter(tags=["organizations"])

Manager = Annotated[OrganizationManager, Depends(get_organization_manager)]
CurrentUser = Annotated[User, Depends(get_current_user)]


class FullOrganizationResponse(OrganizationResponse):
    members: list[MemberResponse] = Field(default_factory=list)
    invitations: list[InvitationResponse] = Field(default_factory=list)
    teams: list[TeamResponse] = Field(default_factory=list)


@router.post("/", response_model=CreatedOrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(org_data: OrganizationCreate, user: CurrentUser, manager: Manager):
    """Create an organization; the caller becomes its first member."""
    organization, member = await manager.create_organization(
        user.id,
        name=org_data.name,
        slug=org_data.slug,
        logo=org_data.logo,
        metadata=org_data.metadata,
    )
    return CreatedOrganizationResponse(
        **OrganizationResponse.from_model(organization).model_dump(),
        member=MemberResponse.from_model(member),
    )


@router.get("/check-slug", response_model=SlugCheckResponse)
async def check_slug(user: CurrentUser, manager: Manager, slug: str = Query(..., min_length=1)):
    return SlugCheckResponse(slug=slug, available=await manager.check_slug(slug))


@router.get("/", response_model=list[OrganizationResponse])
async def list_my_organizations(user: CurrentUser, manager: Manager):
    """Organizations the current user is a member of."""
    return [OrganizationResponse.from_model(org) for org in await manager.list_organizations(user.id)]


@router.get("/active", response_model=ActiveOrganizationResponse)
async def get_active_organization(user: CurrentUser, manager: Manager):
    if user.active_organization_id is None:
        return ActiveOrganizationResponse()
    organization = await manager.set_active_organization(user.id, user.active_organization_id)
    return ActiveOrganizationResponse(
        active_organization_id=organization.id,
        organization=OrganizationResponse.from_model(organization),
    )


@router.post("/active", response_model=ActiveOrganizationResponse)
async def set_active_organization(
    switch_data: SetActiveOrganizationRequest,
    user: CurrentUser,
    manager: Manager,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Switch (or clear, with null) the current user's active organization."""
    organization = await manager.set_active_organization(user.id, switch_data.organization_id)
    user.active_organization_id = organization.id if organization else None
    await db.commit()
    return ActiveOrganizationResponse(
        active_organization_id=user.active_organization_id,
        organization=OrganizationResponse.from_model(organization) if organization else None,
    )


@router.get("/{organization_id}", response_model=FullOrganizationResponse)
async def get_full_organization(organization_id: str, user: CurrentUser, manager: Manager):
    """Organization (by id or slug) with members, invitations and teams; members only."""
    full = await manager.get_full_organization(user.id, organization_id)
    now = utcnow()
    return FullOrganizationResponse(
        **OrganizationResponse.from_model(full.organization).model_dump(),
        members=[MemberResponse.from_model(member) for member in full.members],
        invitations=[InvitationResponse.from_model(invitation, now) for invitation in full.invitations],
        teams=[TeamResponse.model_validate(team) for team in full.teams],
    )


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: str,
    update_data: OrganizationUpdate,
    user: CurrentUser,
    manager: Manager,
):
    """Update organization information (organization:update)."""
    organization = await manager.update_organization(
        user.id, organization_id, **update_data.model_dump(exclude_unset=True)
    )
    return OrganizationResponse.from_model(organization)


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(organization_id: str, user: CurrentUser, manager: Manager):
    """Delete an organization and everything in it (organization:delete)."""
    await manager.delete_organization(user.id, organization_id)


@router.get("/{organization_id}/members", response_model=list[MemberResponse])
async def list_members(organization_id: str, user: CurrentUser, manager: Manager):
    return [MemberResponse.from_model(member) for member in await manager.list_members(user.id, organization_id)]


@router.get("/{organization_id}/members/me", response_model=MemberResponse)
async def get_active_member(organization_id: str, user: CurrentUser, manager: Manager):
    return MemberResponse.from_model(await manager.get_active_member(user.id, organization_id))


@router.post("/{organization_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(organization_id: str, add_data: AddMemberRequest, user: CurrentUser, manager: Manager):
    """Add a user directly, without an invitation (member:create)."""
    member = await manager.add_member(
        organization_id,
        add_data.user_id,
        add_data.role,
        team_id=add_data.team_id,
        acting_user_id=user.id,
    )
    return MemberResponse.from_model(member)


@router.patch("/{organization_id}/members/{member_id}", response_model=MemberResponse)
async def update_member_role(
    organization_id: str,
    member_id: str,
    role_data: UpdateMemberRoleRequest,
    user: CurrentUser,
    manager: Manager,
):
    member = await manager.update_member_role(user.id, organization_id, member_id, role_data.role)
    return MemberResponse.from_model(member)


@router.delete("/{organization_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(organization_id: str, member_id: str, user: CurrentUser, manager: Manager):
    await manager.remove_member(user.id, organization_id, member_id)


@router.post("/{organization_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_organization(organization_id: str, user: CurrentUser, manager: Manager):
    await manager.leave_organization(user.id, organization_id)
