"""
Access control API routes.

Permission checks are answered from the role registry; they never raise for a
denied or unknown permission, they answer false.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Query

from orgaccess.features.access.schemas import (
    MemberPermissionsResponse,
    PermissionCheckRequest,
    PermissionCheckResponse,
    RolePermissionCheckRequest,
    RoleResponse,
)
from orgaccess.features.organizations.dependencies import get_organization_manager
from orgaccess.features.organizations.service import OrganizationManager
from orgaccess.features.users.dependencies import get_current_user
from orgaccess.features.users.models import User


router = APIRouter(tags=["access"])

Manager = Annotated[OrganizationManager, Depends(get_organization_manager)]
CurrentUser = Annotated[User, Depends(get_current_user)]


@router.post("/has-permission", response_model=PermissionCheckResponse)
async def has_permission(check: PermissionCheckRequest, user: CurrentUser, manager: Manager):
    """Does the current user's membership grant every requested action?"""
    member = await manager.get_active_member(user.id, check.organization_id)
    return PermissionCheckResponse(has_permission=manager.registry.has_permission(member.roles, check.permissions))


@router.post("/check-role", response_model=PermissionCheckResponse)
async def check_role_permission(check: RolePermissionCheckRequest, user: CurrentUser, manager: Manager):
    return PermissionCheckResponse(
        has_permission=manager.registry.check_role_permission(check.role, check.permissions)
    )


@router.get("/me", response_model=MemberPermissionsResponse)
async def my_permissions(user: CurrentUser, manager: Manager, organization_id: str = Query(...)):
    """The current user's roles in an organization and the union of their grants."""
    member = await manager.get_active_member(user.id, organization_id)
    grants = manager.registry.permissions_for(member.roles)
    return MemberPermissionsResponse(
        organization_id=organization_id,
        member_id=member.id,
        roles=sorted(member.roles),
        permissions={resource: sorted(actions) for resource, actions in grants.items()},
    )


@router.get("/roles", response_model=list[RoleResponse])
async def list_roles(user: CurrentUser, manager: Manager):
    registry = manager.registry
    return [RoleResponse(name=name, statements=registry.get(name).to_dict()) for name in sorted(registry.names())]
