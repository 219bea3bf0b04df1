"""
Pydantic schemas for permission checks.
"""
from pydantic import BaseModel, Field


class PermissionCheckRequest(BaseModel):
    """Check the current user's roles in an organization against a permission set."""
    organization_id: str
    permissions: dict[str, list[str]] = Field(
        ..., description="Resource -> actions, e.g. {'member': ['create', 'update']}"
    )


class RolePermissionCheckRequest(BaseModel):
    """Check a role name against a permission set, without any member."""
    role: str
    permissions: dict[str, list[str]]


class PermissionCheckResponse(BaseModel):
    has_permission: bool


class MemberPermissionsResponse(BaseModel):
    organization_id: str
    member_id: str
    roles: list[str]
    permissions: dict[str, list[str]]


class RoleResponse(BaseModel):
    name: str
    statements: dict[str, list[str]]
