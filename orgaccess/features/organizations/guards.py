"""
Shared plumbing for the organization, invitation and team services:
entity lookups that raise NotFoundError, member authorization against the
role registry, and limit checks against configured evaluators.
"""
from datetime import datetime
from typing import Any, Callable

from orgaccess.core.errors import LimitExceededError, NotFoundError, PermissionDeniedError
from orgaccess.core.evaluators import Evaluator
from orgaccess.features.access.registry import PermissionRequest, RoleRegistry
from orgaccess.features.organizations.models import Member, Organization
from orgaccess.features.organizations.options import OrganizationOptions
from orgaccess.features.organizations.store import MembershipStore
from orgaccess.features.users.models import User
from orgaccess.utils import utcnow


Clock = Callable[[], datetime]


class OrganizationScopedService:
    def __init__(
        self,
        store: MembershipStore,
        options: OrganizationOptions,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.options = options
        self.clock = clock

    @property
    def registry(self) -> RoleRegistry:
        return self.options.registry

    async def _require_user(self, user_id: str) -> User:
        user = await self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _require_organization(self, organization_id: str) -> Organization:
        organization = await self.store.get_organization(organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        return organization

    async def _require_member(
        self,
        user_id: str,
        organization_id: str,
        permission: PermissionRequest | None = None,
    ) -> Member:
        """
        The caller's member row, optionally checked against a permission.

        Raises:
            PermissionDeniedError: not a member, or the member's roles deny it
            UnknownPermissionError: permission names something outside the schema
        """
        member = await self.store.find_member(user_id, organization_id)
        if member is None:
            raise PermissionDeniedError("You are not a member of this organization")
        if permission is not None:
            self.registry.authorize(member.roles, permission)
        return member

    async def _check_limit(self, limit: Evaluator, current: int, what: str, **context: Any) -> None:
        maximum = await limit.evaluate(**context)
        if maximum is not None and current >= maximum:
            raise LimitExceededError(f"{what} limit reached ({current}/{maximum})", limit=maximum)
