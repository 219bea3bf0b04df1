"""
Organization lifecycle: creation, update, deletion, active organization and
membership management.

Creation and deletion run their before-hook ahead of persistence (it can
abort with nothing written), commit the entity changes in one transaction,
then run the after-hook. A failing after-hook does not undo the commit; it is
logged and surfaced as HookError carrying the committed result.
"""
from collections.abc import Iterable
from typing import Any

from orgaccess.core.errors import (
    AlreadyMemberError,
    ConflictError,
    FeatureDisabledError,
    HookError,
    InvariantViolationError,
    NotFoundError,
    PermissionDeniedError,
    SlugTakenError,
    UnknownRoleError,
)
from orgaccess.features.access.defaults import OWNER
from orgaccess.features.access.registry import serialize_roles
from orgaccess.features.invitations.models import Invitation
from orgaccess.features.organizations.guards import OrganizationScopedService
from orgaccess.features.organizations.hooks import OrganizationDraft
from orgaccess.features.organizations.models import Member, Organization
from orgaccess.features.teams.models import Team
from orgaccess.utils import get_logger


log = get_logger(__name__)


class FullOrganization:
    """An organization with its members, invitations and teams."""

    def __init__(
        self,
        organization: Organization,
        members: list[Member],
        invitations: list[Invitation],
        teams: list[Team],
    ):
        self.organization = organization
        self.members = members
        self.invitations = invitations
        self.teams = teams


class OrganizationManager(OrganizationScopedService):

    async def check_slug(self, slug: str) -> bool:
        """True when the slug is free."""
        return await self.store.get_organization_by_slug(slug) is None

    async def create_organization(
        self,
        user_id: str,
        name: str,
        slug: str,
        logo: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> tuple[Organization, Member]:
        """
        Create an organization with the creator as its first member.

        Raises:
            FeatureDisabledError: organization creation is disabled
            PermissionDeniedError: allow_user_to_create_organization refused the user
            LimitExceededError: the user already belongs to organization_limit organizations
            SlugTakenError: the slug is in use
            HookError: after_create failed; the organization exists
        """
        if self.options.organization_creation.disabled:
            raise FeatureDisabledError("Organization creation is disabled")

        user = await self._require_user(user_id)
        if not await self.options.allow_user_to_create_organization.evaluate(user=user):
            raise PermissionDeniedError("You are not allowed to create organizations")

        memberships = await self.store.count_memberships(user.id)
        await self._check_limit(self.options.organization_limit, memberships, "Organization", user=user)

        draft = OrganizationDraft(name=name, slug=slug, logo=logo, metadata=metadata)
        rewritten = await self.options.hooks.before_create(draft, user)
        if rewritten is not None:
            draft = rewritten

        if not await self.check_slug(draft.slug):
            raise SlugTakenError(draft.slug)

        now = self.clock()
        try:
            async with self.store.transaction():
                organization = await self.store.add_organization(
                    Organization(
                        name=draft.name,
                        slug=draft.slug,
                        logo=draft.logo,
                        metadata_=draft.metadata,
                        created_at=now,
                        updated_at=now,
                    )
                )
                team_id = None
                if self.options.teams.enabled and self.options.teams.default_team:
                    team = await self.store.add_team(
                        Team(name=organization.name, organization_id=organization.id, created_at=now, updated_at=now)
                    )
                    team_id = team.id
                member = await self.store.add_member(
                    Member(
                        user_id=user.id,
                        organization_id=organization.id,
                        role=self.options.creator_role,
                        team_id=team_id,
                        created_at=now,
                    )
                )
        except ConflictError as e:
            raise SlugTakenError(draft.slug) from e

        log.info("Organization %s (%s) created by user %s", organization.id, organization.slug, user.id)

        try:
            await self.options.hooks.after_create(organization, member, user)
        except Exception as e:
            log.exception("after_create hook failed for organization %s", organization.id)
            raise HookError("after_create", (organization, member), e) from e

        return organization, member

    async def update_organization(
        self,
        user_id: str,
        organization_id: str,
        name: str | None = None,
        slug: str | None = None,
        logo: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Organization:
        """
        Update the given fields. Requires organization:update.

        Raises:
            SlugTakenError: the new slug belongs to another organization
        """
        organization = await self._require_organization(organization_id)
        await self._require_member(user_id, organization_id, {"organization": ["update"]})

        if slug is not None and slug != organization.slug and not await self.check_slug(slug):
            raise SlugTakenError(slug)

        try:
            async with self.store.transaction():
                if name is not None:
                    organization.name = name
                if slug is not None:
                    organization.slug = slug
                if logo is not None:
                    organization.logo = logo
                if metadata is not None:
                    organization.metadata_ = metadata
                organization.updated_at = self.clock()
        except ConflictError as e:
            raise SlugTakenError(slug or "") from e

        log.info("Organization %s updated by user %s", organization_id, user_id)
        return organization

    async def delete_organization(self, user_id: str, organization_id: str) -> Organization:
        """
        Delete an organization with its members, invitations and teams.

        Raises:
            FeatureDisabledError: organization deletion is disabled
            PermissionDeniedError: caller lacks organization:delete
            HookError: after_delete failed; the organization is gone
        """
        if self.options.organization_deletion.disabled:
            raise FeatureDisabledError("Organization deletion is disabled")

        organization = await self._require_organization(organization_id)
        await self._require_member(user_id, organization_id, {"organization": ["delete"]})
        user = await self._require_user(user_id)

        await self.options.hooks.before_delete(organization, user)

        async with self.store.transaction():
            await self.store.delete_organization_cascade(organization_id)

        log.info("Organization %s deleted by user %s", organization_id, user_id)

        try:
            await self.options.hooks.after_delete(organization, user)
        except Exception as e:
            log.exception("after_delete hook failed for organization %s", organization_id)
            raise HookError("after_delete", organization, e) from e

        return organization

    async def set_active_organization(self, user_id: str, organization_slug_or_id: str | None) -> Organization | None:
        """
        Validate and compute the new active organization for a session.

        Passing None clears it. Persisting the pointer is up to the session owner.
        """
        if organization_slug_or_id is None:
            return None
        organization = await self.store.find_organization(organization_slug_or_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        await self._require_member(user_id, organization.id)
        return organization

    async def list_organizations(self, user_id: str) -> list[Organization]:
        return await self.store.list_organizations_for_user(user_id)

    async def get_full_organization(self, user_id: str, organization_slug_or_id: str) -> FullOrganization:
        organization = await self.store.find_organization(organization_slug_or_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        await self._require_member(user_id, organization.id)
        return FullOrganization(
            organization=organization,
            members=await self.store.list_members(organization.id),
            invitations=await self.store.list_invitations(organization.id),
            teams=await self.store.list_teams(organization.id),
        )

    async def get_active_member(self, user_id: str, organization_id: str) -> Member:
        member = await self.store.find_member(user_id, organization_id)
        if member is None:
            raise NotFoundError("You are not a member of this organization")
        return member

    async def list_members(self, user_id: str, organization_id: str) -> list[Member]:
        await self._require_member(user_id, organization_id)
        return await self.store.list_members(organization_id)

    def _validate_roles(self, roles: frozenset[str]) -> None:
        unknown = roles - self.registry.names()
        if not roles or unknown:
            raise UnknownRoleError(unknown or {"<none>"})

    async def add_member(
        self,
        organization_id: str,
        user_id: str,
        roles: Iterable[str],
        team_id: str | None = None,
        acting_user_id: str | None = None,
    ) -> Member:
        """
        Direct membership creation, bypassing invitations.

        Server-side callers pass no acting user; API callers pass theirs and
        need member:create.

        Raises:
            AlreadyMemberError: the user already belongs to the organization
            LimitExceededError: membership limit reached
        """
        roles = frozenset(roles)
        self._validate_roles(roles)
        if acting_user_id is not None:
            acting = await self._require_member(acting_user_id, organization_id, {"member": ["create"]})
            if OWNER in roles and OWNER not in acting.roles:
                raise PermissionDeniedError("Only owners can add an owner")
        organization = await self._require_organization(organization_id)
        user = await self._require_user(user_id)
        if await self.store.find_member(user.id, organization_id) is not None:
            raise AlreadyMemberError("User is already a member of this organization")
        if team_id is not None:
            if not self.options.teams.enabled:
                raise FeatureDisabledError("Teams are not enabled")
            team = await self.store.get_team(team_id)
            if team is None or team.organization_id != organization_id:
                raise NotFoundError("Team not found")

        try:
            async with self.store.transaction():
                members = await self.store.count_members(organization_id)
                await self._check_limit(
                    self.options.membership_limit,
                    members,
                    "Membership",
                    user=user,
                    organization=organization,
                )
                if team_id is not None:
                    await self._check_limit(
                        self.options.teams.maximum_members_per_team,
                        await self.store.count_team_members(team_id),
                        "Team member",
                        team_id=team_id,
                        organization_id=organization_id,
                    )
                member = await self.store.add_member(
                    Member(
                        user_id=user.id,
                        organization_id=organization_id,
                        role=serialize_roles(roles),
                        team_id=team_id,
                        created_at=self.clock(),
                    )
                )
        except ConflictError as e:
            if isinstance(e, AlreadyMemberError):
                raise
            raise AlreadyMemberError("User is already a member of this organization") from e

        log.info("User %s added to org %s as %s", user.id, organization_id, member.role)
        return member

    async def _owner_count(self, organization_id: str) -> int:
        return sum(1 for member in await self.store.list_members(organization_id) if OWNER in member.roles)

    async def _require_target(self, member_id: str, organization_id: str) -> Member:
        target = await self.store.get_member(member_id)
        if target is None or target.organization_id != organization_id:
            raise NotFoundError("Member not found")
        return target

    async def remove_member(self, user_id: str, organization_id: str, member_id: str) -> Member:
        """
        Remove a member. Requires member:delete; only owners may remove owners.

        Raises:
            InvariantViolationError: the target is the last owner
        """
        caller = await self._require_member(user_id, organization_id, {"member": ["delete"]})
        target = await self._require_target(member_id, organization_id)
        if OWNER in target.roles:
            if OWNER not in caller.roles:
                raise PermissionDeniedError("Only owners can remove an owner")
            if await self._owner_count(organization_id) <= 1:
                raise InvariantViolationError("The last owner cannot be removed")

        async with self.store.transaction():
            await self.store.delete_member(target)
        log.info("Member %s removed from org %s by user %s", member_id, organization_id, user_id)
        return target

    async def update_member_role(
        self,
        user_id: str,
        organization_id: str,
        member_id: str,
        roles: Iterable[str],
    ) -> Member:
        """
        Replace a member's roles. Requires member:update; only owners may grant
        or revoke the owner role.

        Raises:
            InvariantViolationError: the change would leave no owner
        """
        roles = frozenset(roles)
        self._validate_roles(roles)
        caller = await self._require_member(user_id, organization_id, {"member": ["update"]})
        target = await self._require_target(member_id, organization_id)

        touches_owner = OWNER in roles or OWNER in target.roles
        if touches_owner and OWNER not in caller.roles:
            raise PermissionDeniedError("Only owners can grant or revoke the owner role")
        if OWNER in target.roles and OWNER not in roles and await self._owner_count(organization_id) <= 1:
            raise InvariantViolationError("The last owner cannot be demoted")

        async with self.store.transaction():
            target.role = serialize_roles(roles)
        log.info("Member %s in org %s now has roles %s", member_id, organization_id, target.role)
        return target

    async def leave_organization(self, user_id: str, organization_id: str) -> Member:
        """
        Raises:
            InvariantViolationError: the caller is the last owner
        """
        member = await self._require_member(user_id, organization_id)
        if OWNER in member.roles and await self._owner_count(organization_id) <= 1:
            raise InvariantViolationError("The last owner cannot leave the organization")
        async with self.store.transaction():
            await self.store.delete_member(member)
        log.info("User %s left org %s", user_id, organization_id)
        return member
