"""
Team management: optional sub-groups of members inside an organization.

Every operation requires teams to be enabled in the options. A member belongs
to at most one team (Member.team_id).
"""
from orgaccess.core.errors import FeatureDisabledError, InvariantViolationError, NotFoundError
from orgaccess.features.organizations.guards import OrganizationScopedService
from orgaccess.features.organizations.models import Member
from orgaccess.features.teams.models import Team
from orgaccess.utils import get_logger


log = get_logger(__name__)


class TeamManager(OrganizationScopedService):

    def _ensure_enabled(self) -> None:
        if not self.options.teams.enabled:
            raise FeatureDisabledError("Teams are not enabled")

    async def _require_team(self, team_id: str) -> Team:
        team = await self.store.get_team(team_id)
        if team is None:
            raise NotFoundError("Team not found")
        return team

    async def create_team(self, user_id: str, organization_id: str, name: str) -> Team:
        """
        Requires team:create.

        Raises:
            LimitExceededError: the organization already has maximum_teams teams
        """
        self._ensure_enabled()
        await self._require_organization(organization_id)
        await self._require_member(user_id, organization_id, {"team": ["create"]})

        async with self.store.transaction():
            await self._check_limit(
                self.options.teams.maximum_teams,
                await self.store.count_teams(organization_id),
                "Team",
                organization_id=organization_id,
            )
            now = self.clock()
            team = await self.store.add_team(
                Team(name=name, organization_id=organization_id, created_at=now, updated_at=now)
            )

        log.info("Team %s (%s) created in org %s", team.id, name, organization_id)
        return team

    async def update_team(self, user_id: str, team_id: str, name: str) -> Team:
        self._ensure_enabled()
        team = await self._require_team(team_id)
        await self._require_member(user_id, team.organization_id, {"team": ["update"]})

        async with self.store.transaction():
            team.name = name
            team.updated_at = self.clock()
        return team

    async def remove_team(self, user_id: str, team_id: str) -> Team:
        """
        Requires team:delete. Members of the team are detached, not removed.

        Raises:
            InvariantViolationError: last team of the organization and
                allow_removing_all_teams is off
        """
        self._ensure_enabled()
        team = await self._require_team(team_id)
        await self._require_member(user_id, team.organization_id, {"team": ["delete"]})

        if not self.options.teams.allow_removing_all_teams:
            if await self.store.count_teams(team.organization_id) <= 1:
                raise InvariantViolationError("Cannot remove the last team of an organization")

        async with self.store.transaction():
            await self.store.delete_team(team)

        log.info("Team %s removed from org %s by user %s", team_id, team.organization_id, user_id)
        return team

    async def list_teams(self, user_id: str, organization_id: str) -> list[Team]:
        self._ensure_enabled()
        await self._require_member(user_id, organization_id)
        return await self.store.list_teams(organization_id)

    async def add_team_member(self, user_id: str, team_id: str, member_id: str) -> Member:
        """
        Assign a member to a team. Requires member:update.

        Raises:
            LimitExceededError: the team already has maximum_members_per_team members
        """
        self._ensure_enabled()
        team = await self._require_team(team_id)
        await self._require_member(user_id, team.organization_id, {"member": ["update"]})
        member = await self.store.get_member(member_id)
        if member is None or member.organization_id != team.organization_id:
            raise NotFoundError("Member not found")
        if member.team_id == team.id:
            return member

        async with self.store.transaction():
            await self._check_limit(
                self.options.teams.maximum_members_per_team,
                await self.store.count_team_members(team.id),
                "Team member",
                team_id=team.id,
                organization_id=team.organization_id,
            )
            member.team_id = team.id

        log.info("Member %s assigned to team %s", member_id, team_id)
        return member

    async def remove_team_member(self, user_id: str, team_id: str, member_id: str) -> Member:
        self._ensure_enabled()
        team = await self._require_team(team_id)
        await self._require_member(user_id, team.organization_id, {"member": ["update"]})
        member = await self.store.get_member(member_id)
        if member is None or member.team_id != team.id:
            raise NotFoundError("Member is not in this team")

        async with self.store.transaction():
            member.team_id = None
        return member
