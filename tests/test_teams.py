"""Tests for team management."""
import pytest

from orgaccess.core.errors import (
    FeatureDisabledError,
    InvariantViolationError,
    LimitExceededError,
    NotFoundError,
    PermissionDeniedError,
)
from orgaccess.features.access.defaults import MEMBER
from orgaccess.features.invitations.models import InvitationStatus
from orgaccess.features.organizations.options import TeamOptions


async def acme_with_default_team(h):
    owner = await h.add_user("owner@x.com")
    org_id, member_id = await h.create_org(owner)
    [team] = await h.teams.list_teams(owner, org_id)
    return owner, org_id, member_id, team.id


class TestTeams:

    def test_default_team_holds_creator(self, run):
        async def scenario(h):
            owner, org_id, member_id, team_id = await acme_with_default_team(h)
            member = await h.store.get_member(member_id)
            assert member.team_id == team_id
            assert (await h.store.get_team(team_id)).name == "Acme"

        run(scenario, teams=TeamOptions(enabled=True))

    def test_last_team_cannot_be_removed(self, run):
        async def scenario(h):
            owner, org_id, _, team_id = await acme_with_default_team(h)
            with pytest.raises(InvariantViolationError):
                await h.teams.remove_team(owner, team_id)
            assert await h.store.count_teams(org_id) == 1

        run(scenario, teams=TeamOptions(enabled=True, allow_removing_all_teams=False))

    def test_last_team_removal_when_allowed(self, run):
        async def scenario(h):
            owner, org_id, member_id, team_id = await acme_with_default_team(h)
            await h.teams.remove_team(owner, team_id)
            assert await h.store.count_teams(org_id) == 0
            # members are detached, not removed
            member = await h.store.get_member(member_id)
            assert member.team_id is None

        run(scenario, teams=TeamOptions(enabled=True, allow_removing_all_teams=True))

    def test_maximum_teams(self, run):
        async def scenario(h):
            owner, org_id, _, _ = await acme_with_default_team(h)
            team = await h.teams.create_team(owner, org_id, "Sales")
            assert team.name == "Sales"
            with pytest.raises(LimitExceededError):
                await h.teams.create_team(owner, org_id, "Support")
            names = sorted(t.name for t in await h.teams.list_teams(owner, org_id))
            assert names == ["Acme", "Sales"]

        run(scenario, teams=TeamOptions(enabled=True, maximum_teams=2))

    def test_maximum_members_per_team(self, run):
        async def scenario(h):
            owner, org_id, _, default_team_id = await acme_with_default_team(h)
            bob = await h.add_user("bob@x.com")
            carol = await h.add_user("carol@x.com")
            bob_member_id = (await h.orgs.add_member(org_id, bob, {MEMBER})).id
            carol_member_id = (await h.orgs.add_member(org_id, carol, {MEMBER})).id

            sales_id = (await h.teams.create_team(owner, org_id, "Sales")).id
            member = await h.teams.add_team_member(owner, sales_id, bob_member_id)
            assert member.team_id == sales_id
            with pytest.raises(LimitExceededError):
                await h.teams.add_team_member(owner, sales_id, carol_member_id)
            # the default team already holds its one member
            with pytest.raises(LimitExceededError):
                await h.teams.add_team_member(owner, default_team_id, carol_member_id)

            member = await h.teams.remove_team_member(owner, sales_id, bob_member_id)
            assert member.team_id is None
            with pytest.raises(NotFoundError):
                await h.teams.remove_team_member(owner, sales_id, bob_member_id)

        run(scenario, teams=TeamOptions(enabled=True, maximum_members_per_team=1))

    def test_computed_team_limit(self, run):
        limits = {}

        def maximum_teams(organization_id):
            return limits.get(organization_id, 1)

        async def scenario(h):
            owner, org_id, _, _ = await acme_with_default_team(h)
            with pytest.raises(LimitExceededError):
                await h.teams.create_team(owner, org_id, "Sales")
            limits[org_id] = 5
            await h.teams.create_team(owner, org_id, "Sales")

        run(scenario, teams=TeamOptions(enabled=True, maximum_teams=maximum_teams))

    def test_team_management_needs_permission(self, run):
        async def scenario(h):
            owner, org_id, _, team_id = await acme_with_default_team(h)
            plain = await h.add_user("plain@x.com")
            await h.orgs.add_member(org_id, plain, {MEMBER})
            with pytest.raises(PermissionDeniedError):
                await h.teams.create_team(plain, org_id, "Sales")
            with pytest.raises(PermissionDeniedError):
                await h.teams.update_team(plain, team_id, "Renamed")
            team = await h.teams.update_team(owner, team_id, "Renamed")
            assert team.name == "Renamed"

        run(scenario, teams=TeamOptions(enabled=True))

    def test_invitation_carries_team(self, run):
        async def scenario(h):
            owner, org_id, _, team_id = await acme_with_default_team(h)
            bob = await h.add_user("bob@x.com")
            invitation_id = (
                await h.invitations.create_invitation(owner, org_id, "bob@x.com", {MEMBER}, team_id=team_id)
            ).id
            _, member = await h.invitations.accept_invitation(invitation_id, bob)
            assert member.team_id == team_id

        run(scenario, teams=TeamOptions(enabled=True))

    def test_full_team_blocks_accepting_an_invitation(self, run):
        async def scenario(h):
            owner, org_id, _, team_id = await acme_with_default_team(h)
            bob = await h.add_user("bob@x.com")
            invitation_id = (
                await h.invitations.create_invitation(owner, org_id, "bob@x.com", {MEMBER}, team_id=team_id)
            ).id

            with pytest.raises(LimitExceededError):
                await h.invitations.accept_invitation(invitation_id, bob)
            assert await h.store.find_member(bob, org_id) is None
            assert await h.store.count_team_members(team_id) == 1
            assert (await h.invitations.get_invitation(invitation_id)).status == InvitationStatus.PENDING

        run(scenario, teams=TeamOptions(enabled=True, maximum_members_per_team=1))

    def test_teams_disabled(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            org_id, _ = await h.create_org(owner)
            assert await h.store.count_teams(org_id) == 0
            with pytest.raises(FeatureDisabledError):
                await h.teams.create_team(owner, org_id, "Sales")
            with pytest.raises(FeatureDisabledError):
                await h.teams.list_teams(owner, org_id)

        run(scenario)
