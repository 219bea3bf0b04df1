"""Tests for organization lifecycle and membership management."""
import pytest

from orgaccess.core.errors import (
    AlreadyMemberError,
    ConflictError,
    FeatureDisabledError,
    HookError,
    InvariantViolationError,
    LimitExceededError,
    NotFoundError,
    PermissionDeniedError,
    SlugTakenError,
    UnknownRoleError,
)
from orgaccess.features.access.defaults import ADMIN, MEMBER, OWNER
from orgaccess.features.organizations.hooks import OrganizationHooks
from orgaccess.features.organizations.options import (
    OrganizationDeletionOptions,
    OrganizationCreationOptions,
    OrganizationOptions,
)
from orgaccess.features.users.models import User


class TestCreateOrganization:

    def test_creator_becomes_owner(self, run):
        async def scenario(h):
            u1 = await h.add_user("u1@x.com")
            organization, member = await h.orgs.create_organization(u1, name="Acme", slug="acme")
            assert organization.slug == "acme"
            assert member.user_id == u1
            assert member.organization_id == organization.id
            assert member.roles == {OWNER}
            members = await h.store.list_members(organization.id)
            assert [m.id for m in members] == [member.id]

        run(scenario)

    def test_duplicate_slug_is_a_conflict(self, run):
        async def scenario(h):
            u1 = await h.add_user("u1@x.com")
            u2 = await h.add_user("u2@x.com")
            await h.create_org(u1, slug="acme")
            with pytest.raises(SlugTakenError) as exc_info:
                await h.orgs.create_organization(u2, name="Other Acme", slug="acme")
            assert isinstance(exc_info.value, ConflictError)
            assert exc_info.value.code == "SLUG_TAKEN"
            assert await h.store.count_memberships(u2) == 0

        run(scenario)

    def test_check_slug(self, run):
        async def scenario(h):
            u1 = await h.add_user("u1@x.com")
            assert await h.orgs.check_slug("acme")
            await h.create_org(u1, slug="acme")
            assert not await h.orgs.check_slug("acme")

        run(scenario)

    def test_creator_role_option(self, run):
        async def scenario(h):
            u1 = await h.add_user("u1@x.com")
            _, member = await h.orgs.create_organization(u1, name="Acme", slug="acme")
            assert member.roles == {ADMIN}

        run(scenario, creator_role=ADMIN)

    def test_creator_role_must_be_owner_or_admin(self):
        with pytest.raises(ValueError):
            OrganizationOptions(creator_role=MEMBER)

    def test_organization_limit_boundary(self, run):
        async def scenario(h):
            u1 = await h.add_user("u1@x.com")
            await h.create_org(u1, slug="one")
            await h.create_org(u1, slug="two")
            with pytest.raises(LimitExceededError) as exc_info:
                await h.create_org(u1, slug="three")
            assert exc_info.value.limit == 2
            assert not await h.orgs.check_slug("two")
            assert await h.orgs.check_slug("three")

        run(scenario, organization_limit=2)

    def test_computed_creation_gate(self, run):
        async def scenario(h):
            staff = await h.add_user("staff@corp.com")
            outsider = await h.add_user("someone@else.com")
            await h.create_org(staff, slug="corp")
            with pytest.raises(PermissionDeniedError):
                await h.create_org(outsider, slug="else")

        run(scenario, allow_user_to_create_organization=lambda user: user.email.endswith("@corp.com"))

    def test_creation_disabled(self, run):
        async def scenario(h):
            u1 = await h.add_user("u1@x.com")
            with pytest.raises(FeatureDisabledError):
                await h.create_org(u1)

        run(scenario, organization_creation=OrganizationCreationOptions(disabled=True))


class RecordingHooks(OrganizationHooks):
    def __init__(self, abort_create=False, fail_after_create=False, fail_after_delete=False):
        self.abort_create = abort_create
        self.fail_after_create = fail_after_create
        self.fail_after_delete = fail_after_delete
        self.calls = []

    async def before_create(self, draft, user):
        self.calls.append("before_create")
        if self.abort_create:
            raise PermissionDeniedError("Blocked by policy")
        return draft.model_copy(update={"metadata": {"plan": "free"}})

    async def after_create(self, organization, member, user):
        self.calls.append("after_create")
        if self.fail_after_create:
            raise RuntimeError("webhook down")

    async def before_delete(self, organization, user):
        self.calls.append("before_delete")

    async def after_delete(self, organization, user):
        self.calls.append("after_delete")
        if self.fail_after_delete:
            raise RuntimeError("webhook down")


class TestHooks:

    def test_before_create_rewrites_draft(self, run):
        hooks = RecordingHooks()

        async def scenario(h):
            u1 = await h.add_user("u1@x.com")
            organization, _ = await h.orgs.create_organization(u1, name="Acme", slug="acme")
            assert organization.metadata_ == {"plan": "free"}
            assert hooks.calls == ["before_create", "after_create"]

        run(scenario, hooks=hooks)

    def test_before_create_abort_persists_nothing(self, run):
        hooks = RecordingHooks(abort_create=True)

        async def scenario(h):
            u1 = await h.add_user("u1@x.com")
            with pytest.raises(PermissionDeniedError):
                await h.create_org(u1)
            assert await h.orgs.check_slug("acme")
            assert await h.store.count_memberships(u1) == 0
            assert hooks.calls == ["before_create"]

        run(scenario, hooks=hooks)

    def test_after_create_failure_keeps_organization(self, run):
        hooks = RecordingHooks(fail_after_create=True)

        async def scenario(h):
            u1 = await h.add_user("u1@x.com")
            with pytest.raises(HookError) as exc_info:
                await h.create_org(u1)
            organization, member = exc_info.value.result
            assert exc_info.value.hook == "after_create"
            assert isinstance(exc_info.value.cause, RuntimeError)
            assert member.organization_id == organization.id
            assert not await h.orgs.check_slug("acme")
            assert await h.store.count_memberships(u1) == 1

        run(scenario, hooks=hooks)

    def test_after_delete_failure_keeps_deletion(self, run):
        hooks = RecordingHooks(fail_after_delete=True)

        async def scenario(h):
            u1 = await h.add_user("u1@x.com")
            org_id, _ = await h.create_org(u1)
            with pytest.raises(HookError):
                await h.orgs.delete_organization(u1, org_id)
            assert await h.store.get_organization(org_id) is None
            assert hooks.calls[-2:] == ["before_delete", "after_delete"]

        run(scenario, hooks=hooks)


class TestUpdateAndDelete:

    def test_update_requires_permission(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            plain = await h.add_user("plain@x.com")
            org_id, _ = await h.create_org(owner)
            await h.orgs.add_member(org_id, plain, {MEMBER})

            organization = await h.orgs.update_organization(owner, org_id, name="Acme Inc", slug="acme-inc")
            assert organization.name == "Acme Inc"
            assert organization.slug == "acme-inc"

            with pytest.raises(PermissionDeniedError):
                await h.orgs.update_organization(plain, org_id, name="Hijacked")

        run(scenario)

    def test_update_to_taken_slug(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            org_id, _ = await h.create_org(owner, slug="acme")
            await h.create_org(owner, slug="globex", name="Globex")
            with pytest.raises(SlugTakenError):
                await h.orgs.update_organization(owner, org_id, slug="globex")

        run(scenario)

    def test_delete_cascades(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            await h.add_user("bob@x.com")
            org_id, _ = await h.create_org(owner)
            await h.invitations.create_invitation(owner, org_id, "bob@x.com", {MEMBER})

            await h.orgs.delete_organization(owner, org_id)

            assert await h.store.get_organization(org_id) is None
            assert await h.store.list_members(org_id) == []
            assert await h.store.list_invitations(org_id) == []
            assert await h.store.list_teams(org_id) == []

        run(scenario)

    def test_admin_cannot_delete(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            admin = await h.add_user("admin@x.com")
            org_id, _ = await h.create_org(owner)
            await h.orgs.add_member(org_id, admin, {ADMIN})
            with pytest.raises(PermissionDeniedError):
                await h.orgs.delete_organization(admin, org_id)
            assert await h.store.get_organization(org_id) is not None

        run(scenario)

    def test_deletion_disabled(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            org_id, _ = await h.create_org(owner)
            with pytest.raises(FeatureDisabledError):
                await h.orgs.delete_organization(owner, org_id)

        run(scenario, organization_deletion=OrganizationDeletionOptions(disabled=True))


class TestActiveOrganization:

    def test_set_active_by_slug_or_id(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            org_id, _ = await h.create_org(owner, slug="acme")
            assert (await h.orgs.set_active_organization(owner, "acme")).id == org_id
            assert (await h.orgs.set_active_organization(owner, org_id)).id == org_id
            assert await h.orgs.set_active_organization(owner, None) is None

        run(scenario)

    def test_non_member_cannot_activate(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            stranger = await h.add_user("stranger@x.com")
            await h.create_org(owner, slug="acme")
            with pytest.raises(PermissionDeniedError):
                await h.orgs.set_active_organization(stranger, "acme")
            with pytest.raises(NotFoundError):
                await h.orgs.set_active_organization(owner, "missing")

        run(scenario)

    def test_full_organization_and_listing(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            org_id, member_id = await h.create_org(owner, slug="acme")
            await h.create_org(owner, slug="globex", name="Globex")
            await h.invitations.create_invitation(owner, org_id, "bob@x.com", {MEMBER})

            full = await h.orgs.get_full_organization(owner, "acme")
            assert full.organization.id == org_id
            assert [m.id for m in full.members] == [member_id]
            assert [i.email for i in full.invitations] == ["bob@x.com"]

            slugs = [org.slug for org in await h.orgs.list_organizations(owner)]
            assert sorted(slugs) == ["acme", "globex"]

        run(scenario)


class TestMembers:

    def test_add_member_limits_and_duplicates(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            bob = await h.add_user("bob@x.com")
            carol = await h.add_user("carol@x.com")
            org_id, _ = await h.create_org(owner)

            member = await h.orgs.add_member(org_id, bob, {MEMBER})
            assert member.roles == {MEMBER}
            with pytest.raises(AlreadyMemberError):
                await h.orgs.add_member(org_id, bob, {MEMBER})
            with pytest.raises(LimitExceededError):
                await h.orgs.add_member(org_id, carol, {MEMBER})
            assert await h.store.count_members(org_id) == 2

        run(scenario, membership_limit=2)

    def test_unknown_role_is_rejected(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            bob = await h.add_user("bob@x.com")
            org_id, _ = await h.create_org(owner)
            with pytest.raises(UnknownRoleError):
                await h.orgs.add_member(org_id, bob, {"superuser"})

        run(scenario)

    def test_acting_member_needs_member_create(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            plain = await h.add_user("plain@x.com")
            bob = await h.add_user("bob@x.com")
            org_id, _ = await h.create_org(owner)
            await h.orgs.add_member(org_id, plain, {MEMBER}, acting_user_id=owner)
            with pytest.raises(PermissionDeniedError):
                await h.orgs.add_member(org_id, bob, {MEMBER}, acting_user_id=plain)

        run(scenario)

    def test_update_role_and_last_owner(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            bob = await h.add_user("bob@x.com")
            org_id, owner_member_id = await h.create_org(owner)
            bob_member_id = (await h.orgs.add_member(org_id, bob, {MEMBER})).id

            updated = await h.orgs.update_member_role(owner, org_id, bob_member_id, {ADMIN, MEMBER})
            assert updated.roles == {ADMIN, MEMBER}
            assert updated.role == "admin,member"

            # admins may not hand out or take away ownership
            with pytest.raises(PermissionDeniedError):
                await h.orgs.update_member_role(bob, org_id, bob_member_id, {OWNER})
            with pytest.raises(InvariantViolationError):
                await h.orgs.update_member_role(owner, org_id, owner_member_id, {ADMIN})
            with pytest.raises(InvariantViolationError):
                await h.orgs.remove_member(owner, org_id, owner_member_id)
            with pytest.raises(InvariantViolationError):
                await h.orgs.leave_organization(owner, org_id)

            member = await h.orgs.get_active_member(owner, org_id)
            assert member.roles == {OWNER}

        run(scenario)

    def test_remove_and_leave(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            bob = await h.add_user("bob@x.com")
            carol = await h.add_user("carol@x.com")
            org_id, _ = await h.create_org(owner)
            bob_member_id = (await h.orgs.add_member(org_id, bob, {MEMBER})).id
            await h.orgs.add_member(org_id, carol, {MEMBER})

            with pytest.raises(PermissionDeniedError):
                await h.orgs.remove_member(carol, org_id, bob_member_id)
            await h.orgs.remove_member(owner, org_id, bob_member_id)
            await h.orgs.leave_organization(carol, org_id)

            members = await h.orgs.list_members(owner, org_id)
            assert [m.user_id for m in members] == [owner]
            with pytest.raises(PermissionDeniedError):
                await h.orgs.list_members(bob, org_id)

        run(scenario)

    def test_removal_clears_active_organization(self, run):
        async def scenario(h):
            owner = await h.add_user("owner@x.com")
            bob = await h.add_user("bob@x.com")
            carol = await h.add_user("carol@x.com")
            dave = await h.add_user("dave@x.com")
            org_id, _ = await h.create_org(owner)
            other_id, _ = await h.create_org(bob, slug="globex", name="Globex")
            bob_member_id = (await h.orgs.add_member(org_id, bob, {MEMBER})).id
            dave_member_id = (await h.orgs.add_member(org_id, dave, {MEMBER})).id
            await h.orgs.add_member(org_id, carol, {MEMBER})
            pointers = {owner: org_id, bob: other_id, carol: org_id, dave: org_id}
            for user_id, active_id in pointers.items():
                (await h.session.get(User, user_id)).active_organization_id = active_id
            await h.session.commit()

            await h.orgs.remove_member(owner, org_id, dave_member_id)
            await h.orgs.remove_member(owner, org_id, bob_member_id)
            await h.orgs.leave_organization(carol, org_id)

            assert (await h.session.get(User, dave)).active_organization_id is None
            assert (await h.session.get(User, carol)).active_organization_id is None
            assert (await h.session.get(User, bob)).active_organization_id == other_id
            assert (await h.session.get(User, owner)).active_organization_id == org_id

        run(scenario)
