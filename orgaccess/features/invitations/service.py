"""
Invitation engine.

State machine:
    pending --accept--> accepted
    pending --reject--> rejected
    pending --cancel--> canceled   (also: expiry, re-invite policy)

Terminal states never change. Every transition is a compare-and-set on the
status column, so of two concurrent accepts exactly one wins and the other
sees InvalidStateError. Expiry is evaluated lazily when an invitation is
used; sweep_expired_invitations() applies the same transition in bulk.
"""
from collections.abc import Iterable
from datetime import timedelta

from orgaccess.core.errors import (
    AlreadyInvitedError,
    AlreadyMemberError,
    ConflictError,
    EmailMismatchError,
    ExpiredError,
    FeatureDisabledError,
    InvalidStateError,
    NotFoundError,
    NotificationError,
    PermissionDeniedError,
    UnknownRoleError,
)
from orgaccess.features.access.defaults import OWNER
from orgaccess.features.access.registry import serialize_roles
from orgaccess.features.invitations.models import Invitation, InvitationStatus
from orgaccess.features.invitations.notifications import (
    InvitationEmail,
    LoggingNotificationSender,
    NotificationSender,
)
from orgaccess.features.organizations.guards import Clock, OrganizationScopedService
from orgaccess.features.organizations.models import Member, Organization
from orgaccess.features.organizations.options import OrganizationOptions
from orgaccess.features.organizations.store import MembershipStore
from orgaccess.features.users.models import User
from orgaccess.utils import get_logger, utcnow


log = get_logger(__name__)


class InvitationEngine(OrganizationScopedService):
    def __init__(
        self,
        store: MembershipStore,
        options: OrganizationOptions,
        sender: NotificationSender | None = None,
        clock: Clock = utcnow,
    ):
        super().__init__(store, options, clock)
        self.sender = sender or LoggingNotificationSender()

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.options.invitation_expires_in)

    async def _notify(
        self,
        invitation: Invitation,
        organization: Organization,
        inviter: User,
        resend: bool = False,
    ) -> None:
        data = InvitationEmail(
            invitation_id=invitation.id,
            email=invitation.email,
            role=invitation.role,
            organization_id=organization.id,
            organization_name=organization.name,
            organization_slug=organization.slug,
            inviter_id=inviter.id,
            inviter_name=inviter.name,
            inviter_email=inviter.email,
            accept_link=self.options.accept_link(invitation.id),
            resend=resend,
        )
        try:
            await self.sender.send_invitation_email(data)
        except Exception as e:
            log.warning("Sending invitation %s to %s failed: %s", invitation.id, invitation.email, e)
            raise NotificationError(f"Could not deliver the invitation to {invitation.email}") from e

    async def _validate_team(self, team_id: str, organization_id: str) -> None:
        if not self.options.teams.enabled:
            raise FeatureDisabledError("Teams are not enabled")
        team = await self.store.get_team(team_id)
        if team is None or team.organization_id != organization_id:
            raise NotFoundError("Team not found")

    async def create_invitation(
        self,
        inviter_user_id: str,
        organization_id: str,
        email: str,
        roles: Iterable[str],
        team_id: str | None = None,
        resend: bool = False,
    ) -> Invitation:
        """
        Invite an email address to an organization.

        A live pending invitation for the same address is refreshed and
        re-sent when ``resend`` is set, replaced when the
        cancel-on-reinvite policy is on, and otherwise rejected.

        Raises:
            PermissionDeniedError: inviter lacks invitation:create, or invites an owner without being one
            UnknownRoleError: a role is not in the registry
            AlreadyMemberError: the address already belongs to a member
            AlreadyInvitedError: a pending invitation exists and neither resend nor the policy applies
            LimitExceededError: the inviter's pending invitation limit is reached
            NotificationError: delivery failed; nothing was persisted
        """
        email = email.strip().lower()
        roles = frozenset(roles)
        organization = await self._require_organization(organization_id)
        inviter_member = await self._require_member(
            inviter_user_id, organization_id, {"invitation": ["create"]}
        )

        unknown = roles - self.registry.names()
        if not roles or unknown:
            raise UnknownRoleError(unknown or {"<none>"})
        if OWNER in roles and OWNER not in inviter_member.roles:
            raise PermissionDeniedError("Only owners can invite with the owner role")

        if team_id is not None:
            await self._validate_team(team_id, organization_id)

        if await self.store.find_member_by_email(email, organization_id) is not None:
            raise AlreadyMemberError(f"{email} is already a member of this organization")

        inviter = await self._require_user(inviter_user_id)
        now = self.clock()
        pending = await self.store.find_pending_invitations(email, organization_id)
        live = [invitation for invitation in pending if not invitation.is_expired(now)]
        expired = [invitation for invitation in pending if invitation.is_expired(now)]

        if live and resend:
            invitation = live[0]
            async with self.store.transaction():
                invitation.expires_at = now + self.ttl
                await self._notify(invitation, organization, inviter, resend=True)
            log.info("Invitation %s resent to %s", invitation.id, email)
            return invitation

        if live and not self.options.cancel_pending_invitations_on_reinvite:
            raise AlreadyInvitedError(email)

        async with self.store.transaction():
            for prior in live + expired:
                await self.store.transition_invitation(
                    prior.id, InvitationStatus.PENDING, InvitationStatus.CANCELED
                )
                log.info("Invitation %s canceled by re-invite", prior.id)

            # expired rows leave the count exactly as the sweeper would leave them
            outstanding = 0
            for other in await self.store.list_pending_invitations_by_inviter(inviter_user_id, organization_id):
                if not other.is_expired(now):
                    outstanding += 1
                elif await self.store.transition_invitation(
                    other.id, InvitationStatus.PENDING, InvitationStatus.CANCELED
                ):
                    log.info("Invitation %s expired", other.id)
            await self._check_limit(
                self.options.invitation_limit,
                outstanding,
                "Invitation",
                user=inviter,
                organization=organization,
            )

            invitation = await self.store.add_invitation(
                Invitation(
                    email=email,
                    inviter_id=inviter_user_id,
                    organization_id=organization_id,
                    role=serialize_roles(roles),
                    team_id=team_id,
                    status=InvitationStatus.PENDING,
                    created_at=now,
                    updated_at=now,
                    expires_at=now + self.ttl,
                )
            )
            await self._notify(invitation, organization, inviter)

        log.info("Invitation %s created for %s in org %s", invitation.id, email, organization_id)
        return invitation

    async def _require_invitation(self, invitation_id: str) -> Invitation:
        invitation = await self.store.get_invitation(invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation not found")
        return invitation

    async def _expire(self, invitation: Invitation) -> None:
        async with self.store.transaction():
            if await self.store.transition_invitation(
                invitation.id, InvitationStatus.PENDING, InvitationStatus.CANCELED
            ):
                log.info("Invitation %s expired", invitation.id)

    async def accept_invitation(self, invitation_id: str, user_id: str) -> tuple[Invitation, Member]:
        """
        Turn a pending invitation into a membership.

        Member creation and the pending -> accepted transition commit together.

        Raises:
            ExpiredError: past expires_at, whatever the status (a pending one is canceled)
            InvalidStateError: not pending, or another accept won the race
            EmailMismatchError: the accepting user's email differs from the invitation's
            AlreadyMemberError: the user already belongs to the organization
            LimitExceededError: membership or team member limit reached
        """
        invitation = await self._require_invitation(invitation_id)

        if invitation.is_expired(self.clock()):
            if invitation.status == InvitationStatus.PENDING:
                await self._expire(invitation)
            raise ExpiredError("This invitation has expired")

        if invitation.status != InvitationStatus.PENDING:
            raise InvalidStateError(f"Invitation is already {invitation.status.value}")

        user = await self._require_user(user_id)
        if user.email.lower() != invitation.email:
            raise EmailMismatchError("This invitation was sent to a different email address")

        organization = await self._require_organization(invitation.organization_id)
        team_id = invitation.team_id if self.options.teams.enabled else None

        try:
            async with self.store.transaction():
                members = await self.store.count_members(organization.id)
                await self._check_limit(
                    self.options.membership_limit,
                    members,
                    "Membership",
                    user=user,
                    organization=organization,
                )
                if team_id is not None:
                    in_team = await self.store.count_team_members(team_id)
                    await self._check_limit(
                        self.options.teams.maximum_members_per_team,
                        in_team,
                        "Team member",
                        team_id=team_id,
                        organization_id=organization.id,
                    )

                if not await self.store.transition_invitation(
                    invitation.id, InvitationStatus.PENDING, InvitationStatus.ACCEPTED
                ):
                    raise InvalidStateError("Invitation is no longer pending")

                if await self.store.find_member(user.id, organization.id) is not None:
                    raise AlreadyMemberError("You are already a member of this organization")

                member = await self.store.add_member(
                    Member(
                        user_id=user.id,
                        organization_id=organization.id,
                        role=invitation.role,
                        team_id=team_id,
                        created_at=self.clock(),
                    )
                )
        except ConflictError as e:
            if isinstance(e, AlreadyMemberError):
                raise
            raise AlreadyMemberError("You are already a member of this organization") from e

        log.info("Invitation %s accepted by user %s", invitation.id, user.id)
        return invitation, member

    async def reject_invitation(self, invitation_id: str, user_id: str | None = None) -> Invitation:
        """
        Decline a pending invitation. When user_id is given it must be the recipient.

        Raises:
            EmailMismatchError: user_id is not the recipient
            InvalidStateError: not pending (a second reject fails here)
        """
        invitation = await self._require_invitation(invitation_id)
        if user_id is not None:
            user = await self._require_user(user_id)
            if user.email.lower() != invitation.email:
                raise EmailMismatchError("This invitation was sent to a different email address")
        await self._transition(invitation, InvitationStatus.REJECTED)
        log.info("Invitation %s rejected", invitation.id)
        return invitation

    async def cancel_invitation(self, invitation_id: str, user_id: str) -> Invitation:
        """
        Withdraw a pending invitation. Requires invitation:cancel in its organization.

        Raises:
            PermissionDeniedError: caller may not cancel invitations here
            InvalidStateError: not pending (a second cancel fails here)
        """
        invitation = await self._require_invitation(invitation_id)
        await self._require_member(user_id, invitation.organization_id, {"invitation": ["cancel"]})
        await self._transition(invitation, InvitationStatus.CANCELED)
        log.info("Invitation %s canceled by user %s", invitation.id, user_id)
        return invitation

    async def _transition(self, invitation: Invitation, to_status: InvitationStatus) -> None:
        if invitation.status != InvitationStatus.PENDING:
            raise InvalidStateError(f"Invitation is already {invitation.status.value}")
        async with self.store.transaction():
            if not await self.store.transition_invitation(invitation.id, InvitationStatus.PENDING, to_status):
                raise InvalidStateError("Invitation is no longer pending")

    async def get_invitation(self, invitation_id: str) -> Invitation:
        return await self._require_invitation(invitation_id)

    async def list_invitations(
        self,
        organization_id: str | None = None,
        status: InvitationStatus | None = None,
    ) -> list[Invitation]:
        return await self.store.list_invitations(organization_id, status)

    async def list_user_invitations(self, email: str) -> list[Invitation]:
        return await self.store.list_invitations_for_email(email.strip().lower())

    async def sweep_expired_invitations(self) -> int:
        """Cancel every pending invitation past its expiry. Returns how many moved."""
        now = self.clock()
        swept = 0
        pending = await self.store.list_invitations(status=InvitationStatus.PENDING)
        async with self.store.transaction():
            for invitation in pending:
                if invitation.is_expired(now) and await self.store.transition_invitation(
                    invitation.id, InvitationStatus.PENDING, InvitationStatus.CANCELED
                ):
                    swept += 1
        if swept:
            log.info("Swept %d expired invitation(s)", swept)
        return swept
