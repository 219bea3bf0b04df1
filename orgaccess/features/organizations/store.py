"""
Membership store: persistence contract over organizations, members,
invitations and teams.

Services never touch the session directly; they read and write through this
class and wrap every write in ``transaction()`` so a failure leaves nothing
half-applied.

Usage:
    store = MembershipStore(db)
    async with store.transaction():
        org = await store.add_organization(Organization(name="Acme", slug="acme"))
        await store.add_member(Member(user_id=user.id, organization_id=org.id, role="owner"))
"""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from sqlalchemy import select, update, delete, func, and_, or_
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from orgaccess.core.errors import ConflictError, StoreError
from orgaccess.features.invitations.models import Invitation, InvitationStatus
from orgaccess.features.organizations.models import Member, Organization
from orgaccess.features.teams.models import Team
from orgaccess.features.users.models import User
from orgaccess.utils import get_logger


log = get_logger(__name__)


class MembershipStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Commit on success, roll back on any exception.

        Raises:
            ConflictError: a uniqueness constraint was violated
            StoreError: the database failed for any other reason
        """
        try:
            yield
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            log.info("Integrity violation, rolled back: %s", e.orig)
            raise ConflictError("The change conflicts with existing data") from e
        except DBAPIError as e:
            await self.db.rollback()
            log.warning("Database error, rolled back: %s", e)
            raise StoreError("The membership store is unavailable") from e
        except BaseException:
            await self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> User | None:
        return await self.db.get(User, user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    async def get_organization(self, organization_id: str) -> Organization | None:
        return await self.db.get(Organization, organization_id)

    async def get_organization_by_slug(self, slug: str) -> Organization | None:
        result = await self.db.execute(select(Organization).where(Organization.slug == slug))
        return result.scalar_one_or_none()

    async def find_organization(self, slug_or_id: str) -> Organization | None:
        result = await self.db.execute(
            select(Organization).where(or_(Organization.id == slug_or_id, Organization.slug == slug_or_id))
        )
        return result.scalars().first()

    async def list_organizations_for_user(self, user_id: str) -> list[Organization]:
        result = await self.db.execute(
            select(Organization)
            .join(Member, Member.organization_id == Organization.id)
            .where(Member.user_id == user_id)
            .order_by(Organization.created_at, Organization.id)
        )
        return list(result.scalars().all())

    async def add_organization(self, organization: Organization) -> Organization:
        self.db.add(organization)
        await self.db.flush()
        return organization

    async def delete_organization_cascade(self, organization_id: str) -> None:
        """
        Remove the organization with its invitations, members and teams.

        Runs inside the caller's transaction so the removal is all-or-nothing.
        """
        await self.db.execute(
            update(User)
            .where(User.active_organization_id == organization_id)
            .values(active_organization_id=None)
        )
        await self.db.execute(delete(Invitation).where(Invitation.organization_id == organization_id))
        await self.db.execute(delete(Member).where(Member.organization_id == organization_id))
        await self.db.execute(delete(Team).where(Team.organization_id == organization_id))
        await self.db.execute(delete(Organization).where(Organization.id == organization_id))

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def get_member(self, member_id: str) -> Member | None:
        return await self.db.get(Member, member_id)

    async def find_member(self, user_id: str, organization_id: str) -> Member | None:
        result = await self.db.execute(
            select(Member).where(
                and_(Member.user_id == user_id, Member.organization_id == organization_id)
            )
        )
        return result.scalar_one_or_none()

    async def find_member_by_email(self, email: str, organization_id: str) -> Member | None:
        result = await self.db.execute(
            select(Member)
            .join(User, User.id == Member.user_id)
            .where(and_(User.email == email.lower(), Member.organization_id == organization_id))
        )
        return result.scalar_one_or_none()

    async def list_members(self, organization_id: str) -> list[Member]:
        result = await self.db.execute(
            select(Member)
            .where(Member.organization_id == organization_id)
            .order_by(Member.created_at, Member.id)
        )
        return list(result.scalars().all())

    async def count_members(self, organization_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Member).where(Member.organization_id == organization_id)
        )
        return result.scalar_one()

    async def count_memberships(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Member).where(Member.user_id == user_id)
        )
        return result.scalar_one()

    async def count_team_members(self, team_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Member).where(Member.team_id == team_id)
        )
        return result.scalar_one()

    async def add_member(self, member: Member) -> Member:
        self.db.add(member)
        await self.db.flush()
        return member

    async def delete_member(self, member: Member) -> None:
        """Delete the membership and drop the user's active pointer to that organization."""
        await self.db.execute(
            update(User)
            .where(
                and_(
                    User.id == member.user_id,
                    User.active_organization_id == member.organization_id,
                )
            )
            .values(active_organization_id=None)
        )
        await self.db.delete(member)
        await self.db.flush()

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def get_invitation(self, invitation_id: str) -> Invitation | None:
        # always re-read the row: status may have moved under another session
        return await self.db.get(Invitation, invitation_id, populate_existing=True)

    async def list_invitations(
        self,
        organization_id: str | None = None,
        status: InvitationStatus | None = None,
    ) -> list[Invitation]:
        query = select(Invitation)
        if organization_id is not None:
            query = query.where(Invitation.organization_id == organization_id)
        if status is not None:
            query = query.where(Invitation.status == status)
        result = await self.db.execute(query.order_by(Invitation.created_at, Invitation.id))
        return list(result.scalars().all())

    async def list_invitations_for_email(self, email: str) -> list[Invitation]:
        result = await self.db.execute(
            select(Invitation)
            .where(Invitation.email == email.lower())
            .order_by(Invitation.created_at, Invitation.id)
        )
        return list(result.scalars().all())

    async def find_pending_invitations(self, email: str, organization_id: str) -> list[Invitation]:
        result = await self.db.execute(
            select(Invitation).where(
                and_(
                    Invitation.email == email.lower(),
                    Invitation.organization_id == organization_id,
                    Invitation.status == InvitationStatus.PENDING,
                )
            )
        )
        return list(result.scalars().all())

    async def list_pending_invitations_by_inviter(self, inviter_id: str, organization_id: str) -> list[Invitation]:
        result = await self.db.execute(
            select(Invitation)
            .where(
                and_(
                    Invitation.inviter_id == inviter_id,
                    Invitation.organization_id == organization_id,
                    Invitation.status == InvitationStatus.PENDING,
                )
            )
        )
        return list(result.scalars().all())

    async def add_invitation(self, invitation: Invitation) -> Invitation:
        self.db.add(invitation)
        await self.db.flush()
        return invitation

    async def transition_invitation(
        self,
        invitation_id: str,
        from_status: InvitationStatus,
        to_status: InvitationStatus,
    ) -> bool:
        """
        Compare-and-set the invitation status.

        Returns True only for the caller whose UPDATE matched the expected
        current status; concurrent callers racing on the same row get False.
        """
        result = await self.db.execute(
            update(Invitation)
            .where(and_(Invitation.id == invitation_id, Invitation.status == from_status))
            .values(status=to_status)
            .execution_options(synchronize_session=False)
        )
        won = result.rowcount == 1
        if won:
            # keep any loaded instance in step with the row
            invitation = await self.db.get(Invitation, invitation_id)
            if invitation is not None:
                set_committed_value(invitation, "status", to_status)
        return won

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def get_team(self, team_id: str) -> Team | None:
        return await self.db.get(Team, team_id)

    async def list_teams(self, organization_id: str) -> list[Team]:
        result = await self.db.execute(
            select(Team).where(Team.organization_id == organization_id).order_by(Team.created_at, Team.id)
        )
        return list(result.scalars().all())

    async def count_teams(self, organization_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Team).where(Team.organization_id == organization_id)
        )
        return result.scalar_one()

    async def add_team(self, team: Team) -> Team:
        self.db.add(team)
        await self.db.flush()
        return team

    async def delete_team(self, team: Team) -> None:
        """Detach the team's members, then delete it."""
        await self.db.execute(
            update(Member).where(Member.team_id == team.id).values(team_id=None)
        )
        await self.db.execute(
            update(Invitation).where(Invitation.team_id == team.id).values(team_id=None)
        )
        await self.db.delete(team)
        await self.db.flush()
