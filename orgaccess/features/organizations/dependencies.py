"""
Organization-related dependency injection functions.

The options object is process-wide and built once; services are built per
request around that request's database session.
"""
from functools import lru_cache
from typing import Annotated
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from orgaccess.core.database.engine import get_db
from orgaccess.features.invitations.notifications import LoggingNotificationSender, NotificationSender
from orgaccess.features.invitations.service import InvitationEngine
from orgaccess.features.organizations.options import OrganizationOptions, load_organization_options
from orgaccess.features.organizations.service import OrganizationManager
from orgaccess.features.organizations.store import MembershipStore
from orgaccess.features.teams.service import TeamManager


@lru_cache
def get_organization_options() -> OrganizationOptions:
    return load_organization_options()


@lru_cache
def get_notification_sender() -> NotificationSender:
    return LoggingNotificationSender()


def get_store(db: Annotated[AsyncSession, Depends(get_db)]) -> MembershipStore:
    return MembershipStore(db)


def get_organization_manager(
    store: Annotated[MembershipStore, Depends(get_store)],
    options: Annotated[OrganizationOptions, Depends(get_organization_options)],
) -> OrganizationManager:
    return OrganizationManager(store, options)


def get_invitation_engine(
    store: Annotated[MembershipStore, Depends(get_store)],
    options: Annotated[OrganizationOptions, Depends(get_organization_options)],
    sender: Annotated[NotificationSender, Depends(get_notification_sender)],
) -> InvitationEngine:
    return InvitationEngine(store, options, sender)


def get_team_manager(
    store: Annotated[MembershipStore, Depends(get_store)],
    options: Annotated[OrganizationOptions, Depends(get_organization_options)],
) -> TeamManager:
    return TeamManager(store, options)
