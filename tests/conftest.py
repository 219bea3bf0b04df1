"""
Pytest configuration and shared fixtures.

Service tests run each scenario inside one ``asyncio.run`` against a fresh
in-memory SQLite database, so nothing leaks between tests.

A failed write rolls the session back and expires every loaded object; keep
ids as plain strings and re-read through the services afterwards.
"""
import asyncio
import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool

# Keep the module-level engine away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from orgaccess.core.database.engine import build_engine, build_sessionmaker, create_tables  # noqa: E402
from orgaccess.features.invitations.notifications import CallbackNotificationSender  # noqa: E402
from orgaccess.features.invitations.service import InvitationEngine  # noqa: E402
from orgaccess.features.organizations.options import OrganizationOptions  # noqa: E402
from orgaccess.features.organizations.service import OrganizationManager  # noqa: E402
from orgaccess.features.organizations.store import MembershipStore  # noqa: E402
from orgaccess.features.teams.service import TeamManager  # noqa: E402
from orgaccess.features.users.models import User  # noqa: E402


T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class Services:
    """The three services over one session."""

    def __init__(self, session, options, clock, sender):
        self.session = session
        self.store = MembershipStore(session)
        self.orgs = OrganizationManager(self.store, options, clock)
        self.invitations = InvitationEngine(self.store, options, sender, clock)
        self.teams = TeamManager(self.store, options, clock)


class Harness(Services):
    def __init__(self, sessionmaker, session, options):
        self.sessionmaker = sessionmaker
        self.options = options
        self.clock = FakeClock()
        self.sent = []
        self.sender = CallbackNotificationSender(self.sent.append)
        super().__init__(session, options, self.clock, self.sender)

    async def add_user(self, email: str, name: str | None = None) -> str:
        user = User(email=email.lower(), name=name or email.split("@")[0])
        self.session.add(user)
        await self.session.commit()
        return user.id

    def other_session(self) -> "OtherSession":
        """Services over a second, independent session on the same database."""
        return OtherSession(self)

    async def create_org(self, user_id: str, slug: str = "acme", name: str = "Acme") -> tuple[str, str]:
        organization, member = await self.orgs.create_organization(user_id, name=name, slug=slug)
        return organization.id, member.id


class OtherSession:
    def __init__(self, harness: Harness):
        self.harness = harness
        self.session = None

    async def __aenter__(self) -> Services:
        self.session = self.harness.sessionmaker()
        return Services(self.session, self.harness.options, self.harness.clock, self.harness.sender)

    async def __aexit__(self, *exc_info):
        await self.session.close()


def run_scenario(scenario, options: OrganizationOptions | None = None, **overrides):
    async def main():
        engine = build_engine("sqlite+aiosqlite://", poolclass=StaticPool)
        try:
            await create_tables(engine)
            sessionmaker = build_sessionmaker(engine)
            async with sessionmaker() as session:
                harness = Harness(sessionmaker, session, options or OrganizationOptions(**overrides))
                return await scenario(harness)
        finally:
            await engine.dispose()

    return asyncio.run(main())


@pytest.fixture
def run():
    """
    Run ``async def scenario(h)`` against a fresh database.

    Usage:
        def test_something(run):
            async def scenario(h):
                ...
            run(scenario, membership_limit=2)
    """
    return run_scenario
