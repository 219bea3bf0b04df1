"""
Extension points around organization creation and deletion.

Subclass OrganizationHooks and override what you need; the default methods do
nothing.

before_create / before_delete run ahead of persistence: raising aborts the
operation and nothing is written. before_create may return a rewritten
OrganizationDraft (for example to stamp metadata).

after_create / after_delete run once the change is committed: a failure is
logged and re-raised as HookError carrying the committed result, but the
change itself stays.

Usage:
    class StampPlan(OrganizationHooks):
        async def before_create(self, draft, user):
            return draft.model_copy(update={"metadata": {**(draft.metadata or {}), "plan": "free"}})
"""
from typing import Any
from pydantic import BaseModel, Field

from orgaccess.features.organizations.models import Member, Organization
from orgaccess.features.users.models import User


class OrganizationDraft(BaseModel):
    """Organization payload before it is persisted."""
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255)
    logo: str | None = Field(None, max_length=500)
    metadata: dict[str, Any] | None = None


class OrganizationHooks:
    async def before_create(self, draft: OrganizationDraft, user: User) -> OrganizationDraft | None:
        return None

    async def after_create(self, organization: Organization, member: Member, user: User) -> None:
        return None

    async def before_delete(self, organization: Organization, user: User) -> None:
        return None

    async def after_delete(self, organization: Organization, user: User) -> None:
        return None
