"""
Engine configuration surface.

OrganizationOptions is built once at startup and shared read-only by every
request. Limit and gate options accept a constant or a callable; both are
stored as Evaluators (see orgaccess.core.evaluators). A limit evaluating to
None means unlimited.

Evaluator contexts:
    allow_user_to_create_organization(user=User)
    organization_limit(user=User)
    membership_limit(user=User, organization=Organization)
    invitation_limit(user=User, organization=Organization)
    teams.maximum_teams(organization_id=str)
    teams.maximum_members_per_team(team_id=str, organization_id=str)
"""
from typing import Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from orgaccess.core import config
from orgaccess.core.evaluators import Evaluator, as_evaluator
from orgaccess.features.access.control import AccessControl, Role
from orgaccess.features.access.defaults import ADMIN, OWNER
from orgaccess.features.access.registry import RoleRegistry
from orgaccess.features.organizations.hooks import OrganizationHooks


class _OptionsModel(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)


def _coerce(value: Any) -> Evaluator:
    return as_evaluator(value)


class TeamOptions(_OptionsModel):
    enabled: bool = False
    maximum_teams: Evaluator = Field(default_factory=lambda: as_evaluator(None))
    maximum_members_per_team: Evaluator = Field(default_factory=lambda: as_evaluator(None))
    allow_removing_all_teams: bool = False
    # Create a team named after the organization when it is created
    default_team: bool = True

    coerce_evaluators = field_validator("maximum_teams", "maximum_members_per_team", mode="before")(_coerce)


class OrganizationCreationOptions(_OptionsModel):
    disabled: bool = False


class OrganizationDeletionOptions(_OptionsModel):
    disabled: bool = False


class OrganizationOptions(_OptionsModel):
    """
    All engine options with their defaults.

    Usage:
        options = OrganizationOptions(
            organization_limit=3,
            allow_user_to_create_organization=lambda user: user.email.endswith("@corp.com"),
            teams=TeamOptions(enabled=True, maximum_teams=10),
        )
    """
    allow_user_to_create_organization: Evaluator = Field(default_factory=lambda: as_evaluator(True))
    organization_limit: Evaluator = Field(default_factory=lambda: as_evaluator(None))
    creator_role: str = OWNER
    membership_limit: Evaluator = Field(default_factory=lambda: as_evaluator(100))
    invitation_expires_in: int = Field(48 * 60 * 60, gt=0, description="Invitation TTL in seconds")
    cancel_pending_invitations_on_reinvite: bool = True
    invitation_limit: Evaluator = Field(default_factory=lambda: as_evaluator(100))
    invitation_accept_url: str = "http://localhost:3000/accept-invitation"

    teams: TeamOptions = Field(default_factory=TeamOptions)
    organization_creation: OrganizationCreationOptions = Field(default_factory=OrganizationCreationOptions)
    organization_deletion: OrganizationDeletionOptions = Field(default_factory=OrganizationDeletionOptions)
    hooks: OrganizationHooks = Field(default_factory=OrganizationHooks)

    ac: AccessControl | None = None
    roles: dict[str, Role] | None = None
    registry: RoleRegistry | None = None

    coerce_evaluators = field_validator(
        "allow_user_to_create_organization",
        "organization_limit",
        "membership_limit",
        "invitation_limit",
        mode="before",
    )(_coerce)

    @field_validator("creator_role")
    @classmethod
    def creator_role_is_owner_or_admin(cls, v: str) -> str:
        if v not in (OWNER, ADMIN):
            raise ValueError("creator_role must be 'owner' or 'admin'")
        return v

    @model_validator(mode="after")
    def build_registry(self) -> "OrganizationOptions":
        if self.registry is None:
            # frozen model: set the derived registry once, here
            object.__setattr__(self, "registry", RoleRegistry(ac=self.ac, roles=self.roles))
        return self

    def accept_link(self, invitation_id: str) -> str:
        return f"{self.invitation_accept_url.rstrip('/')}/{invitation_id}"


def load_organization_options(**overrides: Any) -> OrganizationOptions:
    """Options with env-configured defaults (orgaccess.core.config)."""
    values: dict[str, Any] = dict(
        organization_limit=config.ORGANIZATION_LIMIT,
        membership_limit=config.MEMBERSHIP_LIMIT,
        invitation_expires_in=config.INVITATION_EXPIRES_IN,
        cancel_pending_invitations_on_reinvite=config.CANCEL_PENDING_INVITATIONS_ON_REINVITE,
        invitation_limit=config.INVITATION_LIMIT,
        invitation_accept_url=config.INVITATION_ACCEPT_URL,
        teams=TeamOptions(enabled=config.TEAMS_ENABLED),
    )
    values.update(overrides)
    return OrganizationOptions(**values)
