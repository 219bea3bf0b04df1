"""
Role registry and permission evaluation.

Members hold a set of role names. A permission request is a mapping of
resource -> actions; it is granted only if every requested action is in the
union of grants across the member's roles. Multiple roles combine by union,
never intersection. Role names missing from the registry grant nothing.
"""
from collections.abc import Iterable, Mapping

from orgaccess.core.errors import PermissionDeniedError, SchemaError, UnknownPermissionError
from orgaccess.features.access.control import AccessControl, Role
from orgaccess.features.access.defaults import DEFAULT_ROLES, default_ac
from orgaccess.utils import get_logger


log = get_logger(__name__)

ROLE_SEPARATOR = ","

PermissionRequest = Mapping[str, Iterable[str]]


def parse_roles(value: str | None) -> frozenset[str]:
    """Split a persisted comma-joined role string into a set of role names."""
    if not value:
        return frozenset()
    return frozenset(part.strip() for part in value.split(ROLE_SEPARATOR) if part.strip())


def serialize_roles(roles: Iterable[str]) -> str:
    """Join role names for persistence (sorted, so equal sets persist equally)."""
    return ROLE_SEPARATOR.join(sorted(set(roles)))


def normalize_roles(value: str | Iterable[str]) -> frozenset[str]:
    """
    Boundary normalization for API input: "admin", "admin,member" or
    ["admin", "member"] all become a set of role names.
    """
    if isinstance(value, str):
        return parse_roles(value)
    roles: set[str] = set()
    for item in value:
        roles.update(parse_roles(item))
    return frozenset(roles)


def _materialize(requested: PermissionRequest) -> dict[str, list[str]]:
    # a bare string would otherwise be checked character by character
    return {
        resource: [actions] if isinstance(actions, str) else list(actions)
        for resource, actions in requested.items()
    }


class RoleRegistry:
    """
    The process-wide role registry for one statement schema.

    Configured roles are laid over the built-in owner/admin/member roles (a
    configured role with a built-in name replaces it) and every role is
    validated against the schema at construction.

    Usage:
        registry = RoleRegistry()
        registry.has_permission({"admin"}, {"invitation": ["create"]})  # True
    """

    def __init__(
        self,
        ac: AccessControl | None = None,
        roles: Mapping[str, Role] | None = None,
        include_defaults: bool = True,
    ):
        self.ac = ac or default_ac
        merged: dict[str, Role] = dict(DEFAULT_ROLES) if include_defaults else {}
        for name, role in (roles or {}).items():
            merged[name] = role if role.name == name else role.with_name(name)
        if not merged:
            raise SchemaError("Role registry needs at least one role")
        for role in merged.values():
            self.ac.validate_role(role)
        self._roles = merged

    def __contains__(self, name: str) -> bool:
        return name in self._roles

    def names(self) -> frozenset[str]:
        return frozenset(self._roles)

    def get(self, name: str) -> Role | None:
        return self._roles.get(name)

    def permissions_for(self, roles: Iterable[str]) -> dict[str, frozenset[str]]:
        """Union of grants across the named roles; unknown names contribute nothing."""
        grants: dict[str, set[str]] = {}
        for name in roles:
            role = self._roles.get(name)
            if role is None:
                log.debug("Ignoring unknown role %r during permission evaluation", name)
                continue
            for resource, actions in role.statements.items():
                grants.setdefault(resource, set()).update(actions)
        return {resource: frozenset(actions) for resource, actions in grants.items()}

    def _unknown_in(self, requested: PermissionRequest) -> list[str]:
        unknown = []
        for resource, actions in requested.items():
            for action in actions:
                if not self.ac.is_known(resource, action):
                    unknown.append(f"{resource}:{action}")
        return unknown

    def _evaluate(self, roles: Iterable[str], requested: dict[str, list[str]]) -> tuple[bool, list[str]]:
        if not requested or any(not actions for actions in requested.values()):
            return False, ["<empty request>"]
        unknown = self._unknown_in(requested)
        if unknown:
            return False, unknown
        grants = self.permissions_for(roles)
        for resource, actions in requested.items():
            granted = grants.get(resource, frozenset())
            if any(action not in granted for action in actions):
                return False, []
        return True, []

    def has_permission(self, roles: Iterable[str], requested: PermissionRequest) -> bool:
        """
        True iff the union of the roles' grants covers every requested action.

        Unknown resources/actions and empty requests fail closed.
        """
        granted, _ = self._evaluate(roles, _materialize(requested))
        return granted

    def check_role_permission(self, role: str, requested: PermissionRequest) -> bool:
        """Same evaluation as has_permission for a single role name."""
        return self.has_permission((role,), requested)

    def authorize(self, roles: Iterable[str], requested: PermissionRequest) -> None:
        """
        Raising form of has_permission.

        Raises:
            UnknownPermissionError: the request names something outside the schema
            PermissionDeniedError: the roles do not grant the request
        """
        roles = frozenset(roles)
        requested = _materialize(requested)
        granted, unknown = self._evaluate(roles, requested)
        if granted:
            return
        if unknown:
            raise UnknownPermissionError(f"Unknown permission requested: {', '.join(unknown)}")
        wanted = ", ".join(f"{resource}:{action}" for resource, actions in requested.items() for action in actions)
        log.debug("Denied %s for roles %s", wanted, sorted(roles))
        raise PermissionDeniedError(f"You are not allowed to {wanted}")
