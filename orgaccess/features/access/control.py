"""
Statement schema and role definitions.

A statement schema is the closed set of resources and the actions valid on
each. Roles grant a subset of it. Both are plain immutable data built once at
startup.

Usage:
    ac = define_statement({"project": ["create", "update", "delete"]})
    member = ac.new_role({"project": ["create"]}, name="member")
    lead = merge_role(member, ac.new_role({"project": ["update"]}))
"""
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from orgaccess.core.errors import SchemaError


Grants = Mapping[str, frozenset[str]]


def _freeze(grants: Mapping[str, Iterable[str]]) -> Grants:
    return MappingProxyType({resource: frozenset(actions) for resource, actions in grants.items()})


class Role:
    """
    A named set of resource -> granted actions. Immutable after creation.
    """

    __slots__ = ("_name", "_statements")

    def __init__(self, statements: Mapping[str, Iterable[str]], name: str | None = None):
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_statements", _freeze(statements))

    def __setattr__(self, key, value):
        raise AttributeError("Role is immutable")

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def statements(self) -> Grants:
        return self._statements

    def actions(self, resource: str) -> frozenset[str]:
        return self._statements.get(resource, frozenset())

    def allows(self, resource: str, action: str) -> bool:
        return action in self.actions(resource)

    def with_name(self, name: str) -> "Role":
        return Role(self._statements, name=name)

    def to_dict(self) -> dict[str, list[str]]:
        return {resource: sorted(actions) for resource, actions in self._statements.items()}

    def __eq__(self, other) -> bool:
        if not isinstance(other, Role):
            return NotImplemented
        return dict(self._statements) == dict(other._statements)

    def __hash__(self) -> int:
        return hash(frozenset(self._statements.items()))

    def __repr__(self) -> str:
        return f"<Role(name={self._name!r}, statements={self.to_dict()})>"


class AccessControl:
    """
    The statement schema. Build with define_statement().
    """

    def __init__(self, statements: Grants):
        self._statements = statements

    @property
    def statements(self) -> Grants:
        return self._statements

    def resources(self) -> frozenset[str]:
        return frozenset(self._statements)

    def is_known(self, resource: str, action: str) -> bool:
        return action in self._statements.get(resource, frozenset())

    def new_role(self, grants: Mapping[str, Iterable[str]], name: str | None = None) -> Role:
        """
        Build a role from grants that must be a subset of the schema.

        Raises:
            SchemaError: grants reference an undeclared resource or action
        """
        if not isinstance(grants, Mapping):
            raise SchemaError("Role grants must be a mapping of resource to actions")
        normalized: dict[str, list[str]] = {}
        for resource, actions in grants.items():
            if resource not in self._statements:
                raise SchemaError(f"Role {name!r} references unknown resource '{resource}'")
            if isinstance(actions, str):
                raise SchemaError(f"Actions for '{resource}' must be a list, not a string")
            actions = list(actions)
            unknown = [action for action in actions if action not in self._statements[resource]]
            if unknown:
                raise SchemaError(f"Unknown actions {unknown} for resource '{resource}'")
            normalized[resource] = actions
        return Role(normalized, name=name)

    def validate_role(self, role: Role) -> None:
        """Check an existing role against this schema."""
        self.new_role(role.statements, name=role.name)

    def extend(self, statements: Mapping[str, Iterable[str]]) -> "AccessControl":
        """Return a schema with extra resources/actions unioned in."""
        extra = define_statement(statements)
        merged = {resource: set(actions) for resource, actions in self._statements.items()}
        for resource, actions in extra.statements.items():
            merged.setdefault(resource, set()).update(actions)
        return AccessControl(_freeze(merged))

    def __repr__(self) -> str:
        return f"<AccessControl(resources={sorted(self._statements)})>"


def define_statement(schema: Mapping[str, Iterable[str]]) -> AccessControl:
    """
    Register the resource -> allowed-actions schema.

    Raises:
        SchemaError: schema is empty or malformed
    """
    if not isinstance(schema, Mapping) or not schema:
        raise SchemaError("Access control schema must be a non-empty mapping")

    statements: dict[str, list[str]] = {}
    for resource, actions in schema.items():
        if not isinstance(resource, str) or not resource.strip():
            raise SchemaError(f"Invalid resource name {resource!r}")
        if isinstance(actions, str) or not isinstance(actions, Iterable):
            raise SchemaError(f"Actions for '{resource}' must be a list of strings")
        actions = list(actions)
        if not actions:
            raise SchemaError(f"Resource '{resource}' declares no actions")
        for action in actions:
            if not isinstance(action, str) or not action.strip():
                raise SchemaError(f"Invalid action {action!r} for resource '{resource}'")
        if len(set(actions)) != len(actions):
            raise SchemaError(f"Duplicate actions declared for resource '{resource}'")
        statements[resource] = actions

    return AccessControl(_freeze(statements))


def merge_role(base: Role, extra: Role, name: str | None = None) -> Role:
    """
    Union per resource of base and extra grants.

    Used to extend a default role without losing its built-in grants.
    """
    merged = {resource: set(actions) for resource, actions in base.statements.items()}
    for resource, actions in extra.statements.items():
        merged.setdefault(resource, set()).update(actions)
    return Role(merged, name=name or base.name)
