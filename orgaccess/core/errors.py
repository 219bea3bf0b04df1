"""
Domain error taxonomy.

Every rejected operation raises a subclass of OrganizationError carrying a
stable ``code``, a human readable ``message`` and the HTTP ``status_code`` the
API layer answers with. The core never retries any of these.
"""
from typing import Any


class OrganizationError(Exception):
    """Base class for all domain errors."""

    code = "ORGANIZATION_ERROR"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


class SchemaError(OrganizationError):
    """Malformed access-control schema or role definition."""

    code = "SCHEMA_ERROR"
    status_code = 500


class PermissionDeniedError(OrganizationError):
    """The caller's roles do not grant the requested permission."""

    code = "PERMISSION_DENIED"
    status_code = 403


class UnknownPermissionError(PermissionDeniedError):
    """The requested resource or action is not part of the schema."""

    code = "UNKNOWN_PERMISSION"


class UnknownRoleError(OrganizationError):
    """A role name that is not in the role registry was assigned."""

    code = "ROLE_NOT_FOUND"

    def __init__(self, roles):
        self.roles = sorted(roles)
        super().__init__(f"Unknown role(s): {', '.join(self.roles)}")


class NotFoundError(OrganizationError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(OrganizationError):
    """A uniqueness constraint was violated."""

    code = "CONFLICT"
    status_code = 409


class SlugTakenError(ConflictError):
    code = "SLUG_TAKEN"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Organization slug '{slug}' is already taken")


class AlreadyMemberError(ConflictError):
    code = "ALREADY_MEMBER"


class AlreadyInvitedError(OrganizationError):
    code = "ALREADY_INVITED"
    status_code = 409

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"{email} is already invited to this organization")


class LimitExceededError(OrganizationError):
    code = "LIMIT_EXCEEDED"
    status_code = 403

    def __init__(self, message: str, limit: int | None = None):
        self.limit = limit
        super().__init__(message)


class InvalidStateError(OrganizationError):
    """Invitation is no longer pending."""

    code = "INVALID_STATE"
    status_code = 409


class ExpiredError(OrganizationError):
    code = "EXPIRED"
    status_code = 410


class EmailMismatchError(OrganizationError):
    code = "EMAIL_MISMATCH"
    status_code = 403


class FeatureDisabledError(OrganizationError):
    code = "FEATURE_DISABLED"
    status_code = 403


class InvariantViolationError(OrganizationError):
    code = "INVARIANT_VIOLATION"
    status_code = 409


class HookError(OrganizationError):
    """
    An after-hook failed once the change was already committed.

    The committed entity is attached so callers can still use it; nothing is
    rolled back.
    """

    code = "HOOK_FAILED"
    status_code = 500

    def __init__(self, hook: str, result: Any, cause: BaseException):
        self.hook = hook
        self.result = result
        self.cause = cause
        super().__init__(f"{hook} hook failed after commit: {cause}")


# Infrastructure errors: transient, surfaced for the caller to retry

class StoreError(OrganizationError):
    code = "STORE_UNAVAILABLE"
    status_code = 503


class NotificationError(OrganizationError):
    code = "NOTIFICATION_FAILED"
    status_code = 502
