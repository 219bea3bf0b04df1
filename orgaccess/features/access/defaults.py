"""
Built-in statement schema and the owner/admin/member roles.
"""
from orgaccess.features.access.control import define_statement


OWNER = "owner"
ADMIN = "admin"
MEMBER = "member"


DEFAULT_STATEMENTS = {
    "organization": ["update", "delete"],
    "member": ["create", "update", "delete"],
    "invitation": ["create", "cancel"],
    "team": ["create", "update", "delete"],
}

default_ac = define_statement(DEFAULT_STATEMENTS)

owner_role = default_ac.new_role(
    {
        "organization": ["update", "delete"],
        "member": ["create", "update", "delete"],
        "invitation": ["create", "cancel"],
        "team": ["create", "update", "delete"],
    },
    name=OWNER,
)

admin_role = default_ac.new_role(
    {
        "organization": ["update"],
        "member": ["create", "update", "delete"],
        "invitation": ["create", "cancel"],
        "team": ["create", "update", "delete"],
    },
    name=ADMIN,
)

# Plain members can use the organization but not manage it
member_role = default_ac.new_role({}, name=MEMBER)

DEFAULT_ROLES = {
    OWNER: owner_role,
    ADMIN: admin_role,
    MEMBER: member_role,
}
