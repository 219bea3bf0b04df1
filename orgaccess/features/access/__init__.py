"""
Access control feature module.

Declarative statement schema (resource -> actions), immutable roles built
from it, and the role registry that evaluates permission checks for members
of an organization.
"""
