"""
Organization and member models.

An organization is a tenant identified by a unique slug. A member row ties
one user to one organization with a set of roles, persisted as a
comma-joined string and exposed as a frozenset.
"""
from datetime import datetime
from typing import Any
from sqlalchemy import String, ForeignKey, JSON, DateTime, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from orgaccess.core.database.base import Base, TimestampMixin, generate_ulid
from orgaccess.features.access.registry import parse_roles, serialize_roles
from orgaccess.utils import utcnow


class Organization(Base, TimestampMixin):
    """
    Organization model representing a tenant.
    
    Deleting an organization removes its members, invitations and teams
    (see MembershipStore.delete_organization_cascade).
    """
    __tablename__ = "organizations"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    logo: Mapped[str | None] = mapped_column(String(500), nullable=True)
    
    # Opaque key-value data owned by the embedding application
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    
    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug!r})>"


class Member(Base):
    """
    Membership of a user in an organization.
    
    At most one row per (user_id, organization_id).
    """
    __tablename__ = "members"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_members_user_organization"),
    )
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    # Comma-joined role names; use .roles
    role: Mapped[str] = mapped_column(String(255), nullable=False)
    
    team_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("teams.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    
    @property
    def roles(self) -> frozenset[str]:
        return parse_roles(self.role)
    
    @roles.setter
    def roles(self, value) -> None:
        self.role = serialize_roles(value)
    
    def __repr__(self) -> str:
        return f"<Member(id={self.id}, user_id={self.user_id}, org_id={self.organization_id}, role={self.role!r})>"
