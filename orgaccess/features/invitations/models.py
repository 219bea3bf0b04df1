"""
Invitation model.

Lifecycle: pending -> accepted | rejected | canceled. Terminal states never
change again; re-inviting creates a new row.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
import enum

from orgaccess.core.database.base import Base, TimestampMixin, generate_ulid
from orgaccess.features.access.registry import parse_roles, serialize_roles
from orgaccess.utils import ensure_utc


class InvitationStatus(str, enum.Enum):
    """Status of an organization invitation."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELED = "canceled"


TERMINAL_STATUSES = frozenset({
    InvitationStatus.ACCEPTED,
    InvitationStatus.REJECTED,
    InvitationStatus.CANCELED,
})


class Invitation(Base, TimestampMixin):
    """
    Offer of membership sent to an email address.
    
    expires_at is created_at + the configured TTL; a resend re-bases it on
    the resend time.
    """
    __tablename__ = "invitations"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    inviter_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
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
        nullable=True
    )
    
    status: Mapped[InvitationStatus] = mapped_column(
        SQLEnum(InvitationStatus),
        default=InvitationStatus.PENDING,
        nullable=False,
        index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    
    @property
    def roles(self) -> frozenset[str]:
        return parse_roles(self.role)
    
    @roles.setter
    def roles(self, value) -> None:
        self.role = serialize_roles(value)
    
    def is_expired(self, now: datetime) -> bool:
        return ensure_utc(now) > ensure_utc(self.expires_at)
    
    def __repr__(self) -> str:
        return f"<Invitation(id={self.id}, email={self.email!r}, org_id={self.organization_id}, status={self.status})>"
