"""
User model with ULID primary keys.

Users are owned by the identity provider; the organization engine only holds
weak references to them (member rows, inviter ids).
"""
from datetime import datetime
from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from orgaccess.core.database.base import Base, TimestampMixin, generate_ulid


class User(Base, TimestampMixin):
    """
    User model representing authenticated users.
    
    Uses ULID instead of auto-incrementing integers for better distributed systems support.
    """
    __tablename__ = "users"
    
    # Primary key using ULID (Universally Unique Lexicographically Sortable Identifier)
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # Appwrite user ID (for linking with Appwrite authentication)
    appwrite_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)
    
    # Stored lowercase; invitations are matched against it
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    # Session link: the organization currently selected by this user
    active_organization_id: Mapped[str | None] = mapped_column(
        String(26), 
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
