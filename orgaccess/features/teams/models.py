"""
Team model: optional sub-grouping of members within an organization.
"""
from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from orgaccess.core.database.base import Base, TimestampMixin, generate_ulid


class Team(Base, TimestampMixin):
    __tablename__ = "teams"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name!r}, org_id={self.organization_id})>"
