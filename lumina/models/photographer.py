"""
Photographer model for authentication and account management.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lumina.database import Base
from lumina.utils.timeutil import utcnow

if TYPE_CHECKING:
    from lumina.models.gallery import Gallery


class Photographer(Base):
    """Photographer account. Owns galleries (and through them photos and invoices)."""

    __tablename__ = "photographers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Password reset (single use, cleared after reset)
    reset_token: Mapped[Optional[str]] = mapped_column(
        String(128), index=True, nullable=True
    )
    reset_token_expiry: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    galleries: Mapped[List["Gallery"]] = relationship(
        "Gallery",
        back_populates="photographer",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Photographer(id={self.id})>"
