"""
Gallery model: a client's photo collection, reachable publicly by share token.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lumina.database import Base
from lumina.utils.timeutil import utcnow

if TYPE_CHECKING:
    from lumina.models.photographer import Photographer


class Gallery(Base):
    """
    Gallery owned by exactly one photographer.

    share_token is generated server-side, globally unique and never updated.
    """

    __tablename__ = "galleries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    photographer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("photographers.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Public access
    share_token: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    download_pin: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)

    # galleries ↔ photos 순환 참조: use_alter로 생성/삭제 순서 분리
    cover_photo_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey(
            "photos.id",
            ondelete="SET NULL",
            use_alter=True,
            name="fk_galleries_cover_photo_id",
        ),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    photographer: Mapped["Photographer"] = relationship(
        "Photographer", back_populates="galleries"
    )

    def __repr__(self) -> str:
        return f"<Gallery(id={self.id}, title={self.title})>"
