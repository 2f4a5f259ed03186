"""
Photo model for storing photo metadata.
The binary lives on the image host (Cloudinary) or in the local upload directory.
"""
from datetime import datetime

from sqlalchemy import String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from lumina.database import Base
from lumina.utils.timeutil import utcnow


class Photo(Base):
    """Photo belonging to exactly one gallery."""

    __tablename__ = "photos"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    gallery_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("galleries.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    # CDN URL 또는 로컬 파일 경로
    storage_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"<Photo(id={self.id}, filename={self.filename})>"
