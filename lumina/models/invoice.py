"""
Invoice model for billing a gallery's client.
"""
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lumina.database import Base
from lumina.utils.timeutil import utcnow

if TYPE_CHECKING:
    from lumina.models.gallery import Gallery


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class Invoice(Base):
    """
    Invoice linked to one gallery.
    amount is stored in minor currency units (cents/kobo).
    """

    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    gallery_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("galleries.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.PENDING.value
    )
    pdf_path: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    gallery: Mapped["Gallery"] = relationship("Gallery")

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number={self.invoice_number})>"
