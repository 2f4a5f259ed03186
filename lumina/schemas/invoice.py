"""
Invoice-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Optional

from pydantic import Field

from lumina.models.invoice import InvoiceStatus
from lumina.schemas.base import CamelModel


class InvoiceCreate(CamelModel):
    """
    Schema for invoice creation.
    amount is an integer in minor currency units; callers round before sending.
    """

    gallery_id: int
    invoice_number: str = Field(..., min_length=1, max_length=64)
    amount: int = Field(..., ge=0)
    status: InvoiceStatus = InvoiceStatus.PENDING


class InvoiceResponse(CamelModel):
    id: int
    gallery_id: int
    invoice_number: str
    amount: int
    status: InvoiceStatus
    pdf_path: Optional[str] = None
    created_at: datetime


class InvoiceGallerySummary(CamelModel):
    id: int
    title: str
    client_name: str


class InvoiceWithGallery(InvoiceResponse):
    gallery: InvoiceGallerySummary
