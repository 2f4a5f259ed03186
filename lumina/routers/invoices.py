"""
Invoices router: create, list, get and PDF export.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from lumina.database import get_db
from lumina.dependencies.auth import get_current_photographer
from lumina.exceptions import LuminaError
from lumina.models.photographer import Photographer
from lumina.schemas import InvoiceCreate, InvoiceResponse, InvoiceWithGallery
from lumina.services.invoice import InvoiceService, pdf_filename
from lumina.utils.prometheus_metrics import invoice_operations_total

router = APIRouter(prefix="/api/invoices", tags=["Invoices"])


@router.get(
    "",
    response_model=List[InvoiceWithGallery],
    summary="List my invoices",
)
async def list_invoices(
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> List[InvoiceWithGallery]:
    """Invoices of all my galleries, newest first, with the gallery summary."""
    invoices = await InvoiceService(db).list_invoices(current)
    return [InvoiceWithGallery.model_validate(i) for i in invoices]


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an invoice",
)
async def create_invoice(
    data: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> InvoiceResponse:
    """
    - **galleryId**: one of my galleries (400 "Invalid gallery" otherwise)
    - **invoiceNumber**: free-form, e.g. INV-001
    - **amount**: integer in minor currency units (cents)
    - **status**: pending (default), paid or cancelled
    """
    try:
        invoice = await InvoiceService(db).create_invoice(current, data)
        await db.commit()
    except LuminaError:
        invoice_operations_total.labels(operation="create", result="failure").inc()
        raise
    invoice_operations_total.labels(operation="create", result="success").inc()
    return InvoiceResponse.model_validate(invoice)


@router.get(
    "/{invoice_id}",
    response_model=InvoiceWithGallery,
    summary="Get one invoice",
)
async def get_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> InvoiceWithGallery:
    invoice = await InvoiceService(db).get_owned_invoice(current, invoice_id)
    return InvoiceWithGallery.model_validate(invoice)


@router.get(
    "/{invoice_id}/pdf",
    summary="Download an invoice as PDF",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
)
async def get_invoice_pdf(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> Response:
    try:
        invoice, pdf = await InvoiceService(db).generate_pdf(current, invoice_id)
        await db.commit()
    except LuminaError:
        invoice_operations_total.labels(operation="pdf", result="failure").inc()
        raise
    invoice_operations_total.labels(operation="pdf", result="success").inc()

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename={pdf_filename(invoice.invoice_number)}",
            "Access-Control-Expose-Headers": "Content-Disposition",
        },
    )
