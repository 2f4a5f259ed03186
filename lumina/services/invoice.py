"""
Invoice service: create, list and PDF export.

PDF: Jinja2 HTML template → WeasyPrint.
"""
import asyncio
import logging
import re
from pathlib import Path
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from lumina.config import get_settings
from lumina.exceptions import Forbidden, NotFound, ValidationError
from lumina.models.gallery import Gallery
from lumina.models.invoice import Invoice
from lumina.models.photographer import Photographer
from lumina.schemas.invoice import InvoiceCreate
from lumina.utils.logger import log_info, log_warning
from lumina.utils.templates import render_template
from lumina.utils.timeutil import utcnow

logger = logging.getLogger("lumina.invoice")

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def pdf_filename(invoice_number: str) -> str:
    """invoice-<number>.pdf, safe for Content-Disposition and the filesystem."""
    safe = _UNSAFE_FILENAME_CHARS.sub("_", invoice_number).strip("._") or "invoice"
    return f"invoice-{safe}.pdf"


def _get_weasyprint():
    """Lazy import: WeasyPrint loads native libraries (pango/cairo) at import time."""
    from weasyprint import HTML

    return HTML


def render_invoice_html(invoice: Invoice, gallery: Gallery, business_name: str) -> str:
    settings = get_settings()
    return render_template(
        "invoice.html",
        invoice=invoice,
        gallery=gallery,
        business_name=business_name,
        status=str(invoice.status),
        currency=settings.invoice_currency,
        generated_at=utcnow(),
    )


def render_invoice_pdf(invoice: Invoice, gallery: Gallery, business_name: str) -> bytes:
    """
    Render one invoice to PDF bytes. Blocking; call from a worker thread.
    """
    HTML = _get_weasyprint()
    html_content = render_invoice_html(invoice, gallery, business_name)
    return HTML(string=html_content).write_pdf()


class InvoiceService:
    """
    Service for managing invoices.
    Ownership is checked through the invoice's gallery.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def create_invoice(self, owner: Photographer, data: InvoiceCreate) -> Invoice:
        """
        Raises:
            ValidationError: gallery missing or owned by someone else
        """
        result = await self.db.execute(
            select(Gallery).where(
                Gallery.id == data.gallery_id,
                Gallery.photographer_id == owner.id,
            )
        )
        gallery = result.scalar_one_or_none()
        if gallery is None:
            log_warning(
                "Invoice rejected",
                event="invoice",
                reason="invalid_gallery",
                gallery_id=data.gallery_id,
                photographer_id=owner.id,
            )
            raise ValidationError("Invalid gallery", field="galleryId")

        invoice = Invoice(
            gallery_id=gallery.id,
            invoice_number=data.invoice_number.strip(),
            amount=data.amount,
            status=data.status.value,
        )
        self.db.add(invoice)
        await self.db.flush()
        await self.db.refresh(invoice)
        log_info("Invoice created", event="invoice", invoice_id=invoice.id, gallery_id=gallery.id)
        return invoice

    async def list_invoices(self, owner: Photographer) -> List[Invoice]:
        """Invoices of all the owner's galleries, newest first, gallery loaded."""
        result = await self.db.execute(
            select(Invoice)
            .join(Invoice.gallery)
            .options(contains_eager(Invoice.gallery))
            .where(Gallery.photographer_id == owner.id)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        )
        return list(result.scalars().all())

    async def get_owned_invoice(self, owner: Photographer, invoice_id: int) -> Invoice:
        """
        Raises:
            NotFound: no such invoice
            Forbidden: the invoice's gallery belongs to another photographer
        """
        result = await self.db.execute(
            select(Invoice)
            .join(Invoice.gallery)
            .options(contains_eager(Invoice.gallery))
            .where(Invoice.id == invoice_id)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFound("Invoice not found")
        if invoice.gallery.photographer_id != owner.id:
            log_warning("Invoice access denied", event="invoice", invoice_id=invoice_id, photographer_id=owner.id)
            raise Forbidden("You do not have access to this invoice")
        return invoice

    async def generate_pdf(self, owner: Photographer, invoice_id: int) -> Tuple[Invoice, bytes]:
        """
        Render the invoice PDF, keep a copy under the invoice directory and
        record its path.

        Returns:
            (invoice, pdf bytes)
        """
        invoice = await self.get_owned_invoice(owner, invoice_id)
        pdf = await asyncio.to_thread(
            render_invoice_pdf, invoice, invoice.gallery, owner.business_name
        )

        path = Path(self.settings.invoice_pdf_dir) / str(invoice.gallery_id) / pdf_filename(
            f"{invoice.id}-{invoice.invoice_number}"
        )
        try:
            await asyncio.to_thread(self._write_pdf, path, pdf)
        except OSError as e:
            # 파일 보관 실패해도 PDF 응답은 가능
            logger.error("Invoice PDF not stored", exc_info=e, extra={"event": "invoice", "invoice_id": invoice.id})
        else:
            invoice.pdf_path = str(path)
            await self.db.flush()

        log_info("Invoice PDF generated", event="invoice", invoice_id=invoice.id, pdf_bytes=len(pdf))
        return invoice, pdf

    @staticmethod
    def _write_pdf(path: Path, pdf: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(pdf)
