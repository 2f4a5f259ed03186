# =============================================================================
# tests/test_invoices.py - Invoice CRUD and PDF export
# =============================================================================

from datetime import datetime
from pathlib import Path

import pytest

import lumina.services.invoice as invoice_module
from lumina.models import Gallery, Invoice
from lumina.services.invoice import pdf_filename, render_invoice_html
from lumina.utils.templates import format_amount

from tests.conftest import create_gallery

FAKE_PDF = b"%PDF-1.7\n%fake\n"


async def _create_invoice(client, headers, gallery_id, number="INV-001", amount=150000, **extra):
    response = await client.post(
        "/api/invoices",
        json={"galleryId": gallery_id, "invoiceNumber": number, "amount": amount, **extra},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def fake_pdf(monkeypatch):
    rendered = []

    def fake_render(invoice, gallery, business_name):
        rendered.append((invoice.invoice_number, gallery.title, business_name))
        return FAKE_PDF

    monkeypatch.setattr(invoice_module, "render_invoice_pdf", fake_render)
    return rendered


class TestCreateInvoice:
    async def test_create_defaults_to_pending(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        invoice = await _create_invoice(client, alice["headers"], gallery["id"])

        assert invoice["galleryId"] == gallery["id"]
        assert invoice["invoiceNumber"] == "INV-001"
        assert invoice["amount"] == 150000
        assert invoice["status"] == "pending"
        assert invoice["pdfPath"] is None

    async def test_explicit_status(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        invoice = await _create_invoice(client, alice["headers"], gallery["id"], status="paid")
        assert invoice["status"] == "paid"

    async def test_unknown_status(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            "/api/invoices",
            json={"galleryId": gallery["id"], "invoiceNumber": "X", "amount": 1, "status": "overdue"},
            headers=alice["headers"],
        )
        assert response.status_code == 400

    async def test_negative_amount(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            "/api/invoices",
            json={"galleryId": gallery["id"], "invoiceNumber": "X", "amount": -1},
            headers=alice["headers"],
        )
        assert response.status_code == 400
        assert response.json()["field"] == "amount"

    async def test_other_photographers_gallery(self, client, alice, bob):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            "/api/invoices",
            json={"galleryId": gallery["id"], "invoiceNumber": "INV-9", "amount": 100},
            headers=bob["headers"],
        )
        assert response.status_code == 400
        assert response.json() == {"message": "Invalid gallery", "field": "galleryId"}

    async def test_missing_gallery(self, client, alice):
        response = await client.post(
            "/api/invoices",
            json={"galleryId": 9999, "invoiceNumber": "INV-9", "amount": 100},
            headers=alice["headers"],
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid gallery"


class TestReadInvoices:
    async def test_list_with_gallery_summary(self, client, alice, bob):
        gallery = await create_gallery(client, alice["headers"])
        first = await _create_invoice(client, alice["headers"], gallery["id"], number="INV-001")
        second = await _create_invoice(client, alice["headers"], gallery["id"], number="INV-002")
        bob_gallery = await create_gallery(client, bob["headers"])
        await _create_invoice(client, bob["headers"], bob_gallery["id"], number="BOB-1")

        response = await client.get("/api/invoices", headers=alice["headers"])
        assert response.status_code == 200
        body = response.json()
        assert [i["id"] for i in body] == [second["id"], first["id"]]
        assert body[0]["gallery"] == {
            "id": gallery["id"],
            "title": "Summer Wedding",
            "clientName": "Alice & Bob",
        }

    async def test_get_one(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        invoice = await _create_invoice(client, alice["headers"], gallery["id"])

        response = await client.get(f"/api/invoices/{invoice['id']}", headers=alice["headers"])
        assert response.status_code == 200
        assert response.json()["gallery"]["id"] == gallery["id"]

    async def test_get_other_photographers_invoice(self, client, alice, bob):
        gallery = await create_gallery(client, alice["headers"])
        invoice = await _create_invoice(client, alice["headers"], gallery["id"])

        response = await client.get(f"/api/invoices/{invoice['id']}", headers=bob["headers"])
        assert response.status_code == 403

    async def test_get_unknown(self, client, alice):
        response = await client.get("/api/invoices/9999", headers=alice["headers"])
        assert response.status_code == 404


class TestInvoicePdf:
    async def test_pdf_download(self, client, alice, fake_pdf):
        gallery = await create_gallery(client, alice["headers"])
        invoice = await _create_invoice(client, alice["headers"], gallery["id"])

        response = await client.get(f"/api/invoices/{invoice['id']}/pdf", headers=alice["headers"])
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == "attachment; filename=invoice-INV-001.pdf"
        assert response.content == FAKE_PDF
        assert fake_pdf == [("INV-001", "Summer Wedding", "Alice Studio")]

    async def test_pdf_path_is_recorded(self, client, alice, fake_pdf):
        gallery = await create_gallery(client, alice["headers"])
        invoice = await _create_invoice(client, alice["headers"], gallery["id"])

        await client.get(f"/api/invoices/{invoice['id']}/pdf", headers=alice["headers"])

        stored = (await client.get(f"/api/invoices/{invoice['id']}", headers=alice["headers"])).json()
        assert stored["pdfPath"]
        assert Path(stored["pdfPath"]).read_bytes() == FAKE_PDF

    async def test_pdf_other_photographer(self, client, alice, bob, fake_pdf):
        gallery = await create_gallery(client, alice["headers"])
        invoice = await _create_invoice(client, alice["headers"], gallery["id"])

        response = await client.get(f"/api/invoices/{invoice['id']}/pdf", headers=bob["headers"])
        assert response.status_code == 403
        assert fake_pdf == []


class TestInvoiceRendering:
    def _invoice(self):
        gallery = Gallery(id=1, photographer_id=1, title="Summer <Wedding>", client_name="Alice & Bob", share_token="t")
        invoice = Invoice(
            id=7,
            gallery_id=1,
            invoice_number="INV-001",
            amount=150000,
            status="pending",
            created_at=datetime(2024, 6, 1, 9, 30),
        )
        return invoice, gallery

    def test_format_amount(self):
        assert format_amount(150000, "USD") == "USD 1,500.00"
        assert format_amount(5, "NGN") == "NGN 0.05"

    def test_pdf_filename(self):
        assert pdf_filename("INV-001") == "invoice-INV-001.pdf"
        assert pdf_filename("2024/05 #3") == "invoice-2024_05_3.pdf"
        assert pdf_filename("../") == "invoice-invoice.pdf"

    def test_html_contains_invoice_details(self):
        invoice, gallery = self._invoice()
        html = render_invoice_html(invoice, gallery, "Demo Photography")

        assert "INV-001" in html
        assert "Demo Photography" in html
        assert "Alice &amp; Bob" in html
        assert "Summer &lt;Wedding&gt;" in html
        assert "USD 1,500.00" in html
        assert "June 01, 2024" in html
        assert "pending" in html

    def test_real_pdf_rendering(self):
        try:
            import weasyprint  # noqa: F401
        except (ImportError, OSError):
            pytest.skip("WeasyPrint native libraries are not available")

        invoice, gallery = self._invoice()
        pdf = invoice_module.render_invoice_pdf(invoice, gallery, "Demo Photography")
        assert pdf.startswith(b"%PDF")
