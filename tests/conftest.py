# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Environment is configured BEFORE importing lumina: settings, the engine and
# the rate limiter are created at import time.
# =============================================================================

import io
import os
import shutil
import tempfile
from pathlib import Path

_TMP_DIR = Path(tempfile.mkdtemp(prefix="lumina-tests-"))

os.environ["ENVIRONMENT"] = "DEV"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-with-enough-length-0123"
os.environ["LOG_DIR"] = str(_TMP_DIR / "logs")
os.environ["UPLOAD_DIR"] = str(_TMP_DIR / "uploads")
os.environ["INVOICE_PDF_DIR"] = str(_TMP_DIR / "invoices")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["APP_URL"] = "http://lumina.test"
os.environ["MAIL_HOST"] = ""
os.environ["CLOUDINARY_CLOUD_NAME"] = ""
os.environ["CLOUDINARY_API_KEY"] = ""
os.environ["CLOUDINARY_API_SECRET"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from lumina.config import get_settings
from lumina.database import Base, async_session_maker, engine, init_db
from lumina.main import app
from lumina.services.email import EmailService
from lumina.utils.prometheus_metrics import ready


def make_image(fmt: str, size=(1600, 1200), color=(200, 120, 40)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


PNG_BYTES = make_image("PNG")
JPEG_BYTES = make_image("JPEG")

CLOUD_NAME = "demo"


def cdn_url(gallery_id: int, name: str = "abc.jpg") -> str:
    """Delivery URL the way Cloudinary returns it for an upload into a gallery folder."""
    return f"https://res.cloudinary.com/{CLOUD_NAME}/image/upload/v1712/lumina/galleries/{gallery_id}/{name}"


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
async def database():
    """Fresh tables for every test. ASGITransport does not run the lifespan."""
    await init_db()
    ready.set(1)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session():
    async with async_session_maker() as session:
        yield session


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def cloudinary(monkeypatch):
    """Cloudinary credentials without network access (metadata registration only)."""
    settings = get_settings()
    monkeypatch.setattr(settings, "cloudinary_cloud_name", CLOUD_NAME)
    monkeypatch.setattr(settings, "cloudinary_api_key", "test-key")
    monkeypatch.setattr(settings, "cloudinary_api_secret", "test-secret")
    return settings


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture password reset emails instead of talking to SMTP."""
    sent = []

    async def fake_send(self, to, business_name, reset_token):
        sent.append({"to": to, "business_name": business_name, "token": reset_token})

    monkeypatch.setattr(EmailService, "send_password_reset_email", fake_send)
    return sent


async def register(
    client: AsyncClient,
    email: str,
    password: str = "secret123",
    business_name: str = "Studio",
) -> dict:
    response = await client.post(
        "/api/auth/register",
        json={"email": email, "businessName": business_name, "password": password},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return {
        "token": body["token"],
        "user": body["user"],
        "headers": {"Authorization": f"Bearer {body['token']}"},
    }


async def create_gallery(client: AsyncClient, headers: dict, title: str = "Summer Wedding", **extra) -> dict:
    payload = {"title": title, "clientName": "Alice & Bob", **extra}
    response = await client.post("/api/galleries", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def upload_photos(client: AsyncClient, headers: dict, gallery_id: int, count: int = 2) -> list:
    files = [
        ("photos", (f"photo{i}.png", PNG_BYTES, "image/png"))
        for i in range(1, count + 1)
    ]
    response = await client.post(f"/api/galleries/{gallery_id}/photos", files=files, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
async def alice(client):
    return await register(client, "alice@example.com", business_name="Alice Studio")


@pytest.fixture
async def bob(client):
    return await register(client, "bob@example.com", business_name="Bob Photo")
