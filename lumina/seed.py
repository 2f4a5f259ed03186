"""
Demo data, created only on explicit request (never at application start-up).

Idempotent: nothing happens when the demo account already exists.
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from lumina.database import get_db_context, init_db
from lumina.models import Gallery, Invoice, InvoiceStatus, Photographer
from lumina.services.auth import AuthService
from lumina.utils.logger import setup_logging
from lumina.utils.security import hash_password

logger = logging.getLogger("lumina.seed")

DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "password123"
DEMO_SHARE_TOKEN = "demo-token-123"


async def seed_demo_data(db: AsyncSession) -> bool:
    """
    Create the demo photographer, gallery and invoice.

    Returns:
        True if data was created, False if the demo account already existed
    """
    if await AuthService(db).get_photographer_by_email(DEMO_EMAIL):
        logger.info("Demo data already present", extra={"event": "seed"})
        return False

    photographer = Photographer(
        email=DEMO_EMAIL,
        business_name="Demo Photography",
        password_hash=hash_password(DEMO_PASSWORD),
    )
    db.add(photographer)
    await db.flush()

    gallery = Gallery(
        photographer_id=photographer.id,
        title="Summer Wedding 2024",
        client_name="Alice & Bob",
        share_token=DEMO_SHARE_TOKEN,
    )
    db.add(gallery)
    await db.flush()

    db.add(
        Invoice(
            gallery_id=gallery.id,
            invoice_number="INV-001",
            amount=150000,  # $1500.00
            status=InvoiceStatus.PENDING.value,
        )
    )
    await db.flush()
    logger.info("Demo data created", extra={"event": "seed", "photographer_id": photographer.id})
    return True


async def run() -> bool:
    await init_db()
    async with get_db_context() as db:
        return await seed_demo_data(db)


def main() -> None:
    setup_logging()
    created = asyncio.run(run())
    if created:
        print(f"Seeding complete. Login with {DEMO_EMAIL} / {DEMO_PASSWORD}")
    else:
        print("Demo data already present, nothing to do.")


if __name__ == "__main__":
    main()
