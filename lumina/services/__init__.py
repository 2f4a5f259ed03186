"""
Business logic services package.
"""
from lumina.services.auth import AuthService
from lumina.services.gallery import GalleryService
from lumina.services.photo import PhotoService
from lumina.services.share import ShareService
from lumina.services.invoice import InvoiceService
from lumina.services.storage import StorageService, get_storage_service
from lumina.services.email import EmailService, get_email_service

__all__ = [
    "AuthService",
    "GalleryService",
    "PhotoService",
    "ShareService",
    "InvoiceService",
    "StorageService",
    "get_storage_service",
    "EmailService",
    "get_email_service",
]
