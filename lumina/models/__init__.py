"""
Database models package.
All models are exported here for easy import.
"""
from lumina.models.photographer import Photographer
from lumina.models.gallery import Gallery
from lumina.models.photo import Photo
from lumina.models.invoice import Invoice, InvoiceStatus

__all__ = ["Photographer", "Gallery", "Photo", "Invoice", "InvoiceStatus"]
