"""
Photo-related Pydantic schemas for request/response validation.
"""
from datetime import datetime

from pydantic import Field

from lumina.schemas.base import CamelModel


class PhotoResponse(CamelModel):
    id: int
    gallery_id: int
    filename: str
    storage_path: str
    size: int
    created_at: datetime


class PhotoMetadataCreate(CamelModel):
    """Metadata for a photo the browser already uploaded straight to the CDN."""

    filename: str = Field(..., min_length=1, max_length=255)
    storage_path: str = Field(
        ...,
        min_length=1,
        max_length=1000,
        pattern=r"^https?://",
        description="URL returned by the image host",
    )
    size: int = Field(..., ge=0, description="File size in bytes")


class UploadSignatureResponse(CamelModel):
    """Signed parameters for a direct browser → Cloudinary upload."""

    upload_url: str
    cloud_name: str
    api_key: str
    timestamp: int
    folder: str
    signature: str
