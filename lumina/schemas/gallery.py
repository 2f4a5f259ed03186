"""
Gallery-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from lumina.schemas.base import CamelModel
from lumina.schemas.photo import PhotoResponse

PIN_PATTERN = r"^\d{4}$"


class GalleryCreate(CamelModel):
    """Schema for gallery creation. share_token is always generated server-side."""

    title: str = Field(..., min_length=1, max_length=255)
    client_name: str = Field(..., min_length=1, max_length=255)
    download_pin: Optional[str] = Field(None, pattern=PIN_PATTERN)


class GalleryUpdate(CamelModel):
    """Schema for updating a gallery. share_token is immutable."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    client_name: Optional[str] = Field(None, min_length=1, max_length=255)
    download_pin: Optional[str] = Field(None, pattern=PIN_PATTERN)


class GalleryResponse(CamelModel):
    id: int
    photographer_id: int
    title: str
    client_name: str
    share_token: str
    download_pin: Optional[str] = None
    cover_photo_id: Optional[int] = None
    created_at: datetime


class GalleryWithPhotos(GalleryResponse):
    photos: List[PhotoResponse] = []


class CoverPhotoUpdate(CamelModel):
    photo_id: int


class CoverPhotoResponse(CamelModel):
    cover_photo_id: Optional[int] = None
