"""
Public share link schemas.

The shared gallery payload deliberately omits the download PIN and the
owner id; clients only learn whether a PIN is required.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from lumina.schemas.base import CamelModel
from lumina.schemas.gallery import PIN_PATTERN


class SharedPhoto(CamelModel):
    id: int
    filename: str
    size: int
    url: str  # 보기용 URL (CDN URL 또는 /api/share/{token}/photos/{id}/image)
    created_at: datetime


class SharedGalleryResponse(CamelModel):
    id: int
    title: str
    client_name: str
    business_name: str
    share_token: str
    cover_photo_id: Optional[int] = None
    pin_required: bool
    photo_count: int
    photos: List[SharedPhoto] = []
    created_at: datetime


class PinVerifyRequest(CamelModel):
    pin: str = Field(..., pattern=PIN_PATTERN)


class PinVerifyResponse(CamelModel):
    valid: bool


class BulkDownloadRequest(CamelModel):
    """Bulk download request. photo_ids empty/None means every photo."""

    pin: Optional[str] = Field(None, pattern=PIN_PATTERN)
    photo_ids: Optional[List[int]] = None
