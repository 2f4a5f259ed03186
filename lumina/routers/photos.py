"""
Photos router: replace and delete single photos.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from lumina.database import get_db
from lumina.dependencies.auth import get_current_photographer
from lumina.exceptions import LuminaError, ValidationError
from lumina.models.photographer import Photographer
from lumina.schemas import MessageResponse, PhotoResponse
from lumina.services.photo import PhotoService, validate_upload
from lumina.utils.prometheus_metrics import (
    photo_upload_file_size_bytes,
    photo_upload_total,
)

logger = logging.getLogger("lumina.photos")
router = APIRouter(prefix="/api/photos", tags=["Photos"])


@router.patch(
    "/{photo_id}",
    response_model=PhotoResponse,
    summary="Replace a photo's image",
)
async def replace_photo(
    photo_id: int,
    photo: Optional[UploadFile] = File(None, description="Replacement image (multipart field 'photo')"),
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> PhotoResponse:
    """
    Upload a new image for an existing photo. The photo keeps its id, so a
    gallery cover pointing at it stays valid. The old binary is removed
    afterwards, best effort.
    """
    photo_service = PhotoService(db)
    try:
        if photo is None:
            raise ValidationError("No file uploaded", field="photo")
        upload = await validate_upload(photo, field="photo")
        replaced, old_path = await photo_service.replace_photo(current, photo_id, upload)
        await db.commit()
    except LuminaError:
        photo_upload_total.labels(upload_method="replace", result="failure").inc()
        raise

    photo_upload_total.labels(upload_method="replace", result="success").inc()
    photo_upload_file_size_bytes.labels(upload_method="replace").observe(upload.size)

    if old_path != replaced.storage_path and not await photo_service.storage.delete_file(old_path):
        logger.warning("Old photo binary not removed", extra={"event": "photo", "photo_id": photo_id})
    return PhotoResponse.model_validate(replaced)


@router.delete(
    "/{photo_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete a photo",
)
async def delete_photo(
    photo_id: int,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> MessageResponse:
    """Deleting the gallery's cover photo also clears the cover."""
    photo_service = PhotoService(db)
    storage_path = await photo_service.delete_photo(current, photo_id)
    await db.commit()

    if not await photo_service.storage.delete_file(storage_path):
        logger.warning("Photo binary not removed", extra={"event": "photo", "photo_id": photo_id})
    return MessageResponse(message="Photo deleted")
