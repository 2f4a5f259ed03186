"""
Galleries router: owner-scoped gallery CRUD, cover photo and photo uploads.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from lumina.database import get_db
from lumina.dependencies.auth import get_current_photographer
from lumina.exceptions import LuminaError
from lumina.models.photographer import Photographer
from lumina.schemas import (
    CoverPhotoResponse,
    CoverPhotoUpdate,
    GalleryCreate,
    GalleryResponse,
    GalleryUpdate,
    GalleryWithPhotos,
    PhotoMetadataCreate,
    PhotoResponse,
    UploadSignatureResponse,
)
from lumina.services.gallery import GalleryService
from lumina.services.photo import PhotoService, validate_upload
from lumina.services.storage import get_storage_service
from lumina.utils.prometheus_metrics import (
    gallery_operations_total,
    photo_upload_file_size_bytes,
    photo_upload_total,
)

logger = logging.getLogger("lumina.galleries")
router = APIRouter(prefix="/api/galleries", tags=["Galleries"])


@router.get(
    "",
    response_model=List[GalleryWithPhotos],
    summary="List my galleries",
)
async def list_galleries(
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> List[GalleryWithPhotos]:
    """Newest first, each with its photos."""
    return await GalleryService(db).list_galleries(current)


@router.post(
    "",
    response_model=GalleryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a gallery",
)
async def create_gallery(
    data: GalleryCreate,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> GalleryResponse:
    """
    Create a new gallery.

    The share token is always generated by the server. A 4-digit download
    PIN is generated unless **downloadPin** is given.
    """
    gallery = await GalleryService(db).create_gallery(current, data)
    await db.commit()
    gallery_operations_total.labels(operation="create", result="success").inc()
    return GalleryResponse.model_validate(gallery)


@router.get(
    "/{gallery_id}",
    response_model=GalleryWithPhotos,
    summary="Get one of my galleries with its photos",
)
async def get_gallery(
    gallery_id: int,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> GalleryWithPhotos:
    return await GalleryService(db).get_gallery_with_photos(current, gallery_id)


@router.patch(
    "/{gallery_id}",
    response_model=GalleryResponse,
    summary="Update a gallery",
)
async def update_gallery(
    gallery_id: int,
    data: GalleryUpdate,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> GalleryResponse:
    """
    Update **title**, **clientName** or **downloadPin** (null removes the PIN).
    The share token cannot be changed.
    """
    try:
        gallery = await GalleryService(db).update_gallery(current, gallery_id, data)
        await db.commit()
    except LuminaError:
        gallery_operations_total.labels(operation="update", result="failure").inc()
        raise
    gallery_operations_total.labels(operation="update", result="success").inc()
    return GalleryResponse.model_validate(gallery)


@router.patch(
    "/{gallery_id}/cover",
    response_model=CoverPhotoResponse,
    summary="Set the gallery cover photo",
)
async def set_cover_photo(
    gallery_id: int,
    data: CoverPhotoUpdate,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> CoverPhotoResponse:
    try:
        gallery = await GalleryService(db).set_cover_photo(current, gallery_id, data.photo_id)
        await db.commit()
    except LuminaError:
        gallery_operations_total.labels(operation="set_cover", result="failure").inc()
        raise
    gallery_operations_total.labels(operation="set_cover", result="success").inc()
    return CoverPhotoResponse(cover_photo_id=gallery.cover_photo_id)


@router.delete(
    "/{gallery_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a gallery with its photos and invoices",
)
async def delete_gallery(
    gallery_id: int,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> Response:
    """
    Photos, invoices and the gallery are removed in one transaction.
    Stored binaries are removed afterwards, best effort.
    """
    try:
        storage_paths = await GalleryService(db).delete_gallery(current, gallery_id)
        await db.commit()
    except LuminaError:
        gallery_operations_total.labels(operation="delete", result="failure").inc()
        raise
    gallery_operations_total.labels(operation="delete", result="success").inc()

    removed = await PhotoService(db).remove_binaries(storage_paths)
    if removed != len(storage_paths):
        logger.warning(
            "Some photo binaries were not removed",
            extra={"event": "gallery", "gallery_id": gallery_id, "failed": len(storage_paths) - removed},
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{gallery_id}/photos",
    response_model=List[PhotoResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Upload photos to a gallery",
)
async def upload_photos(
    gallery_id: int,
    photos: Optional[List[UploadFile]] = File(None, description="Image files (multipart field 'photos')"),
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> List[PhotoResponse]:
    """
    Upload one or more photos (multipart field **photos**).

    JPEG, PNG, GIF, WebP and HEIC are accepted, at most 10MB each.
    Files go to Cloudinary when configured, otherwise to the local upload directory.
    """
    photo_service = PhotoService(db)
    try:
        # 소유권 확인 후에만 파일 본문을 읽음
        gallery = await photo_service.galleries.get_owned_gallery(current, gallery_id)
        uploads = [await validate_upload(f, field="photos") for f in photos or []]
        created = await photo_service.upload_photos(gallery, uploads)
        await db.commit()
    except LuminaError:
        photo_upload_total.labels(upload_method="direct", result="failure").inc()
        raise

    photo_upload_total.labels(upload_method="direct", result="success").inc(len(created))
    for upload in uploads:
        photo_upload_file_size_bytes.labels(upload_method="direct").observe(upload.size)
    return [PhotoResponse.model_validate(p) for p in created]


@router.post(
    "/{gallery_id}/photos-metadata",
    response_model=PhotoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a photo uploaded directly to the CDN",
)
async def create_photo_metadata(
    gallery_id: int,
    data: PhotoMetadataCreate,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> PhotoResponse:
    """
    Second step of a direct upload: the browser already sent the file to
    Cloudinary (see **upload-signature**) and reports the resulting URL.
    """
    try:
        photo = await PhotoService(db).create_from_metadata(current, gallery_id, data)
        await db.commit()
    except LuminaError:
        photo_upload_total.labels(upload_method="metadata", result="failure").inc()
        raise

    photo_upload_total.labels(upload_method="metadata", result="success").inc()
    photo_upload_file_size_bytes.labels(upload_method="metadata").observe(data.size)
    return PhotoResponse.model_validate(photo)


@router.post(
    "/{gallery_id}/upload-signature",
    response_model=UploadSignatureResponse,
    summary="Get signed parameters for a direct CDN upload",
)
async def get_upload_signature(
    gallery_id: int,
    db: AsyncSession = Depends(get_db),
    current: Photographer = Depends(get_current_photographer),
) -> UploadSignatureResponse:
    """503 when Cloudinary is not configured."""
    gallery = await GalleryService(db).get_owned_gallery(current, gallery_id)
    return UploadSignatureResponse(**get_storage_service().upload_signature(gallery.id))
