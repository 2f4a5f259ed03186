"""
Photo service: upload, metadata registration, replace and delete.
"""
import mimetypes
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable, List, Optional, Sequence, Tuple

from fastapi import UploadFile
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lumina.config import get_settings
from lumina.exceptions import Forbidden, NotFound, ValidationError
from lumina.models.gallery import Gallery
from lumina.models.photo import Photo
from lumina.models.photographer import Photographer
from lumina.schemas.photo import PhotoMetadataCreate
from lumina.services.gallery import GalleryService
from lumina.services.storage import StorageError, get_storage_service
from lumina.utils.logger import log_info, log_warning

# Photo.filename 컬럼 길이
MAX_FILENAME_LENGTH = 255

# Allowed content types for photo upload
ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/heic",
    "image/heif",
}

# File extension to content type mapping
EXTENSION_TO_CONTENT_TYPE = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
}


@dataclass
class ValidatedUpload:
    """An uploaded file that passed the size and type checks."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def guess_content_type(filename: str, provided_type: Optional[str] = None) -> Optional[str]:
    """
    Content type from the client, falling back to the file extension.
    """
    if provided_type and provided_type in ALLOWED_CONTENT_TYPES:
        return provided_type

    if filename:
        lowered = filename.lower()
        for ext, content_type in EXTENSION_TO_CONTENT_TYPE.items():
            if lowered.endswith(ext):
                return content_type
        guessed, _ = mimetypes.guess_type(filename)
        if guessed in ALLOWED_CONTENT_TYPES:
            return guessed

    return provided_type


def clean_filename(filename: Optional[str]) -> str:
    """
    Base name of an uploaded file, cut to the column length.
    The extension is kept so the content type can still be guessed.
    """
    name = PurePath((filename or "").replace("\\", "/")).name.strip() or "photo"
    if len(name) <= MAX_FILENAME_LENGTH:
        return name
    suffix = PurePath(name).suffix
    if len(suffix) > 16:
        suffix = ""
    return name[: MAX_FILENAME_LENGTH - len(suffix)] + suffix


async def validate_upload(file: UploadFile, field: str) -> ValidatedUpload:
    """
    Read one multipart file and check it.

    Raises:
        ValidationError: empty, larger than the upload limit, or not an image
    """
    settings = get_settings()
    max_size = settings.max_upload_size_bytes
    filename = clean_filename(file.filename)

    # 한도 + 1 바이트까지만 읽어 초과 여부 판정
    content = await file.read(max_size + 1)
    if not content:
        raise ValidationError(f"{filename} is empty", field=field)
    if len(content) > max_size:
        raise ValidationError(
            f"{filename} is too large. Maximum size: {max_size // (1024 * 1024)}MB",
            field=field,
        )

    content_type = guess_content_type(filename, file.content_type)
    if not content_type or content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(
            f"{filename} is not an allowed image type. Allowed types: JPEG, PNG, GIF, WebP, HEIC",
            field=field,
        )

    return ValidatedUpload(filename=filename, content_type=content_type, content=content)


class PhotoService:
    """
    Service for managing photos.
    Binaries go through the storage service; rows are flushed into the
    request's transaction and committed by the router.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.storage = get_storage_service()
        self.galleries = GalleryService(db)

    async def get_owned_photo(self, owner: Photographer, photo_id: int) -> Tuple[Photo, Gallery]:
        """
        Load a photo through its gallery's ownership.

        Raises:
            NotFound: no such photo
            Forbidden: the photo's gallery belongs to another photographer
        """
        result = await self.db.execute(
            select(Photo, Gallery)
            .join(Gallery, Photo.gallery_id == Gallery.id)
            .where(Photo.id == photo_id)
        )
        row = result.first()
        if row is None:
            raise NotFound("Photo not found")
        photo, gallery = row
        if gallery.photographer_id != owner.id:
            log_warning("Photo access denied", event="photo", photo_id=photo_id, photographer_id=owner.id)
            raise Forbidden("You do not have access to this photo")
        return photo, gallery

    async def upload_photos(
        self,
        gallery: Gallery,
        uploads: Sequence[ValidatedUpload],
    ) -> List[Photo]:
        """
        Store each binary and create its Photo row. The caller has already
        checked that the gallery belongs to the uploader.

        If any upload fails, binaries already stored by this call are removed
        and the error propagates; no rows survive (the transaction rolls back).
        """
        if not uploads:
            raise ValidationError("No files uploaded", field="photos")

        stored: List[str] = []
        photos: List[Photo] = []
        try:
            for upload in uploads:
                storage_path = await self.storage.upload_file(
                    upload.content,
                    upload.filename,
                    upload.content_type,
                    gallery.id,
                )
                stored.append(storage_path)
                photo = Photo(
                    gallery_id=gallery.id,
                    filename=upload.filename,
                    storage_path=storage_path,
                    size=upload.size,
                )
                self.db.add(photo)
                photos.append(photo)
        except StorageError:
            await self.remove_binaries(stored)
            raise

        await self.db.flush()
        for photo in photos:
            await self.db.refresh(photo)

        log_info(
            "Photos uploaded",
            event="photo",
            gallery_id=gallery.id,
            count=len(photos),
            total_bytes=sum(u.size for u in uploads),
        )
        return photos

    async def create_from_metadata(
        self,
        owner: Photographer,
        gallery_id: int,
        data: PhotoMetadataCreate,
    ) -> Photo:
        """
        Register a photo the browser already uploaded to the CDN.

        Raises:
            DirectUploadUnavailable: Cloudinary is not configured
            ValidationError: the URL is not an upload into this gallery's folder
        """
        gallery = await self.galleries.get_owned_gallery(owner, gallery_id)
        self.storage.check_direct_upload_url(data.storage_path, gallery.id)

        photo = Photo(
            gallery_id=gallery.id,
            filename=data.filename,
            storage_path=data.storage_path,
            size=data.size,
        )
        self.db.add(photo)
        await self.db.flush()
        await self.db.refresh(photo)
        log_info("Photo registered", event="photo", gallery_id=gallery.id, photo_id=photo.id)
        return photo

    async def replace_photo(
        self,
        owner: Photographer,
        photo_id: int,
        upload: ValidatedUpload,
    ) -> Tuple[Photo, str]:
        """
        Swap the binary behind an existing photo. The id stays the same, so
        a cover reference to it survives.

        Returns:
            (photo, storage path of the previous binary)
        """
        photo, gallery = await self.get_owned_photo(owner, photo_id)

        new_path = await self.storage.upload_file(
            upload.content,
            upload.filename,
            upload.content_type,
            gallery.id,
        )
        old_path = photo.storage_path

        photo.filename = upload.filename
        photo.storage_path = new_path
        photo.size = upload.size
        await self.db.flush()
        await self.db.refresh(photo)

        log_info("Photo replaced", event="photo", gallery_id=gallery.id, photo_id=photo.id)
        return photo, old_path

    async def delete_photo(self, owner: Photographer, photo_id: int) -> str:
        """
        Delete the row and clear the gallery's cover if it pointed here,
        in the same transaction.

        Returns:
            storage path of the deleted binary
        """
        photo, gallery = await self.get_owned_photo(owner, photo_id)
        storage_path = photo.storage_path

        await self.db.execute(
            update(Gallery)
            .where(Gallery.id == gallery.id, Gallery.cover_photo_id == photo.id)
            .values(cover_photo_id=None)
        )
        await self.db.delete(photo)
        await self.db.flush()

        log_info("Photo deleted", event="photo", gallery_id=gallery.id, photo_id=photo_id)
        return storage_path

    async def remove_binaries(self, storage_paths: Iterable[str]) -> int:
        """Best-effort binary cleanup. Returns how many were removed."""
        removed = 0
        for path in storage_paths:
            if await self.storage.delete_file(path):
                removed += 1
        return removed
