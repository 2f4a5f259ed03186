"""
Public share-link access: gallery view by token and PIN-gated downloads.
"""
import asyncio
import tempfile
import zipfile
from pathlib import PurePath
from typing import IO, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lumina.config import get_settings
from lumina.exceptions import Forbidden, NotFound, ValidationError
from lumina.models.gallery import Gallery
from lumina.models.photo import Photo
from lumina.models.photographer import Photographer
from lumina.schemas.share import SharedGalleryResponse, SharedPhoto
from lumina.services.gallery import GalleryService
from lumina.services.storage import StorageService, get_storage_service, is_remote_path
from lumina.utils.logger import log_info, log_warning
from lumina.utils.security import pin_matches


# 이 크기를 넘으면 ZIP을 디스크로 넘김
ARCHIVE_SPOOL_BYTES = 16 * 1024 * 1024


def shared_image_url(storage: StorageService, token: str, photo: Photo) -> str:
    """
    Viewing URL for the client gallery. Never the original: CDN photos get a
    downscaled derived URL, local ones go through the share preview route.
    """
    if is_remote_path(photo.storage_path):
        return storage.preview_url(photo.storage_path)
    return f"/api/share/{token}/photos/{photo.id}/image"


def _unique_archive_name(filename: str, used: Set[str]) -> str:
    name = PurePath(filename).name or "photo"
    if name not in used:
        used.add(name)
        return name
    stem, suffix = PurePath(name).stem, PurePath(name).suffix
    n = 2
    while f"{stem} ({n}){suffix}" in used:
        n += 1
    unique = f"{stem} ({n}){suffix}"
    used.add(unique)
    return unique


class ShareService:
    """
    Service behind the public /api/share routes.
    No ownership checks here: possession of the token is the credential.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.storage = get_storage_service()
        self.galleries = GalleryService(db)

    async def get_gallery_by_token(self, token: str) -> Tuple[Gallery, str]:
        """
        Returns:
            (gallery, owner's business name)

        Raises:
            NotFound: no gallery has this token
        """
        result = await self.db.execute(
            select(Gallery, Photographer.business_name)
            .join(Photographer, Gallery.photographer_id == Photographer.id)
            .where(Gallery.share_token == token)
        )
        row = result.first()
        if row is None:
            raise NotFound("Gallery not found")
        return row[0], row[1]

    async def get_shared_gallery(self, token: str) -> SharedGalleryResponse:
        """Public gallery view. Omits the PIN and the owner id."""
        gallery, business_name = await self.get_gallery_by_token(token)
        photos = await self.galleries.get_gallery_photos(gallery.id)

        return SharedGalleryResponse(
            id=gallery.id,
            title=gallery.title,
            client_name=gallery.client_name,
            business_name=business_name,
            share_token=gallery.share_token,
            cover_photo_id=gallery.cover_photo_id,
            pin_required=bool(gallery.download_pin),
            photo_count=len(photos),
            photos=[
                SharedPhoto(
                    id=p.id,
                    filename=p.filename,
                    size=p.size,
                    url=shared_image_url(self.storage, gallery.share_token, p),
                    created_at=p.created_at,
                )
                for p in photos
            ],
            created_at=gallery.created_at,
        )

    def check_pin(self, gallery: Gallery, pin: Optional[str]) -> None:
        """
        Raises:
            Forbidden: the gallery has a PIN and ``pin`` does not match it
        """
        if not pin_matches(gallery.download_pin, pin):
            log_warning("PIN verification failed", event="share", gallery_id=gallery.id)
            raise Forbidden("Invalid PIN", field="pin")

    async def get_shared_photo(self, gallery: Gallery, photo_id: int) -> Photo:
        result = await self.db.execute(
            select(Photo).where(Photo.id == photo_id, Photo.gallery_id == gallery.id)
        )
        photo = result.scalar_one_or_none()
        if photo is None:
            raise NotFound("Photo not found in this gallery")
        return photo

    async def select_download_photos(
        self,
        gallery: Gallery,
        photo_ids: Optional[Sequence[int]],
    ) -> List[Photo]:
        """
        Photos for a bulk download: the requested ids, or every photo when none given.

        Raises:
            NotFound: an id is not one of the gallery's photos, or nothing to download
        """
        photos = await self.galleries.get_gallery_photos(gallery.id)
        if photo_ids:
            wanted = set(photo_ids)
            photos = [p for p in photos if p.id in wanted]
            if len(photos) != len(wanted):
                raise NotFound("Photo not found in this gallery", field="photoIds")
        if not photos:
            raise NotFound("This gallery has no photos")
        return photos

    def _archive_limit_error(self) -> ValidationError:
        limit_mb = self.settings.max_archive_size_bytes // (1024 * 1024)
        return ValidationError(
            f"Selected photos exceed the {limit_mb}MB archive limit. Download them in smaller batches",
            field="photoIds",
        )

    async def build_archive(self, gallery: Gallery, photos: Sequence[Photo]) -> IO[bytes]:
        """
        ZIP the originals into a spooled temp file (memory, then disk past 16MB).

        Duplicate filenames get " (2)", " (3)" suffixes.

        Returns:
            the archive, rewound; the caller closes it

        Raises:
            ValidationError: the photos add up to more than MAX_ARCHIVE_SIZE_BYTES
            StorageError: a photo could not be read
        """
        limit = self.settings.max_archive_size_bytes
        if sum(p.size or 0 for p in photos) > limit:
            log_warning("Archive too large", event="share", gallery_id=gallery.id, photo_count=len(photos))
            raise self._archive_limit_error()

        spool = tempfile.SpooledTemporaryFile(max_size=ARCHIVE_SPOOL_BYTES)
        try:
            used: Set[str] = set()
            written = 0
            with zipfile.ZipFile(spool, "w", zipfile.ZIP_STORED) as archive:
                for photo in photos:
                    content = await self.storage.read_file(photo.storage_path)
                    # 저장된 size 값과 실제 크기가 다를 수 있음
                    written += len(content)
                    if written > limit:
                        raise self._archive_limit_error()
                    name = _unique_archive_name(photo.filename, used)
                    await asyncio.to_thread(archive.writestr, name, content)
        except Exception:
            spool.close()
            raise

        spool.seek(0)
        log_info(
            "Archive built",
            event="share",
            gallery_id=gallery.id,
            photo_count=len(photos),
            size_bytes=written,
        )
        return spool
