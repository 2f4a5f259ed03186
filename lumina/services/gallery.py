"""
Gallery service: ownership checks, CRUD, cover photo and the cascading delete.
"""
from collections import defaultdict
from typing import Dict, List, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lumina.exceptions import Forbidden, NotFound
from lumina.models.gallery import Gallery
from lumina.models.invoice import Invoice
from lumina.models.photo import Photo
from lumina.models.photographer import Photographer
from lumina.schemas.gallery import GalleryCreate, GalleryUpdate, GalleryWithPhotos
from lumina.schemas.photo import PhotoResponse
from lumina.utils.logger import log_info, log_warning
from lumina.utils.security import generate_download_pin, generate_share_token

# share_token 충돌 시 재시도 횟수 (128bit 랜덤이라 사실상 발생하지 않음)
MAX_TOKEN_ATTEMPTS = 5


def to_gallery_with_photos(gallery: Gallery, photos: Sequence[Photo]) -> GalleryWithPhotos:
    return GalleryWithPhotos(
        id=gallery.id,
        photographer_id=gallery.photographer_id,
        title=gallery.title,
        client_name=gallery.client_name,
        share_token=gallery.share_token,
        download_pin=gallery.download_pin,
        cover_photo_id=gallery.cover_photo_id,
        created_at=gallery.created_at,
        photos=[PhotoResponse.model_validate(p) for p in photos],
    )


class GalleryService:
    """
    Service for managing galleries.
    Every owner-scoped method goes through get_owned_gallery.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _share_token_exists(self, token: str) -> bool:
        result = await self.db.execute(
            select(Gallery.id).where(Gallery.share_token == token)
        )
        return result.first() is not None

    async def _new_share_token(self) -> str:
        for _ in range(MAX_TOKEN_ATTEMPTS):
            token = generate_share_token()
            if not await self._share_token_exists(token):
                return token
        raise RuntimeError("Could not generate a unique share token")

    async def create_gallery(self, owner: Photographer, data: GalleryCreate) -> Gallery:
        """
        Create a gallery with a fresh share token.
        A PIN is generated unless the request supplies one.
        """
        gallery = Gallery(
            photographer_id=owner.id,
            title=data.title.strip(),
            client_name=data.client_name.strip(),
            share_token=await self._new_share_token(),
            download_pin=data.download_pin or generate_download_pin(),
        )
        self.db.add(gallery)
        await self.db.flush()
        await self.db.refresh(gallery)
        log_info("Gallery created", event="gallery", gallery_id=gallery.id, photographer_id=owner.id)
        return gallery

    async def get_owned_gallery(self, owner: Photographer, gallery_id: int) -> Gallery:
        """
        Load a gallery for its owner.

        Raises:
            NotFound: no such gallery
            Forbidden: the gallery belongs to another photographer
        """
        result = await self.db.execute(select(Gallery).where(Gallery.id == gallery_id))
        gallery = result.scalar_one_or_none()
        if gallery is None:
            raise NotFound("Gallery not found")
        if gallery.photographer_id != owner.id:
            log_warning(
                "Gallery access denied",
                event="gallery",
                gallery_id=gallery_id,
                photographer_id=owner.id,
            )
            raise Forbidden("You do not have access to this gallery")
        return gallery

    async def get_gallery_photos(self, gallery_id: int) -> List[Photo]:
        """Photos of one gallery, newest first."""
        result = await self.db.execute(
            select(Photo)
            .where(Photo.gallery_id == gallery_id)
            .order_by(Photo.created_at.desc(), Photo.id.desc())
        )
        return list(result.scalars().all())

    async def get_gallery_with_photos(self, owner: Photographer, gallery_id: int) -> GalleryWithPhotos:
        gallery = await self.get_owned_gallery(owner, gallery_id)
        return to_gallery_with_photos(gallery, await self.get_gallery_photos(gallery.id))

    async def list_galleries(self, owner: Photographer) -> List[GalleryWithPhotos]:
        """All of the owner's galleries, newest first, each with its photos."""
        result = await self.db.execute(
            select(Gallery)
            .where(Gallery.photographer_id == owner.id)
            .order_by(Gallery.created_at.desc(), Gallery.id.desc())
        )
        galleries = list(result.scalars().all())
        if not galleries:
            return []

        photos_result = await self.db.execute(
            select(Photo)
            .where(Photo.gallery_id.in_([g.id for g in galleries]))
            .order_by(Photo.created_at.desc(), Photo.id.desc())
        )
        by_gallery: Dict[int, List[Photo]] = defaultdict(list)
        for photo in photos_result.scalars().all():
            by_gallery[photo.gallery_id].append(photo)

        return [to_gallery_with_photos(g, by_gallery[g.id]) for g in galleries]

    async def update_gallery(
        self,
        owner: Photographer,
        gallery_id: int,
        data: GalleryUpdate,
    ) -> Gallery:
        """Update title / client name / PIN. The share token is never touched."""
        gallery = await self.get_owned_gallery(owner, gallery_id)

        update_data = data.model_dump(exclude_unset=True)
        for field in ("title", "client_name"):
            value = update_data.get(field)
            if value is not None:
                setattr(gallery, field, value.strip())
        if "download_pin" in update_data:
            # null → PIN 해제
            gallery.download_pin = update_data["download_pin"]

        await self.db.flush()
        await self.db.refresh(gallery)
        return gallery

    async def set_cover_photo(self, owner: Photographer, gallery_id: int, photo_id: int) -> Gallery:
        """
        Raises:
            NotFound: the photo is not one of this gallery's photos
        """
        gallery = await self.get_owned_gallery(owner, gallery_id)

        result = await self.db.execute(
            select(Photo.id).where(Photo.id == photo_id, Photo.gallery_id == gallery.id)
        )
        if result.first() is None:
            raise NotFound("Photo not found in this gallery", field="photoId")

        gallery.cover_photo_id = photo_id
        await self.db.flush()
        log_info("Cover photo set", event="gallery", gallery_id=gallery.id, photo_id=photo_id)
        return gallery

    async def delete_gallery(self, owner: Photographer, gallery_id: int) -> List[str]:
        """
        Delete a gallery with its photos and invoices.

        All statements run in the caller's transaction, so the cascade is
        all-or-nothing. Binaries are not touched here.

        Returns:
            storage paths of the deleted photos (for best-effort cleanup after commit)
        """
        gallery = await self.get_owned_gallery(owner, gallery_id)

        paths_result = await self.db.execute(
            select(Photo.storage_path).where(Photo.gallery_id == gallery.id)
        )
        storage_paths = list(paths_result.scalars().all())

        # cover → photos 참조를 먼저 끊어야 FK 위반이 없음
        await self.db.execute(
            update(Gallery).where(Gallery.id == gallery.id).values(cover_photo_id=None)
        )
        await self.db.execute(delete(Invoice).where(Invoice.gallery_id == gallery.id))
        await self.db.execute(delete(Photo).where(Photo.gallery_id == gallery.id))
        await self.db.execute(delete(Gallery).where(Gallery.id == gallery.id))

        log_info(
            "Gallery deleted",
            event="gallery",
            gallery_id=gallery_id,
            photographer_id=owner.id,
            photo_count=len(storage_paths),
        )
        return storage_paths
