"""
Share router for public gallery access.

No authentication: the share token is the credential. Viewing serves
downscaled previews only; originals (single or ZIP) require the gallery's
PIN on every request.
"""
import logging
import mimetypes
from typing import IO, Iterator, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import FileResponse, RedirectResponse, Response, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from lumina.config import get_settings
from lumina.database import get_db
from lumina.exceptions import Forbidden, LuminaError, NotFound
from lumina.middlewares.rate_limit import get_rate_limit_decorator
from lumina.models.photo import Photo
from lumina.schemas import (
    BulkDownloadRequest,
    PinVerifyRequest,
    PinVerifyResponse,
    SharedGalleryResponse,
)
from lumina.services.share import ShareService
from lumina.services.storage import is_remote_path
from lumina.utils.prometheus_metrics import (
    pin_verification_total,
    share_access_total,
    share_download_total,
)

logger = logging.getLogger("lumina.share")
router = APIRouter(prefix="/api/share", tags=["Shared Galleries"])

settings = get_settings()
share_rate_limit = get_rate_limit_decorator(f"{settings.rate_limit_share_per_minute}/minute")
pin_rate_limit = get_rate_limit_decorator(f"{settings.rate_limit_pin_per_minute}/minute")


def _serve_photo(share: ShareService, photo: Photo, disposition: str) -> Response:
    """Original binary: CDN photos → 302 redirect; local photos → file response."""
    if is_remote_path(photo.storage_path):
        if not share.storage.is_hosted_url(photo.storage_path):
            logger.error("Shared photo URL is not on the image host", extra={"event": "share", "photo_id": photo.id})
            raise NotFound("Photo file not found")
        return RedirectResponse(url=photo.storage_path, status_code=status.HTTP_302_FOUND)

    path = share.storage.local_file(photo.storage_path)
    if path is None:
        logger.error("Shared photo file missing", extra={"event": "share", "photo_id": photo.id})
        raise NotFound("Photo file not found")

    media_type, _ = mimetypes.guess_type(photo.filename)
    return FileResponse(
        path,
        media_type=media_type or "application/octet-stream",
        filename=photo.filename,
        content_disposition_type=disposition,
        headers={"Cache-Control": "private, max-age=60"},
    )


def _iter_archive(archive: IO[bytes], chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    try:
        yield from iter(lambda: archive.read(chunk_size), b"")
    finally:
        archive.close()


@router.get(
    "/{token}",
    response_model=SharedGalleryResponse,
    summary="Open a shared gallery",
)
@share_rate_limit
async def get_shared_gallery(
    token: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> SharedGalleryResponse:
    """
    Gallery and photos for the client view.

    The download PIN is never included; **pinRequired** tells the client
    whether downloads will ask for one.
    """
    try:
        shared = await ShareService(db).get_shared_gallery(token)
    except NotFound:
        share_access_total.labels(result="not_found").inc()
        raise
    share_access_total.labels(result="success").inc()
    return shared


@router.post(
    "/{token}/verify-pin",
    response_model=PinVerifyResponse,
    summary="Check a download PIN",
)
@pin_rate_limit
async def verify_pin(
    token: str,
    data: PinVerifyRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> PinVerifyResponse:
    """403 on a wrong PIN."""
    share = ShareService(db)
    gallery, _ = await share.get_gallery_by_token(token)
    try:
        share.check_pin(gallery, data.pin)
    except Forbidden:
        pin_verification_total.labels(result="invalid").inc()
        raise
    pin_verification_total.labels(result="valid").inc()
    return PinVerifyResponse(valid=True)


@router.get(
    "/{token}/photos/{photo_id}/image",
    summary="View a shared photo",
)
@share_rate_limit
async def get_shared_photo_image(
    token: str,
    photo_id: int,
    request: Request,
    pin: Optional[str] = Query(None, description="Only needed when no preview can be made"),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """
    Downscaled JPEG preview for the gallery view; no PIN needed.

    CDN photos redirect to a resized derived URL. If a local photo cannot be
    decoded into a preview (e.g. HEIC), the original is served only with the
    gallery's PIN.
    """
    share = ShareService(db)
    gallery, _ = await share.get_gallery_by_token(token)
    photo = await share.get_shared_photo(gallery, photo_id)

    if is_remote_path(photo.storage_path):
        if not share.storage.is_hosted_url(photo.storage_path):
            raise NotFound("Photo file not found")
        return RedirectResponse(
            url=share.storage.preview_url(photo.storage_path),
            status_code=status.HTTP_302_FOUND,
        )

    if share.storage.local_file(photo.storage_path) is None:
        logger.error("Shared photo file missing", extra={"event": "share", "photo_id": photo.id})
        raise NotFound("Photo file not found")

    preview = await share.storage.preview(photo.storage_path)
    if preview is None:
        share.check_pin(gallery, pin)
        return _serve_photo(share, photo, disposition="inline")

    return Response(
        content=preview,
        media_type="image/jpeg",
        headers={
            "Content-Disposition": "inline",
            "Cache-Control": "private, max-age=300",
        },
    )


@router.get(
    "/{token}/photos/{photo_id}/download",
    summary="Download one shared photo",
)
@pin_rate_limit
async def download_shared_photo(
    token: str,
    photo_id: int,
    request: Request,
    pin: Optional[str] = Query(None, description="4-digit download PIN"),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """
    Download a single photo. The PIN is checked server side; a wrong or
    missing PIN is a 403.
    """
    share = ShareService(db)
    try:
        gallery, _ = await share.get_gallery_by_token(token)
        share.check_pin(gallery, pin)
        photo = await share.get_shared_photo(gallery, photo_id)
        response = _serve_photo(share, photo, disposition="attachment")
    except LuminaError:
        share_download_total.labels(kind="single", result="failure").inc()
        raise
    share_download_total.labels(kind="single", result="success").inc()
    return response


@router.post(
    "/{token}/download",
    summary="Download shared photos as a ZIP archive",
)
@pin_rate_limit
async def download_shared_photos(
    token: str,
    data: BulkDownloadRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """
    ZIP of **photoIds** (default: every photo in the gallery), streamed.
    Requires the PIN when the gallery has one; 400 past the archive size limit.
    """
    share = ShareService(db)
    try:
        gallery, _ = await share.get_gallery_by_token(token)
        share.check_pin(gallery, data.pin)
        photos = await share.select_download_photos(gallery, data.photo_ids)
        archive = await share.build_archive(gallery, photos)
    except LuminaError:
        share_download_total.labels(kind="bulk", result="failure").inc()
        raise

    share_download_total.labels(kind="bulk", result="success").inc()
    archive_name = "".join(c if c.isalnum() or c in "-_" else "_" for c in gallery.title) or "gallery"
    return StreamingResponse(
        _iter_archive(archive),
        media_type="application/zip",
        headers={
            "Content-Disposition": f"attachment; filename={archive_name}_photos.zip",
            "Access-Control-Expose-Headers": "Content-Disposition",
        },
    )
