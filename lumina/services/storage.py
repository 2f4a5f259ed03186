"""
Photo binary storage.

Cloudinary (REST upload/destroy API over httpx) when configured, otherwise
the local upload directory. Photo.storage_path is either the CDN URL or the
local file path; delete/read dispatch on that.

참조: https://cloudinary.com/documentation/image_upload_api_reference
"""
import asyncio
import hashlib
import io
import logging
import time
import uuid
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from lumina.config import get_settings
from lumina.exceptions import LuminaError, ValidationError
from lumina.utils.prometheus_metrics import record_external_request

logger = logging.getLogger("lumina.storage")

# Cloudinary 서명에서 제외되는 파라미터
_UNSIGNED_PARAMS = frozenset({"file", "api_key", "resource_type", "cloud_name"})


class StorageError(LuminaError):
    """The image host rejected or failed an upload."""

    status_code = 502
    default_message = "Image upload failed"


class DirectUploadUnavailable(LuminaError):
    """Direct browser uploads need Cloudinary credentials."""

    status_code = 503
    default_message = "Direct upload is not configured"


def is_remote_path(storage_path: str) -> bool:
    return storage_path.startswith(("http://", "https://"))


def sign_params(params: Dict[str, object], api_secret: str) -> str:
    """
    Cloudinary request signature.
    sha1("k1=v1&k2=v2..." + api_secret), keys sorted, empty values dropped.
    """
    to_sign = "&".join(
        f"{key}={params[key]}"
        for key in sorted(params)
        if key not in _UNSIGNED_PARAMS and params[key] not in (None, "")
    )
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


def public_id_from_url(url: str) -> Optional[str]:
    """
    Extract the Cloudinary public_id from a delivery URL.

    https://res.cloudinary.com/demo/image/upload/v1712/lumina/galleries/3/abc.jpg
    → "lumina/galleries/3/abc"
    """
    path = urlparse(url).path
    marker = "/upload/"
    if marker not in path:
        return None
    rest = path.split(marker, 1)[1]
    segments = [s for s in rest.split("/") if s]
    # 버전 세그먼트(v1234) 제거
    if segments and segments[0].startswith("v") and segments[0][1:].isdigit():
        segments = segments[1:]
    if not segments:
        return None
    segments[-1] = segments[-1].rsplit(".", 1)[0]
    return "/".join(segments)


def cloudinary_preview_url(url: str, max_side: int) -> str:
    """
    Derived delivery URL, downscaled by Cloudinary.

    .../image/upload/v1712/lumina/a.jpg → .../image/upload/c_limit,w_1200,h_1200/v1712/lumina/a.jpg
    """
    head, marker, tail = url.partition("/upload/")
    if not marker:
        return url
    return f"{head}/upload/c_limit,w_{max_side},h_{max_side}/{tail}"


def make_preview(content: bytes, max_side: int, quality: int) -> Optional[bytes]:
    """
    Re-encode an image as a downscaled JPEG. Blocking; call from a worker thread.

    Returns:
        JPEG bytes, or None when the image cannot be decoded (e.g. HEIC)
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            img = ImageOps.exif_transpose(img)
            img.thumbnail((max_side, max_side))
            if img.mode != "RGB":
                img = img.convert("RGB")
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=quality)
            return out.getvalue()
    except (UnidentifiedImageError, OSError, ValueError):
        return None


class StorageService:
    """
    Stores and removes photo binaries.

    저장 경로 규칙:
    - Cloudinary: {folder}/galleries/{gallery_id}/{uuid}
    - 로컬: {upload_dir}/galleries/{gallery_id}/{uuid}{ext}
    """

    def __init__(self):
        self.settings = get_settings()
        self.upload_root = Path(self.settings.upload_dir).resolve()

    @property
    def uses_cloudinary(self) -> bool:
        return self.settings.cloudinary_enabled

    def _api_url(self, action: str) -> str:
        base = self.settings.cloudinary_api_url.rstrip("/")
        return f"{base}/{self.settings.cloudinary_cloud_name}/image/{action}"

    def gallery_folder(self, gallery_id: int) -> str:
        return f"{self.settings.cloudinary_folder}/galleries/{gallery_id}"

    def is_hosted_url(self, url: str) -> bool:
        """True only for https URLs under our own Cloudinary delivery path."""
        if not self.uses_cloudinary:
            return False
        parsed = urlparse(url)
        try:
            port = parsed.port
        except ValueError:
            return False
        prefix = f"/{self.settings.cloudinary_cloud_name}/image/upload/"
        return (
            parsed.scheme == "https"
            and parsed.hostname == self.settings.cloudinary_delivery_host
            and port is None
            and parsed.path.startswith(prefix)
            and ".." not in parsed.path.split("/")
        )

    def check_direct_upload_url(self, url: str, gallery_id: int) -> None:
        """
        Accept a browser-reported upload URL only if it points into this
        gallery's Cloudinary folder.

        Raises:
            DirectUploadUnavailable: Cloudinary is not configured
            ValidationError: any other host or folder
        """
        if not self.uses_cloudinary:
            raise DirectUploadUnavailable()
        public_id = public_id_from_url(url) if self.is_hosted_url(url) else None
        if public_id is None or not public_id.startswith(f"{self.gallery_folder(gallery_id)}/"):
            logger.warning("Rejected direct upload URL", extra={"event": "storage", "gallery_id": gallery_id})
            raise ValidationError("Photo URL is not an upload for this gallery", field="storagePath")

    def preview_url(self, url: str) -> str:
        return cloudinary_preview_url(url, self.settings.preview_max_side)

    async def preview(self, storage_path: str) -> Optional[bytes]:
        """Downscaled JPEG of a local photo, or None if it cannot be decoded."""
        content = await self.read_file(storage_path)
        return await asyncio.to_thread(
            make_preview,
            content,
            self.settings.preview_max_side,
            self.settings.preview_jpeg_quality,
        )

    async def upload_file(
        self,
        file_content: bytes,
        filename: str,
        content_type: str,
        gallery_id: int,
    ) -> str:
        """
        Store one binary and return its storage path (CDN URL or local path).

        Raises:
            StorageError: the image host did not accept the file
        """
        if self.uses_cloudinary:
            return await self._upload_cloudinary(file_content, filename, content_type, gallery_id)
        return await asyncio.to_thread(self._write_local, file_content, filename, gallery_id)

    async def _upload_cloudinary(
        self,
        file_content: bytes,
        filename: str,
        content_type: str,
        gallery_id: int,
    ) -> str:
        params: Dict[str, object] = {
            "timestamp": int(time.time()),
            "folder": self.gallery_folder(gallery_id),
            "public_id": uuid.uuid4().hex,
        }
        params["signature"] = sign_params(params, self.settings.cloudinary_api_secret)
        params["api_key"] = self.settings.cloudinary_api_key

        try:
            async with record_external_request("cloudinary"):
                async with httpx.AsyncClient(timeout=60.0) as client:
                    response = await client.post(
                        self._api_url("upload"),
                        data={k: str(v) for k, v in params.items()},
                        files={"file": (filename, file_content, content_type)},
                    )
                    response.raise_for_status()
                    body = response.json()
        except httpx.TimeoutException as e:
            logger.error("Image upload timeout", extra={"event": "storage", "gallery_id": gallery_id})
            raise StorageError("Image upload timed out") from e
        except httpx.HTTPError as e:
            logger.error(
                "Image upload failed",
                exc_info=e,
                extra={"event": "storage", "gallery_id": gallery_id},
            )
            raise StorageError() from e

        url = body.get("secure_url") or body.get("url")
        if not url:
            logger.error("Image upload returned no URL", extra={"event": "storage", "gallery_id": gallery_id})
            raise StorageError()
        return url

    def _write_local(self, file_content: bytes, filename: str, gallery_id: int) -> str:
        directory = self.upload_root / "galleries" / str(gallery_id)
        directory.mkdir(parents=True, exist_ok=True)
        ext = Path(filename).suffix.lower()
        path = directory / f"{uuid.uuid4().hex}{ext}"
        try:
            path.write_bytes(file_content)
        except OSError as e:
            logger.error("Local write failed", exc_info=e, extra={"event": "storage", "gallery_id": gallery_id})
            raise StorageError() from e
        return str(path)

    def _local_path(self, storage_path: str) -> Optional[Path]:
        """Resolve a local storage path, refusing anything outside upload_dir."""
        path = Path(storage_path).resolve()
        if self.upload_root != path and self.upload_root not in path.parents:
            return None
        return path

    def local_file(self, storage_path: str) -> Optional[Path]:
        """Existing local file for a storage path, or None."""
        if is_remote_path(storage_path):
            return None
        path = self._local_path(storage_path)
        if path is None or not path.is_file():
            return None
        return path

    async def read_file(self, storage_path: str) -> bytes:
        """
        Fetch a stored binary (used to build ZIP archives).

        Raises:
            StorageError: the file could not be fetched
        """
        if is_remote_path(storage_path):
            if not self.is_hosted_url(storage_path):
                logger.warning("Refusing to fetch foreign URL", extra={"event": "storage"})
                raise StorageError("Stored file is not on the image host")
            try:
                async with record_external_request("cloudinary"):
                    async with httpx.AsyncClient(timeout=60.0) as client:
                        response = await client.get(storage_path)
                        response.raise_for_status()
                        return response.content
            except httpx.HTTPError as e:
                logger.error("Image fetch failed", exc_info=e, extra={"event": "storage"})
                raise StorageError("Image fetch failed") from e

        path = self.local_file(storage_path)
        if path is None:
            raise StorageError("Stored file is missing")
        return await asyncio.to_thread(path.read_bytes)

    async def delete_file(self, storage_path: str) -> bool:
        """
        Best-effort removal of a stored binary. Never raises.

        Returns:
            True if the binary is gone (or was already gone)
        """
        if is_remote_path(storage_path):
            return await self._delete_cloudinary(storage_path)

        path = self._local_path(storage_path)
        if path is None:
            logger.warning("Refusing to delete path outside upload dir", extra={"event": "storage"})
            return False
        try:
            await asyncio.to_thread(path.unlink, True)
            return True
        except OSError as e:
            logger.error("Local delete failed", exc_info=e, extra={"event": "storage"})
            return False

    async def _delete_cloudinary(self, url: str) -> bool:
        public_id = public_id_from_url(url)
        if not self.uses_cloudinary or public_id is None:
            # 다른 호스트의 URL이거나 Cloudinary 미설정: 지울 수 없음
            return False

        params: Dict[str, object] = {"public_id": public_id, "timestamp": int(time.time())}
        params["signature"] = sign_params(params, self.settings.cloudinary_api_secret)
        params["api_key"] = self.settings.cloudinary_api_key

        try:
            async with record_external_request("cloudinary"):
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.post(
                        self._api_url("destroy"),
                        data={k: str(v) for k, v in params.items()},
                    )
                    response.raise_for_status()
                    result = response.json().get("result")
        except httpx.HTTPError as e:
            logger.error("Image delete failed", exc_info=e, extra={"event": "storage", "public_id": public_id})
            return False

        return result in ("ok", "not found")

    def upload_signature(self, gallery_id: int) -> Dict[str, object]:
        """
        Signed parameters for a direct browser upload into the gallery folder.

        Raises:
            DirectUploadUnavailable: Cloudinary is not configured
        """
        if not self.uses_cloudinary:
            raise DirectUploadUnavailable()

        params: Dict[str, object] = {
            "timestamp": int(time.time()),
            "folder": self.gallery_folder(gallery_id),
        }
        return {
            "upload_url": self._api_url("upload"),
            "cloud_name": self.settings.cloudinary_cloud_name,
            "api_key": self.settings.cloudinary_api_key,
            "timestamp": params["timestamp"],
            "folder": params["folder"],
            "signature": sign_params(params, self.settings.cloudinary_api_secret),
        }


# Singleton instance
_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    """Get the singleton storage service instance."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
