"""
Pydantic schemas package.
All schemas are exported here for easy import.
"""
from lumina.schemas.base import CamelModel, MessageResponse
from lumina.schemas.photographer import (
    RegisterRequest,
    LoginRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    PhotographerResponse,
    AuthResponse,
    TokenPayload,
)
from lumina.schemas.photo import (
    PhotoResponse,
    PhotoMetadataCreate,
    UploadSignatureResponse,
)
from lumina.schemas.gallery import (
    GalleryCreate,
    GalleryUpdate,
    GalleryResponse,
    GalleryWithPhotos,
    CoverPhotoUpdate,
    CoverPhotoResponse,
)
from lumina.schemas.share import (
    SharedPhoto,
    SharedGalleryResponse,
    PinVerifyRequest,
    PinVerifyResponse,
    BulkDownloadRequest,
)
from lumina.schemas.invoice import (
    InvoiceCreate,
    InvoiceResponse,
    InvoiceGallerySummary,
    InvoiceWithGallery,
)

__all__ = [
    "CamelModel",
    "MessageResponse",
    # Auth schemas
    "RegisterRequest",
    "LoginRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    "PhotographerResponse",
    "AuthResponse",
    "TokenPayload",
    # Photo schemas
    "PhotoResponse",
    "PhotoMetadataCreate",
    "UploadSignatureResponse",
    # Gallery schemas
    "GalleryCreate",
    "GalleryUpdate",
    "GalleryResponse",
    "GalleryWithPhotos",
    "CoverPhotoUpdate",
    "CoverPhotoResponse",
    # Share schemas
    "SharedPhoto",
    "SharedGalleryResponse",
    "PinVerifyRequest",
    "PinVerifyResponse",
    "BulkDownloadRequest",
    # Invoice schemas
    "InvoiceCreate",
    "InvoiceResponse",
    "InvoiceGallerySummary",
    "InvoiceWithGallery",
]
