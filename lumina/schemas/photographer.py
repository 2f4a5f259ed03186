"""
Photographer/auth Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from lumina.schemas.base import CamelModel


class RegisterRequest(CamelModel):
    """Schema for photographer registration."""

    email: EmailStr
    business_name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=6, max_length=128)


class PhotographerResponse(CamelModel):
    """Photographer as returned to clients (no hash, no reset token)."""

    id: int
    email: str
    business_name: str
    created_at: datetime


class AuthResponse(CamelModel):
    """Token plus user, returned by register and login."""

    token: str
    user: PhotographerResponse


class TokenPayload(BaseModel):
    """Decoded JWT payload."""

    sub: int  # Photographer ID
    email: Optional[str] = None
    exp: datetime
