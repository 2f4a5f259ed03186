"""
Security utility functions for password hashing, JWT tokens and share secrets.
"""
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from lumina.config import get_settings
from lumina.schemas.photographer import TokenPayload

settings = get_settings()

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Hashed password to compare against

    Returns:
        True if password matches
    """
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    photographer_id: int,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        photographer_id: Photographer ID to encode as the subject
        email: Optional email claim
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    expire = datetime.now(timezone.utc) + expires_delta

    to_encode = {
        "sub": str(photographer_id),  # JWT subject must be a string
        "exp": expire,
    }
    if email:
        to_encode["email"] = email

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Optional[TokenPayload]:
    """
    Decode and validate a JWT access token.

    Returns:
        TokenPayload if valid, None if invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        sub = payload.get("sub")
        exp = payload.get("exp")
        if sub is None or exp is None:
            return None

        return TokenPayload(
            sub=int(sub),
            email=payload.get("email"),
            exp=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
    except (JWTError, ValueError, TypeError):
        return None


def generate_share_token() -> str:
    """Random 32-char hex token for public share links."""
    return secrets.token_hex(16)


def generate_download_pin() -> str:
    """Random 4-digit numeric PIN (leading zeros allowed)."""
    return f"{secrets.randbelow(10_000):04d}"


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def pin_matches(expected: Optional[str], supplied: Optional[str]) -> bool:
    """
    Constant-time PIN comparison.
    A gallery without a PIN accepts any (or no) PIN.
    """
    if not expected:
        return True
    if not supplied:
        return False
    return hmac.compare_digest(expected.encode(), supplied.encode())
