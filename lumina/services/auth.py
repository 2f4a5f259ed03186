"""
Authentication service for photographer accounts.
"""
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lumina.config import get_settings
from lumina.exceptions import Unauthorized, ValidationError
from lumina.models.photographer import Photographer
from lumina.schemas.photographer import RegisterRequest
from lumina.services.email import EmailDeliveryError, get_email_service
from lumina.utils.logger import log_info, log_warning, log_error
from lumina.utils.security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    verify_password,
)
from lumina.utils.timeutil import utcnow

INVALID_RESET_TOKEN = "Invalid or expired reset token"


async def send_reset_email(photographer_id: int, email: str, business_name: str, token: str) -> bool:
    """
    Send the reset link. Delivery failures are logged, never raised.
    Takes plain values: it runs as a background task after the session is closed.
    """
    try:
        await get_email_service().send_password_reset_email(email, business_name, token)
    except EmailDeliveryError:
        log_error("Password reset email failed", event="auth", photographer_id=photographer_id)
        return False
    return True


class AuthService:
    """
    Service for photographer authentication.
    Registration, login, token lookup and password reset.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def register(self, data: RegisterRequest) -> Tuple[Photographer, str]:
        """
        Register a new photographer.

        Returns:
            (photographer, access token)

        Raises:
            ValidationError: email already registered
        """
        email = data.email.lower()
        if await self.get_photographer_by_email(email):
            log_warning("Registration failed", event="auth", reason="email_exists")
            raise ValidationError("Email already registered", field="email")

        photographer = Photographer(
            email=email,
            business_name=data.business_name.strip(),
            password_hash=hash_password(data.password),
        )
        self.db.add(photographer)
        try:
            await self.db.flush()
        except IntegrityError:
            # 동시 가입 경쟁: unique 제약이 최종 판정
            await self.db.rollback()
            log_warning("Registration failed", event="auth", reason="email_exists_race")
            raise ValidationError("Email already registered", field="email")

        await self.db.refresh(photographer)
        log_info("Registration", event="auth", photographer_id=photographer.id)
        return photographer, self.issue_token(photographer)

    async def login(self, email: str, password: str) -> Tuple[Photographer, str]:
        """
        Check credentials and issue a token.

        Raises:
            Unauthorized: unknown email or wrong password (same message for both)
        """
        photographer = await self.get_photographer_by_email(email.lower())
        if photographer is None:
            log_warning("Login failed", event="auth", reason="user_not_found")
            raise Unauthorized("Invalid credentials")
        if not verify_password(password, photographer.password_hash):
            log_warning("Login failed", event="auth", reason="invalid_password", photographer_id=photographer.id)
            raise Unauthorized("Invalid credentials")

        log_info("Login", event="auth", photographer_id=photographer.id)
        return photographer, self.issue_token(photographer)

    def issue_token(self, photographer: Photographer) -> str:
        return create_access_token(photographer.id, email=photographer.email)

    async def get_photographer_by_id(self, photographer_id: int) -> Optional[Photographer]:
        result = await self.db.execute(
            select(Photographer).where(Photographer.id == photographer_id)
        )
        return result.scalar_one_or_none()

    async def get_photographer_by_email(self, email: str) -> Optional[Photographer]:
        result = await self.db.execute(
            select(Photographer).where(Photographer.email == email)
        )
        return result.scalar_one_or_none()

    async def request_password_reset(self, email: str) -> Optional[Tuple[Photographer, str]]:
        """
        Store a fresh single-use reset token on the account, if it exists.

        The caller answers with the same message either way; unknown emails
        return None without any side effect.
        """
        photographer = await self.get_photographer_by_email(email.lower())
        if photographer is None:
            log_info("Password reset requested for unknown account", event="auth")
            return None

        token = generate_reset_token()
        photographer.reset_token = token
        photographer.reset_token_expiry = utcnow() + timedelta(
            minutes=self.settings.reset_token_expire_minutes
        )
        await self.db.flush()
        log_info("Password reset requested", event="auth", photographer_id=photographer.id)
        return photographer, token

    async def reset_password(self, token: str, new_password: str) -> Photographer:
        """
        Consume a reset token and set a new password.

        Raises:
            ValidationError: token unknown, already used or past its expiry
        """
        result = await self.db.execute(
            select(Photographer).where(Photographer.reset_token == token)
        )
        photographer = result.scalar_one_or_none()
        if photographer is None:
            log_warning("Password reset failed", event="auth", reason="unknown_token")
            raise ValidationError(INVALID_RESET_TOKEN, field="token")

        expiry = photographer.reset_token_expiry
        if expiry is None or utcnow() > expiry:
            log_warning(
                "Password reset failed",
                event="auth",
                reason="expired_token",
                photographer_id=photographer.id,
            )
            raise ValidationError(INVALID_RESET_TOKEN, field="token")

        photographer.password_hash = hash_password(new_password)
        photographer.reset_token = None
        photographer.reset_token_expiry = None
        await self.db.flush()
        log_info("Password reset completed", event="auth", photographer_id=photographer.id)
        return photographer
