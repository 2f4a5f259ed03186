"""
Authentication router: registration, login, profile and password reset.
"""
import time

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from lumina.config import get_settings
from lumina.database import get_db
from lumina.dependencies.auth import get_current_photographer
from lumina.exceptions import LuminaError
from lumina.middlewares.rate_limit import get_rate_limit_decorator
from lumina.models.photographer import Photographer
from lumina.schemas import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    PhotographerResponse,
    RegisterRequest,
    ResetPasswordRequest,
)
from lumina.services.auth import AuthService, send_reset_email
from lumina.utils.prometheus_metrics import (
    login_duration_seconds,
    password_reset_total,
    user_login_total,
    user_registration_total,
)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

auth_rate_limit = get_rate_limit_decorator(f"{get_settings().rate_limit_auth_per_minute}/minute")

RESET_REQUESTED_MESSAGE = "If an account exists with that email, a password reset link has been sent."


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a photographer account",
)
@auth_rate_limit
async def register(
    data: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """
    Register a new photographer.

    - **email**: Valid email address (must be unique)
    - **businessName**: Studio / business name
    - **password**: At least 6 characters
    """
    try:
        photographer, token = await AuthService(db).register(data)
        await db.commit()
    except LuminaError:
        user_registration_total.labels(result="failure").inc()
        raise

    user_registration_total.labels(result="success").inc()
    return AuthResponse(token=token, user=PhotographerResponse.model_validate(photographer))


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login to get an access token",
)
@auth_rate_limit
async def login(
    login_data: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    start_time = time.perf_counter()
    try:
        photographer, token = await AuthService(db).login(login_data.email, login_data.password)
    except LuminaError:
        user_login_total.labels(result="failure").inc()
        login_duration_seconds.labels(result="failure").observe(time.perf_counter() - start_time)
        raise

    user_login_total.labels(result="success").inc()
    login_duration_seconds.labels(result="success").observe(time.perf_counter() - start_time)
    return AuthResponse(token=token, user=PhotographerResponse.model_validate(photographer))


@router.get(
    "/me",
    response_model=PhotographerResponse,
    summary="Get current photographer",
)
async def get_me(
    current: Photographer = Depends(get_current_photographer),
) -> PhotographerResponse:
    return PhotographerResponse.model_validate(current)


async def _deliver_reset_email(photographer_id: int, email: str, business_name: str, token: str) -> None:
    sent = await send_reset_email(photographer_id, email, business_name, token)
    password_reset_total.labels(stage="request", result="success" if sent else "mail_failure").inc()


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset email",
)
@auth_rate_limit
async def forgot_password(
    data: ForgotPasswordRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """
    Always answers with the same message, whether or not the email is registered.
    The mail goes out after the response, so timing does not reveal accounts either.
    """
    auth_service = AuthService(db)
    issued = await auth_service.request_password_reset(data.email)
    if issued is not None:
        await db.commit()
        photographer, token = issued
        background_tasks.add_task(
            _deliver_reset_email,
            photographer.id,
            photographer.email,
            photographer.business_name,
            token,
        )
    else:
        password_reset_total.labels(stage="request", result="unknown_email").inc()

    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Set a new password with a reset token",
)
@auth_rate_limit
async def reset_password(
    data: ResetPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await AuthService(db).reset_password(data.token, data.new_password)
        await db.commit()
    except LuminaError:
        password_reset_total.labels(stage="complete", result="failure").inc()
        raise

    password_reset_total.labels(stage="complete", result="success").inc()
    return MessageResponse(message="Password has been reset successfully")
