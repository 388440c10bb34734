from fastapi import APIRouter, Depends, HTTPException, status

from testmgmt.dependencies import get_auth_service, require_roles
from testmgmt.models.user import UserRole
from testmgmt.schemas.auth import (
    LoginRequest,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
)
from testmgmt.schemas.otp import (
    CleanupResponse,
    EmailRequest,
    MessageResponse,
    OtpResponse,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from testmgmt.services.auth import AuthError, AuthService, InvalidCredentials
from testmgmt.services.otp import InvalidOrExpired, RateLimited
from testmgmt.services.tokens import TokenError

router = APIRouter(prefix="/auth", tags=["auth"])


def _rate_limited(exc: RateLimited) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=str(exc),
    )


def _invalid_code(exc: InvalidOrExpired) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=str(exc),
    )


def _token_unavailable(exc: TokenError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(exc),
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def register(
    payload: RegisterRequest, auth: AuthService = Depends(get_auth_service)
) -> RegisterResponse:
    try:
        return auth.register(payload.email, payload.password, payload.role)
    except AuthError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except RateLimited as exc:
        raise _rate_limited(exc) from exc


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest, auth: AuthService = Depends(get_auth_service)
) -> TokenResponse:
    try:
        return auth.login(payload.email, payload.password)
    except InvalidCredentials as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    except TokenError as exc:
        raise _token_unavailable(exc) from exc


@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    payload: RefreshRequest, auth: AuthService = Depends(get_auth_service)
) -> RefreshResponse:
    try:
        return auth.refresh(payload.refresh_token)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


@router.post("/verify-email", response_model=TokenResponse)
def verify_email(
    payload: VerifyEmailRequest, auth: AuthService = Depends(get_auth_service)
) -> TokenResponse:
    try:
        return auth.verify_email(payload.email, payload.code)
    except InvalidOrExpired as exc:
        raise _invalid_code(exc) from exc
    except TokenError as exc:
        raise _token_unavailable(exc) from exc


@router.post(
    "/resend-verification",
    response_model=OtpResponse,
    response_model_exclude_none=True,
)
def resend_verification(
    payload: EmailRequest, auth: AuthService = Depends(get_auth_service)
) -> OtpResponse:
    try:
        return auth.resend_verification(payload.email)
    except AuthError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except RateLimited as exc:
        raise _rate_limited(exc) from exc


@router.post(
    "/forgot-password",
    response_model=OtpResponse,
    response_model_exclude_none=True,
)
def forgot_password(
    payload: EmailRequest, auth: AuthService = Depends(get_auth_service)
) -> OtpResponse:
    try:
        return auth.forgot_password(payload.email)
    except RateLimited as exc:
        raise _rate_limited(exc) from exc


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    payload: ResetPasswordRequest, auth: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    try:
        return auth.reset_password(payload.email, payload.code, payload.new_password)
    except InvalidOrExpired as exc:
        raise _invalid_code(exc) from exc


@router.post("/otp/cleanup", response_model=CleanupResponse)
def cleanup_challenges(
    _=Depends(require_roles(UserRole.admin)),
    auth: AuthService = Depends(get_auth_service),
) -> CleanupResponse:
    return CleanupResponse(removed=auth.cleanup_challenges())
