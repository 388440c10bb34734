import logging

from testmgmt.models.otp import OtpPurpose
from testmgmt.models.user import UserEntry, UserRole
from testmgmt.schemas.auth import RefreshResponse, RegisterResponse, TokenResponse
from testmgmt.schemas.otp import MessageResponse, OtpResponse
from testmgmt.schemas.users import UserSummary
from testmgmt.services.otp import InvalidOrExpired, IssuedChallenge, OtpChallengeManager
from testmgmt.services.tokens import TokenError, TokenIssuer
from testmgmt.services.users import UserStore

LOGGER = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the email is registered, a reset code has been sent"


class AuthError(ValueError):
    pass


class InvalidCredentials(AuthError):
    pass


class AuthService:
    def __init__(
        self,
        users: UserStore,
        otp: OtpChallengeManager,
        tokens: TokenIssuer,
        *,
        expose_codes: bool = False,
    ) -> None:
        self._users = users
        self._otp = otp
        self._tokens = tokens
        self._expose_codes = expose_codes

    def register(
        self, email: str, password: str, role: UserRole = UserRole.viewer
    ) -> RegisterResponse:
        try:
            self._users.create_user(email, password, role)
        except ValueError as exc:
            raise AuthError(str(exc)) from exc
        issued = self._otp.issue(email, OtpPurpose.verify_email)
        LOGGER.info("Registered %s as %s", email, role.value)
        return RegisterResponse(
            message="Registration successful. Check your email for the verification code.",
            email=email,
            email_verified=False,
            otp=self._debug_code(issued),
        )

    def login(self, email: str, password: str) -> TokenResponse:
        self._tokens.ensure_configured()
        entry = self._users.authenticate(email, password)
        if entry is None:
            raise InvalidCredentials("Invalid credentials")
        return self._token_response(entry)

    def refresh(self, refresh_token: str) -> RefreshResponse:
        data = self._tokens.decode_refresh_token(refresh_token)
        user = self._users.get_user(data.user_id)
        if user is None:
            raise TokenError("Invalid refresh token")
        access_token = self._tokens.create_access_token(
            user.id, user.email, user.role.value
        )
        return RefreshResponse(
            access_token=access_token,
            expires_in_seconds=int(self._tokens.access_ttl.total_seconds()),
        )

    def verify_email(self, email: str, code: str) -> TokenResponse:
        # a code is only consumed when tokens can be issued for it
        self._tokens.ensure_configured()
        self._otp.verify(email, code, OtpPurpose.verify_email)
        entry = self._users.get_by_email(email)
        if entry is None:
            raise InvalidOrExpired()
        entry = self._users.mark_email_verified(entry.id)
        return self._token_response(entry)

    def resend_verification(self, email: str) -> OtpResponse:
        entry = self._users.get_by_email(email)
        if entry is None:
            raise AuthError("User not found")
        if entry.email_verified:
            raise AuthError("Email is already verified")
        issued = self._otp.issue(email, OtpPurpose.verify_email)
        return self._otp_response("Verification code sent", issued)

    def forgot_password(self, email: str) -> OtpResponse:
        entry = self._users.get_by_email(email)
        if entry is None:
            LOGGER.info("Password reset requested for unknown email %s", email)
            return OtpResponse(message=FORGOT_PASSWORD_MESSAGE)
        issued = self._otp.issue(email, OtpPurpose.reset_password)
        return self._otp_response(FORGOT_PASSWORD_MESSAGE, issued)

    def reset_password(self, email: str, code: str, new_password: str) -> MessageResponse:
        self._otp.verify(email, code, OtpPurpose.reset_password)
        entry = self._users.get_by_email(email)
        if entry is None:
            raise InvalidOrExpired()
        self._users.set_password(entry.id, new_password)
        LOGGER.info("Password reset for %s", email)
        return MessageResponse(message="Password reset successfully")

    def cleanup_challenges(self) -> int:
        return self._otp.cleanup()

    def _token_response(self, entry: UserEntry) -> TokenResponse:
        role = entry.role.value
        return TokenResponse(
            access_token=self._tokens.create_access_token(entry.id, entry.email, role),
            refresh_token=self._tokens.create_refresh_token(entry.id, entry.email, role),
            expires_in_seconds=int(self._tokens.access_ttl.total_seconds()),
            user=UserSummary(id=entry.id, email=entry.email, role=entry.role),
        )

    def _otp_response(self, message: str, issued: IssuedChallenge) -> OtpResponse:
        return OtpResponse(
            message=message,
            expires_in_seconds=int(self._otp.ttl.total_seconds()),
            otp=self._debug_code(issued),
        )

    def _debug_code(self, issued: IssuedChallenge) -> str | None:
        return issued.code if self._expose_codes else None
