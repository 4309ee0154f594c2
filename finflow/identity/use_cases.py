"""
Identity Use Cases

Each use case sits between a presentation layer and the repository. The
ones with real rules (login, register, forgot password) validate and
sanitize input first; the rest delegate.

Flow: caller → use case → AuthRepository → APIClient
"""

from finflow.audit import get_logger
from finflow.identity.interface import AuthRepositoryInterface
from finflow.models.auth import (
    LoginResponse,
    OtpPurpose,
    RegisterRequest,
    RegisterResponse,
    UserProfile,
    VerifyOtpResponse,
)
from finflow.validation import AuthInputValidator


class LoginUseCase:
    """Username/password and federated login."""

    def __init__(self, repository: AuthRepositoryInterface):
        self._repository = repository
        self._validator = AuthInputValidator()
        self._logger = get_logger("UseCase")

    async def execute(self, username: str, password: str) -> LoginResponse:
        """
        Validate, trim and submit credentials.

        Raises:
            ValidationError: Username or password is empty
        """
        request = self._validator.login_request(username, password)
        self._logger.info("login_use_case", username=request.username)
        return await self._repository.login(request)

    async def execute_google(self, id_token: str) -> LoginResponse:
        self._logger.info("google_login_use_case")
        return await self._repository.login_with_federated_token(id_token)


class RegisterUseCase:
    """Email OTP verification followed by account creation."""

    def __init__(self, repository: AuthRepositoryInterface):
        self._repository = repository
        self._validator = AuthInputValidator()
        self._logger = get_logger("UseCase")

    async def send_otp(self, email: str) -> None:
        email = self._validator.validate_email(email)
        await self._repository.send_otp(email, OtpPurpose.REGISTER)

    async def verify_otp(self, email: str, otp: str) -> VerifyOtpResponse:
        email = self._validator.validate_email(email)
        otp = self._validator.require(otp, "OTP")
        return await self._repository.verify_otp(email, otp, OtpPurpose.REGISTER)

    async def execute(
        self,
        request: RegisterRequest,
        registration_token: str,
    ) -> RegisterResponse:
        """
        Register with a token obtained from verify_otp.

        Raises:
            ValidationError: A required field is blank or the email is malformed
        """
        request = self._validator.register_request(request)
        self._logger.info("register_use_case", username=request.username)
        return await self._repository.register(request, registration_token)


class ForgotPasswordUseCase:
    """OTP-backed password reset."""

    def __init__(self, repository: AuthRepositoryInterface):
        self._repository = repository
        self._validator = AuthInputValidator()
        self._logger = get_logger("UseCase")

    async def send_otp(self, email: str) -> None:
        email = self._validator.validate_email(email)
        await self._repository.send_otp(email, OtpPurpose.RESET_PASSWORD)

    async def verify_otp(self, email: str, otp: str) -> VerifyOtpResponse:
        email = self._validator.validate_email(email)
        otp = self._validator.require(otp, "OTP")
        return await self._repository.verify_otp(email, otp, OtpPurpose.RESET_PASSWORD)

    async def reset_password(self, password: str, confirm_password: str, token: str) -> None:
        """
        Set a new password using the token from verify_otp.

        Raises:
            ValidationError: Passwords differ or are too short
        """
        request = self._validator.reset_password_request(password, confirm_password)
        self._logger.info("reset_password_use_case")
        await self._repository.reset_password(request, token)

    async def check_user_existence(self, email: str) -> bool:
        email = self._validator.validate_email(email)
        return await self._repository.check_user_existence(email)


class GetProfileUseCase:
    def __init__(self, repository: AuthRepositoryInterface):
        self._repository = repository

    async def execute(self) -> UserProfile:
        return await self._repository.get_profile()


class LogoutUseCase:
    def __init__(self, repository: AuthRepositoryInterface):
        self._repository = repository

    async def execute(self) -> None:
        await self._repository.logout()
