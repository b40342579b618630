"""
Global exception handling for the application.
Every error leaves the API in the shared response envelope.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from accounts.core.messages import translate
from accounts.core.responses import envelope

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Base class for all application exceptions.

    ``message`` is a message key (see ``accounts.core.messages``); ``params``
    fill its placeholders.
    """
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ):
        self.key = message
        self.message = translate(message, **(params or {}))
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ValidationException(AppError):
    """Malformed input."""
    def __init__(
        self,
        message: str = "validation.invalid",
        details: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details, params)


class ConflictException(AppError):
    """Duplicate resource."""
    def __init__(self, message: str = "error.emailExist", details: Optional[Any] = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class BadRequestException(AppError):
    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class InvalidCredentialsException(BadRequestException):
    """Unknown email or wrong password; deliberately indistinguishable."""
    def __init__(self):
        super().__init__("auth.invalidCredentials")


class InvalidOtpException(BadRequestException):
    def __init__(self):
        super().__init__("error.invalidOtp")


class InvalidEmailException(BadRequestException):
    def __init__(self):
        super().__init__("error.invalidEmail")


class AlreadyVerifiedException(BadRequestException):
    def __init__(self):
        super().__init__("error.emailAlreadyVerified")


class UserNotExistException(BadRequestException):
    def __init__(self):
        super().__init__("error.userNotExist")


class OtpNotVerifiedException(BadRequestException):
    def __init__(self):
        super().__init__("error.otpNotVerified")


class InvalidOldPasswordException(BadRequestException):
    def __init__(self):
        super().__init__("validation.invalidOldPassword")


class EntityNotFoundException(AppError):
    """Resource not found error."""
    def __init__(self, message: str = "error.userNotFound", details: Optional[Any] = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class UnauthorizedException(AppError):
    """Authentication failure error."""
    def __init__(self, message: str = "auth.unauthorizedRequest", params: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, params=params)


class ForbiddenException(AppError):
    """Authorization failure error."""
    def __init__(self, message: str = "auth.unauthorizedRole"):
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class TooManyRequestsException(AppError):
    def __init__(self, retry_after: int | None = None):
        super().__init__("error.tooManyRequests", status.HTTP_429_TOO_MANY_REQUESTS)
        self.retry_after = retry_after


class ServerError(AppError):
    """Persistence or signing failure."""
    def __init__(self, message: str = "error.serverError"):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class HashError(ServerError):
    """The password hashing primitive failed."""


class ConfigError(ServerError):
    """Required process-wide configuration is missing."""


class InvalidTokenError(Exception):
    """Token is expired, malformed or badly signed."""


def _validation_messages(exc: RequestValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        msg = str(error.get("msg", ""))
        if msg.startswith("Value error, "):
            msg = translate(msg[len("Value error, "):])
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        messages.append(f"{loc[-1]}: {msg}" if loc and error.get("type") != "value_error" else msg)
    return messages


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Application error", code=exc.__class__.__name__, path=request.url.path)
    headers = None
    if isinstance(exc, UnauthorizedException):
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, TooManyRequestsException) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return envelope(exc.message, data=exc.details, status_code=exc.status_code, headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = _validation_messages(exc)
    return envelope(
        messages[0] if messages else translate("validation.invalid"),
        data=messages,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = translate("error.notFound")
    elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        message = translate("error.methodNotAllowed")
    else:
        message = translate(str(exc.detail))
    return envelope(message, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all uncaught exceptions globally."""
    logger.exception("Unexpected error occurred", path=request.url.path)
    return envelope(translate("error.serverError"), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_exception_handlers(app) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
