"""
Error taxonomy for the auth core.

Services raise these; the handlers registered in ``register_exception_handlers``
turn them into structured JSON responses with the class's HTTP status.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AlphaSourceError(Exception):
    """
    Base class for all expected request failures.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code
        details: Extra fields merged into the response body
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_code: str = "ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.error_code,
            "message": self.message,
            **self.details,
        }


class ValidationError(AlphaSourceError):
    """Malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class ConflictError(AlphaSourceError):
    """Duplicate resource, e.g. an email that is already registered."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class InvalidCredentialsError(AlphaSourceError):
    """Bad email/password pair. Deliberately says nothing about which one."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


class UnauthorizedError(AlphaSourceError):
    """No session, or an expired/unknown session or token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"


class InvalidCodeError(UnauthorizedError):
    """A TOTP or backup code did not verify. Never says which path was tried."""

    default_code = "INVALID_CODE"

    def __init__(self, message: str = "Invalid code") -> None:
        super().__init__(message)


class ForbiddenError(AlphaSourceError):
    """Authenticated, but banned or lacking the required role."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class BannedError(ForbiddenError):
    """The account is banned; the stored reason is surfaced to the client."""

    default_code = "BANNED"

    def __init__(self, reason: str | None) -> None:
        super().__init__(
            "Your account has been banned",
            details={"bannedReason": reason},
        )


class NotFoundError(AlphaSourceError):
    """Referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


def _alphasource_error_handler(request: Request, exc: AlphaSourceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request body validation failures as 400 ValidationError."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": ValidationError.default_code,
            "message": message,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error handlers to the application."""
    app.add_exception_handler(AlphaSourceError, _alphasource_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
