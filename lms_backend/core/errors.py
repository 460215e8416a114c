"""Typed failures raised by the account services.

Each failure carries a stable ``kind`` that clients can match on, the HTTP
status the API layer answers with, and a human readable message. The API
layer maps them in one place (see ``lms_backend.main``).
"""

from fastapi import status


class AccountError(Exception):
    """Base class for every failure the account core can produce."""

    kind = "AccountError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.kind, "message": self.message}


class Conflict(AccountError):
    kind = "Conflict"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "User already exists."


class InvalidCredentials(AccountError):
    # Same message for an unknown email and a wrong password.
    kind = "InvalidCredentials"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid email or password."


class Unauthenticated(AccountError):
    kind = "Unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "You are not logged in."


class NotFound(AccountError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found."


class InvalidOrExpiredToken(AccountError):
    kind = "InvalidOrExpiredToken"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired reset token."


class ValidationError(AccountError):
    kind = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation error."

    def __init__(self, message: str | None = None, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.errors:
            payload["errors"] = self.errors
        return payload


class StoreUnavailable(AccountError):
    kind = "StoreUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Database unavailable. Verify DATABASE_URL and database credentials."


def field_errors(errors) -> list[dict]:
    """Flatten pydantic error entries into ``{field, message}`` pairs."""
    flattened = []
    for error in errors:
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "")).removeprefix("Value error, ")
        flattened.append({"field": field, "message": message})
    return flattened
