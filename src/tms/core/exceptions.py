from typing import Any, Dict, Optional

from tms.core.constants import ErrorMessages
from tms.core.models.api_error import ApiErrorResponse


class BackendException(Exception):
    """Transport-level failure talking to the hosted backend."""
    def __init__(self, response: ApiErrorResponse):
        self.response = response
        super().__init__(response.message)


# Domain-specific translation job exceptions

class TranslationJobError(Exception):
    """Base exception for translation job operations.

    Attributes:
        message: User-displayable error description
        status: HTTP-like status code
        details: Structured details (e.g. offending field or locale)
        cause: Original exception or backend payload, kept for diagnostics only
    """
    status: int = 500

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Any = None,
    ):
        self.message = message
        if status is not None:
            self.status = status
        self.details = details or {}
        self.cause = cause
        super().__init__(message)

    def to_response(self) -> ApiErrorResponse:
        return ApiErrorResponse(code=self.status, message=self.message, details=self.details or None)


class ValidationError(TranslationJobError):
    """Raised locally before any network call when a request is malformed.

    Attributes:
        field: Name of the offending request field (None for request-wide errors)
    """
    status = 400

    def __init__(self, message: str, field: Optional[str] = None, cause: Any = None):
        self.field = field
        super().__init__(message, details={"field": field} if field else None, cause=cause)


class ConflictError(TranslationJobError):
    """Active job already exists for the project, or the locale conflicts."""
    status = 409


class NotFoundError(TranslationJobError):
    """Job or project missing or not visible under access control."""
    status = 404


class NotCancellableError(TranslationJobError):
    """Cancel requested for a job that is no longer pending or running."""
    status = 400


class RateLimitedError(TranslationJobError):
    status = 429


class PermissionDeniedError(TranslationJobError):
    status = 403


class UpstreamServiceError(TranslationJobError):
    """Translation backend or LLM provider failure (5xx)."""
    status = 502


class DatabaseError(TranslationJobError):
    status = 500


def user_message(exc: BaseException) -> str:
    """Return the text that may be shown to a user for `exc`.

    Unrecognized exceptions collapse to a generic message; their details stay
    in logs.
    """
    if isinstance(exc, TranslationJobError):
        return exc.message
    if isinstance(exc, BackendException):
        return ErrorMessages.EDGE_FUNCTION_ERROR
    return ErrorMessages.UNEXPECTED_ERROR
