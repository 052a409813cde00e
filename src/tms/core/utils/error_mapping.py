"""Translate backend failures into the translation job error taxonomy.

Two sources of errors exist:

- the `translate` edge function, which answers with an HTTP status and an
  `{"data": null, "error": {"code", "message", "details"}}` body;
- the REST layer in front of Postgres, which answers with a Postgres error
  code (or PostgREST code) and a message that may name a trigger.
"""

from typing import Any, Dict, Optional

import pydantic

from tms.core.constants import (
    ACTIVE_JOB_UNIQUE_TRIGGER,
    SOURCE_LOCALE_DEFAULT_TRIGGER,
    ErrorMessages,
)
from tms.core.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    TranslationJobError,
    UpstreamServiceError,
    ValidationError,
)
from tms.core.settings import logger

_ACTIVE_JOB_MARKERS = (
    ACTIVE_JOB_UNIQUE_TRIGGER,
    "Only one active translation job allowed per project",
)
_SOURCE_LOCALE_MARKERS = (
    SOURCE_LOCALE_DEFAULT_TRIGGER,
    "source_locale must equal project default_locale",
    "Source locale cannot be used as target locale",
)


def map_edge_function_error(
    status: int,
    message: Optional[str],
    details: Optional[Dict[str, Any]] = None,
    context: str = "edge-function",
) -> TranslationJobError:
    logger.error(f"[{context}] edge function error status={status} message={message}")
    if status == 429:
        return RateLimitedError(ErrorMessages.RATE_LIMIT_EXCEEDED, details=details, cause=message)
    if status == 409:
        return ConflictError(ErrorMessages.ACTIVE_JOB_EXISTS, details=details, cause=message)
    if status >= 500:
        return UpstreamServiceError(
            ErrorMessages.EDGE_FUNCTION_ERROR, status=status, details=details, cause=message
        )
    if status == 404:
        return NotFoundError(message or ErrorMessages.PROJECT_NOT_FOUND, details=details)
    if status == 400:
        field = (details or {}).get("field")
        return ValidationError(message or ErrorMessages.CHECK_VIOLATION, field=field, cause=details)
    return DatabaseError(
        message or ErrorMessages.DATABASE_ERROR, status=status, details=details, cause=message
    )


def map_database_error(
    code: Optional[str],
    message: Optional[str],
    fallback: Optional[str] = None,
    context: str = "database",
    cause: Any = None,
) -> TranslationJobError:
    logger.error(f"[{context}] database error code={code} message={message}")
    text = message or ""

    # trigger violations carry business rules in their message
    if any(marker in text for marker in _ACTIVE_JOB_MARKERS):
        return ConflictError(ErrorMessages.ACTIVE_JOB_EXISTS, cause=cause)
    if any(marker in text for marker in _SOURCE_LOCALE_MARKERS):
        return ValidationError(
            ErrorMessages.TARGET_LOCALE_IS_DEFAULT, field="target_locale", cause=cause
        )

    if code == "42P01":  # undefined_table
        return DatabaseError(ErrorMessages.DATABASE_SCHEMA_ERROR, cause=cause)
    if code == "23503":  # foreign_key_violation
        return NotFoundError(ErrorMessages.FOREIGN_KEY_VIOLATION, cause=cause)
    if code == "23505":  # unique_violation
        return ConflictError(ErrorMessages.RESOURCE_ALREADY_EXISTS, cause=cause)
    if code == "23514":  # check_violation
        return ValidationError(ErrorMessages.CHECK_VIOLATION, cause=cause)
    if code == "42501":  # insufficient_privilege
        return PermissionDeniedError(ErrorMessages.INSUFFICIENT_PRIVILEGE, cause=cause)
    if code == "PGRST116":  # no (single) row returned
        return NotFoundError(ErrorMessages.JOB_NOT_FOUND, cause=cause)

    return DatabaseError(
        fallback or ErrorMessages.DATABASE_ERROR,
        details={"code": code} if code else None,
        cause=cause if cause is not None else message,
    )


def from_pydantic_error(exc: pydantic.ValidationError) -> ValidationError:
    """Reduce a pydantic validation failure to the first field-attributed error."""
    first = exc.errors()[0]
    loc = first.get("loc") or ()
    field = str(loc[0]) if loc else None
    ctx_error = (first.get("ctx") or {}).get("error")
    message = str(ctx_error) if ctx_error is not None else first.get("msg", str(exc))
    return ValidationError(message, field=field, cause=exc)
