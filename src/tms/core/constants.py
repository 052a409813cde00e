"""Translation job constants shared by models, managers and adapters.

Limits mirror the database domain constraints enforced by the backend so that
requests failing them are rejected locally before any network call.
"""

# Pagination defaults
JOBS_MIN_LIMIT = 1
JOBS_DEFAULT_LIMIT = 20
JOBS_MAX_LIMIT = 100
JOB_ITEMS_DEFAULT_LIMIT = 100
JOB_ITEMS_MAX_LIMIT = 1000
MIN_OFFSET = 0

# LLM parameter constraints
PARAMS_TEMPERATURE_MIN = 0
PARAMS_TEMPERATURE_MAX = 2
PARAMS_MAX_TOKENS_MIN = 1
PARAMS_MAX_TOKENS_MAX = 4096

# Polling defaults (seconds)
POLL_INTERVALS = (2.0, 2.0, 3.0, 5.0, 5.0)
POLL_MAX_ATTEMPTS = 180

# Normalized BCP-47 locale code: "ll" or "ll-CC"
LOCALE_CODE_PATTERN = r"^[a-z]{2}(-[A-Z]{2})?$"

# Backend trigger names surfaced in database error messages
ACTIVE_JOB_UNIQUE_TRIGGER = "prevent_multiple_active_jobs_trigger"
SOURCE_LOCALE_DEFAULT_TRIGGER = "validate_source_locale_is_default_trigger"

# Edge function invoked to create jobs
TRANSLATE_FUNCTION = "translate"
JOBS_TABLE = "translation_jobs"
JOB_ITEMS_TABLE = "translation_job_items"
PROJECTS_TABLE = "projects"


class ErrorMessages:
    ACTIVE_JOB_EXISTS = "Another translation job is already active for this project"
    ALL_MODE_NO_KEYS = "All mode should not include specific key IDs"
    CHECK_VIOLATION = "Invalid field value"
    DATABASE_ERROR = "Database operation failed"
    DATABASE_SCHEMA_ERROR = "Database schema error"
    EDGE_FUNCTION_ERROR = "Translation service temporarily unavailable"
    FOREIGN_KEY_VIOLATION = "Referenced resource not found"
    INSUFFICIENT_PRIVILEGE = "Insufficient privileges for this operation"
    INVALID_JOB_ID = "Invalid job ID format"
    INVALID_KEY_ID = "Invalid key ID format"
    INVALID_MAX_TOKENS = (
        f"Max tokens must be between {PARAMS_MAX_TOKENS_MIN} and {PARAMS_MAX_TOKENS_MAX}"
    )
    INVALID_MODE = "Mode must be one of: all, selected, single"
    INVALID_PROJECT_ID = "Invalid project ID format"
    INVALID_TARGET_LOCALE = 'Target locale must be in BCP-47 format (e.g., "en" or "en-US")'
    INVALID_TEMPERATURE = (
        f"Temperature must be between {PARAMS_TEMPERATURE_MIN} and {PARAMS_TEMPERATURE_MAX}"
    )
    JOB_NOT_CANCELLABLE = "Job is not in a cancellable state"
    JOB_NOT_FOUND = "Translation job not found or access denied"
    NO_DATA_RETURNED = "No data returned from server"
    PROJECT_NOT_FOUND = "Project not found or access denied"
    RATE_LIMIT_EXCEEDED = "Rate limit exceeded, please try again later"
    RESOURCE_ALREADY_EXISTS = "Resource already exists"
    SELECTED_MODE_REQUIRES_KEYS = "Selected mode requires at least one key ID"
    SINGLE_MODE_ONE_KEY = "Single mode requires exactly one key ID"
    TARGET_LOCALE_IS_DEFAULT = "Target locale cannot be the default locale"
    UNEXPECTED_ERROR = "An unexpected error occurred"
