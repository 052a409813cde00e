"""Configuration models for core domain components.

Pydantic-based configuration classes consumed by the managers, so the
composition root can inject settings and tests can use tiny intervals.
"""

from typing import Optional, Tuple

from pydantic import BaseModel, Field, SecretStr, field_validator

from tms.core.constants import POLL_INTERVALS, POLL_MAX_ATTEMPTS


class PollingConfig(BaseModel):
    """Configuration for ActiveJobPoller behavior.

    Attributes:
        intervals: Backoff schedule in seconds; index min(attempt, len-1) is used,
            so the last value repeats once the sequence is exhausted
        max_attempts: Hard cap on ticks per polling session
    """

    intervals: Tuple[float, ...] = Field(
        default=POLL_INTERVALS,
        description="Seconds to wait before each poll tick, capped at the last entry",
    )

    max_attempts: int = Field(
        default=POLL_MAX_ATTEMPTS,
        ge=1,
        description="Maximum number of poll ticks before polling stops silently",
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @field_validator("intervals")
    def ensure_positive(cls, value: Tuple[float, ...]) -> Tuple[float, ...]:
        if not value:
            raise ValueError("intervals must not be empty")
        if any(v <= 0 for v in value):
            raise ValueError("intervals must be positive")
        return value

    def interval_for(self, attempt: int) -> float:
        return self.intervals[min(attempt, len(self.intervals) - 1)]

    @classmethod
    def from_app_settings(cls, settings) -> "PollingConfig":
        return cls(
            intervals=tuple(settings.TMS_POLL_INTERVALS),
            max_attempts=settings.TMS_POLL_MAX_ATTEMPTS,
        )


class BackendConfig(BaseModel):
    """Connection settings for the hosted backend.

    Attributes:
        rest_url: Base URL of the REST layer (``.../rest/v1``)
        functions_url: Base URL of the serverless functions (``.../functions/v1``)
        anon_key: Public API key sent as ``apikey`` header
        access_token: User session token; the anon key is used when absent
        request_timeout: Total timeout in seconds per request
    """

    rest_url: str
    functions_url: str
    anon_key: SecretStr = SecretStr("")
    access_token: Optional[SecretStr] = None
    request_timeout: float = Field(default=10.0, gt=0)

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    def auth_headers(self) -> dict[str, str]:
        token = self.access_token or self.anon_key
        headers = {"Authorization": f"Bearer {token.get_secret_value()}"}
        if self.anon_key.get_secret_value():
            headers["apikey"] = self.anon_key.get_secret_value()
        return headers

    @classmethod
    def from_app_settings(cls, settings) -> "BackendConfig":
        return cls(
            rest_url=settings.TMS_REST_URL,
            functions_url=settings.TMS_FUNCTIONS_URL,
            anon_key=settings.TMS_BACKEND_ANON_KEY,
            access_token=settings.TMS_ACCESS_TOKEN,
            request_timeout=settings.TMS_REQUEST_TIMEOUT,
        )
