# Logging adapter for application-wide logging
from tms.adapters.logging_adapter import LoggingAdapter

from pydantic import HttpUrl, SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings
from rich import print

from tms.core.constants import POLL_INTERVALS, POLL_MAX_ATTEMPTS
from tms.core.interfaces.logging import LoggingPort

# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class TmsSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }
    TMS_LOG_LEVEL: str = "INFO"
    TMS_BACKEND_URL: HttpUrl = HttpUrl("http://localhost:54321")
    TMS_BACKEND_ANON_KEY: SecretStr = SecretStr("")
    # user session token; falls back to the anon key when unset
    TMS_ACCESS_TOKEN: SecretStr | None = None
    TMS_REQUEST_TIMEOUT: float = 10.0  # seconds
    TMS_POLL_INTERVALS: list[float] = list(POLL_INTERVALS)
    TMS_POLL_MAX_ATTEMPTS: int = POLL_MAX_ATTEMPTS
    TMS_RECONCILE_RETRY_ATTEMPTS: int = 3

    @computed_field
    @property
    def TMS_REST_URL(self) -> str:
        """Base URL of the REST layer in front of the database"""
        return str(self.TMS_BACKEND_URL).rstrip("/") + "/rest/v1"

    @computed_field
    @property
    def TMS_FUNCTIONS_URL(self) -> str:
        """Base URL of the serverless functions"""
        return str(self.TMS_BACKEND_URL).rstrip("/") + "/functions/v1"

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("TMS Settings:")
        print(self)

    @field_validator("TMS_POLL_INTERVALS")
    def ensure_intervals(cls, value: list[float]) -> list[float]:
        """Reject an empty or non-positive polling schedule."""
        if not value or any(v <= 0 for v in value):
            raise ValueError("TMS_POLL_INTERVALS must be a non-empty list of positive seconds")
        return value


app_settings = TmsSettings()

logger = LoggingAdapter("TMS", app_settings.TMS_LOG_LEVEL)
