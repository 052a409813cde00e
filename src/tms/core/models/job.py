from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, field_validator

from tms.core.constants import (
    PARAMS_MAX_TOKENS_MAX,
    PARAMS_MAX_TOKENS_MIN,
    PARAMS_TEMPERATURE_MAX,
    PARAMS_TEMPERATURE_MIN,
    ErrorMessages,
)


class JobStatus(StrEnum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class TranslationMode(StrEnum):
    all = "all"
    selected = "selected"
    single = "single"


ACTIVE_STATUSES = frozenset({JobStatus.pending, JobStatus.running})
FINISHED_STATUSES = frozenset({JobStatus.completed, JobStatus.failed, JobStatus.cancelled})
CANCELLABLE_STATUSES = ACTIVE_STATUSES


class TranslationJobParams(BaseModel):
    """Optional LLM configuration forwarded to the translation service."""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    model: Optional[str] = None
    provider: Optional[str] = None

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not PARAMS_TEMPERATURE_MIN <= v <= PARAMS_TEMPERATURE_MAX:
            raise ValueError(ErrorMessages.INVALID_TEMPERATURE)
        return v

    @field_validator("max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not PARAMS_MAX_TOKENS_MIN <= v <= PARAMS_MAX_TOKENS_MAX:
            raise ValueError(ErrorMessages.INVALID_MAX_TOKENS)
        return v


class TranslationJob(BaseModel):
    """Translation job record as stored by the backend.

    Notes:
    - `total_keys` stays null until the backend has resolved the key set; the
      reconciler can overlay a locally estimated count (see `with_total_hint`).
    - Once `status` is terminal the record is immutable except for reads.
    """

    model_config = {"extra": "ignore"}

    id: str
    project_id: str
    mode: TranslationMode
    source_locale: str
    target_locale: str
    status: JobStatus
    total_keys: Optional[int] = None
    completed_keys: int = 0
    failed_keys: int = 0
    model: Optional[str] = None
    provider: Optional[str] = None
    params: Optional[TranslationJobParams] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def is_running(self) -> bool:
        return self.status == JobStatus.running

    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    def with_total_hint(self, hint: Optional[int]) -> "TranslationJob":
        """Return a copy carrying `hint` as total_keys unless the server already set it."""
        if hint is None or self.total_keys is not None:
            return self
        return self.model_copy(update={"total_keys": hint})
