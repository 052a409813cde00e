"""Request and response models for the translation job operations.

Every request model validates locally what the backend would otherwise reject:
identifiers are UUIDs, locale codes are normalized BCP-47 (`ll` or `ll-CC`)
and `key_ids` must agree with the translation mode:

- all: no key ids (the backend resolves every key of the project)
- selected: at least one key id
- single: exactly one key id
"""

from __future__ import annotations

import re
import uuid
from typing import Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from tms.core.constants import (
    JOB_ITEMS_DEFAULT_LIMIT,
    JOB_ITEMS_MAX_LIMIT,
    JOBS_DEFAULT_LIMIT,
    JOBS_MAX_LIMIT,
    JOBS_MIN_LIMIT,
    LOCALE_CODE_PATTERN,
    MIN_OFFSET,
    ErrorMessages,
)
from tms.core.models.job import JobStatus, TranslationJobParams, TranslationMode
from tms.core.models.job_item import ItemStatus

T = TypeVar("T")

_LOCALE_RE = re.compile(LOCALE_CODE_PATTERN)

JobOrder = Literal["created_at.asc", "created_at.desc", "status.asc", "status.desc"]


def _check_uuid(value: str, message: str) -> str:
    try:
        uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValueError(message)
    return value


def check_mode_key_ids(mode: TranslationMode, key_ids: List[str]) -> None:
    """Raise ValueError when `key_ids` does not fit `mode`."""
    if mode == TranslationMode.all and key_ids:
        raise ValueError(ErrorMessages.ALL_MODE_NO_KEYS)
    if mode == TranslationMode.selected and not key_ids:
        raise ValueError(ErrorMessages.SELECTED_MODE_REQUIRES_KEYS)
    if mode == TranslationMode.single and len(key_ids) != 1:
        raise ValueError(ErrorMessages.SINGLE_MODE_ONE_KEY)


class CreateTranslationJobRequest(BaseModel):
    # field order matters: `mode` must be validated before `key_ids`
    project_id: str
    mode: TranslationMode
    target_locale: str
    key_ids: List[str] = Field(default_factory=list, validate_default=True)
    params: Optional[TranslationJobParams] = None

    @field_validator("project_id")
    @classmethod
    def validate_project_id(cls, v: str) -> str:
        return _check_uuid(v, ErrorMessages.INVALID_PROJECT_ID)

    @field_validator("mode", mode="before")
    @classmethod
    def validate_mode(cls, v):
        if not isinstance(v, str) or v not in {m.value for m in TranslationMode}:
            raise ValueError(ErrorMessages.INVALID_MODE)
        return v

    @field_validator("target_locale")
    @classmethod
    def validate_target_locale(cls, v: str) -> str:
        if not _LOCALE_RE.match(v):
            raise ValueError(ErrorMessages.INVALID_TARGET_LOCALE)
        return v

    @field_validator("key_ids")
    @classmethod
    def validate_key_ids(cls, v: List[str], info: ValidationInfo) -> List[str]:
        for key_id in v:
            _check_uuid(key_id, ErrorMessages.INVALID_KEY_ID)
        mode = info.data.get("mode")
        if mode is not None:
            check_mode_key_ids(mode, v)
        return v

    def as_payload(self) -> dict:
        payload = self.model_dump(mode="json", exclude={"params"})
        if self.params is not None:
            payload["params"] = self.params.model_dump(exclude_none=True)
        return payload


class CreateTranslationJobResponse(BaseModel):
    job_id: str
    status: JobStatus
    message: Optional[str] = None


class CancelTranslationJobRequest(BaseModel):
    job_id: str

    @field_validator("job_id")
    @classmethod
    def validate_job_id(cls, v: str) -> str:
        return _check_uuid(v, ErrorMessages.INVALID_JOB_ID)


class ListTranslationJobsParams(BaseModel):
    model_config = {"frozen": True}

    project_id: str
    limit: int = Field(JOBS_DEFAULT_LIMIT, ge=JOBS_MIN_LIMIT, le=JOBS_MAX_LIMIT)
    offset: int = Field(MIN_OFFSET, ge=MIN_OFFSET)
    order: JobOrder = "created_at.desc"
    status: Optional[Union[JobStatus, tuple[JobStatus, ...]]] = None

    @field_validator("project_id")
    @classmethod
    def validate_project_id(cls, v: str) -> str:
        return _check_uuid(v, ErrorMessages.INVALID_PROJECT_ID)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status_list(cls, v):
        if isinstance(v, list):
            return tuple(v)
        return v


class ListJobItemsParams(BaseModel):
    model_config = {"frozen": True}

    job_id: str
    limit: int = Field(JOB_ITEMS_DEFAULT_LIMIT, ge=JOBS_MIN_LIMIT, le=JOB_ITEMS_MAX_LIMIT)
    offset: int = Field(MIN_OFFSET, ge=MIN_OFFSET)
    status: Optional[ItemStatus] = None

    @field_validator("job_id")
    @classmethod
    def validate_job_id(cls, v: str) -> str:
        return _check_uuid(v, ErrorMessages.INVALID_JOB_ID)


class PageMetadata(BaseModel):
    start: int
    end: int
    total: int


class Page(BaseModel, Generic[T]):
    data: List[T]
    metadata: PageMetadata

    @classmethod
    def from_rows(cls, rows: List[T], offset: int, total: Optional[int]) -> "Page[T]":
        return cls(
            data=rows,
            metadata=PageMetadata(
                start=offset,
                end=offset + len(rows) - 1,
                total=total or 0,
            ),
        )
