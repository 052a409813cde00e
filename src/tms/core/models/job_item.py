from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, model_validator


class ItemStatus(StrEnum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    skipped = "skipped"


class TranslationJobItem(BaseModel):
    """One (job, key) row created by the backend when a job starts.

    The backend joins the key's human readable name as `keys.full_key`; it is
    flattened into `key_name` on load.
    """

    model_config = {"extra": "ignore"}

    id: str
    job_id: str
    key_id: str
    key_name: Optional[str] = None
    status: ItemStatus
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def flatten_key_join(cls, data: Any) -> Any:
        if isinstance(data, dict) and "key_name" not in data:
            joined = data.get("keys")
            if isinstance(joined, dict):
                data = {**data, "key_name": joined.get("full_key")}
        return data
