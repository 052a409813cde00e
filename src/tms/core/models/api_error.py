from typing import Any, Dict, Optional

from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: int
    message: str
    details: Optional[Dict[str, Any]] = None

    def with_details(self, **details: Any) -> "ApiErrorResponse":
        """Return copy with the given entries merged into details."""
        merged = dict(self.details or {})
        merged.update(details)
        return self.model_copy(update={"details": merged})


class ApiErrorEnvelope(BaseModel):
    """Error body returned by the edge function: `{"data": null, "error": {...}}`."""

    data: None = None
    error: ApiErrorResponse
