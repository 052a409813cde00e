"""TranslationJobBackendPort over the hosted backend's HTTP surface.

- Commands and queries on tables go through the PostgREST layer
  (``{rest_url}/{table}``) using its filter syntax (``id=eq.…``,
  ``status=in.(pending,running)``).
- Job creation invokes the ``translate`` edge function, which validates the
  request again and answers ``202 {job_id, message, status}``.

Every non-2xx answer is mapped into the translation job error taxonomy;
transport failures from the HTTP client (BackendException) become
UpstreamServiceError.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

import pydantic

from tms.core.config import BackendConfig
from tms.core.constants import (
    JOB_ITEMS_TABLE,
    JOBS_TABLE,
    PROJECTS_TABLE,
    TRANSLATE_FUNCTION,
    ErrorMessages,
)
from tms.core.exceptions import (
    BackendException,
    DatabaseError,
    UpstreamServiceError,
)
from tms.core.interfaces.http_client import HttpClientPort
from tms.core.interfaces.job_backend import TranslationJobBackendPort
from tms.core.models.job import JobStatus, TranslationJob
from tms.core.models.job_item import TranslationJobItem
from tms.core.models.requests import (
    CreateTranslationJobRequest,
    CreateTranslationJobResponse,
    ListJobItemsParams,
    ListTranslationJobsParams,
    Page,
)
from tms.core.settings import logger
from tms.core.utils.error_mapping import map_database_error, map_edge_function_error

CANCELLABLE_FILTER = f"in.({JobStatus.pending},{JobStatus.running})"


def parse_content_range_total(value: Optional[str]) -> Optional[int]:
    """Extract the total from a ``Content-Range: 0-19/57`` header (``*`` means unknown)."""
    if not value or "/" not in value:
        return None
    total = value.rsplit("/", 1)[1].strip()
    return int(total) if total.isdigit() else None


def _status_filter(statuses: Sequence[JobStatus]) -> str:
    if len(statuses) == 1:
        return f"eq.{statuses[0]}"
    return "in.(" + ",".join(str(s) for s in statuses) + ")"


class SupabaseBackendAdapter(TranslationJobBackendPort):
    def __init__(self, http_client: HttpClientPort, config: BackendConfig):
        self._http = http_client
        self._config = config

    # ---------------- Helpers -----------------
    def _table_url(self, table: str) -> str:
        return f"{self._config.rest_url.rstrip('/')}/{table}"

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = self._config.auth_headers()
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _call(self, context: str, coro) -> Dict[str, Any]:
        try:
            return await coro
        except BackendException as exc:
            logger.error(f"[{context}] transport failure code={exc.response.code} message={exc.response.message}")
            raise UpstreamServiceError(
                ErrorMessages.EDGE_FUNCTION_ERROR,
                status=exc.response.code,
                cause=exc,
            ) from exc

    def _raise_for_rest(self, context: str, response: Dict[str, Any], fallback: str) -> None:
        status = response["status"]
        if 200 <= status < 300:
            return
        body = response.get("body")
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message")
        else:
            code, message = None, str(body) if body else None
        raise map_database_error(
            str(code) if code is not None else None,
            message,
            fallback=fallback,
            context=context,
            cause=body,
        )

    def _rows(self, context: str, response: Dict[str, Any]) -> list[dict]:
        body = response.get("body")
        if body is None:
            return []
        if not isinstance(body, list):
            logger.error(f"[{context}] unexpected body type={type(body).__name__}")
            raise DatabaseError(ErrorMessages.NO_DATA_RETURNED, cause=body)
        return body

    def _parse(self, context: str, model, row: dict):
        try:
            return model.model_validate(row)
        except pydantic.ValidationError as exc:
            logger.error(f"[{context}] invalid record from backend error={exc}")
            raise DatabaseError(ErrorMessages.UNEXPECTED_ERROR, cause=exc) from exc

    # ---------------- Commands -----------------
    async def submit_job(self, request: CreateTranslationJobRequest) -> CreateTranslationJobResponse:
        url = f"{self._config.functions_url.rstrip('/')}/{TRANSLATE_FUNCTION}"
        response = await self._call(
            "translate",
            self._http.post(
                url,
                json=request.as_payload(),
                headers=self._headers(),
                timeout=self._config.request_timeout,
            ),
        )
        status = response["status"]
        body = response.get("body")
        if status >= 400:
            error: Dict[str, Any] = {}
            if isinstance(body, dict):
                raw = body.get("error")
                error = raw if isinstance(raw, dict) else {"message": raw or body.get("message")}
            message = error.get("message") or (body if isinstance(body, str) else None)
            raise map_edge_function_error(status, message, error.get("details"), context="translate")
        if not isinstance(body, dict):
            raise UpstreamServiceError(ErrorMessages.NO_DATA_RETURNED, status=502, cause=body)
        try:
            return CreateTranslationJobResponse.model_validate(body)
        except pydantic.ValidationError as exc:
            logger.error(f"[translate] invalid response body error={exc}")
            raise UpstreamServiceError(ErrorMessages.EDGE_FUNCTION_ERROR, status=502, cause=exc) from exc

    async def mark_cancelled(self, job_id: str, finished_at: datetime) -> Optional[TranslationJob]:
        response = await self._call(
            "cancel",
            self._http.patch(
                self._table_url(JOBS_TABLE),
                json={"status": str(JobStatus.cancelled), "finished_at": finished_at.isoformat()},
                params={"id": f"eq.{job_id}", "status": CANCELLABLE_FILTER, "select": "*"},
                headers=self._headers(prefer="return=representation"),
                timeout=self._config.request_timeout,
            ),
        )
        self._raise_for_rest("cancel", response, "Failed to cancel job")
        rows = self._rows("cancel", response)
        return self._parse("cancel", TranslationJob, rows[0]) if rows else None

    # ---------------- Queries -----------------
    async def get_job(self, job_id: str) -> Optional[TranslationJob]:
        response = await self._call(
            "get-job",
            self._http.get(
                self._table_url(JOBS_TABLE),
                params={"select": "*", "id": f"eq.{job_id}", "limit": "1"},
                headers=self._headers(),
                timeout=self._config.request_timeout,
            ),
        )
        self._raise_for_rest("get-job", response, "Failed to fetch job")
        rows = self._rows("get-job", response)
        return self._parse("get-job", TranslationJob, rows[0]) if rows else None

    async def find_jobs(
        self, project_id: str, statuses: Sequence[JobStatus], limit: int = 1
    ) -> list[TranslationJob]:
        response = await self._call(
            "find-jobs",
            self._http.get(
                self._table_url(JOBS_TABLE),
                params={
                    "select": "*",
                    "project_id": f"eq.{project_id}",
                    "status": _status_filter(statuses),
                    "order": "created_at.desc",
                    "limit": str(limit),
                },
                headers=self._headers(),
                timeout=self._config.request_timeout,
            ),
        )
        self._raise_for_rest("find-jobs", response, "Failed to fetch active job")
        return [self._parse("find-jobs", TranslationJob, row) for row in self._rows("find-jobs", response)]

    async def list_jobs(self, params: ListTranslationJobsParams) -> Page[TranslationJob]:
        query = {
            "select": "*",
            "project_id": f"eq.{params.project_id}",
            "order": params.order,
            "limit": str(params.limit),
            "offset": str(params.offset),
        }
        if params.status is not None:
            statuses = params.status if isinstance(params.status, tuple) else (params.status,)
            query["status"] = _status_filter(statuses)
        response = await self._call(
            "list-jobs",
            self._http.get(
                self._table_url(JOBS_TABLE),
                params=query,
                headers=self._headers(prefer="count=exact"),
                timeout=self._config.request_timeout,
            ),
        )
        self._raise_for_rest("list-jobs", response, "Failed to fetch translation jobs")
        rows = [self._parse("list-jobs", TranslationJob, row) for row in self._rows("list-jobs", response)]
        total = parse_content_range_total(_header(response, "Content-Range"))
        return Page[TranslationJob].from_rows(rows, params.offset, total)

    async def list_job_items(self, params: ListJobItemsParams) -> Page[TranslationJobItem]:
        query = {
            "select": "*,keys(full_key)",
            "job_id": f"eq.{params.job_id}",
            "order": "created_at.asc",
            "limit": str(params.limit),
            "offset": str(params.offset),
        }
        if params.status is not None:
            query["status"] = f"eq.{params.status}"
        response = await self._call(
            "list-items",
            self._http.get(
                self._table_url(JOB_ITEMS_TABLE),
                params=query,
                headers=self._headers(prefer="count=exact"),
                timeout=self._config.request_timeout,
            ),
        )
        self._raise_for_rest("list-items", response, "Failed to fetch job items")
        rows = [
            self._parse("list-items", TranslationJobItem, row)
            for row in self._rows("list-items", response)
        ]
        total = parse_content_range_total(_header(response, "Content-Range"))
        return Page[TranslationJobItem].from_rows(rows, params.offset, total)

    async def get_project_default_locale(self, project_id: str) -> Optional[str]:
        response = await self._call(
            "project",
            self._http.get(
                self._table_url(PROJECTS_TABLE),
                params={"select": "default_locale", "id": f"eq.{project_id}", "limit": "1"},
                headers=self._headers(),
                timeout=self._config.request_timeout,
            ),
        )
        self._raise_for_rest("project", response, "Failed to fetch project")
        rows = self._rows("project", response)
        if not rows:
            return None
        return rows[0].get("default_locale")


def _header(response: Dict[str, Any], name: str) -> Optional[str]:
    # aiohttp's CIMultiDict loses case-insensitivity once copied into a dict
    for key, value in (response.get("headers") or {}).items():
        if key.lower() == name.lower():
            return value
    return None
