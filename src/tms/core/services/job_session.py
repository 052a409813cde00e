"""TranslationJobSession: everything one project view needs about translation jobs.

Wires the command client, the active-job poller and the cache reconciler
around a shared query cache. The poller reports every observation to the
reconciler, which announces finished jobs exactly once.

Usage:

    async with TranslationJobSession(project_id, backend, cache, events) as session:
        await session.create_job("selected", "de", key_ids=[...])
        ...
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

import pydantic

from tms.core.config import PollingConfig
from tms.core.exceptions import TranslationJobError
from tms.core.interfaces.job_backend import TranslationJobBackendPort
from tms.core.interfaces.query_cache import CacheKey, QueryCachePort
from tms.core.interfaces.retry import RetryPort
from tms.core.managers.cache_keys import JobCacheKeys
from tms.core.managers.job_commands import JobCommandClient, estimate_total_keys
from tms.core.managers.job_poller import ActiveJobPoller
from tms.core.managers.observers import JobEvents
from tms.core.managers.reconciler import JobCacheReconciler
from tms.core.models.job import JobStatus, TranslationJob, TranslationJobParams, TranslationMode
from tms.core.models.job_item import ItemStatus, TranslationJobItem
from tms.core.models.requests import (
    CreateTranslationJobResponse,
    ListJobItemsParams,
    ListTranslationJobsParams,
    Page,
)
from tms.core.utils.error_mapping import from_pydantic_error


logger = logging.getLogger(__name__)


class TranslationJobSession:
    def __init__(
        self,
        project_id: str,
        backend: TranslationJobBackendPort,
        cache: QueryCachePort,
        events: Optional[JobEvents] = None,
        retry_port: Optional[RetryPort] = None,
        polling_config: Optional[PollingConfig] = None,
        default_locale: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        enabled: bool = True,
    ) -> None:
        self.project_id = project_id
        self.default_locale = default_locale
        self.events = events or JobEvents()
        self._backend = backend
        self._cache = cache
        self.reconciler = JobCacheReconciler(backend, cache, self.events, retry_port)
        self.commands = JobCommandClient(backend, cache, self.reconciler, self.events)
        self.poller = ActiveJobPoller(
            project_id,
            backend,
            cache,
            config=polling_config,
            on_observed=self.reconciler.observe,
            sleep=sleep,
            enabled=enabled,
        )

    # ---------------- Lifecycle -----------------
    async def open(self) -> "TranslationJobSession":
        """Load the active job and start polling if one is running. Errors propagate."""
        logger.info(f"[session:open] project_id={self.project_id}")
        await self.poller.refresh()
        return self

    async def close(self) -> None:
        await self.poller.close()
        await self._cache.cancel_pending(JobCacheKeys.ALL)
        logger.info(f"[session:close] project_id={self.project_id}")

    async def __aenter__(self) -> "TranslationJobSession":
        return await self.open()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    # ---------------- Snapshot -----------------
    @property
    def active_job(self) -> Optional[TranslationJob]:
        job = self.poller.active_job
        return self.reconciler.apply_hint(job) if job is not None else None

    @property
    def has_active_job(self) -> bool:
        return self.poller.has_active_job

    @property
    def is_job_running(self) -> bool:
        return self.poller.is_job_running

    @property
    def is_job_finished(self) -> bool:
        return self.poller.is_job_finished

    @property
    def is_polling(self) -> bool:
        return self.poller.is_polling

    @property
    def poll_attempt(self) -> int:
        return self.poller.poll_attempt

    # ---------------- Commands -----------------
    async def create_job(
        self,
        mode: TranslationMode | str,
        target_locale: str,
        key_ids: Sequence[str] = (),
        params: Optional[TranslationJobParams | dict[str, Any]] = None,
        project_key_count: Optional[int] = None,
    ) -> CreateTranslationJobResponse:
        response = await self.commands.create_job(
            self.project_id,
            mode,
            target_locale,
            key_ids=key_ids,
            params=params,
            default_locale=self.default_locale,
            estimated_total_keys=estimate_total_keys(mode, key_ids, project_key_count),
        )
        await self._refresh_after("create")
        return response

    async def cancel_job(self, job_id: str) -> TranslationJob:
        # a tick answered before the cancel landed must not resurrect the job
        self.poller.interrupt()
        try:
            return await self.commands.cancel_job(job_id)
        finally:
            await self._refresh_after("cancel")

    async def _refresh_after(self, command: str) -> None:
        try:
            await self.poller.refresh()
        except TranslationJobError as exc:
            # the command itself succeeded or already raised; polling recovers on the next refresh
            logger.warning(
                f"[session:{command}] active job refresh failed project_id={self.project_id} error={exc.message}"
            )

    # ---------------- Polling control -----------------
    async def start_polling(self) -> None:
        await self.poller.start_polling()

    def stop_polling(self) -> None:
        self.poller.stop_polling()

    def set_enabled(self, enabled: bool) -> None:
        self.poller.set_enabled(enabled)

    # ---------------- Queries -----------------
    async def list_jobs(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order: Optional[str] = None,
        status: Optional[JobStatus | str | Sequence[JobStatus | str]] = None,
    ) -> Page[TranslationJob]:
        query: dict[str, Any] = {"project_id": self.project_id}
        for name, value in (("limit", limit), ("offset", offset), ("order", order), ("status", status)):
            if value is not None:
                query[name] = list(value) if name == "status" and not isinstance(value, str) else value
        try:
            params = ListTranslationJobsParams(**query)
        except pydantic.ValidationError as exc:
            raise from_pydantic_error(exc) from exc

        page = await self._fetch_page(JobCacheKeys.list(params), lambda: self._backend.list_jobs(params))
        return self.display_jobs(page)

    async def list_job_items(
        self,
        job_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        status: Optional[ItemStatus | str] = None,
    ) -> Page[TranslationJobItem]:
        query: dict[str, Any] = {"job_id": job_id}
        for name, value in (("limit", limit), ("offset", offset), ("status", status)):
            if value is not None:
                query[name] = value
        try:
            params = ListJobItemsParams(**query)
        except pydantic.ValidationError as exc:
            raise from_pydantic_error(exc) from exc

        return await self._fetch_page(
            JobCacheKeys.items(job_id, params), lambda: self._backend.list_job_items(params)
        )

    async def _fetch_page(self, key: CacheKey, loader: Callable[[], Awaitable[Page[Any]]]) -> Page[Any]:
        page = await self._cache.fetch(key, loader)
        if page is None:
            # shared fetch was cancelled before anything was cached
            page = await self._cache.fetch(key, loader)
        return page

    async def load_job(self, job_id: str) -> Optional[TranslationJob]:
        """Fetch one job by id and store it under its detail key."""
        job = await self._backend.get_job(job_id)
        if job is None:
            self._cache.delete(JobCacheKeys.detail(job_id))
            return None
        job = self.reconciler.apply_hint(job)
        self._cache.set(JobCacheKeys.detail(job.id), job)
        return job

    def display_jobs(self, page: Page[TranslationJob]) -> Page[TranslationJob]:
        """Overlay the live active job and the total keys hints on a list page."""
        active = self.active_job
        rows = []
        for row in page.data:
            if active is not None and row.id == active.id:
                rows.append(active)
            else:
                rows.append(self.reconciler.apply_hint(row))
        return page.model_copy(update={"data": rows})
