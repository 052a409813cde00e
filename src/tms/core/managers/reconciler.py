"""JobCacheReconciler: keeps cached job views consistent with the backend.

It is the only component that writes terminal job state into the cache:

- after create: record the estimated total keys hint, invalidate the active
  and list entries, fetch the new job right away;
- around cancel: snapshot, optimistic write, rollback on failure, final write
  on success;
- after the poller stops seeing a job: fetch the authoritative record once,
  patch it into cached list pages and announce the outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from tms.core.exceptions import TranslationJobError
from tms.core.interfaces.job_backend import TranslationJobBackendPort
from tms.core.interfaces.query_cache import CacheKey, QueryCachePort
from tms.core.interfaces.retry import RetryPort
from tms.core.managers.cache_keys import JobCacheKeys
from tms.core.managers.observers import JobEvents
from tms.core.models.job import JobStatus, TranslationJob
from tms.core.models.requests import (
    CreateTranslationJobRequest,
    CreateTranslationJobResponse,
    Page,
)

logger = logging.getLogger(__name__)


@dataclass
class CacheSnapshot:
    """Pre-write copies of cache entries; None means the entry was absent."""

    job_id: str
    entries: Dict[CacheKey, Any] = field(default_factory=dict)

    @property
    def job(self) -> Optional[TranslationJob]:
        return self.entries.get(JobCacheKeys.detail(self.job_id))


class JobCacheReconciler:
    def __init__(
        self,
        backend: TranslationJobBackendPort,
        cache: QueryCachePort,
        events: Optional[JobEvents] = None,
        retry_port: Optional[RetryPort] = None,
    ) -> None:
        self._backend = backend
        self._cache = cache
        self._events = events or JobEvents()
        self._retry = retry_port
        self._hints: Dict[str, int] = {}
        self._last_active_job_id: Optional[str] = None
        self._reconciled: Set[str] = set()

    # ---------------- Total keys hints -----------------
    def record_hint(self, job_id: str, estimated_total_keys: Optional[int]) -> None:
        if estimated_total_keys is None:
            return
        self._hints[job_id] = estimated_total_keys

    def hint_for(self, job_id: str) -> Optional[int]:
        return self._hints.get(job_id)

    def apply_hint(self, job: TranslationJob) -> TranslationJob:
        return job.with_total_hint(self._hints.get(job.id))

    @property
    def last_active_job_id(self) -> Optional[str]:
        return self._last_active_job_id

    # ---------------- Create -----------------
    async def on_create_success(
        self,
        request: CreateTranslationJobRequest,
        response: CreateTranslationJobResponse,
        estimated_total_keys: Optional[int] = None,
    ) -> Optional[TranslationJob]:
        self.record_hint(response.job_id, estimated_total_keys)
        self._cache.invalidate(JobCacheKeys.active(request.project_id))
        self._cache.invalidate(JobCacheKeys.lists())

        try:
            job = await self._backend.get_job(response.job_id)
        except TranslationJobError as exc:
            logger.warning(
                f"[reconciler:create] could not load new job job_id={response.job_id} error={exc.message}"
            )
            return None
        if job is None:
            logger.debug(f"[reconciler:create] new job not visible yet job_id={response.job_id}")
            return None
        job = self.apply_hint(job)
        self._cache.set(JobCacheKeys.detail(job.id), job)
        return job

    # ---------------- Cancel -----------------
    def snapshot(self, job_id: str) -> CacheSnapshot:
        detail_key = JobCacheKeys.detail(job_id)
        snap = CacheSnapshot(job_id=job_id)
        snap.entries[detail_key] = self._cache.get(detail_key)
        job = snap.job
        if job is not None:
            active_key = JobCacheKeys.active(job.project_id)
            snap.entries[active_key] = self._cache.get(active_key)
        return snap

    def apply_optimistic_cancel(self, snap: CacheSnapshot) -> None:
        job = snap.job
        if job is None:
            return
        optimistic = job.model_copy(
            update={"status": JobStatus.cancelled, "finished_at": datetime.now(timezone.utc)}
        )
        self._cache.set(JobCacheKeys.active(job.project_id), [])
        self._cache.set(JobCacheKeys.detail(job.id), optimistic)

    def rollback(self, snap: CacheSnapshot) -> None:
        for key, value in snap.entries.items():
            if value is None:
                self._cache.delete(key)
            else:
                self._cache.set(key, value)
        logger.debug(f"[reconciler:rollback] restored {len(snap.entries)} entries job_id={snap.job_id}")

    async def on_cancel_success(self, job: TranslationJob) -> TranslationJob:
        server_total = job.total_keys
        job = self.apply_hint(job)
        self._cache.set(JobCacheKeys.detail(job.id), job)
        self._cache.set(JobCacheKeys.active(job.project_id), [])
        self._replace_in_lists(job)
        self._cache.invalidate(JobCacheKeys.lists())
        if self._last_active_job_id == job.id:
            self._last_active_job_id = None
        await self._finish(job, server_total)
        return job

    # ---------------- Poller observations -----------------
    async def observe(self, active_job: Optional[TranslationJob]) -> None:
        """Track the active job seen by the poller; reconcile once it disappears.

        Must be called only after the poller has left the polling state for a
        `None` observation, so the final read never sees a mid-transition job.
        """
        if active_job is not None:
            previous = self._last_active_job_id
            if previous is not None and previous != active_job.id:
                # a new job replaced the tracked one between two polls
                self._last_active_job_id = None
                await self.reconcile(previous)
            self._last_active_job_id = active_job.id
            self._cache.set(JobCacheKeys.detail(active_job.id), self.apply_hint(active_job))
            return

        job_id = self._last_active_job_id
        if job_id is None:
            return
        self._last_active_job_id = None
        await self.reconcile(job_id)

    async def reconcile(self, job_id: str) -> Optional[TranslationJob]:
        """Fetch the final record of `job_id`, patch cached views and notify once."""
        try:
            job = await self._fetch_final(job_id)
        except TranslationJobError as exc:
            logger.error(f"[reconciler:final] fetch failed job_id={job_id} error={exc.message}")
            return None
        if job is None:
            logger.warning(f"[reconciler:final] job disappeared job_id={job_id}")
            return None

        server_total = job.total_keys
        job = self.apply_hint(job)
        self._cache.set(JobCacheKeys.detail(job.id), job)
        self._replace_in_lists(job)
        self._cache.invalidate(JobCacheKeys.lists())

        if not job.is_finished():
            logger.warning(
                f"[reconciler:final] job still active after poller went idle job_id={job.id} status={job.status}"
            )
            return job
        await self._finish(job, server_total)
        return job

    async def _fetch_final(self, job_id: str) -> Optional[TranslationJob]:
        if self._retry is None:
            return await self._backend.get_job(job_id)
        return await self._retry.execute(
            self._backend.get_job,
            job_id,
            retry_if=lambda exc: isinstance(exc, TranslationJobError) and exc.status >= 500,
        )

    async def _finish(self, job: TranslationJob, server_total: Optional[int]) -> None:
        if server_total is not None:
            # the final record carries its own count from now on
            self._hints.pop(job.id, None)
        if job.id in self._reconciled:
            logger.debug(f"[reconciler:finish] already announced job_id={job.id}")
            return
        self._reconciled.add(job.id)
        logger.info(
            f"[reconciler:finish] job_id={job.id} status={job.status} "
            f"completed={job.completed_keys} total={job.total_keys}"
        )
        await self._events.job_finished(job)

    def _replace_in_lists(self, job: TranslationJob) -> None:
        # read-modify-write per page so concurrent pagination is left intact
        for key in self._cache.keys(JobCacheKeys.lists()):
            page = self._cache.get(key)
            if not isinstance(page, Page):
                continue
            if not any(row.id == job.id for row in page.data):
                continue
            rows = [job if row.id == job.id else row for row in page.data]
            self._cache.set(key, page.model_copy(update={"data": rows}))
