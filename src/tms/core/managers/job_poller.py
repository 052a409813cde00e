"""ActiveJobPoller: per-project polling state machine.

States:
    idle     no timer armed and no tick in flight
    polling  an active (pending/running) job was observed and a tick is
             armed or running

Polling discipline:
1. Each tick increments the attempt counter, refetches the active-job query
   and re-arms only if an active job is still observed.
2. The delay before the next tick is `intervals[min(attempt, len-1)]`.
3. After `max_attempts` ticks polling stops with a warning.
4. Ticks are strictly sequential; at most one timer is armed at a time.

Cancellation uses a generation counter: stop/restart/disable/close bump it,
and every continuation compares its captured generation before touching the
cache or arming a timer. Only a sleeping timer task is cancelled; a tick whose
request is already in flight is allowed to finish and is then discarded.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import Awaitable, Callable, Optional, Set

from tms.core.config import PollingConfig
from tms.core.interfaces.job_backend import TranslationJobBackendPort
from tms.core.interfaces.query_cache import QueryCachePort
from tms.core.logging_config import project_id_var
from tms.core.managers.cache_keys import JobCacheKeys
from tms.core.models.job import ACTIVE_STATUSES, TranslationJob

logger = logging.getLogger(__name__)

ObservationCallback = Callable[[Optional[TranslationJob]], Awaitable[None]]


class PollerState(StrEnum):
    idle = "idle"
    polling = "polling"


class ActiveJobPoller:
    """Polls the active translation job of one project with backoff.

    Attributes:
        project_id: Project whose active job is observed
        config: Backoff schedule and attempt cap
    """

    def __init__(
        self,
        project_id: str,
        backend: TranslationJobBackendPort,
        cache: QueryCachePort,
        config: Optional[PollingConfig] = None,
        on_observed: Optional[ObservationCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        enabled: bool = True,
    ) -> None:
        self.project_id = project_id
        self.config = config or PollingConfig()
        self._backend = backend
        self._cache = cache
        self._on_observed = on_observed
        self._sleep = sleep
        self._enabled = enabled

        self._generation = 0
        self._attempt = 0
        self._timer: Optional[asyncio.Task] = None
        self._ticking_generation: Optional[int] = None
        self._tasks: Set[asyncio.Task] = set()
        # set by stop_polling and by the attempt cap; cleared on restart or a newly observed job
        self._suspended = False
        self._closed = False
        self._active_job: Optional[TranslationJob] = None

    # ---------------- Derived state -----------------
    @property
    def active_job(self) -> Optional[TranslationJob]:
        return self._active_job

    @property
    def has_active_job(self) -> bool:
        return self._active_job is not None

    @property
    def is_job_running(self) -> bool:
        return self._active_job is not None and self._active_job.is_running()

    @property
    def is_job_finished(self) -> bool:
        return self._active_job is not None and self._active_job.is_finished()

    @property
    def is_polling(self) -> bool:
        return self._timer is not None

    @property
    def poll_attempt(self) -> int:
        return self._attempt

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def state(self) -> PollerState:
        if self._timer is not None or self._ticking_generation == self._generation:
            return PollerState.polling
        return PollerState.idle

    def next_interval(self) -> float:
        return self.config.interval_for(self._attempt)

    # ---------------- Queries -----------------
    async def refresh(self) -> Optional[TranslationJob]:
        """Query the active job now and arm or disarm polling accordingly.

        Backend errors propagate to the caller; a result that arrives after the
        session was stopped or restarted is discarded.
        """
        generation = self._generation
        jobs = await self._fetch_active()
        if generation != self._generation:
            logger.debug(
                f"[poller:refresh] discarding stale result project_id={self.project_id} "
                f"generation={generation} current={self._generation}"
            )
            return self._active_job
        await self._apply_observation(jobs)
        self._arm_if_needed()
        return self._active_job

    async def _fetch_active(self) -> list[TranslationJob]:
        return await self._backend.find_jobs(self.project_id, sorted(ACTIVE_STATUSES), limit=1)

    async def _apply_observation(self, jobs: list[TranslationJob]) -> None:
        self._cache.set(JobCacheKeys.active(self.project_id), jobs)
        job = jobs[0] if jobs else None
        previous = self._active_job
        self._active_job = job

        if job is not None and (previous is None or previous.id != job.id):
            # a newly detected job starts a fresh polling session
            self._suspended = False
        if job is None and previous is not None:
            self._disarm(reset_attempts=True)
            logger.debug(
                f"[poller:idle] no active job project_id={self.project_id} last_job_id={previous.id}"
            )

        if self._on_observed is not None:
            await self._on_observed(job)

    # ---------------- Scheduling -----------------
    def _arm_if_needed(self) -> None:
        if self._closed or not self._enabled or self._suspended:
            return
        if self._active_job is None:
            return
        if self._timer is not None or self._ticking_generation == self._generation:
            return
        if self._attempt >= self.config.max_attempts:
            logger.warning(
                f"[poller:cap] max attempts reached project_id={self.project_id} "
                f"attempts={self._attempt}; polling stopped"
            )
            self._suspended = True
            self._attempt = 0
            return

        delay = self.next_interval()
        generation = self._generation
        logger.debug(
            f"[poller:arm] project_id={self.project_id} attempt={self._attempt} delay={delay}"
        )
        task = asyncio.create_task(self._run_timer(generation, delay))
        self._timer = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_timer(self, generation: int, delay: float) -> None:
        project_id_var.set(self.project_id)
        await self._sleep(delay)
        if generation != self._generation:
            return
        # from here on the tick is no longer cancellable through the timer handle
        self._timer = None
        self._ticking_generation = generation
        try:
            await self._tick(generation)
        finally:
            if self._ticking_generation == generation:
                self._ticking_generation = None
        if generation == self._generation:
            self._arm_if_needed()

    async def _tick(self, generation: int) -> None:
        self._attempt += 1
        attempt = self._attempt
        try:
            jobs = await self._fetch_active()
        except Exception as exc:
            # failed ticks still count toward the attempt budget
            logger.warning(
                f"[poller:tick] fetch failed project_id={self.project_id} attempt={attempt} error={exc}"
            )
            return
        if generation != self._generation:
            logger.debug(
                f"[poller:tick] discarding result after cancellation project_id={self.project_id} attempt={attempt}"
            )
            return
        logger.debug(
            f"[poller:tick] project_id={self.project_id} attempt={attempt} active={bool(jobs)}"
        )
        await self._apply_observation(jobs)

    def _disarm(self, reset_attempts: bool) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if reset_attempts:
            self._attempt = 0

    # ---------------- Manual control -----------------
    def stop_polling(self) -> None:
        """Clear the pending timer and reset the attempt counter. Idempotent."""
        self._disarm(reset_attempts=True)
        self._suspended = True
        logger.debug(f"[poller:stop] project_id={self.project_id}")

    def interrupt(self) -> None:
        """Drop the armed timer and any in-flight tick result, keeping the attempt count.

        The next `refresh` re-arms polling; used around writes whose outcome a
        late tick must not overwrite.
        """
        self._disarm(reset_attempts=False)

    async def start_polling(self) -> None:
        """Restart polling from attempt 0 with an immediate refetch.

        No-op unless polling is enabled and an active job is currently observed.
        """
        if self._closed or not self._enabled or not self.has_active_job:
            return
        self._disarm(reset_attempts=True)
        self._suspended = False
        logger.debug(f"[poller:start] project_id={self.project_id}")
        await self.refresh()

    def set_enabled(self, enabled: bool) -> None:
        if enabled == self._enabled:
            return
        self._enabled = enabled
        if not enabled:
            self._disarm(reset_attempts=True)
        else:
            self._suspended = False
            self._arm_if_needed()

    async def close(self) -> None:
        """Stop polling for good.

        Only the sleeping timer is cancelled. A tick already past its sleep is
        awaited so its final read and notification complete; the generation
        bump keeps it from re-arming.
        """
        self._closed = True
        self._disarm(reset_attempts=True)
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
