"""Shared test adapters and fixtures.

The fakes implement the ports (backend, notifier, sleep) instead of mocking
internals, so managers run their real code paths against in-memory state.
"""

import asyncio
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

import pytest

from tms.adapters.query_cache_inmemory import InMemoryQueryCache
from tms.core.constants import ErrorMessages
from tms.core.exceptions import ConflictError
from tms.core.interfaces.job_backend import TranslationJobBackendPort
from tms.core.interfaces.notifier import NoticeLevel
from tms.core.models.job import JobStatus, TranslationJob, TranslationMode
from tms.core.models.job_item import TranslationJobItem
from tms.core.models.requests import (
    CreateTranslationJobRequest,
    CreateTranslationJobResponse,
    ListJobItemsParams,
    ListTranslationJobsParams,
    Page,
)

PROJECT_ID = "11111111-1111-4111-8111-111111111111"
JOB_ID = "22222222-2222-4222-8222-222222222222"
KEY_IDS = [
    "33333333-3333-4333-8333-333333333301",
    "33333333-3333-4333-8333-333333333302",
    "33333333-3333-4333-8333-333333333303",
]
BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def build_job(**overrides) -> TranslationJob:
    data = dict(
        id=JOB_ID,
        project_id=PROJECT_ID,
        mode=TranslationMode.selected,
        source_locale="en",
        target_locale="de",
        status=JobStatus.running,
        total_keys=10,
        completed_keys=0,
        created_at=BASE_TIME,
    )
    data.update(overrides)
    return TranslationJob(**data)


# --- Test Adapters ---

class FakeBackend(TranslationJobBackendPort):
    """In-memory backend enforcing the single-active-job rule."""

    def __init__(self):
        self.jobs: Dict[str, TranslationJob] = {}
        self.items: Dict[str, List[TranslationJobItem]] = {}
        self.default_locales: Dict[str, str] = {PROJECT_ID: "en"}
        self.calls: List[str] = []
        self.errors: Dict[str, List[Exception]] = {}
        self.find_gate: Optional[asyncio.Event] = None
        self.get_gate: Optional[asyncio.Event] = None
        self.items_gate: Optional[asyncio.Event] = None
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)

    # helpers for tests
    def add_job(self, job: TranslationJob) -> TranslationJob:
        self.jobs[job.id] = job
        return job

    def update_job(self, job_id: str, **update) -> TranslationJob:
        job = self.jobs[job_id].model_copy(update=update)
        self.jobs[job_id] = job
        return job

    def fail(self, method: str, exc: Exception, times: int = 1) -> None:
        self.errors.setdefault(method, []).extend([exc] * times)

    def count(self, method: str) -> int:
        return self.calls.count(method)

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        queue = self.errors.get(method)
        if queue:
            raise queue.pop(0)

    # port
    async def submit_job(self, request: CreateTranslationJobRequest) -> CreateTranslationJobResponse:
        self._enter("submit_job")
        if any(j.project_id == request.project_id and j.is_active() for j in self.jobs.values()):
            raise ConflictError(ErrorMessages.ACTIVE_JOB_EXISTS, cause="unique active job")
        job_id = str(uuid.UUID(int=next(self._ids)))
        self.jobs[job_id] = TranslationJob(
            id=job_id,
            project_id=request.project_id,
            mode=request.mode,
            source_locale=self.default_locales.get(request.project_id, "en"),
            target_locale=request.target_locale,
            status=JobStatus.pending,
            created_at=BASE_TIME + timedelta(seconds=next(self._clock)),
        )
        return CreateTranslationJobResponse(
            job_id=job_id, status=JobStatus.pending, message="Translation job created"
        )

    async def get_job(self, job_id: str) -> Optional[TranslationJob]:
        self._enter("get_job")
        if self.get_gate is not None:
            await self.get_gate.wait()
        return self.jobs.get(job_id)

    async def find_jobs(
        self, project_id: str, statuses: Sequence[JobStatus], limit: int = 1
    ) -> list[TranslationJob]:
        self._enter("find_jobs")
        if self.find_gate is not None:
            await self.find_gate.wait()
        jobs = [j for j in self.jobs.values() if j.project_id == project_id and j.status in statuses]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    async def mark_cancelled(self, job_id: str, finished_at: datetime) -> Optional[TranslationJob]:
        self._enter("mark_cancelled")
        job = self.jobs.get(job_id)
        if job is None or not job.is_cancellable():
            return None
        return self.update_job(job_id, status=JobStatus.cancelled, finished_at=finished_at)

    async def list_jobs(self, params: ListTranslationJobsParams) -> Page[TranslationJob]:
        self._enter("list_jobs")
        jobs = [j for j in self.jobs.values() if j.project_id == params.project_id]
        if params.status is not None:
            wanted = params.status if isinstance(params.status, tuple) else (params.status,)
            jobs = [j for j in jobs if j.status in wanted]
        field, direction = params.order.split(".")
        jobs.sort(key=lambda j: getattr(j, field), reverse=direction == "desc")
        rows = jobs[params.offset: params.offset + params.limit]
        return Page[TranslationJob].from_rows(rows, params.offset, len(jobs))

    async def list_job_items(self, params: ListJobItemsParams) -> Page[TranslationJobItem]:
        self._enter("list_job_items")
        if self.items_gate is not None:
            await self.items_gate.wait()
        items = list(self.items.get(params.job_id, []))
        if params.status is not None:
            items = [i for i in items if i.status == params.status]
        rows = items[params.offset: params.offset + params.limit]
        return Page[TranslationJobItem].from_rows(rows, params.offset, len(items))

    async def get_project_default_locale(self, project_id: str) -> Optional[str]:
        self._enter("get_project_default_locale")
        return self.default_locales.get(project_id)


class RecordingNotifier:
    def __init__(self):
        self.notices: List[tuple] = []

    def notify(self, level: NoticeLevel, title: str, description: str) -> None:
        self.notices.append((level, title, description))

    def titles(self) -> List[str]:
        return [title for _, title, _ in self.notices]


async def settle(rounds: int = 25) -> None:
    """Let every ready task run until the loop is quiet."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ManualSleep:
    """Injectable sleep: records each delay and blocks until `fire` releases it."""

    def __init__(self):
        self.delays: List[float] = []
        self._waiters: List[asyncio.Future] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    async def settle(self) -> None:
        await settle()

    @property
    def pending(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def fire(self) -> None:
        """Release the armed timer and let its tick run to completion."""
        await settle()
        waiter = next((w for w in self._waiters if not w.done()), None)
        assert waiter is not None, "no timer armed"
        waiter.set_result(None)
        await settle()


# --- Test Fixtures ---

@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def cache():
    return InMemoryQueryCache()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def manual_sleep():
    return ManualSleep()


@pytest.fixture
def make_job():
    return build_job


@pytest.fixture
def project_id():
    return PROJECT_ID


@pytest.fixture
def job_id():
    return JOB_ID


@pytest.fixture
def key_ids():
    return list(KEY_IDS)
