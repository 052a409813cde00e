"""Unit tests for JobCacheReconciler.

Covers total keys hints, create/cancel cache writes, rollback and the
exactly-once reconciliation after the poller goes idle.
"""

import pytest

from tms.adapters.retry_tenacity import TenacityRetryAdapter
from tms.core.exceptions import NotFoundError, UpstreamServiceError
from tms.core.interfaces.notifier import NoticeLevel
from tms.core.managers.cache_keys import JobCacheKeys
from tms.core.managers.job_poller import ActiveJobPoller
from tms.core.managers.observers import JobEvents, NotificationObserver
from tms.core.managers.reconciler import JobCacheReconciler
from tms.core.models.job import JobStatus
from tms.core.models.requests import (
    CreateTranslationJobRequest,
    CreateTranslationJobResponse,
    ListTranslationJobsParams,
    Page,
)


# --- Test Fixtures ---

@pytest.fixture
def events(notifier):
    return JobEvents([NotificationObserver(notifier)])


@pytest.fixture
def reconciler(backend, cache, events):
    return JobCacheReconciler(backend, cache, events)


@pytest.fixture
def poller(project_id, backend, cache, reconciler, manual_sleep):
    return ActiveJobPoller(
        project_id, backend, cache, on_observed=reconciler.observe, sleep=manual_sleep
    )


@pytest.fixture
def list_params(project_id):
    return ListTranslationJobsParams(project_id=project_id)


class TestHints:
    """Estimated totals fill a missing count and never override a server value."""

    def test_hint_fills_missing_total(self, reconciler, make_job):
        reconciler.record_hint(make_job().id, 42)

        job = reconciler.apply_hint(make_job(total_keys=None))

        assert job.total_keys == 42

    def test_server_total_wins(self, reconciler, make_job):
        reconciler.record_hint(make_job().id, 42)

        job = reconciler.apply_hint(make_job(total_keys=40))

        assert job.total_keys == 40

    def test_missing_hint_is_ignored(self, reconciler, make_job):
        reconciler.record_hint(make_job().id, None)

        assert reconciler.hint_for(make_job().id) is None
        assert reconciler.apply_hint(make_job(total_keys=None)).total_keys is None


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_success_invalidates_and_loads_job(
        self, reconciler, backend, cache, project_id, key_ids, list_params, make_job
    ):
        cache.set(JobCacheKeys.active(project_id), [])
        cache.set(JobCacheKeys.list(list_params), Page.from_rows([], 0, 0))
        request = CreateTranslationJobRequest(
            project_id=project_id, mode="selected", target_locale="de", key_ids=key_ids
        )
        response = await backend.submit_job(request)

        job = await reconciler.on_create_success(request, response, estimated_total_keys=3)

        assert job.id == response.job_id
        assert job.total_keys == 3
        assert cache.get(JobCacheKeys.detail(job.id)).total_keys == 3
        assert cache.is_stale(JobCacheKeys.active(project_id))
        assert cache.is_stale(JobCacheKeys.list(list_params))

    @pytest.mark.asyncio
    async def test_create_success_tolerates_failed_read(self, reconciler, backend, project_id):
        request = CreateTranslationJobRequest(project_id=project_id, mode="all", target_locale="de")
        response = CreateTranslationJobResponse(job_id="x", status=JobStatus.pending)
        backend.fail("get_job", UpstreamServiceError("unavailable"))

        assert await reconciler.on_create_success(request, response, 5) is None
        assert reconciler.hint_for("x") == 5


class TestCancelCacheWrites:
    def test_rollback_restores_exact_state(self, reconciler, cache, make_job, project_id):
        job = make_job()
        cache.set(JobCacheKeys.detail(job.id), job)
        cache.set(JobCacheKeys.active(project_id), [job])
        before = {
            JobCacheKeys.detail(job.id): cache.get(JobCacheKeys.detail(job.id)),
            JobCacheKeys.active(project_id): cache.get(JobCacheKeys.active(project_id)),
        }

        snap = reconciler.snapshot(job.id)
        reconciler.apply_optimistic_cancel(snap)
        assert cache.get(JobCacheKeys.detail(job.id)).status == JobStatus.cancelled
        assert cache.get(JobCacheKeys.active(project_id)) == []

        reconciler.rollback(snap)

        for key, value in before.items():
            assert cache.get(key) == value

    def test_rollback_removes_entries_that_did_not_exist(self, reconciler, cache, make_job):
        snap = reconciler.snapshot(make_job().id)
        reconciler.apply_optimistic_cancel(snap)

        reconciler.rollback(snap)

        assert cache.keys(JobCacheKeys.ALL) == []

    @pytest.mark.asyncio
    async def test_cancel_success_writes_terminal_record_once(
        self, reconciler, cache, notifier, make_job, project_id, list_params
    ):
        running = make_job()
        cache.set(JobCacheKeys.list(list_params), Page.from_rows([running], 0, 1))
        cancelled = make_job(status=JobStatus.cancelled)

        await reconciler.on_cancel_success(cancelled)
        await reconciler.on_cancel_success(cancelled)

        assert cache.get(JobCacheKeys.detail(running.id)).status == JobStatus.cancelled
        assert cache.get(JobCacheKeys.active(project_id)) == []
        assert cache.get(JobCacheKeys.list(list_params)).data[0].status == JobStatus.cancelled
        assert cache.is_stale(JobCacheKeys.list(list_params))
        assert notifier.notices == [
            (NoticeLevel.neutral, "Translation job cancelled", "Job for de has been cancelled.")
        ]


class TestReconciliation:
    """Transition-to-idle reconciliation through the poller."""

    @pytest.mark.asyncio
    async def test_running_to_completed_notifies_exactly_once(
        self, poller, backend, notifier, make_job, manual_sleep
    ):
        job = backend.add_job(make_job(total_keys=10))
        await poller.refresh()
        await manual_sleep.fire()
        backend.update_job(job.id, status=JobStatus.completed, completed_keys=10)

        await manual_sleep.fire()
        await poller.refresh()
        await poller.refresh()

        assert notifier.notices == [
            (
                NoticeLevel.success,
                "Translation job completed",
                "Successfully translated 10 of 10 keys for de.",
            )
        ]

    @pytest.mark.asyncio
    async def test_failed_job_notice(self, poller, backend, notifier, make_job, manual_sleep):
        job = backend.add_job(make_job())
        await poller.refresh()
        backend.update_job(job.id, status=JobStatus.failed, completed_keys=4)

        await manual_sleep.fire()

        assert notifier.notices == [
            (
                NoticeLevel.error,
                "Translation job failed",
                "Job for de failed. 4 keys were translated before failure.",
            )
        ]

    @pytest.mark.asyncio
    async def test_final_record_replaces_list_rows(
        self, poller, backend, cache, make_job, list_params, manual_sleep
    ):
        other = make_job(id="55555555-5555-4555-8555-555555555555", status=JobStatus.completed)
        job = backend.add_job(make_job(total_keys=None))
        cache.set(JobCacheKeys.list(list_params), Page.from_rows([job, other], 0, 2))
        await poller.refresh()
        backend.update_job(job.id, status=JobStatus.completed, completed_keys=7, total_keys=7)

        await manual_sleep.fire()

        page = cache.get(JobCacheKeys.list(list_params))
        assert [row.status for row in page.data] == [JobStatus.completed, JobStatus.completed]
        assert page.data[0].completed_keys == 7
        assert page.data[1] == other
        assert page.metadata.total == 2
        assert cache.get(JobCacheKeys.detail(job.id)).completed_keys == 7

    @pytest.mark.asyncio
    async def test_replaced_active_job_is_reconciled(self, reconciler, backend, notifier, make_job):
        first = backend.add_job(make_job())
        await reconciler.observe(first)
        backend.update_job(first.id, status=JobStatus.completed, completed_keys=10)
        second = backend.add_job(make_job(id="66666666-6666-4666-8666-666666666666", status=JobStatus.pending))

        await reconciler.observe(second)

        assert notifier.titles() == ["Translation job completed"]
        assert reconciler.last_active_job_id == second.id

    @pytest.mark.asyncio
    async def test_vanished_job_is_not_announced(self, reconciler, backend, notifier, make_job):
        job = make_job()
        await reconciler.observe(job)

        await reconciler.observe(None)

        assert notifier.notices == []
        assert reconciler.last_active_job_id is None

    @pytest.mark.asyncio
    async def test_final_read_is_retried_on_upstream_errors(self, backend, cache, events, notifier, make_job):
        reconciler = JobCacheReconciler(
            backend, cache, events, retry_port=TenacityRetryAdapter(attempts=3, wait_initial=0, wait_max=0)
        )
        job = backend.add_job(make_job(status=JobStatus.completed, completed_keys=10))
        backend.fail("get_job", UpstreamServiceError("unavailable"), times=2)

        result = await reconciler.reconcile(job.id)

        assert result.status == JobStatus.completed
        assert backend.count("get_job") == 3
        assert notifier.titles() == ["Translation job completed"]

    @pytest.mark.asyncio
    async def test_final_read_does_not_retry_client_errors(self, backend, cache, events, make_job):
        reconciler = JobCacheReconciler(
            backend, cache, events, retry_port=TenacityRetryAdapter(attempts=3, wait_initial=0, wait_max=0)
        )
        backend.fail("get_job", NotFoundError("gone"))

        assert await reconciler.reconcile(make_job().id) is None
        assert backend.count("get_job") == 1

    @pytest.mark.asyncio
    async def test_hint_is_released_once_final_record_has_total(self, reconciler, backend, make_job):
        job = backend.add_job(make_job(status=JobStatus.completed, total_keys=50, completed_keys=50))
        reconciler.record_hint(job.id, 42)

        result = await reconciler.reconcile(job.id)

        assert result.total_keys == 50
        assert reconciler.hint_for(job.id) is None

    @pytest.mark.asyncio
    async def test_hint_is_kept_while_final_record_lacks_total(self, reconciler, backend, make_job):
        job = backend.add_job(make_job(status=JobStatus.completed, total_keys=None, completed_keys=3))
        reconciler.record_hint(job.id, 3)

        result = await reconciler.reconcile(job.id)

        assert result.total_keys == 3
        assert reconciler.hint_for(job.id) == 3

    @pytest.mark.asyncio
    async def test_cancel_success_releases_hint(self, reconciler, make_job):
        reconciler.record_hint(make_job().id, 42)

        await reconciler.on_cancel_success(make_job(status=JobStatus.cancelled, total_keys=40))

        assert reconciler.hint_for(make_job().id) is None
