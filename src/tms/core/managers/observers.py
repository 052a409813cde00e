"""Lifecycle event dispatch and the concrete observers.

- `JobEvents` fans an event out to every registered observer; a failing
  observer is logged and skipped.
- `NotificationObserver` turns lifecycle events into user-facing notices.
- `AuditLogObserver` records every event in the log.
"""

import logging
from typing import Iterable, Optional

from tms.core.exceptions import TranslationJobError, user_message
from tms.core.interfaces.notifier import NoticeLevel, NotifierPort
from tms.core.interfaces.observers import JobLifecycleObserver
from tms.core.models.job import JobStatus, TranslationJob
from tms.core.models.requests import CreateTranslationJobRequest, CreateTranslationJobResponse


logger = logging.getLogger(__name__)


class JobEvents:
    def __init__(self, observers: Optional[Iterable[JobLifecycleObserver]] = None):
        self._observers = list(observers or [])

    def add(self, observer: JobLifecycleObserver) -> None:
        self._observers.append(observer)

    async def job_created(
        self, request: CreateTranslationJobRequest, response: CreateTranslationJobResponse
    ) -> None:
        for observer in self._observers:
            try:
                await observer.on_job_created(request, response)
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_job_created failed observer={type(observer).__name__} "
                    f"job_id={response.job_id} error={exc}"
                )

    async def job_cancelled(self, job: TranslationJob) -> None:
        for observer in self._observers:
            try:
                await observer.on_job_cancelled(job)
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_job_cancelled failed observer={type(observer).__name__} "
                    f"job_id={job.id} error={exc}"
                )

    async def job_finished(self, job: TranslationJob) -> None:
        for observer in self._observers:
            try:
                await observer.on_job_finished(job)
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_job_finished failed observer={type(observer).__name__} "
                    f"job_id={job.id} error={exc}"
                )

    async def command_failed(self, command: str, error: TranslationJobError) -> None:
        for observer in self._observers:
            try:
                await observer.on_command_failed(command, error)
            except Exception as exc:
                logger.error(
                    f"[observer:error] on_command_failed failed observer={type(observer).__name__} "
                    f"command={command} error={exc}"
                )


class NotificationObserver:
    """Emits exactly one notice per lifecycle event through a NotifierPort.

    Terminal notices come from `on_job_finished` only, which the reconciler
    fires once per job; a successful cancel is announced there as well.
    """

    _FAILED_TITLES = {
        "create": "Failed to create translation job",
        "cancel": "Failed to cancel job",
    }

    def __init__(self, notifier: NotifierPort):
        self._notifier = notifier

    async def on_job_created(
        self,
        request: CreateTranslationJobRequest,
        response: CreateTranslationJobResponse,
    ) -> None:
        self._notifier.notify(
            NoticeLevel.success,
            "Translation job created",
            f"Job for {request.target_locale} has been created and is now processing.",
        )

    async def on_job_cancelled(self, job: TranslationJob) -> None:
        pass

    async def on_job_finished(self, job: TranslationJob) -> None:
        completed = job.completed_keys or 0
        total = job.total_keys or 0
        if job.status == JobStatus.completed:
            self._notifier.notify(
                NoticeLevel.success,
                "Translation job completed",
                f"Successfully translated {completed} of {total} keys for {job.target_locale}.",
            )
        elif job.status == JobStatus.failed:
            self._notifier.notify(
                NoticeLevel.error,
                "Translation job failed",
                f"Job for {job.target_locale} failed. {completed} keys were translated before failure.",
            )
        elif job.status == JobStatus.cancelled:
            self._notifier.notify(
                NoticeLevel.neutral,
                "Translation job cancelled",
                f"Job for {job.target_locale} has been cancelled.",
            )

    async def on_command_failed(self, command: str, error: TranslationJobError) -> None:
        title = self._FAILED_TITLES.get(command, "Translation job operation failed")
        self._notifier.notify(NoticeLevel.error, title, user_message(error))


class AuditLogObserver:
    """Logs lifecycle events, including the diagnostic cause of failures."""

    async def on_job_created(
        self,
        request: CreateTranslationJobRequest,
        response: CreateTranslationJobResponse,
    ) -> None:
        logger.info(
            f"[audit:create] job_id={response.job_id} project_id={request.project_id} "
            f"mode={request.mode} target_locale={request.target_locale} keys={len(request.key_ids)}"
        )

    async def on_job_cancelled(self, job: TranslationJob) -> None:
        logger.info(f"[audit:cancel] job_id={job.id} finished_at={job.finished_at}")

    async def on_job_finished(self, job: TranslationJob) -> None:
        logger.info(
            f"[audit:finished] job_id={job.id} status={job.status} "
            f"completed={job.completed_keys} failed={job.failed_keys} total={job.total_keys}"
        )

    async def on_command_failed(self, command: str, error: TranslationJobError) -> None:
        logger.warning(
            f"[audit:failed] command={command} error={type(error).__name__} "
            f"status={error.status} cause={error.cause!r}"
        )
