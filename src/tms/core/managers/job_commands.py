"""JobCommandClient: validated create and cancel commands.

Create:
1. Validate the request locally (ids, locale format, mode/key_ids agreement).
2. Reject a target locale equal to the project's default locale.
3. Submit to the job-creation endpoint; the backend re-checks everything and
   answers 409 when another job is active.
4. Let the reconciler record the total keys hint and refresh cached views.

Cancel:
1. Read the current status; only pending/running jobs are cancellable.
2. Optimistically mark the cached job cancelled, then submit the conditional
   update; on failure the cache is restored from the pre-write snapshot.

Neither command is retried automatically.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import pydantic

from tms.core.constants import ErrorMessages
from tms.core.exceptions import (
    NotCancellableError,
    NotFoundError,
    TranslationJobError,
    ValidationError,
)
from tms.core.interfaces.job_backend import TranslationJobBackendPort
from tms.core.interfaces.query_cache import QueryCachePort
from tms.core.managers.cache_keys import JobCacheKeys
from tms.core.managers.mutations import mutate_with_compensation
from tms.core.managers.observers import JobEvents
from tms.core.managers.reconciler import JobCacheReconciler
from tms.core.models.job import TranslationJob, TranslationJobParams, TranslationMode
from tms.core.models.requests import (
    CancelTranslationJobRequest,
    CreateTranslationJobRequest,
    CreateTranslationJobResponse,
)
from tms.core.utils.error_mapping import from_pydantic_error

logger = logging.getLogger(__name__)


def estimate_total_keys(
    mode: TranslationMode | str,
    key_ids: Sequence[str],
    project_key_count: Optional[int] = None,
) -> Optional[int]:
    """Best local guess of a new job's key count, shown until the backend knows it."""
    if mode == TranslationMode.all:
        return project_key_count
    if mode == TranslationMode.single:
        return 1
    return len(key_ids)


class JobCommandClient:
    def __init__(
        self,
        backend: TranslationJobBackendPort,
        cache: QueryCachePort,
        reconciler: JobCacheReconciler,
        events: Optional[JobEvents] = None,
    ) -> None:
        self._backend = backend
        self._cache = cache
        self._reconciler = reconciler
        self._events = events or JobEvents()

    @staticmethod
    def build_create_request(
        project_id: str,
        mode: TranslationMode | str,
        target_locale: str,
        key_ids: Sequence[str] = (),
        params: Optional[TranslationJobParams | dict[str, Any]] = None,
    ) -> CreateTranslationJobRequest:
        """Validate a create intent; raises ValidationError without any I/O."""
        try:
            return CreateTranslationJobRequest(
                project_id=project_id,
                mode=mode,
                target_locale=target_locale,
                key_ids=list(key_ids),
                params=params,
            )
        except pydantic.ValidationError as exc:
            raise from_pydantic_error(exc) from exc

    async def create_job(
        self,
        project_id: str,
        mode: TranslationMode | str,
        target_locale: str,
        key_ids: Sequence[str] = (),
        params: Optional[TranslationJobParams | dict[str, Any]] = None,
        default_locale: Optional[str] = None,
        estimated_total_keys: Optional[int] = None,
    ) -> CreateTranslationJobResponse:
        """Create a translation job.

        `default_locale` is looked up from the project when not given.
        `estimated_total_keys` is shown as the job's total until the backend
        reports one.
        """
        try:
            request = self.build_create_request(project_id, mode, target_locale, key_ids, params)
            await self._check_target_locale(request, default_locale)
            logger.info(
                f"[job:create] submitting project_id={request.project_id} mode={request.mode} "
                f"target_locale={request.target_locale} keys={len(request.key_ids)}"
            )
            response = await self._backend.submit_job(request)
        except TranslationJobError as exc:
            logger.warning(f"[job:create] rejected error={type(exc).__name__} message={exc.message}")
            await self._events.command_failed("create", exc)
            raise

        logger.info(f"[job:create] accepted job_id={response.job_id} status={response.status}")
        await self._reconciler.on_create_success(request, response, estimated_total_keys)
        await self._events.job_created(request, response)
        return response

    async def _check_target_locale(
        self, request: CreateTranslationJobRequest, default_locale: Optional[str]
    ) -> None:
        if default_locale is None:
            default_locale = await self._backend.get_project_default_locale(request.project_id)
            if default_locale is None:
                raise NotFoundError(ErrorMessages.PROJECT_NOT_FOUND)
        if request.target_locale == default_locale:
            raise ValidationError(ErrorMessages.TARGET_LOCALE_IS_DEFAULT, field="target_locale")

    async def cancel_job(self, job_id: str) -> TranslationJob:
        """Cancel a pending or running job and return its updated record.

        Translations already completed by the job are kept.
        """
        try:
            try:
                CancelTranslationJobRequest(job_id=job_id)
            except pydantic.ValidationError as exc:
                raise from_pydantic_error(exc) from exc

            # in-flight reads could overwrite the optimistic state
            await self._cache.cancel_pending(JobCacheKeys.ALL)

            current = await self._backend.get_job(job_id)
            if current is None:
                raise NotFoundError(ErrorMessages.JOB_NOT_FOUND)
            if not current.is_cancellable():
                raise NotCancellableError(
                    ErrorMessages.JOB_NOT_CANCELLABLE, details={"status": str(current.status)}
                )

            job = await mutate_with_compensation(
                snapshot=lambda: self._reconciler.snapshot(job_id),
                apply=self._reconciler.apply_optimistic_cancel,
                action=lambda: self._submit_cancel(job_id),
                compensate=self._reconciler.rollback,
            )
        except TranslationJobError as exc:
            logger.warning(f"[job:cancel] rejected job_id={job_id} error={type(exc).__name__}")
            await self._events.command_failed("cancel", exc)
            raise

        logger.info(f"[job:cancel] cancelled job_id={job.id}")
        await self._events.job_cancelled(job)
        return await self._reconciler.on_cancel_success(job)

    async def _submit_cancel(self, job_id: str) -> TranslationJob:
        updated = await self._backend.mark_cancelled(job_id, datetime.now(timezone.utc))
        if updated is not None:
            return updated
        # the conditional update matched nothing: the job finished or vanished meanwhile
        current = await self._backend.get_job(job_id)
        if current is not None and not current.is_cancellable():
            raise NotCancellableError(
                ErrorMessages.JOB_NOT_CANCELLABLE, details={"status": str(current.status)}
            )
        raise NotFoundError(ErrorMessages.JOB_NOT_FOUND)
