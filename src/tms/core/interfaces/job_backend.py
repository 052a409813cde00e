"""TranslationJobBackendPort: hexagonal port onto the hosted backend.

The backend is the source of truth for job state; it enforces ownership,
the single-active-job rule and locale constraints. Implementations raise
`TranslationJobError` subclasses (see `tms.core.exceptions`) on failure.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence

from tms.core.models.job import JobStatus, TranslationJob
from tms.core.models.job_item import TranslationJobItem
from tms.core.models.requests import (
	CreateTranslationJobRequest,
	CreateTranslationJobResponse,
	ListJobItemsParams,
	ListTranslationJobsParams,
	Page,
)


class TranslationJobBackendPort(ABC):
	"""Port abstraction for translation job commands and queries."""

	@abstractmethod
	async def submit_job(self, request: CreateTranslationJobRequest) -> CreateTranslationJobResponse:
		"""Invoke the job-creation endpoint; the job starts `pending`."""
		raise NotImplementedError

	@abstractmethod
	async def get_job(self, job_id: str) -> Optional[TranslationJob]:
		"""Return the job or None if missing / not visible."""
		raise NotImplementedError

	@abstractmethod
	async def find_jobs(
		self, project_id: str, statuses: Sequence[JobStatus], limit: int = 1
	) -> list[TranslationJob]:
		"""Return jobs of the project whose status is in `statuses`."""
		raise NotImplementedError

	@abstractmethod
	async def mark_cancelled(self, job_id: str, finished_at: datetime) -> Optional[TranslationJob]:
		"""Conditionally set status=cancelled and finished_at on a pending/running job.

		Returns the updated record, or None when no row was updated.
		"""
		raise NotImplementedError

	@abstractmethod
	async def list_jobs(self, params: ListTranslationJobsParams) -> Page[TranslationJob]:
		raise NotImplementedError

	@abstractmethod
	async def list_job_items(self, params: ListJobItemsParams) -> Page[TranslationJobItem]:
		raise NotImplementedError

	@abstractmethod
	async def get_project_default_locale(self, project_id: str) -> Optional[str]:
		"""Return the project's default locale or None if the project is not visible."""
		raise NotImplementedError
