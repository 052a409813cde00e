"""Observer protocols for translation job lifecycle events.

Observers decouple side effects (user notices, audit logging) from the
command client and the reconciler.
"""

from typing import Protocol

from tms.core.exceptions import TranslationJobError
from tms.core.models.job import TranslationJob
from tms.core.models.requests import CreateTranslationJobRequest, CreateTranslationJobResponse


class JobLifecycleObserver(Protocol):
    """Observer protocol for job lifecycle events.

    - on_job_created: after the backend accepted a create request
    - on_job_cancelled: after a cancel request succeeded
    - on_job_finished: once per job, after reconciliation read its final record
    - on_command_failed: after a create or cancel command was rejected

    Observer failures are logged and never propagate to the caller.
    """

    async def on_job_created(
        self,
        request: CreateTranslationJobRequest,
        response: CreateTranslationJobResponse,
    ) -> None:
        ...

    async def on_job_cancelled(self, job: TranslationJob) -> None:
        ...

    async def on_job_finished(self, job: TranslationJob) -> None:
        """Called with the authoritative terminal record (hint applied)."""
        ...

    async def on_command_failed(self, command: str, error: TranslationJobError) -> None:
        """`command` is "create" or "cancel"."""
        ...
