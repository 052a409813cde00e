import io

import pytest
from rich.console import Console

from tms.adapters.notifier_rich_adapter import RichConsoleNotifier
from tms.adapters.retry_tenacity import TenacityRetryAdapter
from tms.core.interfaces.notifier import NoticeLevel


class Flaky:
    def __init__(self, failures, exc_type=ConnectionError):
        self.failures = failures
        self.exc_type = exc_type
        self.calls = 0

    async def __call__(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc_type("transient")
        return value


class TestTenacityRetryAdapter:
    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        flaky = Flaky(failures=2)
        retry = TenacityRetryAdapter(attempts=3, wait_initial=0, wait_max=0)

        assert await retry.execute(flaky, "ok") == "ok"
        assert flaky.calls == 3

    @pytest.mark.asyncio
    async def test_reraises_after_last_attempt(self):
        flaky = Flaky(failures=5)
        retry = TenacityRetryAdapter(attempts=2, wait_initial=0, wait_max=0)

        with pytest.raises(ConnectionError):
            await retry.execute(flaky, "ok")
        assert flaky.calls == 2

    @pytest.mark.asyncio
    async def test_exception_types_override(self):
        flaky = Flaky(failures=1, exc_type=KeyError)
        retry = TenacityRetryAdapter(attempts=3, wait_initial=0, wait_max=0)

        with pytest.raises(KeyError):
            await retry.execute(flaky, "ok", exception_types=(ConnectionError,))
        assert flaky.calls == 1

    @pytest.mark.asyncio
    async def test_retry_if_predicate(self):
        flaky = Flaky(failures=1)
        retry = TenacityRetryAdapter(attempts=3, wait_initial=0, wait_max=0)

        with pytest.raises(ConnectionError):
            await retry.execute(flaky, "ok", retry_if=lambda exc: False)
        assert flaky.calls == 1


class TestRichConsoleNotifier:
    def test_prints_title_and_description(self):
        buffer = io.StringIO()
        notifier = RichConsoleNotifier(Console(file=buffer, force_terminal=False, width=200))

        notifier.notify(NoticeLevel.error, "Failed to cancel job", "Job is not in a cancellable state [x]")

        output = buffer.getvalue()
        assert "Failed to cancel job" in output
        assert "Job is not in a cancellable state [x]" in output
