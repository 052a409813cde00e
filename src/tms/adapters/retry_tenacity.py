from typing import Any, Awaitable, Callable, Optional, Sequence, Type

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tms.core.settings import logger


class TenacityRetryAdapter:
    """Tenacity-based retry adapter implementing RetryPort.

    Exponential backoff for async reads. Call-time kwargs override the default
    policy (attempts, wait_initial, wait_max, exception_types); `retry_if`
    takes a predicate over the raised exception and wins over exception_types.
    """

    def __init__(
        self,
        attempts: int = 3,
        wait_initial: float = 0.2,
        wait_max: float = 2.0,
        exception_types: Sequence[Type[Exception]] = (Exception,),
    ) -> None:
        self.attempts = attempts
        self.wait_initial = wait_initial
        self.wait_max = wait_max
        self.exception_types = tuple(exception_types)

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        attempts = kwargs.pop("attempts", self.attempts)
        wait_initial = kwargs.pop("wait_initial", self.wait_initial)
        wait_max = kwargs.pop("wait_max", self.wait_max)
        exception_types = tuple(kwargs.pop("exception_types", self.exception_types))
        retry_if: Optional[Callable[[BaseException], bool]] = kwargs.pop("retry_if", None)

        if retry_if is not None:
            retry = retry_if_exception(retry_if)
        else:
            retry = retry_if_exception_type(exception_types)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=wait_initial, max=wait_max),
            retry=retry,
            before_sleep=lambda state: logger.warning(
                f"[retry] {getattr(func, '__name__', func)} attempt={state.attempt_number} "
                f"error={state.outcome.exception() if state.outcome else None}"
            ),
            reraise=True,
        )
        async for attempt in retrying:  # pragma: no cover - control flow instrumentation
            with attempt:
                return await func(*args, **kwargs)
