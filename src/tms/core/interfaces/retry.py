from typing import Any, Awaitable, Callable, Protocol


class RetryPort(Protocol):
    """Retries an idempotent backend read, such as the reconciler's final job read.

    Create and cancel commands never go through this port.
    """

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:  # pragma: no cover - protocol
        """Await `func(*args, **kwargs)` until it succeeds or attempts run out.

        Keyword overrides consumed by the port (not forwarded to `func`):
        attempts, wait_initial, wait_max, exception_types, and `retry_if`, a
        predicate over the raised exception that replaces exception_types.
        The last exception is re-raised once attempts are exhausted.
        """
        ...
