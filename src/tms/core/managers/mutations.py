"""Optimistic mutation with compensation.

Generic helper: take a snapshot, apply the optimistic change, run the remote
action and, if it fails (or is cancelled), hand the snapshot back to the
compensation callback before re-raising. It knows nothing about jobs.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

S = TypeVar("S")
R = TypeVar("R")

logger = logging.getLogger(__name__)


async def mutate_with_compensation(
    snapshot: Callable[[], S],
    apply: Callable[[S], None],
    action: Callable[[], Awaitable[R]],
    compensate: Callable[[S], None],
) -> R:
    state = snapshot()
    apply(state)
    try:
        return await action()
    except (Exception, asyncio.CancelledError) as exc:
        logger.debug(f"[mutation:compensate] action failed error={type(exc).__name__}; restoring snapshot")
        compensate(state)
        raise
