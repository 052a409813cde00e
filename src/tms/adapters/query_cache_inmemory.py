"""In-memory implementation of QueryCachePort.

Single event loop only: entries are plain dicts, fetches of the same key share
one asyncio.Task. Values are deep-copied on the way in and out.
"""
from __future__ import annotations

import asyncio
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from tms.core.interfaces.query_cache import CacheKey, QueryCachePort
from tms.core.settings import logger


@dataclass
class _Entry:
	value: Any
	stale: bool = False


def _under(key: CacheKey, prefix: CacheKey) -> bool:
	return key[: len(prefix)] == prefix


class InMemoryQueryCache(QueryCachePort):
	def __init__(self) -> None:
		self._entries: Dict[CacheKey, _Entry] = {}
		self._inflight: Dict[CacheKey, asyncio.Task] = {}

	def get(self, key: CacheKey) -> Optional[Any]:
		entry = self._entries.get(key)
		return deepcopy(entry.value) if entry else None

	def set(self, key: CacheKey, value: Any) -> None:
		self._entries[key] = _Entry(value=deepcopy(value))

	def delete(self, key: CacheKey) -> None:
		self._entries.pop(key, None)

	def invalidate(self, prefix: CacheKey) -> list[CacheKey]:
		affected = [key for key in self._entries if _under(key, prefix)]
		for key in affected:
			self._entries[key].stale = True
		return affected

	def is_stale(self, key: CacheKey) -> bool:
		entry = self._entries.get(key)
		return entry is None or entry.stale

	def keys(self, prefix: CacheKey) -> list[CacheKey]:
		return [key for key in self._entries if _under(key, prefix)]

	async def fetch(self, key: CacheKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
		task = self._inflight.get(key)
		if task is None:
			task = asyncio.ensure_future(self._run(key, fetcher))
			self._inflight[key] = task
			task.add_done_callback(lambda t, k=key: self._forget(k, t))
		try:
			# shield so one waiter leaving does not cancel the shared request
			return deepcopy(await asyncio.shield(task))
		except asyncio.CancelledError:
			current = asyncio.current_task()
			if not task.cancelled() or (current is not None and current.cancelling()):
				raise
			# fetch cancelled through cancel_pending: keep whatever is cached now
			return self.get(key)

	async def _run(self, key: CacheKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
		value = await fetcher()
		self.set(key, value)
		return value

	def _forget(self, key: CacheKey, task: asyncio.Task) -> None:
		if self._inflight.get(key) is task:
			del self._inflight[key]

	async def cancel_pending(self, prefix: CacheKey) -> None:
		tasks = [task for key, task in self._inflight.items() if _under(key, prefix)]
		if not tasks:
			return
		logger.debug(f"[cache:cancel] cancelling {len(tasks)} in-flight fetches prefix={prefix}")
		for task in tasks:
			task.cancel()
		await asyncio.gather(*tasks, return_exceptions=True)
