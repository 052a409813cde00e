"""QueryCachePort: client-side cache of query results.

Keys are tuples; a key prefix addresses every entry whose key starts with it
(e.g. ``("translation-jobs",)`` covers all job entries). Values are returned
as copies so callers can never mutate cached state in place.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Hashable, Optional, Tuple

CacheKey = Tuple[Hashable, ...]


class QueryCachePort(ABC):
	@abstractmethod
	def get(self, key: CacheKey) -> Optional[Any]:
		"""Return a copy of the cached value or None."""
		raise NotImplementedError

	@abstractmethod
	def set(self, key: CacheKey, value: Any) -> None:
		"""Store `value` under `key` and mark it fresh."""
		raise NotImplementedError

	@abstractmethod
	def delete(self, key: CacheKey) -> None:
		"""Drop the entry under `key` if present."""
		raise NotImplementedError

	@abstractmethod
	def invalidate(self, prefix: CacheKey) -> list[CacheKey]:
		"""Mark every entry under `prefix` stale and return the affected keys."""
		raise NotImplementedError

	@abstractmethod
	def is_stale(self, key: CacheKey) -> bool:
		"""True when the entry is missing or was invalidated since its last set."""
		raise NotImplementedError

	@abstractmethod
	def keys(self, prefix: CacheKey) -> list[CacheKey]:
		raise NotImplementedError

	@abstractmethod
	async def fetch(self, key: CacheKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
		"""Run `fetcher` and store its result under `key`.

		Concurrent fetches of the same key share one in-flight request.
		"""
		raise NotImplementedError

	@abstractmethod
	async def cancel_pending(self, prefix: CacheKey) -> None:
		"""Cancel in-flight fetches under `prefix`.

		Their results are discarded; waiters receive the currently cached value.
		"""
		raise NotImplementedError
