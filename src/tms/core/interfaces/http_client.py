# tms/core/interfaces/http_client.py
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping

class HttpClientPort(ABC):
    """Minimal async HTTP client.

    Every request method returns a dict with keys 'status' (int), 'headers'
    (dict) and 'body' (parsed JSON or raw text). HTTP error statuses are
    returned, not raised; only transport failures (timeouts, connection
    errors) raise `BackendException`.
    """

    @abstractmethod
    async def __aenter__(self) -> "HttpClientPort":
        """Async context manager entry method"""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit method"""
        pass

    @abstractmethod
    async def get(
        self,
        url: str,
        params: Mapping[str, str] | None = None,
        headers: Dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def post(
        self,
        url: str,
        json: Dict[str, Any] | None,
        headers: Dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def patch(
        self,
        url: str,
        json: Dict[str, Any] | None,
        params: Mapping[str, str] | None = None,
        headers: Dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client session"""
        pass
