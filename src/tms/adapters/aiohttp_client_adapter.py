# tms/adapters/aiohttp_client_adapter.py
import asyncio
from typing import Any, Dict, Mapping, Optional

import aiohttp

from tms.core.exceptions import BackendException
from tms.core.interfaces.http_client import HttpClientPort
from tms.core.models.api_error import ApiErrorResponse
from tms.core.settings import logger


class AioHttpClientAdapter(HttpClientPort):
    def __init__(self, default_timeout: float = 10.0, default_headers: Optional[Dict[str, str]] = None):
        self._session: Optional[aiohttp.ClientSession] = None
        self._default_headers = dict(default_headers or {})
        # per-field timeouts so callers only ever pass a total in seconds
        self._default_sock_read: float = default_timeout
        self._default_sock_connect: float = 5.0
        self._default_client_timeout = aiohttp.ClientTimeout(
            total=default_timeout,
            sock_read=self._default_sock_read,
            sock_connect=self._default_sock_connect,
        )

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession(headers=self._default_headers)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    async def get(
        self,
        url: str,
        params: Mapping[str, str] | None = None,
        headers: Dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        return await self._request("GET", url, params=params, headers=headers, timeout=timeout)

    async def post(
        self,
        url: str,
        json: Dict[str, Any] | None,
        headers: Dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        return await self._request("POST", url, json=json, headers=headers, timeout=timeout)

    async def patch(
        self,
        url: str,
        json: Dict[str, Any] | None,
        params: Mapping[str, str] | None = None,
        headers: Dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "PATCH", url, json=json, params=params, headers=headers, timeout=timeout
        )

    def _client_timeout(self, timeout: float | None) -> aiohttp.ClientTimeout:
        if timeout is None:
            return self._default_client_timeout
        return aiohttp.ClientTimeout(
            total=timeout,
            sock_read=self._default_sock_read,
            sock_connect=self._default_sock_connect,
        )

    async def _request(
        self,
        method: str,
        url: str,
        timeout: float | None = None,
        **kwargs,
    ) -> Dict[str, Any]:
        """
        Perform a request and return status, headers and parsed body.

        HTTP error statuses are returned to the caller for domain mapping;
        transport failures are translated into BackendException.
        """
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")

        try:
            async with self._session.request(
                method, url, timeout=self._client_timeout(timeout), **kwargs
            ) as response:
                text = await response.text()
                body: Any = None
                if text:
                    try:
                        body = await response.json(content_type=None)
                    except ValueError:
                        if response.status < 400:
                            logger.error(
                                f"[http:{method.lower()}] invalid JSON url={url} content={text[:500]}"
                            )
                            raise BackendException(
                                ApiErrorResponse(
                                    code=502,
                                    message="Invalid response content from backend",
                                    details={"content": text[:100]},
                                )
                            )
                        body = text
                return {
                    "status": response.status,
                    "headers": dict(response.headers),
                    "body": body,
                }

        except BackendException:
            raise

        except asyncio.TimeoutError:
            logger.error(f"[http:{method.lower()}] timeout url={url}")
            raise BackendException(
                ApiErrorResponse(code=504, message="The request to the backend timed out.")
            )

        except aiohttp.ClientError as client_error:
            logger.error(f"[http:{method.lower()}] connection error url={url} error={client_error}")
            raise BackendException(
                ApiErrorResponse(
                    code=502, message="There was a connection error with the backend."
                )
            )

        except Exception as unexpected_error:
            logger.error(f"[http:{method.lower()}] unexpected error url={url} error={unexpected_error}")
            raise BackendException(
                ApiErrorResponse(
                    code=500,
                    message="An unexpected error occurred while talking to the backend.",
                )
            )

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
