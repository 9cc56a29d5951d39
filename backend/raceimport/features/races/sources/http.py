"""
Upstream HTTP access for results sources.

All calls are sequential GETs with a bounded timeout. Idempotent GETs are
retried a bounded number of times on transport errors and 502/503/504;
anything else that is not a declared end-of-data 404 raises UpstreamError.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from raceimport.config import settings
from ..errors import UpstreamError

logger = logging.getLogger(__name__)

RETRY_STATUSES = {502, 503, 504}


class UpstreamClient:
    """
    Thin async wrapper around httpx for results APIs.

    Usage:
        async with UpstreamClient() as upstream:
            data = await upstream.get_json(url, timeout=15)

    Pass an existing httpx.AsyncClient to share a connection pool
    (or a MockTransport-backed one in tests); it is not closed on exit.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        max_retries: Optional[int] = None,
        retry_backoff_s: Optional[float] = None,
        user_agent: Optional[str] = None,
    ):
        self._client = client
        self._owns_client = client is None
        self.max_retries = settings.http_max_retries if max_retries is None else max_retries
        self.retry_backoff_s = (
            settings.http_retry_backoff_s if retry_backoff_s is None else retry_backoff_s
        )
        self.user_agent = user_agent or settings.http_user_agent

    async def __aenter__(self) -> "UpstreamClient":
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self._client

    async def get(
        self,
        url: str,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
        timeout: float = 15.0,
        not_found_ok: bool = False,
    ) -> Optional[httpx.Response]:
        """
        GET with retries.

        Returns:
            Response on 2xx, None on 404 when not_found_ok

        Raises:
            UpstreamError: non-2xx status or transport failure after retries
        """
        request_headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        if headers:
            request_headers.update(headers)

        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                response = await self.client.get(
                    url, params=params, headers=request_headers, timeout=timeout
                )
            except httpx.TransportError as e:
                if attempt < attempts:
                    logger.warning(f"Transport error on {url} ({e!r}), retry {attempt}/{self.max_retries}")
                    await self._backoff(attempt)
                    continue
                logger.warning(f"Giving up on {url}: {e!r}")
                raise UpstreamError("Request failed", url=url, body=repr(e)) from e

            if response.status_code == 404 and not_found_ok:
                return None
            if response.status_code in RETRY_STATUSES and attempt < attempts:
                logger.warning(
                    f"Upstream {response.status_code} on {url}, retry {attempt}/{self.max_retries}"
                )
                await self._backoff(attempt)
                continue
            if not response.is_success:
                logger.warning(f"Upstream error {response.status_code} on {url}")
                raise UpstreamError(
                    "Upstream API error",
                    status_code=response.status_code,
                    url=url,
                    body=response.text,
                )
            return response

        raise AssertionError("unreachable")

    async def get_json(self, url: str, **kwargs) -> Any:
        """GET and decode JSON; None when a declared 404 ends the data."""
        response = await self.get(url, **kwargs)
        if response is None:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                "Invalid JSON from upstream",
                status_code=response.status_code,
                url=url,
                body=response.text,
            ) from e

    async def _backoff(self, attempt: int) -> None:
        if self.retry_backoff_s:
            await asyncio.sleep(self.retry_backoff_s * attempt)
