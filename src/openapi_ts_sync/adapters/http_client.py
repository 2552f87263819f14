"""httpx wrapper and the HTTP spec source.

`build_async_client` centralizes timeout, headers and redirects so every
request (the pipeline fetch and `doctor`'s reachability check) behaves the
same way. Tests pass an `httpx.MockTransport` through `transport`.
"""

from __future__ import annotations

import json
import logging

import httpx

from openapi_ts_sync.core.config import RuntimeSettings
from openapi_ts_sync.core.errors import FetchError

logger = logging.getLogger(__name__)


def build_async_client(
    settings: RuntimeSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` with the project defaults."""

    settings = settings or RuntimeSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


class HttpSpecSource:
    """Fetches the OpenAPI JSON document over HTTP(S)."""

    def __init__(
        self,
        settings: RuntimeSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or RuntimeSettings()
        self._transport = transport

    async def fetch(self, url: str) -> object:
        try:
            async with build_async_client(self._settings, transport=self._transport) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise FetchError(f"{exc.__class__.__name__}: {exc}", url=url) from exc

        logger.debug("GET %s -> %s", url, response.status_code)
        if not response.is_success:
            raise FetchError(
                f"Request failed with status code {response.status_code}",
                url=url,
                status=response.status_code,
                body=response.text,
            )

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise FetchError(
                f"Response from {url} is not valid JSON",
                url=url,
                status=response.status_code,
                body=response.text,
            ) from exc
