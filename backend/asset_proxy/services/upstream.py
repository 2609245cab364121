from __future__ import annotations

import asyncio
import logging

import httpx

from asset_proxy.core.config import Settings
from asset_proxy.core.errors import UpstreamError

logger = logging.getLogger(__name__)

# Relayed bytes must match the forwarded Content-Length, so never let the
# upstream compress the body.
_UPSTREAM_HEADERS = {"Accept-Encoding": "identity"}


def create_http_client(settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    timeout = float(settings.upstream_timeout_seconds)
    limits = httpx.Limits(
        max_connections=int(settings.upstream_max_connections),
        max_keepalive_connections=int(settings.upstream_max_connections),
    )
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        limits=limits,
        follow_redirects=True,
        headers=_UPSTREAM_HEADERS,
        transport=transport,
    )


async def drain_and_close(response: httpx.Response) -> None:
    try:
        if not response.is_stream_consumed:
            async for _ in response.aiter_raw():
                pass
    except httpx.HTTPError as e:
        logger.debug("upstream drain failed url=%s err=%s", response.request.url, e)
    finally:
        await response.aclose()


async def fetch_asset(client: httpx.AsyncClient, url: str, *, timeout_seconds: float) -> httpx.Response:
    """GET ``url`` and return the open streaming response.

    Only a 200 is accepted. Any other status is drained and closed before
    ``UpstreamError`` is raised. The caller must close a returned response.
    """
    try:
        request = client.build_request("GET", url)
        response = await asyncio.wait_for(client.send(request, stream=True), timeout=timeout_seconds)
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise UpstreamError(kind="timeout", url=url, detail=f"{type(e).__name__}: {e}") from e
    except (httpx.RequestError, httpx.InvalidURL) as e:
        raise UpstreamError(kind="transport", url=url, detail=f"{type(e).__name__}: {e}") from e

    if response.status_code != 200:
        await drain_and_close(response)
        raise UpstreamError(
            kind="status",
            url=url,
            detail=f"unexpected status code: {response.status_code}",
            upstream_status=response.status_code,
        )

    return response
