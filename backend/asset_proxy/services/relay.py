from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from fastapi.responses import StreamingResponse

CACHE_CONTROL = "max-age=31536000, public"
CORS_ALLOW_ORIGIN = "*"
CORS_ALLOW_METHODS = "GET, OPTIONS"


def relay_headers(upstream: httpx.Headers, fallback_media_type: str) -> dict[str, str]:
    headers: dict[str, str] = {}

    content_disposition = upstream.get("content-disposition")
    if content_disposition:
        headers["Content-Disposition"] = content_disposition

    headers["Content-Type"] = upstream.get("content-type") or fallback_media_type

    # Forwarded as-is, the body is never transformed.
    content_length = upstream.get("content-length")
    if content_length:
        headers["Content-Length"] = content_length

    headers["Cache-Control"] = CACHE_CONTROL
    headers["Access-Control-Allow-Origin"] = CORS_ALLOW_ORIGIN
    headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
    return headers


async def iter_body(response: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the upstream body verbatim, closing it however the relay ends."""
    try:
        if response.is_stream_consumed:
            # Already buffered by the transport, nothing left on the wire.
            if response.content:
                yield response.content
        else:
            async for chunk in response.aiter_raw():
                yield chunk
    finally:
        await response.aclose()


def relay_response(response: httpx.Response, fallback_media_type: str) -> StreamingResponse:
    return StreamingResponse(
        iter_body(response),
        status_code=response.status_code,
        headers=relay_headers(response.headers, fallback_media_type),
    )
