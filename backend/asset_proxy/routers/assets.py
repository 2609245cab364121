from __future__ import annotations

import logging
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, Request

from asset_proxy.core.config import Settings
from asset_proxy.core.errors import BadRequestError, UpstreamError
from asset_proxy.services.relay import relay_response
from asset_proxy.services.translator import build_upstream_url, extract_path, resolve_media_type
from asset_proxy.services.upstream import fetch_asset

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assets", tags=["assets"])


def _first_values(request: Request) -> dict[str, str]:
    # Repeated parameters resolve to their first occurrence.
    qp = request.query_params
    return {k: qp.getlist(k)[0] for k in qp.keys()}


_PREFIX = b"/assets/"


def _raw_suffix(request: Request, path: str) -> str:
    # The wildcard must be unescaped exactly once, so read it from the
    # undecoded request target rather than the already decoded path param.
    raw = request.scope.get("raw_path")
    if not raw:
        return quote(path, safe="/")
    _, sep, suffix = bytes(raw).partition(_PREFIX)
    if not sep:
        return quote(path, safe="/")
    try:
        return suffix.decode("ascii")
    except UnicodeDecodeError as e:
        raise BadRequestError("invalid path", detail=f"non ascii request target {raw!r}") from e


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


@router.get("/{path:path}")
async def get_asset(
    request: Request,
    path: str,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    url_path = extract_path(_raw_suffix(request, path))
    media_type = resolve_media_type(url_path)

    upstream_url = build_upstream_url(
        url_path,
        _first_values(request),
        assets_api_host=settings.assets_api_host,
        resizer_api_host=settings.resizer_api_host,
    )

    try:
        response = await fetch_asset(client, upstream_url, timeout_seconds=settings.upstream_timeout_seconds)
    except UpstreamError as e:
        logger.warning("upstream fetch failed kind=%s url=%s detail=%s", e.kind, e.url, e.detail)
        raise

    return relay_response(response, media_type)
