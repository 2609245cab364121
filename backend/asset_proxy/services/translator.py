"""Translation of an incoming asset request into an upstream URL.

Everything here is pure: no I/O, no settings lookups. The router feeds in the
raw path suffix and query parameters together with the configured hosts.
"""

from __future__ import annotations

import mimetypes
import posixpath
import re
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import quote, unquote_to_bytes, urlsplit, urlunsplit

from asset_proxy.core.errors import BadRequestError

DEFAULT_MEDIA_TYPE = "application/octet-stream"

_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")

# RFC 3986 pchar plus "/", everything else gets percent-escaped.
_PATH_SAFE = "/:@!$&'()*+,;=~"


def _is_blank(path: str) -> bool:
    return not path.strip().strip("/").strip()


def extract_path(raw: str | None) -> str:
    """Trim separators from the still-encoded wildcard suffix and query-unescape it once.

    ``raw`` must be the suffix as it appeared on the wire, not a value the
    server has already percent-decoded.
    """
    path = str(raw or "").strip().strip("/").strip()
    if not path:
        raise BadRequestError("path is required")

    if _BAD_ESCAPE_RE.search(path):
        raise BadRequestError("invalid path", detail=f"malformed escape in {path!r}")
    try:
        decoded = unquote_to_bytes(path.replace("+", " ")).decode("utf-8")
    except UnicodeDecodeError as e:
        raise BadRequestError("invalid path", detail=f"non utf-8 path {path!r}") from e

    # "%20%20/" only turns blank after decoding.
    if _is_blank(decoded):
        raise BadRequestError("path is required")
    return decoded


def resolve_media_type(path: str) -> str:
    filename = posixpath.basename(path)
    filename = filename.split("?")[0]
    _, ext = posixpath.splitext(filename)
    if not ext:
        return DEFAULT_MEDIA_TYPE
    media_type, _ = mimetypes.guess_type("file" + ext.lower(), strict=False)
    return media_type or DEFAULT_MEDIA_TYPE


def is_absolute_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    host = parts.netloc.rpartition("@")[2]
    return bool(parts.scheme) and bool(host)


@dataclass(frozen=True)
class ResizeSpec:
    width: str | None = None
    height: str | None = None

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "ResizeSpec":
        return cls(width=query.get("w") or None, height=query.get("h") or None)

    @property
    def component(self) -> str:
        parts: list[str] = []
        if self.width:
            parts.append(f"w:{self.width}")
        if self.height:
            parts.append(f"h:{self.height}")
        return "/".join(parts)


def source_url(path: str, assets_api_host: str) -> str:
    if is_absolute_url(path):
        return path
    return f"{assets_api_host}/assets/{path}"


def resizer_url(source: str, resize: ResizeSpec, resizer_api_host: str) -> str:
    comp = resize.component
    if comp:
        path = f"/insecure/{comp}/plain/{source}"
    else:
        path = f"/insecure/plain/{source}"

    base = urlsplit(resizer_api_host)
    return urlunsplit((base.scheme, base.netloc, quote(path, safe=_PATH_SAFE), base.query, base.fragment))


def build_upstream_url(
    path: str,
    query: Mapping[str, str],
    *,
    assets_api_host: str,
    resizer_api_host: str,
) -> str:
    source = source_url(path, assets_api_host)
    if query.get("type") == "image":
        return resizer_url(source, ResizeSpec.from_query(query), resizer_api_host)
    return source
