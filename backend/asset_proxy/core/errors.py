from __future__ import annotations


class AssetProxyError(Exception):
    """Base for errors that are turned into an HTTP response.

    ``message`` is what the caller sees; ``detail`` stays in server logs.
    """

    status_code: int = 500

    def __init__(self, message: str, *, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class BadRequestError(AssetProxyError):
    status_code = 400


class UpstreamError(AssetProxyError):
    status_code = 500

    def __init__(
        self,
        *,
        kind: str,
        url: str,
        detail: str | None = None,
        upstream_status: int | None = None,
    ):
        super().__init__("Error fetching asset", detail=detail)
        self.kind = kind  # transport|timeout|status
        self.url = url
        self.upstream_status = upstream_status


class StartupConfigError(Exception):
    pass
