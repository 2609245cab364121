import uuid
import time
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from asset_proxy import __version__
from asset_proxy.core.config import Settings, load_settings
from asset_proxy.core.errors import AssetProxyError
from asset_proxy.routers import assets, health
from asset_proxy.services.upstream import create_http_client


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(settings: Settings | None = None, *, http_client: httpx.AsyncClient | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    http_client = http_client or create_http_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            await http_client.aclose()

    app = FastAPI(title="Asset Proxy", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.http_client = http_client

    logger = logging.getLogger("asset_proxy")

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        t0 = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        status_code: int | None = None
        try:
            response = await call_next(request)
            status_code = int(getattr(response, "status_code", 0) or 0)
        except Exception:
            status_code = 500
            raise
        finally:
            path = request.url.path
            if not path.startswith("/health"):
                dur_ms = int((time.perf_counter() - t0) * 1000)
                logger.info(
                    json.dumps(
                        {
                            "ts": datetime.now(timezone.utc).isoformat(),
                            "rid": rid,
                            "method": request.method,
                            "path": path,
                            "status": status_code,
                            "duration_ms": dur_ms,
                        },
                        ensure_ascii=False,
                    )
                )
        response.headers["X-Request-ID"] = rid
        return response

    @app.exception_handler(AssetProxyError)
    async def asset_proxy_error_handler(request: Request, exc: AssetProxyError):
        return JSONResponse(status_code=int(exc.status_code), content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=int(exc.status_code),
            content={"error": str(exc.detail or "request failed")},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        rid = getattr(request.state, "request_id", None)
        logger.exception("unhandled exception", extra={"rid": rid})
        return JSONResponse(status_code=500, content={"error": "internal server error"})

    app.include_router(health.router)
    app.include_router(assets.router)

    return app
