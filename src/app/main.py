# src/app/main.py
from __future__ import annotations
import logging
import sys
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.app.config import settings
from src.app.deps import limiter
from src.app.infra.proxy.origin_bridge import OriginBridge
from src.app.routers.generate import router as generate_router

# Plain stdout logging (fine for dev and containers)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

log = logging.getLogger("app")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body") or "unknown",
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "Unhandled error: method=%s path=%s error=%s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An unexpected error occurred on the server."},
        )

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def _register_http_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def request_logger(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        log.info(
            "%s %s - %d (%.0fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response


def _register_spa(app: FastAPI, static_dir: Path) -> None:
    @app.get("/{full_path:path}", include_in_schema=False)
    @limiter.exempt
    def spa(full_path: str):
        if full_path.startswith("api/") or full_path == "api":
            return JSONResponse(status_code=404, content={"error": "Not Found"})

        root = static_dir.resolve()
        index = root / "index.html"
        if not index.is_file():
            return JSONResponse(status_code=404, content={"error": "Not Found"})

        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and root in candidate.parents:
            return FileResponse(candidate)
        return FileResponse(index)


def create_app(
    auth_transport: Optional[httpx.AsyncBaseTransport] = None,
    static_dir: Optional[Path] = None,
) -> FastAPI:
    transport = auth_transport or httpx.AsyncHTTPTransport()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await transport.aclose()

    app = FastAPI(title="Vegan Genius Kitchen API", version="0.3.0", lifespan=lifespan)
    app.state.limiter = limiter

    _register_error_handlers(app)

    app.include_router(generate_router)

    @app.get("/api/health")
    @limiter.exempt
    def health():
        return {"status": "ok"}

    _register_spa(app, static_dir or Path(settings.STATIC_DIR))

    # Middleware added later wraps the ones added earlier.
    _register_http_middleware(app)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.FRONTEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Outermost: auth traffic must reach the bridge with its body unread.
    app.add_middleware(
        OriginBridge,
        target=settings.auth_backend_origin,
        prefix=settings.AUTH_PROXY_PREFIX,
        connect_timeout=settings.AUTH_PROXY_CONNECT_TIMEOUT_SECONDS,
        read_timeout=settings.AUTH_PROXY_READ_TIMEOUT_SECONDS,
        transport=transport,
    )

    log.info(
        "Auth bridge: %s/* -> %s",
        settings.AUTH_PROXY_PREFIX.rstrip("/"),
        settings.auth_backend_origin,
    )
    return app


app = create_app()
