import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coin_proxy.api import market
from coin_proxy.config import get_settings
from coin_proxy.exceptions import CoinProxyError
from coin_proxy.middleware.rate_limit import ClientRateLimiter, rate_limit_middleware
from coin_proxy.schemas.error import ErrorResponse
from coin_proxy.services.fetch_service import FetchService
from coin_proxy.services.upstream_client import UpstreamClient

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    upstream = UpstreamClient(
        settings.upstream_base_url,
        timeout=settings.upstream_timeout_seconds,
    )
    fetch_service = FetchService.from_settings(settings, upstream)
    fetch_service.start()
    app.state.fetch_service = fetch_service
    logger.info(f"Proxying {settings.upstream_base_url}")
    yield
    # Shutdown
    await fetch_service.close()
    await upstream.aclose()
    app.state.fetch_service = None


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)
app.state.rate_limiter = ClientRateLimiter(
    limit=settings.client_rate_limit,
    window_seconds=settings.client_rate_window_seconds,
)

app.middleware("http")(rate_limit_middleware)

# CORS (outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


@app.exception_handler(CoinProxyError)
async def coin_proxy_exception_handler(request: Request, exc: CoinProxyError) -> JSONResponse:
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first_error = errors[0]
        loc = " -> ".join(str(x) for x in first_error.get("loc", []))
        msg = first_error.get("msg", "Validation error")
        message = f"{loc}: {msg}" if loc else msg
    else:
        message = "Request validation failed"
    return _error_response(422, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail), headers=exc.headers)


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    return _error_response(500, "Internal server error")


# Routers
app.include_router(market.router, prefix="/api", tags=["market"])


@app.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    fetch_service: FetchService | None = getattr(request.app.state, "fetch_service", None)
    return {
        "status": "healthy",
        "version": settings.app_version,
        "queue": fetch_service.stats() if fetch_service is not None else None,
    }


def run() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
