"""FastAPI application for the Stock Digest service."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from stock_digest.config import Settings, configure_logging, load_settings
from stock_digest.digest import DigestService
from stock_digest.errors import AuthorizationError, ValidationError
from stock_digest.routers import (cron_router, digests_router, profile_router,
                                  research_router)

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), interest-cohort=()",
}


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Validate configuration and build the digest service at startup."""
    if getattr(fastapi_app.state, "settings", None) is None:
        settings = load_settings()
        configure_logging(settings.log_level)
        fastapi_app.state.settings = settings
    if getattr(fastapi_app.state, "digest_service", None) is None:
        fastapi_app.state.digest_service = DigestService.from_settings(fastapi_app.state.settings)
    logging.info("Stock Digest API started.")
    yield


async def handle_authorization_error(request: Request, exc: AuthorizationError) -> JSONResponse:
    logging.info("Unauthorized request to %s: %s", request.url.path, exc)
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    reason = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": reason})


def create_app(
    settings: Optional[Settings] = None,
    digest_service: Optional[DigestService] = None,
) -> FastAPI:
    """Build the app. Anything not passed in is created by the lifespan."""
    fastapi_app = FastAPI(
        title="Stock Digest",
        description="Scheduled AI research digests for a stock watchlist",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.settings = settings
    fastapi_app.state.digest_service = digest_service

    fastapi_app.add_exception_handler(AuthorizationError, handle_authorization_error)
    fastapi_app.add_exception_handler(ValidationError, handle_validation_error)
    fastapi_app.add_exception_handler(RequestValidationError, handle_request_validation_error)

    @fastapi_app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response

    fastapi_app.include_router(cron_router)
    fastapi_app.include_router(digests_router)
    fastapi_app.include_router(research_router)
    fastapi_app.include_router(profile_router)

    @fastapi_app.get("/")
    def health():
        """Return health check status."""
        return {"status": "ok"}

    return fastapi_app


app = create_app()


def run():
    """Run the server (uvicorn)."""
    uvicorn.run("stock_digest.main:app", host="0.0.0.0", port=8000)
