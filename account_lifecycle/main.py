"""FastAPI application entry point."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from account_lifecycle.config import settings
from account_lifecycle.errors import AccountError
from account_lifecycle.middleware import BodySizeLimitMiddleware, SecurityHeadersMiddleware
from account_lifecycle.routers import auth
from account_lifecycle.utils.crypto import dummy_hash

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    # Build the missing-account hash before the first login needs it
    await asyncio.to_thread(dummy_hash)
    yield


app = FastAPI(
    title="Account Lifecycle",
    description="Registration, email confirmation, login and password reset",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS - restrict to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware (outermost first)
app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)

app.include_router(auth.router)


@app.exception_handler(AccountError)
async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "detail": exc.message},
    )


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
