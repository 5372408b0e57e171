"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from alive.api.middleware import RequestIDMiddleware
from alive.api.router import api_router
from alive.config import settings
from alive.database import close_db
from alive.errors import CredentialError
from alive.schemas import ErrorResponse

logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.sentry_dsn:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup: schema is managed by Alembic migrations
    yield
    await close_db()


app = FastAPI(
    title="Alive API",
    description="Monitoring and evaluation backend: accounts, verification, and credentials",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
    openapi_url="/api/openapi.json" if settings.debug_enabled else None,
)

# Request ID middleware for audit correlation
app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]

# CORS middleware
app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)


@app.exception_handler(CredentialError)
async def credential_error_handler(_request: Request, exc: CredentialError):
    """Render typed credential failures with their safe message."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=exc.detail, code=exc.code).model_dump(),
    )


app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    from alive.logging import get_uvicorn_log_config

    uvicorn.run(
        "alive.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=get_uvicorn_log_config(),
    )
