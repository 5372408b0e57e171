"""Health check endpoints."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from alive.api.deps import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - just confirms the service is running."""
    return {"status": "ok"}


@router.get("/db")
async def health_check_db(session: SessionDep):
    """Health check with database connectivity.

    Use this endpoint for readiness probes; the credential core cannot
    serve any request without the identity store.
    """
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        logger.error(f"Database health check failed: {e!r}")
        return JSONResponse(
            status_code=503,
            content={"status": "error", "database": "disconnected"},
        )
