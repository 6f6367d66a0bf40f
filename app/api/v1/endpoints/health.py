import logging
from typing import Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.infrastructure.database.session import get_db_session

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/")
async def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.SERVICE_NAME}


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db_session)):
    """Readiness check: the database answers a trivial query."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "service": settings.SERVICE_NAME, "database": "unreachable"},
        )
    return {"status": "ready", "service": settings.SERVICE_NAME, "database": "ok"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness check endpoint."""
    return {"status": "alive", "service": settings.SERVICE_NAME}
