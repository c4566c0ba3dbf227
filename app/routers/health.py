"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from datetime import datetime, timezone
import logging

from app.database import get_db
from app.models.schemas import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with status of database, content provider and
        PDF converter
    """
    # Check database connection
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "error"

    # Check content provider
    provider = getattr(request.app.state, "provider", None)
    if provider is None:
        provider_status = "unavailable"
    else:
        provider_status = "ok"
        try:
            if not await provider.check_health():
                provider_status = "error"
        except Exception as e:
            logger.error(f"Content provider health check failed: {e}")
            provider_status = "error"

    # Check PDF converter
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        converter_status = "unavailable"
    else:
        converter = orchestrator.assembler.converter
        converter_status = "ok" if converter.is_available() else "error"

    # Overall status
    overall_status = (
        "healthy"
        if db_status == "ok" and provider_status == "ok" and converter_status == "ok"
        else "degraded"
    )

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        provider=provider_status,
        converter=converter_status,
        timestamp=datetime.now(timezone.utc),
    )
