"""
Health check endpoint
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from email_platform.api.dependencies import get_settings
from email_platform.core.config import Settings

router = APIRouter()


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    """Liveness probe; does not touch the database."""
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.NODE_ENV,
        "version": settings.APP_VERSION,
    }
