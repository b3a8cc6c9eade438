"""
Health check endpoints.
"""

from fastapi import APIRouter

from app.core.config import settings
from app.db.database import check_database_health

router = APIRouter()


@router.get("/api/health")
async def health_check() -> dict:
    """Basic health check."""
    return {"status": "healthy"}


@router.get("/api/ready")
async def readiness_check() -> dict:
    """Readiness check - database connectivity and OAuth client configuration."""
    database_ok = await check_database_health()
    oauth_configured = bool(settings.mp_app_id and settings.mp_app_secret)
    return {
        "status": "ready" if database_ok and oauth_configured else "degraded",
        "database": "connected" if database_ok else "unavailable",
        "mercadopago_oauth": "configured" if oauth_configured else "missing_credentials",
    }
