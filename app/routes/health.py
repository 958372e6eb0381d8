"""
Health Check Routes
Endpoints for monitoring application health
"""
from fastapi import APIRouter
from app.models.api import HealthResponse
from app.services.db import health_check as db_health_check
from app.services.validator_client import resolve_webhook_url
from app.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for monitoring.
    Returns status and version information including database health.

    NOTE: This endpoint is intentionally unauthenticated to allow monitoring tools
    (e.g., load balancers, health check services) to verify service availability.
    The validator URL itself is never returned.
    """
    db_health = db_health_check()

    overall_status = "ok"
    if db_health.get("status") != "healthy":
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version="1.0.0",
        details={
            "auth_mode": f"Bearer token ({settings.jwt_algorithm})",
            "validator_configured": resolve_webhook_url(settings) is not None,
            "database": db_health
        }
    )
