"""Service health endpoint."""

from typing import Dict

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.core.config import settings
from app.core.database import db_client
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="healthy when the database answers, degraded otherwise")
    version: str = Field(..., description="Running application version")
    service: str = Field(..., description="Service name")
    database: dict = Field(default_factory=dict, description="Database health check result")
    integrations: Dict[str, bool] = Field(
        default_factory=dict, description="Whether each external integration has credentials"
    )


def configured_integrations() -> Dict[str, bool]:
    return {
        "storage": bool(settings.supabase_url and settings.supabase_service_role_key),
        "email": bool(settings.email.resend_api_key),
        "gifs": bool(settings.gifs.tenor_api_key),
    }


@router.get(
    "",
    response_model=HealthCheckResponse,
    summary="Health check endpoint",
    description="Probe the database and report which integrations are configured",
    operation_id="get_service_health_status",
)
async def health_check() -> HealthCheckResponse:
    db_health = await db_client.health_check()
    if db_health["status"] != "healthy":
        LOGGER.warning(f"Health check degraded: {db_health.get('error')}")

    return HealthCheckResponse(
        status="healthy" if db_health["status"] == "healthy" else "degraded",
        version=settings.app_version,
        service=settings.app_name,
        database=db_health,
        integrations=configured_integrations(),
    )
