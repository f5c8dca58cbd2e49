"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from deploy_orchestrator import __version__
from deploy_orchestrator.api.deps import DeploymentsDep
from deploy_orchestrator.config import settings

router = APIRouter()


class DeploymentHealth(BaseModel):
    """What the orchestrator is currently doing."""

    provider: str
    real_deployments: bool
    active_monitors: int


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    environment: str
    deployments: DeploymentHealth
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
async def health_check(deployments: DeploymentsDep) -> HealthResponse:
    """Report service health and how many deployments are being watched."""
    return HealthResponse(
        version=__version__,
        environment=settings.app_env,
        deployments=DeploymentHealth(
            provider=deployments.provider.name,
            real_deployments=deployments.provider.name != "mock",
            active_monitors=deployments.active_monitors,
        ),
        timestamp=datetime.utcnow(),
    )
