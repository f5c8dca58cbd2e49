"""Maintenance endpoints for scheduled jobs."""

from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel

from deploy_orchestrator.api.deps import DeploymentsDep

router = APIRouter()


class MaintenanceResponse(BaseModel):
    """Number of projects touched by a maintenance run."""

    count: int


@router.post(
    "/cleanup",
    response_model=MaintenanceResponse,
    summary="Reset old failed deployments to pending",
)
async def cleanup_failed_deployments(
    deployments: DeploymentsDep,
    days: Annotated[int | None, Query(ge=0)] = None,
) -> MaintenanceResponse:
    count = await deployments.cleanup_failed_deployments(days)
    return MaintenanceResponse(count=count)


@router.post(
    "/reconcile",
    response_model=MaintenanceResponse,
    summary="Fail in-flight deployments that are no longer monitored",
)
async def reconcile_stale_deployments(
    deployments: DeploymentsDep,
    minutes: Annotated[int | None, Query(ge=0)] = None,
) -> MaintenanceResponse:
    count = await deployments.reconcile_stale_deployments(minutes)
    return MaintenanceResponse(count=count)
