"""Dependency injection for API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from deploy_orchestrator.core.events import EventBus, get_event_bus
from deploy_orchestrator.core.orchestrator import DeploymentOrchestrator, get_orchestrator
from deploy_orchestrator.core.store import ProjectStore, get_project_store
from deploy_orchestrator.models.project import Project


async def get_store() -> ProjectStore:
    """Get the project store."""
    return get_project_store()


async def get_events() -> EventBus:
    """Get the event bus."""
    return get_event_bus()


async def get_deployments() -> DeploymentOrchestrator:
    """Get the deployment orchestrator."""
    return get_orchestrator()


async def get_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Identify the caller. Authentication happens upstream of this service."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-ID header",
        )
    return x_user_id


async def get_project_by_id(
    project_id: UUID,
    store: Annotated[ProjectStore, Depends(get_store)],
    user_id: Annotated[str, Depends(get_user_id)],
) -> Project:
    """Get the caller's project by ID or raise 404."""
    project = await store.find_project(project_id, user_id)
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Project not found: {project_id}",
        )
    return project


# Type aliases for cleaner signatures
StoreDep = Annotated[ProjectStore, Depends(get_store)]
EventsDep = Annotated[EventBus, Depends(get_events)]
DeploymentsDep = Annotated[DeploymentOrchestrator, Depends(get_deployments)]
UserDep = Annotated[str, Depends(get_user_id)]
ProjectDep = Annotated[Project, Depends(get_project_by_id)]
