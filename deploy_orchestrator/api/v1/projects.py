"""Project and deployment endpoints."""

import asyncio
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from deploy_orchestrator.api.deps import (
    DeploymentsDep,
    EventsDep,
    ProjectDep,
    StoreDep,
    UserDep,
)
from deploy_orchestrator.config import settings
from deploy_orchestrator.core.events import Event
from deploy_orchestrator.core.exceptions import ValidationError
from deploy_orchestrator.core.orchestrator import (
    ALREADY_IN_PROGRESS,
    NOT_GENERATED,
    NOTHING_TO_CANCEL,
    PROJECT_NOT_FOUND,
)
from deploy_orchestrator.models.deployment import DeploymentContext, DeploymentStatusInfo
from deploy_orchestrator.models.project import ProjectCreate, ProjectResponse, ProjectStatus

router = APIRouter()

MOCK_TOKEN = "mock-token"
KEEPALIVE_SECONDS = 30.0


class ProjectListResponse(BaseModel):
    """Response for listing projects."""

    projects: list[ProjectResponse]
    total: int
    limit: int
    offset: int


class DeployRequest(BaseModel):
    """Deployment action to perform."""

    action: Literal["start", "retry", "cancel"] = "start"


def _outcome_status(error: str | None) -> int:
    if error == PROJECT_NOT_FOUND:
        return status.HTTP_404_NOT_FOUND
    if error in (ALREADY_IN_PROGRESS, NOTHING_TO_CANCEL):
        return status.HTTP_409_CONFLICT
    if error == NOT_GENERATED:
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_502_BAD_GATEWAY


def _resolve_token(header_token: str | None) -> str:
    token = (header_token or settings.vercel_token).strip()
    if ":" in token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Invalid Vercel token format. Tokens with ':' are legacy format. "
                "Please create a new token at https://vercel.com/account/tokens",
                "action": "configure_token",
            },
        )
    if token:
        return token
    if settings.vercel_deploy_real:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Vercel token not configured. Please add your Vercel API token in settings.",
                "action": "configure_token",
            },
        )
    return MOCK_TOKEN


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a project",
)
async def create_project(
    data: ProjectCreate,
    store: StoreDep,
    user_id: UserDep,
) -> ProjectResponse:
    """Register a generated project so it can be deployed."""
    project = await store.create_project(user_id, data)
    return ProjectResponse.from_project(project)


@router.get(
    "",
    response_model=ProjectListResponse,
    summary="List the caller's projects",
)
async def list_projects(
    store: StoreDep,
    user_id: UserDep,
    status_filter: Annotated[ProjectStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ProjectListResponse:
    """List projects with optional status filtering."""
    projects, total = await store.list_projects(
        user_id=user_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )

    return ProjectListResponse(
        projects=[ProjectResponse.from_project(p) for p in projects],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Get project details",
)
async def get_project(project: ProjectDep) -> ProjectResponse:
    return ProjectResponse.from_project(project)


@router.post(
    "/{project_id}/deploy",
    summary="Start, retry or cancel a deployment",
    description="Returns once the provider accepts the deployment; the build is monitored in the background.",
)
async def deploy_project(
    project: ProjectDep,
    deployments: DeploymentsDep,
    user_id: UserDep,
    data: DeployRequest | None = None,
    x_vercel_token: Annotated[str | None, Header()] = None,
) -> JSONResponse:
    action = data.action if data else "start"

    if action == "cancel":
        outcome = await deployments.cancel(project.id, user_id)
        if not outcome.success:
            return JSONResponse(
                status_code=_outcome_status(outcome.error),
                content={"error": outcome.error},
            )
        return JSONResponse(content={"message": "Deployment cancelled"})

    token = _resolve_token(x_vercel_token)
    try:
        ctx = DeploymentContext.for_project(project, token)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if action == "retry":
        outcome = await deployments.retry(ctx)
    else:
        outcome = await deployments.start(ctx)

    if not outcome.success:
        return JSONResponse(
            status_code=_outcome_status(outcome.error),
            content={"error": outcome.error, "retryable": outcome.retryable},
        )

    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content={
            "message": "Deployment retry started" if action == "retry" else "Deployment started",
            "deployment": {
                "id": outcome.deployment_id,
                "url": outcome.deployment_url,
                "status": "BUILDING",
            },
        },
    )


@router.get(
    "/{project_id}/deploy",
    response_model=DeploymentStatusInfo,
    summary="Get deployment status",
)
async def get_deployment_status(
    project_id: UUID,
    deployments: DeploymentsDep,
    user_id: UserDep,
) -> DeploymentStatusInfo:
    # ProjectNotFoundError is mapped to 404 by the application error handler
    return await deployments.get_status(project_id, user_id)


@router.get(
    "/{project_id}/stream",
    summary="Stream deployment events (SSE)",
)
async def stream_deployment_events(
    project: ProjectDep,
    events: EventsDep,
) -> EventSourceResponse:
    """Stream deployment status changes using Server-Sent Events.

    The stream ends after the deployment is live or has failed.
    """

    async def event_generator():
        queue = events.subscribe(project.id)

        try:
            yield Event(
                event_type="connected",
                data={"project_id": str(project.id), "status": project.status.value},
            ).to_sse()

            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield {"event": "keepalive", "data": "{}"}
                    continue

                yield event.to_sse()
                if event.is_terminal:
                    break

        finally:
            events.unsubscribe(project.id, queue)

    return EventSourceResponse(event_generator())
