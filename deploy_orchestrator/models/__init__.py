"""Data models for the deployment orchestrator."""

from deploy_orchestrator.models.deployment import (
    DeploymentContext,
    DeploymentDescriptor,
    DeploymentOutcome,
    DeploymentStatusInfo,
    RemoteState,
)
from deploy_orchestrator.models.project import (
    Project,
    ProjectCreate,
    ProjectResponse,
    ProjectStatus,
)

__all__ = [
    # Project models
    "Project",
    "ProjectCreate",
    "ProjectResponse",
    "ProjectStatus",
    # Deployment models
    "DeploymentContext",
    "DeploymentDescriptor",
    "DeploymentOutcome",
    "DeploymentStatusInfo",
    "RemoteState",
]
