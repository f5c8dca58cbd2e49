"""Project-related data models."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class ProjectStatus(str, Enum):
    """Project deployment status."""

    DRAFT = "draft"
    PENDING = "pending"
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    FAILED = "failed"
    RETRYING = "retrying"


class ProjectCreate(BaseModel):
    """Request model for registering a project."""

    name: str = Field(..., min_length=1, max_length=100)
    repository: str | None = Field(
        default=None,
        description="Source repository, e.g. https://github.com/owner/repo",
    )


class Project(BaseModel):
    """Project record as held by the project store."""

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    name: str
    repository: str | None = None

    status: ProjectStatus = ProjectStatus.DRAFT
    deployment_url: str | None = None
    deployment_id: str | None = None
    error: str | None = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ProjectResponse(BaseModel):
    """API response model for project."""

    project_id: UUID
    name: str
    repository: str | None = None
    status: ProjectStatus
    deployment_url: str | None = None
    deployment_id: str | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        """Create response from project model."""
        return cls(
            project_id=project.id,
            name=project.name,
            repository=project.repository,
            status=project.status,
            deployment_url=project.deployment_url,
            deployment_id=project.deployment_id,
            error=project.error,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )
