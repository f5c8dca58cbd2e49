"""Deployment data models."""

import re
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, Field, SecretStr

from deploy_orchestrator.config import settings
from deploy_orchestrator.core.exceptions import ValidationError
from deploy_orchestrator.models.project import ProjectStatus

if TYPE_CHECKING:
    from deploy_orchestrator.models.project import Project

GITHUB_REPO_PATTERN = re.compile(r"github\.com[/:]([^/\s]+)/([^/\s#?]+)")
OWNER_REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class RemoteState(str, Enum):
    """Build state of a deployment as reported by the provider."""

    BUILDING = "BUILDING"
    READY = "READY"
    ERROR = "ERROR"
    CANCELED = "CANCELED"

    @property
    def is_terminal(self) -> bool:
        return self is not RemoteState.BUILDING


class DeploymentDescriptor(BaseModel):
    """One deployment attempt as seen by the provider."""

    id: str
    url: str = ""  # bare host, no scheme
    remote_state: RemoteState = RemoteState.BUILDING
    inspector_url: str | None = None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def https_url(self) -> str:
        return f"https://{self.url}"


def slugify(name: str) -> str:
    """Derive a provider project name from a display name."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def parse_source_repo(repository: str) -> str:
    """Extract ``owner/repo`` from a GitHub URL or pass through an ``owner/repo`` reference."""
    value = repository.strip()
    if OWNER_REPO_PATTERN.match(value):
        return value
    match = GITHUB_REPO_PATTERN.search(value)
    if not match:
        raise ValidationError("Invalid repository URL", {"repository": repository})
    owner, repo = match.groups()
    return f"{owner}/{repo.removesuffix('.git')}"


class DeploymentContext(BaseModel):
    """Everything needed to submit and monitor a deployment for one project."""

    project_id: UUID
    user_id: str
    provider_token: SecretStr
    target_name: str
    source_repo: str | None = None
    max_retries: int = Field(default_factory=lambda: settings.deploy_max_retries, ge=0)

    @classmethod
    def for_project(
        cls,
        project: "Project",
        token: str,
        max_retries: int | None = None,
    ) -> "DeploymentContext":
        """Build a context from a stored project.

        Raises:
            ValidationError: If the project's repository cannot be parsed.
        """
        data = {
            "project_id": project.id,
            "user_id": project.user_id,
            "provider_token": token,
            "target_name": slugify(project.name),
            "source_repo": parse_source_repo(project.repository) if project.repository else None,
        }
        if max_retries is not None:
            data["max_retries"] = max_retries
        return cls(**data)


class DeploymentOutcome(BaseModel):
    """Result of a start/retry/cancel call."""

    success: bool
    deployment_id: str | None = None
    deployment_url: str | None = None

    error: str | None = None
    # Whether the failure looked transient when it happened
    retryable: bool | None = None

    @classmethod
    def ok(cls, deployment_id: str | None = None, deployment_url: str | None = None) -> "DeploymentOutcome":
        return cls(success=True, deployment_id=deployment_id, deployment_url=deployment_url)

    @classmethod
    def failed(cls, error: str, retryable: bool = False) -> "DeploymentOutcome":
        return cls(success=False, error=error, retryable=retryable)


class DeploymentStatusInfo(BaseModel):
    """Deployment status of a project as exposed to callers."""

    status: ProjectStatus
    deployment_url: str | None = None
    last_updated: datetime
    error: str | None = None
