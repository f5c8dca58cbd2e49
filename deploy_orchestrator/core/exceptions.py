"""Custom exceptions for the deployment orchestrator."""

from typing import Any


class DeployOrchestratorError(Exception):
    """Base exception for the deployment orchestrator."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(DeployOrchestratorError):
    """Validation error."""

    pass


class ProjectNotFoundError(DeployOrchestratorError):
    """Project not found, or not owned by the requesting user."""

    def __init__(self, project_id: str):
        super().__init__(
            f"Project not found: {project_id}",
            {"project_id": project_id},
        )


class ProviderError(DeployOrchestratorError):
    """The hosting provider rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        details: dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if code:
            details["code"] = code
        super().__init__(message, details)
        self.status_code = status_code
        self.code = code


class InvalidTransitionError(DeployOrchestratorError):
    """A status change outside the deployment lifecycle graph."""

    def __init__(self, project_id: str, current: str, target: str):
        super().__init__(
            f"Invalid deployment transition for {project_id}: {current} -> {target}",
            {"project_id": project_id, "current": current, "target": target},
        )
        self.current = current
        self.target = target
