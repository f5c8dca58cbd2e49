"""Core functionality for the deployment orchestrator."""

from deploy_orchestrator.core.exceptions import (
    DeployOrchestratorError,
    InvalidTransitionError,
    ProjectNotFoundError,
    ProviderError,
    ValidationError,
)

__all__ = [
    "DeployOrchestratorError",
    "InvalidTransitionError",
    "ProjectNotFoundError",
    "ProviderError",
    "ValidationError",
]
