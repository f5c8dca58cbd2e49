"""Hosting provider clients."""

from deploy_orchestrator.providers.base import DeploymentProvider
from deploy_orchestrator.providers.mock import MockProvider
from deploy_orchestrator.providers.registry import get_provider
from deploy_orchestrator.providers.vercel import VercelProvider

__all__ = [
    "DeploymentProvider",
    "MockProvider",
    "VercelProvider",
    "get_provider",
]
