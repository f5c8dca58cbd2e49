"""Base class for hosting provider clients."""

from abc import ABC, abstractmethod

from deploy_orchestrator.models.deployment import DeploymentDescriptor
from deploy_orchestrator.utils.logging import get_logger


class DeploymentProvider(ABC):
    """Request/response client for a hosting provider.

    Implementations do not retry; retrying is the orchestrator's job.
    Both calls raise ``ProviderError`` when the provider refuses.
    """

    def __init__(self):
        self.logger = get_logger(f"provider.{self.name}")

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier."""
        pass

    @abstractmethod
    async def create_deployment(
        self,
        token: str,
        target_name: str,
        source_repo: str,
        production: bool = True,
    ) -> DeploymentDescriptor:
        """Ask the provider to build and serve ``source_repo`` under ``target_name``."""
        pass

    @abstractmethod
    async def get_deployment_status(self, token: str, deployment_id: str) -> DeploymentDescriptor:
        """Fetch the current state of a deployment."""
        pass

    async def aclose(self) -> None:
        """Release any held connections."""
        return None
