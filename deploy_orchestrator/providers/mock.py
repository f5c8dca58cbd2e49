"""Mock provider for running without a Vercel token."""

import uuid

from deploy_orchestrator.core.exceptions import ProviderError
from deploy_orchestrator.models.deployment import DeploymentDescriptor, RemoteState
from deploy_orchestrator.providers.base import DeploymentProvider


class MockProvider(DeploymentProvider):
    """Simulates Vercel: each deployment turns READY after a few status polls."""

    def __init__(self, polls_until_ready: int = 2):
        super().__init__()
        self.polls_until_ready = polls_until_ready
        self._deployments: dict[str, DeploymentDescriptor] = {}
        self._polls: dict[str, int] = {}

    @property
    def name(self) -> str:
        return "mock"

    async def create_deployment(
        self,
        token: str,
        target_name: str,
        source_repo: str,
        production: bool = True,
    ) -> DeploymentDescriptor:
        deployment_id = f"dpl_{uuid.uuid4().hex[:12]}"
        descriptor = DeploymentDescriptor(
            id=deployment_id,
            url=f"{target_name}-{uuid.uuid4().hex[:8]}.vercel.app",
            remote_state=RemoteState.BUILDING,
            inspector_url=f"https://vercel.com/deployments/{deployment_id}",
        )
        self._deployments[deployment_id] = descriptor
        self._polls[deployment_id] = 0

        self.logger.info(
            "mock_provider.deployment_created",
            deployment_id=deployment_id,
            url=descriptor.url,
            repo=source_repo,
        )
        return descriptor

    async def get_deployment_status(self, token: str, deployment_id: str) -> DeploymentDescriptor:
        descriptor = self._deployments.get(deployment_id)
        if descriptor is None:
            raise ProviderError("Failed to get deployment status: not found", status_code=404)

        self._polls[deployment_id] += 1
        if self._polls[deployment_id] >= self.polls_until_ready:
            descriptor = descriptor.model_copy(update={"remote_state": RemoteState.READY})
            self._deployments[deployment_id] = descriptor
        return descriptor
