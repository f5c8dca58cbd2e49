"""Provider selection."""

from functools import lru_cache

from deploy_orchestrator.config import settings
from deploy_orchestrator.providers.base import DeploymentProvider
from deploy_orchestrator.providers.mock import MockProvider
from deploy_orchestrator.providers.vercel import VercelProvider
from deploy_orchestrator.utils.logging import get_logger

logger = get_logger(__name__)


@lru_cache
def get_provider() -> DeploymentProvider:
    """Get the configured provider singleton.

    Real Vercel calls happen only when ``VERCEL_DEPLOY_REAL=true``; otherwise
    deployments are simulated.
    """
    if settings.vercel_deploy_real:
        return VercelProvider()

    if settings.vercel_token:
        logger.info(
            "mock_deployment.enabled",
            reason="set VERCEL_DEPLOY_REAL=true in .env for real deployment",
        )
    return MockProvider()
