"""Deployment Orchestrator.

Public entry point for deploying projects: submits deployments to the
provider, hands them to background monitors, and handles cancel, retry
and maintenance of stale deployment state.
"""

from datetime import datetime, timedelta
from uuid import UUID

from deploy_orchestrator.config import settings
from deploy_orchestrator.core.events import EventBus, get_event_bus
from deploy_orchestrator.core.exceptions import ProjectNotFoundError, ValidationError
from deploy_orchestrator.core.monitor import DeploymentMonitor, MonitorRegistry
from deploy_orchestrator.core.retry import classify
from deploy_orchestrator.core.state_machine import DeploymentStateMachine
from deploy_orchestrator.core.store import ProjectStore, get_project_store
from deploy_orchestrator.models.deployment import (
    DeploymentContext,
    DeploymentOutcome,
    DeploymentStatusInfo,
    parse_source_repo,
)
from deploy_orchestrator.models.project import ProjectStatus
from deploy_orchestrator.providers.base import DeploymentProvider
from deploy_orchestrator.providers.registry import get_provider
from deploy_orchestrator.utils.logging import get_logger, redact

PROJECT_NOT_FOUND = "Project not found"
NOT_GENERATED = "Project must be generated before deployment"
NOTHING_TO_CANCEL = "No deployment in progress to cancel"
ALREADY_IN_PROGRESS = "Deployment already in progress"
CANCELLED_BY_USER = "Deployment cancelled by user"
MONITORING_INTERRUPTED = "Deployment monitoring was interrupted"


class DeploymentOrchestrator:
    """Coordinates deployments for projects.

    ``start``, ``retry`` and ``cancel`` only wait for the provider to accept
    (or refuse) a deployment. Build progress is followed by a
    ``DeploymentMonitor`` task, one per project at a time.
    """

    def __init__(
        self,
        store: ProjectStore | None = None,
        provider: DeploymentProvider | None = None,
        events: EventBus | None = None,
        registry: MonitorRegistry | None = None,
        poll_interval: float | None = None,
        max_wait: float | None = None,
        retry_delay: float | None = None,
    ):
        self.store = store or get_project_store()
        self.provider = provider or get_provider()
        self.events = events or get_event_bus()
        self.registry = registry or MonitorRegistry()
        self.machine = DeploymentStateMachine(self.store, self.events)
        self.poll_interval = settings.deploy_poll_interval if poll_interval is None else poll_interval
        self.max_wait = settings.deploy_max_wait if max_wait is None else max_wait
        self.retry_delay = settings.deploy_retry_delay if retry_delay is None else retry_delay
        self.logger = get_logger("orchestrator")

    @property
    def active_monitors(self) -> int:
        return self.registry.active_count

    async def start(self, ctx: DeploymentContext) -> DeploymentOutcome:
        """Submit a production deployment and start monitoring it.

        Returns as soon as the provider has accepted or refused the request.
        """
        project = await self.store.find_project(ctx.project_id, ctx.user_id)
        if not project:
            return DeploymentOutcome.failed(PROJECT_NOT_FOUND)

        source_repo = ctx.source_repo
        if not source_repo and project.repository:
            try:
                source_repo = parse_source_repo(project.repository)
            except ValidationError as e:
                return DeploymentOutcome.failed(e.message)
        if not source_repo:
            return DeploymentOutcome.failed(NOT_GENERATED)

        return await self._submit(ctx.model_copy(update={"source_repo": source_repo}), attempt=0)

    async def retry(self, ctx: DeploymentContext) -> DeploymentOutcome:
        """Deploy a previously failed project again.

        The project must have a source repository; otherwise the provider is
        never contacted.
        """
        project = await self.store.find_project(ctx.project_id, ctx.user_id)
        if not project:
            return DeploymentOutcome.failed(PROJECT_NOT_FOUND)

        if not project.repository:
            return DeploymentOutcome.failed(NOT_GENERATED)

        self.logger.info(
            "orchestrator.deployment.retry",
            project_id=str(ctx.project_id),
            previous_status=project.status.value,
        )
        return await self.start(ctx)

    async def cancel(self, project_id: UUID, user_id: str) -> DeploymentOutcome:
        """Mark an in-progress deployment as failed and stop its monitor.

        The remote build itself is not stopped.
        """
        project = await self.store.find_project(project_id, user_id)
        if not project:
            return DeploymentOutcome.failed(PROJECT_NOT_FOUND)

        if project.status != ProjectStatus.DEPLOYING:
            return DeploymentOutcome.failed(NOTHING_TO_CANCEL)

        cancelled = await self.machine.fail(
            project_id,
            CANCELLED_BY_USER,
            expected=[ProjectStatus.DEPLOYING],
        )
        if not cancelled:
            return DeploymentOutcome.failed(NOTHING_TO_CANCEL)

        signalled = self.registry.cancel(project_id)
        self.logger.info(
            "orchestrator.deployment.cancelled",
            project_id=str(project_id),
            deployment_id=project.deployment_id,
            monitor_signalled=signalled,
        )
        return DeploymentOutcome.ok(deployment_id=project.deployment_id)

    async def get_status(self, project_id: UUID, user_id: str) -> DeploymentStatusInfo:
        """Get the deployment status of a project.

        Raises:
            ProjectNotFoundError: If the user has no such project.
        """
        project = await self.store.find_project(project_id, user_id)
        if not project:
            raise ProjectNotFoundError(str(project_id))

        return DeploymentStatusInfo(
            status=project.status,
            deployment_url=project.deployment_url,
            last_updated=project.updated_at,
            error=project.error,
        )

    async def cleanup_failed_deployments(self, older_than_days: int | None = None) -> int:
        """Reset long-failed projects to ``pending``. Never raises."""
        days = settings.cleanup_failed_after_days if older_than_days is None else older_than_days
        cutoff = datetime.utcnow() - timedelta(days=days)

        try:
            count = await self.store.bulk_reset_failed(cutoff)
        except Exception:
            self.logger.exception("orchestrator.cleanup.failed", older_than_days=days)
            return 0

        self.logger.info("orchestrator.cleanup.completed", reset=count, older_than_days=days)
        return count

    async def reconcile_stale_deployments(self, older_than_minutes: int | None = None) -> int:
        """Fail in-flight projects nobody is monitoring any more. Never raises.

        Covers projects left in ``deploying``/``retrying`` when a process
        died mid-monitor.
        """
        minutes = (
            settings.stale_deploying_after_minutes
            if older_than_minutes is None
            else older_than_minutes
        )
        cutoff = datetime.utcnow() - timedelta(minutes=minutes)

        try:
            count = await self.store.bulk_fail_stale(
                cutoff,
                MONITORING_INTERRUPTED,
                exclude=self.registry.active_projects(),
            )
        except Exception:
            self.logger.exception("orchestrator.reconcile.failed", older_than_minutes=minutes)
            return 0

        self.logger.info(
            "orchestrator.reconcile.completed",
            failed=count,
            older_than_minutes=minutes,
        )
        return count

    async def shutdown(self) -> None:
        """Stop all monitors. Their projects are picked up by reconciliation."""
        active = self.registry.active_count
        await self.registry.shutdown()
        self.logger.info("orchestrator.shutdown", stopped_monitors=active)

    async def _submit(
        self,
        ctx: DeploymentContext,
        attempt: int,
        predecessor: DeploymentMonitor | None = None,
    ) -> DeploymentOutcome:
        """Create a remote deployment and hand it to a new monitor.

        ``predecessor`` is the monitor resubmitting after a retryable
        failure; it is the only one allowed to pass its slot on.
        """
        token = ctx.provider_token.get_secret_value()
        monitor = DeploymentMonitor(
            context=ctx,
            attempt=attempt,
            provider=self.provider,
            machine=self.machine,
            resubmit=self._submit,
            poll_interval=self.poll_interval,
            max_wait=self.max_wait,
            retry_delay=self.retry_delay,
        )
        if not self.registry.claim(monitor, replaces=predecessor):
            return DeploymentOutcome.failed(ALREADY_IN_PROGRESS)

        # The accepted deployment may only replace the status seen here
        if predecessor is not None:
            expected = [ProjectStatus.RETRYING]
        else:
            current = await self.store.get_project(ctx.project_id)
            if current is None:
                self.registry.release(monitor)
                return DeploymentOutcome.failed(PROJECT_NOT_FOUND)
            expected = [current.status]

        self.logger.info(
            "orchestrator.deployment.submitting",
            project_id=str(ctx.project_id),
            target=ctx.target_name,
            repo=ctx.source_repo,
            attempt=attempt,
        )

        try:
            descriptor = await self.provider.create_deployment(
                token,
                ctx.target_name,
                ctx.source_repo,
                production=True,
            )
        except Exception as e:
            self.registry.release(monitor)
            message = redact(str(e) or type(e).__name__, token)
            retryable = classify(e)
            self.logger.error(
                "orchestrator.deployment.rejected",
                project_id=str(ctx.project_id),
                attempt=attempt,
                retryable=retryable,
                error=message,
            )
            await self.machine.fail(ctx.project_id, message)
            return DeploymentOutcome.failed(message, retryable=retryable)

        if monitor.cancelled:
            # Cancelled while the provider was accepting; the remote build is left alone
            self.registry.release(monitor)
            self.logger.info(
                "orchestrator.deployment.cancelled_during_submission",
                project_id=str(ctx.project_id),
                deployment_id=descriptor.id,
            )
            return DeploymentOutcome.failed(CANCELLED_BY_USER)

        if not await self.machine.begin(ctx.project_id, descriptor.id, expected=expected):
            self.registry.release(monitor)
            self.logger.warning(
                "orchestrator.deployment.superseded",
                project_id=str(ctx.project_id),
                deployment_id=descriptor.id,
            )
            return DeploymentOutcome.failed("Project status changed during submission")

        monitor.deployment_id = descriptor.id
        self.registry.spawn(monitor)

        self.logger.info(
            "orchestrator.deployment.started",
            project_id=str(ctx.project_id),
            deployment_id=descriptor.id,
            inspector_url=descriptor.inspector_url,
            attempt=attempt,
        )
        return DeploymentOutcome.ok(
            deployment_id=descriptor.id,
            deployment_url=descriptor.https_url,
        )


# Singleton instance
_orchestrator: DeploymentOrchestrator | None = None


def get_orchestrator() -> DeploymentOrchestrator:
    """Get the deployment orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = DeploymentOrchestrator()
    return _orchestrator
