"""Background deployment monitoring.

One ``DeploymentMonitor`` runs per in-flight deployment as a detached
asyncio task. It polls the provider until the build reaches a terminal
state and then drives the state machine to ``deployed``, ``failed`` or
``retrying`` (followed by a resubmission that hands the project over to a
new monitor).
"""

import asyncio
from collections.abc import Awaitable, Callable
from uuid import UUID

from deploy_orchestrator.core.retry import RetryPolicy, classify
from deploy_orchestrator.core.state_machine import IN_FLIGHT, DeploymentStateMachine
from deploy_orchestrator.models.deployment import (
    DeploymentContext,
    DeploymentDescriptor,
    DeploymentOutcome,
    RemoteState,
)
from deploy_orchestrator.models.project import ProjectStatus
from deploy_orchestrator.providers.base import DeploymentProvider
from deploy_orchestrator.utils.logging import get_logger, redact

logger = get_logger(__name__)

Resubmit = Callable[[DeploymentContext, int, "DeploymentMonitor"], Awaitable[DeploymentOutcome]]


class DeploymentMonitor:
    """Watches one deployment attempt for one project."""

    def __init__(
        self,
        context: DeploymentContext,
        attempt: int,
        provider: DeploymentProvider,
        machine: DeploymentStateMachine,
        resubmit: Resubmit,
        poll_interval: float,
        max_wait: float,
        retry_delay: float,
    ):
        self.context = context
        self.attempt = attempt
        self.deployment_id: str | None = None
        self.provider = provider
        self.machine = machine
        self.resubmit = resubmit
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.retry_delay = retry_delay
        self.policy = RetryPolicy(context.max_retries)
        self._cancelled = asyncio.Event()
        self._handed_off = False

    @property
    def project_id(self) -> UUID:
        return self.context.project_id

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Ask the monitor to stop; it exits at its next check without writing."""
        self._cancelled.set()

    async def run(self) -> None:
        """Task entry point. Never lets an exception escape except task cancellation."""
        log = logger.bind(
            project_id=str(self.project_id),
            deployment_id=self.deployment_id,
            attempt=self.attempt,
        )
        log.info("monitor.started")
        try:
            await self._watch()
        except Exception:
            log.exception("monitor.crashed")
            if not self.cancelled and not self._handed_off:
                await self.machine.fail(
                    self.project_id,
                    "Deployment monitoring failed",
                    expected=IN_FLIGHT,
                )
        finally:
            log.info("monitor.stopped", cancelled=self.cancelled)

    async def _watch(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_wait
        token = self.context.provider_token.get_secret_value()

        while True:
            if self.cancelled:
                return

            try:
                descriptor = await self.provider.get_deployment_status(token, self.deployment_id)
            except Exception as e:
                message = redact(str(e) or type(e).__name__, token)
                logger.warning(
                    "monitor.poll_failed",
                    project_id=str(self.project_id),
                    deployment_id=self.deployment_id,
                    error=message,
                )
                await self._handle_error(message, classify(e))
                return

            logger.debug(
                "monitor.poll",
                project_id=str(self.project_id),
                deployment_id=self.deployment_id,
                remote_state=descriptor.remote_state.value,
            )

            if descriptor.remote_state is RemoteState.READY:
                await self._finish(descriptor)
                return

            if descriptor.remote_state is RemoteState.ERROR:
                message = self._error_message(descriptor)
                logger.warning(
                    "monitor.remote_error",
                    project_id=str(self.project_id),
                    deployment_id=self.deployment_id,
                    inspector_url=descriptor.inspector_url,
                    error=message,
                )
                await self._handle_error(message, classify(message))
                return

            if descriptor.remote_state is RemoteState.CANCELED:
                logger.warning(
                    "monitor.remote_canceled",
                    project_id=str(self.project_id),
                    deployment_id=self.deployment_id,
                )
                if not self.cancelled:
                    await self.machine.fail(
                        self.project_id,
                        "Deployment was canceled",
                        expected=[ProjectStatus.DEPLOYING],
                    )
                return

            if loop.time() >= deadline:
                await self._handle_error("Deployment timed out", retryable=True)
                return

            await self._sleep(self.poll_interval)

    async def _finish(self, descriptor: DeploymentDescriptor) -> None:
        if self.cancelled:
            return
        done = await self.machine.complete(self.project_id, descriptor.id, descriptor.https_url)
        if done:
            logger.info(
                "monitor.deployment_ready",
                project_id=str(self.project_id),
                deployment_id=descriptor.id,
                url=descriptor.https_url,
            )

    async def _handle_error(self, message: str, retryable: bool) -> None:
        if self.cancelled:
            return

        if not self.policy.should_retry(message, self.attempt, retryable):
            failed = await self.machine.fail(
                self.project_id, message, expected=[ProjectStatus.DEPLOYING]
            )
            if not failed:
                return
            logger.error(
                "monitor.deployment_failed",
                project_id=str(self.project_id),
                deployment_id=self.deployment_id,
                attempts=self.attempt + 1,
                retryable=retryable,
                error=message,
            )
            return

        next_attempt = self.attempt + 1
        marked = await self.machine.mark_retrying(
            self.project_id,
            f"Retry attempt {next_attempt}: {message}",
        )
        if not marked:
            return

        logger.info(
            "monitor.retrying",
            project_id=str(self.project_id),
            deployment_id=self.deployment_id,
            attempt=next_attempt,
            max_retries=self.context.max_retries,
        )
        await self._sleep(self.retry_delay)
        if self.cancelled:
            return

        self._handed_off = True
        outcome = await self.resubmit(self.context, next_attempt, self)
        if not outcome.success:
            logger.error(
                "monitor.resubmit_failed",
                project_id=str(self.project_id),
                attempt=next_attempt,
                error=outcome.error,
            )

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking early if cancelled."""
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    @staticmethod
    def _error_message(descriptor: DeploymentDescriptor) -> str:
        detail = descriptor.error_message or descriptor.error_code
        return f"Deployment failed: {detail}" if detail else "Deployment failed"


class MonitorRegistry:
    """Owns monitor tasks and the one-monitor-per-project slots."""

    def __init__(self):
        self._active: dict[UUID, DeploymentMonitor] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    def active_projects(self) -> set[UUID]:
        return set(self._active)

    def claim(self, monitor: DeploymentMonitor, replaces: DeploymentMonitor | None = None) -> bool:
        """Take the project's slot unless someone other than ``replaces`` holds it."""
        current = self._active.get(monitor.project_id)
        if current is not None and current is not replaces:
            return False
        self._active[monitor.project_id] = monitor
        return True

    def release(self, monitor: DeploymentMonitor) -> None:
        if self._active.get(monitor.project_id) is monitor:
            del self._active[monitor.project_id]

    def spawn(self, monitor: DeploymentMonitor) -> asyncio.Task[None]:
        """Run the monitor as a detached task that outlives the caller."""
        task = asyncio.create_task(
            self._run(monitor),
            name=f"deploy-monitor-{monitor.project_id}-{monitor.attempt}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel(self, project_id: UUID) -> bool:
        """Signal the project's monitor and free its slot."""
        monitor = self._active.pop(project_id, None)
        if monitor is None:
            return False
        monitor.cancel()
        return True

    async def shutdown(self) -> None:
        """Cancel every monitor task and wait for them to finish."""
        for monitor in self._active.values():
            monitor.cancel()
        self._active.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def join(self) -> None:
        """Wait until no monitor task is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, monitor: DeploymentMonitor) -> None:
        try:
            await monitor.run()
        finally:
            self.release(monitor)
