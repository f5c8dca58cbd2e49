"""Deployment lifecycle state machine.

    draft/pending/failed/deployed --> deploying
    deploying --> deployed | failed | retrying
    retrying --> deploying | failed

Every write is conditional on the expected prior status, so a writer that
lost a race (e.g. a monitor whose deployment was cancelled) simply gets
``False`` back instead of clobbering the newer status.
"""

from collections.abc import Iterable
from uuid import UUID

from deploy_orchestrator.core.events import EventBus, get_event_bus
from deploy_orchestrator.core.exceptions import InvalidTransitionError
from deploy_orchestrator.core.store import ProjectStore, get_project_store
from deploy_orchestrator.models.project import ProjectStatus
from deploy_orchestrator.utils.logging import get_logger

S = ProjectStatus

TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    S.DRAFT: frozenset({S.DEPLOYING, S.FAILED}),
    S.PENDING: frozenset({S.DEPLOYING, S.FAILED}),
    S.FAILED: frozenset({S.DEPLOYING, S.FAILED, S.PENDING}),
    S.DEPLOYED: frozenset({S.DEPLOYING, S.FAILED}),
    S.DEPLOYING: frozenset({S.DEPLOYING, S.DEPLOYED, S.FAILED, S.RETRYING}),
    S.RETRYING: frozenset({S.DEPLOYING, S.FAILED}),
}

IN_FLIGHT = frozenset({S.DEPLOYING, S.RETRYING})


def sources_for(target: ProjectStatus) -> frozenset[ProjectStatus]:
    """All statuses from which ``target`` can be reached."""
    return frozenset(source for source, targets in TRANSITIONS.items() if target in targets)


class DeploymentStateMachine:
    """Applies lifecycle transitions to projects in the store."""

    def __init__(
        self,
        store: ProjectStore | None = None,
        events: EventBus | None = None,
    ):
        self.store = store or get_project_store()
        self.events = events or get_event_bus()
        self.logger = get_logger("state_machine")

    async def begin(
        self,
        project_id: UUID,
        deployment_id: str,
        expected: Iterable[ProjectStatus] | None = None,
    ) -> bool:
        """Record an accepted deployment: ``-> deploying``."""
        return await self._apply(
            project_id,
            S.DEPLOYING,
            expected,
            deployment_id=deployment_id,
            error=None,
        )

    async def complete(self, project_id: UUID, deployment_id: str, deployment_url: str) -> bool:
        """``deploying -> deployed``."""
        return await self._apply(
            project_id,
            S.DEPLOYED,
            [S.DEPLOYING],
            deployment_id=deployment_id,
            deployment_url=deployment_url,
            error=None,
        )

    async def mark_retrying(self, project_id: UUID, error: str) -> bool:
        """``deploying -> retrying``."""
        return await self._apply(project_id, S.RETRYING, [S.DEPLOYING], error=error)

    async def fail(
        self,
        project_id: UUID,
        error: str,
        expected: Iterable[ProjectStatus] | None = None,
    ) -> bool:
        """Move a project to ``failed``."""
        return await self._apply(project_id, S.FAILED, expected, error=error)

    async def _apply(
        self,
        project_id: UUID,
        target: ProjectStatus,
        expected: Iterable[ProjectStatus] | None,
        **fields,
    ) -> bool:
        allowed = sources_for(target)
        if expected is None:
            expected = allowed
        else:
            expected = frozenset(expected)
            illegal = expected - allowed
            if illegal:
                current = ",".join(sorted(s.value for s in illegal))
                raise InvalidTransitionError(str(project_id), current, target.value)

        if target != S.DEPLOYED:
            fields["deployment_url"] = None

        result = await self.store.transition(project_id, target, expected, **fields)
        if result is None:
            self.logger.info(
                "deployment.transition_skipped",
                project_id=str(project_id),
                target=target.value,
                expected=sorted(s.value for s in expected),
            )
            return False

        previous, project = result
        self.logger.info(
            "deployment.status_changed",
            project_id=str(project_id),
            previous=previous.value,
            status=target.value,
            deployment_id=project.deployment_id,
        )

        await self.events.publish_status_changed(
            project_id, target.value, previous.value, project.deployment_id
        )
        if target == S.DEPLOYED and project.deployment_url:
            await self.events.publish_deployment_complete(project_id, project.deployment_url)
        elif target == S.FAILED:
            await self.events.publish_error(project_id, project.error or "Deployment failed")

        return True
