"""Unit tests for the deployment state machine."""

import pytest

from deploy_orchestrator.core.events import EventBus
from deploy_orchestrator.core.exceptions import InvalidTransitionError
from deploy_orchestrator.core.state_machine import DeploymentStateMachine, sources_for
from deploy_orchestrator.core.store import ProjectStore
from deploy_orchestrator.models.project import Project, ProjectStatus


class TestDeploymentStateMachine:
    """Tests for DeploymentStateMachine."""

    @pytest.fixture
    def machine(self, store: ProjectStore, events: EventBus) -> DeploymentStateMachine:
        return DeploymentStateMachine(store, events)

    @pytest.mark.asyncio
    async def test_happy_path(self, machine: DeploymentStateMachine, store: ProjectStore, project: Project):
        assert await machine.begin(project.id, "d1")
        assert (await store.get_project(project.id)).status == ProjectStatus.DEPLOYING

        assert await machine.complete(project.id, "d1", "https://p-abc.host")
        deployed = await store.get_project(project.id)
        assert deployed.status == ProjectStatus.DEPLOYED
        assert deployed.deployment_url == "https://p-abc.host"
        assert deployed.deployment_id == "d1"

    @pytest.mark.asyncio
    async def test_url_cleared_when_leaving_deployed(
        self, machine: DeploymentStateMachine, store: ProjectStore, project: Project
    ):
        await machine.begin(project.id, "d1")
        await machine.complete(project.id, "d1", "https://p-abc.host")

        await machine.begin(project.id, "d2")

        redeploying = await store.get_project(project.id)
        assert redeploying.status == ProjectStatus.DEPLOYING
        assert redeploying.deployment_url is None

    @pytest.mark.asyncio
    async def test_complete_requires_deploying(
        self, machine: DeploymentStateMachine, store: ProjectStore, project: Project
    ):
        await machine.begin(project.id, "d1")
        await machine.fail(project.id, "Deployment cancelled by user", expected=[ProjectStatus.DEPLOYING])

        assert await machine.complete(project.id, "d1", "https://p-abc.host") is False
        cancelled = await store.get_project(project.id)
        assert cancelled.status == ProjectStatus.FAILED
        assert cancelled.deployment_url is None

    @pytest.mark.asyncio
    async def test_retrying_goes_back_to_deploying(
        self, machine: DeploymentStateMachine, store: ProjectStore, project: Project
    ):
        await machine.begin(project.id, "d1")
        assert await machine.mark_retrying(project.id, "Retry attempt 1: Request timeout")
        assert (await store.get_project(project.id)).error.startswith("Retry attempt 1")

        assert await machine.begin(project.id, "d2", expected=[ProjectStatus.RETRYING])
        resumed = await store.get_project(project.id)
        assert resumed.status == ProjectStatus.DEPLOYING
        assert resumed.deployment_id == "d2"
        assert resumed.error is None

    @pytest.mark.asyncio
    async def test_fail_is_idempotent(self, machine: DeploymentStateMachine, store: ProjectStore, project: Project):
        assert await machine.fail(project.id, "first")
        assert await machine.fail(project.id, "second")
        assert (await store.get_project(project.id)).error == "second"

    @pytest.mark.asyncio
    async def test_illegal_expected_status_raises(self, machine: DeploymentStateMachine, project: Project):
        with pytest.raises(InvalidTransitionError):
            await machine._apply(project.id, ProjectStatus.RETRYING, [ProjectStatus.FAILED])
        with pytest.raises(InvalidTransitionError):
            await machine._apply(project.id, ProjectStatus.PENDING, [ProjectStatus.DEPLOYING])
        with pytest.raises(InvalidTransitionError):
            await machine._apply(project.id, ProjectStatus.DEPLOYED, [ProjectStatus.DRAFT])

    @pytest.mark.asyncio
    async def test_missing_project(self, machine: DeploymentStateMachine):
        from uuid import uuid4

        assert await machine.begin(uuid4(), "d1") is False

    @pytest.mark.asyncio
    async def test_events_published(
        self, machine: DeploymentStateMachine, events: EventBus, project: Project
    ):
        queue = events.subscribe(project.id)

        await machine.begin(project.id, "d1")
        await machine.complete(project.id, "d1", "https://p-abc.host")

        collected = [queue.get_nowait() for _ in range(queue.qsize())]
        assert [e.event_type for e in collected] == [
            "status_changed",
            "status_changed",
            "deployment_complete",
        ]
        assert collected[0].data == {"status": "deploying", "previous": "draft", "deployment_id": "d1"}
        assert collected[2].data["url"] == "https://p-abc.host"

    def test_sources_for(self):
        assert sources_for(ProjectStatus.DEPLOYED) == {ProjectStatus.DEPLOYING}
        assert sources_for(ProjectStatus.RETRYING) == {ProjectStatus.DEPLOYING}
        assert ProjectStatus.RETRYING in sources_for(ProjectStatus.DEPLOYING)
        assert ProjectStatus.FAILED in sources_for(ProjectStatus.PENDING)
