"""Pytest configuration and fixtures."""

import asyncio
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient

from deploy_orchestrator.api.deps import get_deployments, get_events, get_store
from deploy_orchestrator.core.events import EventBus
from deploy_orchestrator.core.monitor import MonitorRegistry
from deploy_orchestrator.core.orchestrator import DeploymentOrchestrator
from deploy_orchestrator.core.store import ProjectStore
from deploy_orchestrator.main import app
from deploy_orchestrator.models.deployment import (
    DeploymentContext,
    DeploymentDescriptor,
    RemoteState,
)
from deploy_orchestrator.models.project import Project, ProjectCreate
from deploy_orchestrator.providers.base import DeploymentProvider
from deploy_orchestrator.providers.mock import MockProvider

USER_ID = "user-1"
TOKEN = "ver_secret_token_123"


class FakeProvider(DeploymentProvider):
    """Scriptable provider.

    ``create_errors`` are raised by successive ``create_deployment`` calls,
    which wait on ``create_gate`` first when it is set.
    ``scripts`` holds one list of poll results per created deployment; each
    poll consumes one item (the last one repeats). An item may be a
    ``RemoteState``, an exception to raise, or an ``asyncio.Event`` to wait
    on before moving to the next item.
    """

    def __init__(self, url: str = "p-abc.host"):
        super().__init__()
        self.url = url
        self.create_errors: list[Exception] = []
        self.create_gate: asyncio.Event | None = None
        self.scripts: list[list] = []
        self.default_script: list = [RemoteState.READY]
        self.created: list[dict] = []
        self.polls: list[str] = []
        self._pending: dict[str, list] = {}

    @property
    def name(self) -> str:
        return "fake"

    async def create_deployment(self, token, target_name, source_repo, production=True):
        self.created.append(
            {
                "token": token,
                "target_name": target_name,
                "source_repo": source_repo,
                "production": production,
            }
        )
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.create_errors:
            raise self.create_errors.pop(0)

        deployment_id = f"d{len(self._pending) + 1}"
        script = self.scripts.pop(0) if self.scripts else self.default_script
        self._pending[deployment_id] = list(script)
        return DeploymentDescriptor(id=deployment_id, url=self.url)

    async def get_deployment_status(self, token, deployment_id):
        self.polls.append(deployment_id)
        script = self._pending[deployment_id]
        while True:
            item = script.pop(0) if len(script) > 1 else script[0]
            if isinstance(item, asyncio.Event):
                await item.wait()
                continue
            if isinstance(item, BaseException):
                raise item
            return DeploymentDescriptor(id=deployment_id, url=self.url, remote_state=item)


@pytest.fixture
def store() -> ProjectStore:
    """Create a fresh project store."""
    return ProjectStore()


@pytest.fixture
def events() -> EventBus:
    """Create a fresh event bus."""
    return EventBus()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
async def orchestrator(store: ProjectStore, provider: FakeProvider, events: EventBus):
    """Orchestrator with fast polling and no retry delay."""
    orchestrator = DeploymentOrchestrator(
        store=store,
        provider=provider,
        events=events,
        registry=MonitorRegistry(),
        poll_interval=0.01,
        max_wait=1.0,
        retry_delay=0,
    )
    yield orchestrator
    await orchestrator.shutdown()


@pytest.fixture
async def project(store: ProjectStore) -> Project:
    """A generated project owned by USER_ID."""
    return await store.create_project(
        USER_ID,
        ProjectCreate(name="My Todo App", repository="https://github.com/acme/todo-app"),
    )


@pytest.fixture
def context(project: Project) -> DeploymentContext:
    return DeploymentContext.for_project(project, TOKEN, max_retries=3)


async def age(store: ProjectStore, project_id, when: datetime, **fields) -> None:
    """Backdate a project record."""
    await store.update_project(project_id, updated_at=when, **fields)


@pytest.fixture
async def client():
    """Async test client wired to a fresh store and a mock provider."""
    store = ProjectStore()
    events = EventBus()
    orchestrator = DeploymentOrchestrator(
        store=store,
        provider=MockProvider(polls_until_ready=1),
        events=events,
        registry=MonitorRegistry(),
        poll_interval=0.01,
        max_wait=1.0,
        retry_delay=0,
    )
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_events] = lambda: events
    app.dependency_overrides[get_deployments] = lambda: orchestrator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.orchestrator = orchestrator
        yield ac

    await orchestrator.shutdown()
    app.dependency_overrides.clear()
