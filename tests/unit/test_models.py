"""Unit tests for data models."""

from uuid import UUID

import pytest

from deploy_orchestrator.core.exceptions import ValidationError
from deploy_orchestrator.models.deployment import (
    DeploymentContext,
    DeploymentDescriptor,
    DeploymentOutcome,
    RemoteState,
    parse_source_repo,
    slugify,
)
from deploy_orchestrator.models.project import Project, ProjectResponse, ProjectStatus


class TestProjectModels:
    """Tests for project-related models."""

    def test_project_defaults(self):
        project = Project(user_id="alice", name="test-app")

        assert isinstance(project.id, UUID)
        assert project.status == ProjectStatus.DRAFT
        assert project.repository is None
        assert project.deployment_url is None
        assert project.error is None

    def test_project_response_from_project(self):
        project = Project(
            user_id="alice",
            name="test-app",
            status=ProjectStatus.DEPLOYED,
            deployment_url="https://p-abc.host",
            deployment_id="d1",
        )

        response = ProjectResponse.from_project(project)

        assert response.project_id == project.id
        assert response.status == ProjectStatus.DEPLOYED
        assert response.deployment_url == "https://p-abc.host"


class TestDeploymentModels:
    """Tests for deployment models."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("My Todo App", "my-todo-app"),
            ("  --Hello__World!! ", "hello-world"),
            ("already-slugged", "already-slugged"),
        ],
    )
    def test_slugify(self, name: str, expected: str):
        assert slugify(name) == expected

    @pytest.mark.parametrize(
        "repository,expected",
        [
            ("https://github.com/acme/todo-app", "acme/todo-app"),
            ("https://github.com/acme/todo-app.git", "acme/todo-app"),
            ("https://github.com/acme/todo-app/tree/main", "acme/todo-app"),
            ("git@github.com:acme/todo-app.git", "acme/todo-app"),
            ("acme/todo-app", "acme/todo-app"),
        ],
    )
    def test_parse_source_repo(self, repository: str, expected: str):
        assert parse_source_repo(repository) == expected

    def test_parse_source_repo_rejects_unknown_hosts(self):
        with pytest.raises(ValidationError, match="Invalid repository URL"):
            parse_source_repo("https://gitlab.com/acme")

    def test_context_for_project(self):
        project = Project(
            user_id="alice",
            name="My Todo App",
            repository="https://github.com/acme/todo-app",
        )

        ctx = DeploymentContext.for_project(project, "ver_secret", max_retries=1)

        assert ctx.project_id == project.id
        assert ctx.user_id == "alice"
        assert ctx.target_name == "my-todo-app"
        assert ctx.source_repo == "acme/todo-app"
        assert ctx.max_retries == 1
        assert ctx.provider_token.get_secret_value() == "ver_secret"

    def test_context_for_ungenerated_project(self):
        project = Project(user_id="alice", name="draft")

        ctx = DeploymentContext.for_project(project, "tok")

        assert ctx.source_repo is None
        assert ctx.max_retries == 3

    def test_context_never_reveals_token(self):
        project = Project(user_id="alice", name="app", repository="acme/app")
        ctx = DeploymentContext.for_project(project, "ver_secret")

        assert "ver_secret" not in repr(ctx)
        assert "ver_secret" not in ctx.model_dump_json()

    def test_context_rejects_negative_retries(self):
        project = Project(user_id="alice", name="app")
        with pytest.raises(ValueError):
            DeploymentContext.for_project(project, "tok", max_retries=-1)

    def test_descriptor_https_url(self):
        descriptor = DeploymentDescriptor(id="d1", url="p-abc.host")

        assert descriptor.remote_state is RemoteState.BUILDING
        assert descriptor.https_url == "https://p-abc.host"
        assert not descriptor.remote_state.is_terminal
        assert RemoteState.CANCELED.is_terminal

    def test_outcome_helpers(self):
        ok = DeploymentOutcome.ok("d1", "https://p-abc.host")
        assert ok.success and ok.error is None and ok.retryable is None

        failed = DeploymentOutcome.failed("Request timeout", retryable=True)
        assert not failed.success
        assert failed.retryable is True
