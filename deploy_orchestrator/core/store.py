"""Project store."""

from collections.abc import Iterable
from datetime import datetime
from functools import lru_cache
from typing import Any
from uuid import UUID

from deploy_orchestrator.models.project import Project, ProjectCreate, ProjectStatus


class ProjectStore:
    """Keeps project records in memory.

    Note: For production, this should be backed by a database. Every method
    runs its read-check-write without awaiting, so on a single event loop
    each call is atomic with respect to other coroutines. That is what makes
    ``transition`` usable as an ``UPDATE ... WHERE status = ...``.

    Records handed out are copies; mutate them through the store.
    """

    def __init__(self):
        self._projects: dict[UUID, Project] = {}

    async def create_project(self, user_id: str, data: ProjectCreate) -> Project:
        """Create a new project in ``draft``."""
        project = Project(user_id=user_id, name=data.name, repository=data.repository)
        self._projects[project.id] = project
        return project.model_copy()

    async def get_project(self, project_id: UUID) -> Project | None:
        project = self._projects.get(project_id)
        return project.model_copy() if project else None

    async def find_project(self, project_id: UUID, user_id: str) -> Project | None:
        """Get a project only if it belongs to ``user_id``."""
        project = self._projects.get(project_id)
        if project is None or project.user_id != user_id:
            return None
        return project.model_copy()

    async def update_project(self, project_id: UUID, **fields: Any) -> Project | None:
        """Unconditionally update fields on a project."""
        project = self._projects.get(project_id)
        if project is None:
            return None
        fields.setdefault("updated_at", datetime.utcnow())
        updated = project.model_copy(update=fields)
        self._projects[project_id] = updated
        return updated.model_copy()

    async def transition(
        self,
        project_id: UUID,
        status: ProjectStatus,
        expected: Iterable[ProjectStatus] | None = None,
        **fields: Any,
    ) -> tuple[ProjectStatus, Project] | None:
        """Set ``status`` only if the current status is one of ``expected``.

        Returns:
            The previous status and the updated project, or None when the
            project is missing or the precondition did not hold.
        """
        project = self._projects.get(project_id)
        if project is None:
            return None
        if expected is not None and project.status not in set(expected):
            return None

        previous = project.status
        fields.setdefault("updated_at", datetime.utcnow())
        updated = project.model_copy(update={**fields, "status": status})
        self._projects[project_id] = updated
        return previous, updated.model_copy()

    async def list_projects(
        self,
        user_id: str | None = None,
        status: ProjectStatus | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[Project], int]:
        """List projects with optional filtering."""
        projects = list(self._projects.values())

        if user_id is not None:
            projects = [p for p in projects if p.user_id == user_id]
        if status:
            projects = [p for p in projects if p.status == status]

        projects.sort(key=lambda p: p.created_at, reverse=True)

        total = len(projects)
        projects = [p.model_copy() for p in projects[offset : offset + limit]]

        return projects, total

    async def bulk_reset_failed(self, older_than: datetime) -> int:
        """Reset ``failed`` projects last touched before ``older_than`` to ``pending``.

        The old failure message is cleared; a pending project has not run yet.
        """
        now = datetime.utcnow()
        stale = [
            pid
            for pid, project in self._projects.items()
            if project.status == ProjectStatus.FAILED and project.updated_at < older_than
        ]
        for pid in stale:
            self._projects[pid] = self._projects[pid].model_copy(
                update={"status": ProjectStatus.PENDING, "error": None, "updated_at": now}
            )
        return len(stale)

    async def bulk_fail_stale(
        self,
        older_than: datetime,
        error: str,
        exclude: Iterable[UUID] = (),
    ) -> int:
        """Fail in-flight projects last touched before ``older_than``."""
        now = datetime.utcnow()
        skip = set(exclude)
        in_flight = (ProjectStatus.DEPLOYING, ProjectStatus.RETRYING)
        stale = [
            pid
            for pid, project in self._projects.items()
            if project.status in in_flight
            and project.updated_at < older_than
            and pid not in skip
        ]
        for pid in stale:
            self._projects[pid] = self._projects[pid].model_copy(
                update={
                    "status": ProjectStatus.FAILED,
                    "deployment_url": None,
                    "error": error,
                    "updated_at": now,
                }
            )
        return len(stale)

    async def delete_project(self, project_id: UUID) -> bool:
        """Delete a project. Not exposed over HTTP; projects are removed out of band."""
        if project_id in self._projects:
            del self._projects[project_id]
            return True
        return False


@lru_cache
def get_project_store() -> ProjectStore:
    """Get the project store singleton."""
    return ProjectStore()
