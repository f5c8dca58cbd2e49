"""Deployment events for Server-Sent Events (SSE) streams."""

import asyncio
import json
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

# Events after which a project's stream has nothing more to report
TERMINAL_EVENTS = frozenset({"deployment_complete", "error"})


@dataclass
class Event:
    """A deployment event."""

    event_type: str
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.event_type in TERMINAL_EVENTS

    def to_sse(self) -> dict[str, str]:
        """Render as an ``EventSourceResponse`` message."""
        payload = {**self.data, "timestamp": self.timestamp.isoformat()}
        return {"event": self.event_type, "data": json.dumps(payload)}


class EventBus:
    """Fans deployment events out to every open stream of a project."""

    def __init__(self):
        self._subscribers: dict[UUID, set[asyncio.Queue[Event]]] = defaultdict(set)

    def subscribe(self, project_id: UUID) -> asyncio.Queue[Event]:
        """Open a new stream for a project."""
        queue: asyncio.Queue[Event] = asyncio.Queue()
        self._subscribers[project_id].add(queue)
        return queue

    def unsubscribe(self, project_id: UUID, queue: asyncio.Queue[Event]) -> None:
        """Close one stream of a project."""
        queues = self._subscribers.get(project_id)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[project_id]

    def subscriber_count(self, project_id: UUID) -> int:
        """Number of open streams for a project, for diagnostics."""
        return len(self._subscribers.get(project_id, ()))

    async def publish(self, project_id: UUID, event: Event) -> None:
        for queue in self._subscribers.get(project_id, ()):
            queue.put_nowait(event)

    async def publish_status_changed(
        self,
        project_id: UUID,
        status: str,
        previous: str,
        deployment_id: str | None = None,
    ) -> None:
        await self.publish(
            project_id,
            Event(
                event_type="status_changed",
                data={
                    "status": status,
                    "previous": previous,
                    "deployment_id": deployment_id,
                },
            ),
        )

    async def publish_deployment_complete(self, project_id: UUID, url: str) -> None:
        await self.publish(
            project_id,
            Event(event_type="deployment_complete", data={"url": url}),
        )

    async def publish_error(self, project_id: UUID, error: str) -> None:
        """Publish a terminal deployment failure."""
        await self.publish(
            project_id,
            Event(event_type="error", data={"error": error}),
        )


# Singleton instance
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the event bus singleton."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
