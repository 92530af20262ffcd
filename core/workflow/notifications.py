"""Notification and analysis-counter collaborators.

Both are fire-and-forget from the workflow's point of view: they are informed
after a transition has been persisted, and nothing they do can roll it back.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol


logger = logging.getLogger("aqd.notifications")


class WorkflowEventType(str, Enum):
    """Workflow events published to the notification service."""
    ASSIGNED = "assignment"
    ANALYZED = "analysis"
    REVIEWED = "review"
    APPROVED = "approval"
    REJECTED = "rejection"


@dataclass
class WorkflowEvent:
    """A persisted workflow change worth telling users about."""
    event_type: WorkflowEventType
    contract_id: str
    contract_title: str
    actor_id: str
    recipient_ids: list[str]
    organization_id: str | None = None
    comment: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def message(self) -> str:
        title = self.contract_title or self.contract_id
        if self.event_type == WorkflowEventType.ASSIGNED:
            return f"Contract \"{title}\" has been assigned to you for review"
        if self.event_type == WorkflowEventType.ANALYZED:
            return f"Contract \"{title}\" has been analyzed"
        if self.event_type == WorkflowEventType.REVIEWED:
            return f"Contract \"{title}\" has been reviewed"
        if self.event_type == WorkflowEventType.APPROVED:
            return f"Contract \"{title}\" has been approved"
        return f"Contract \"{title}\" has been rejected"


class WorkflowNotifier(Protocol):
    async def notify(self, event: WorkflowEvent) -> None: ...


class AnalysisCounter(Protocol):
    async def increment(self, organization_id: str) -> int: ...


class LoggingNotifier:
    """Default notifier: writes events to the log and keeps them for inspection."""

    def __init__(self) -> None:
        self.events: list[WorkflowEvent] = []

    async def notify(self, event: WorkflowEvent) -> None:
        self.events.append(event)
        logger.info(
            f"{event.event_type.value} | {event.contract_id} | "
            f"recipients={','.join(event.recipient_ids)} | {event.message}"
        )


class InMemoryAnalysisCounter:
    """Per-organization count of completed analyses."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()

    async def increment(self, organization_id: str) -> int:
        self._counts[organization_id] += 1
        return self._counts[organization_id]

    async def get(self, organization_id: str) -> int:
        return self._counts[organization_id]
