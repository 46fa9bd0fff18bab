"""In-process event bus for workflow and node lifecycle events.

Subscribers receive events synchronously in the publishing task, in
subscription order. A failing subscriber is logged and skipped so it can
never affect a run.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from inspect import isawaitable
from typing import Any
from uuid import uuid4

from pydantic import Field

from flowforge.core.config import get_settings
from flowforge.core.logging import get_logger
from flowforge.models.enums import EventType
from flowforge.schemas.base import SnapshotSchema

logger = get_logger(__name__)

EventCallback = Callable[["WorkflowEvent"], Awaitable[None] | None]


class WorkflowEvent(SnapshotSchema):
    """A lifecycle event."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    workflow_id: str | None = None
    execution_id: str | None = None
    node_id: str | None = None
    data: dict[str, Any] | None = None
    error: str | None = None


class EventBus:
    """Central event bus for workflow execution events.

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe(EventType.NODE_COMPLETED, lambda event: print(event.node_id))
        >>> await bus.publish(WorkflowEvent(event_type=EventType.NODE_COMPLETED, node_id="2"))
    """

    def __init__(self, max_history: int | None = None) -> None:
        self._subscribers: dict[EventType, list[EventCallback]] = {}
        self._event_history: deque[WorkflowEvent] = deque(
            maxlen=max_history or get_settings().EVENT_HISTORY_SIZE
        )

    def subscribe(self, event_type: EventType, callback: EventCallback) -> None:
        """Subscribe to specific event type"""
        self._subscribers.setdefault(EventType(event_type), []).append(callback)

    def unsubscribe(self, event_type: EventType, callback: EventCallback) -> bool:
        """Unsubscribe from specific event type. Returns False if not subscribed."""
        callbacks = self._subscribers.get(EventType(event_type), [])
        if callback in callbacks:
            callbacks.remove(callback)
            return True
        return False

    async def publish(self, event: WorkflowEvent) -> None:
        """Record the event and notify its subscribers."""
        self._event_history.append(event)

        for callback in list(self._subscribers.get(EventType(event.event_type), [])):
            try:
                outcome = callback(event)
                if isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(
                    f"Error in event subscriber: {e}",
                    exc_info=True,
                    extra={
                        "context": {
                            "event_type": str(event.event_type),
                            "execution_id": event.execution_id,
                        }
                    },
                )

    async def emit(self, event_type: EventType, **fields: Any) -> WorkflowEvent:
        """Build and publish an event in one call."""
        event = WorkflowEvent(event_type=event_type, **fields)
        await self.publish(event)
        return event

    def get_event_history(
        self,
        workflow_id: str | None = None,
        execution_id: str | None = None,
        event_type: EventType | None = None,
        limit: int = 100,
    ) -> list[WorkflowEvent]:
        """Get filtered event history, oldest first."""
        events = list(self._event_history)

        if workflow_id:
            events = [e for e in events if e.workflow_id == workflow_id]
        if execution_id:
            events = [e for e in events if e.execution_id == execution_id]
        if event_type:
            events = [e for e in events if e.event_type == event_type]

        return events[-limit:] if limit > 0 else []

    def clear_history(self) -> None:
        self._event_history.clear()


__all__ = ["EventBus", "EventCallback", "WorkflowEvent"]
