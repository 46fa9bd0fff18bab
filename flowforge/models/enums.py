"""Domain enum definitions for FlowForge.

This module defines the enum types shared by the engine, the node catalog
and the result schemas.
"""

from enum import Enum


class NodeCategory(str, Enum):
    """Node catalog categories.

    Only TRIGGER has engine semantics: every trigger-category node seeds
    the walk of a run.
    """

    TRIGGER = "trigger"
    LOGIC = "logic"
    DATA = "data"
    AI = "ai"
    ACTION = "action"
    UTILITY = "utility"

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value


class ExecutionStatus(str, Enum):
    """Workflow execution (run) state.

    RUNNING is the only non-terminal state. COMPLETED, FAILED and STOPPED
    are mutually exclusive and final.
    """

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        """Whether the run has finished."""
        return self is not ExecutionStatus.RUNNING

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value


class NodeStatus(str, Enum):
    """Per-run state of a node instance.

    A node cycles through EXECUTING -> COMPLETED|FAILED once per dispatch.
    """

    PENDING = "pending"
    INITIALIZED = "initialized"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value


class EventType(str, Enum):
    """Engine lifecycle events published on the event bus."""

    WORKFLOW_STARTED = "workflow.started"
    WORKFLOW_COMPLETED = "workflow.completed"
    WORKFLOW_FAILED = "workflow.failed"
    WORKFLOW_STOPPED = "workflow.stopped"

    NODE_STARTED = "node.started"
    NODE_COMPLETED = "node.completed"
    NODE_FAILED = "node.failed"

    def __str__(self) -> str:
        """Return the string value for serialization."""
        return self.value
