"""Engine services.

This package contains the workflow validation and execution services.
"""

from flowforge.services.workflow import (
    EventBus,
    ExecutionHistory,
    GraphWalker,
    WorkflowEngine,
    WorkflowValidator,
)

__all__ = [
    "EventBus",
    "ExecutionHistory",
    "GraphWalker",
    "WorkflowEngine",
    "WorkflowValidator",
]
