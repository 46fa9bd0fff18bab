"""Workflow validation and execution package.

Components:
Validation:
- Graph: Generic directed graph data structure
- GraphAlgorithms: Cycle detection and dangling node search
- WorkflowValidator: Structural validation of workflow definitions

Execution:
- WorkflowEngine: Orchestrates runs, tracks active runs and history
- GraphWalker: Depth-first node dispatch and output propagation
- ExecutionContext: Per-run state (nodes, variables, errors, logs)
- EventBus: Workflow and node lifecycle events
- Exceptions: Validation and execution error hierarchy

Example:
    >>> from flowforge.services.workflow import WorkflowEngine
    >>> engine = WorkflowEngine()
    >>> engine.validate_workflow(definition).valid
    True
    >>> result = await engine.execute_workflow(definition, {"foo": "bar"})
"""

# ============================================================================
# Validation Components
# ============================================================================

from flowforge.services.workflow.algorithms import GraphAlgorithms
from flowforge.services.workflow.exceptions import (
    CycleDetectedError,
    InvalidNodeReferenceError,
    NoTriggerError,
    WorkflowValidationError,
)
from flowforge.services.workflow.graph import Graph
from flowforge.services.workflow.validator import WorkflowValidator

# ============================================================================
# Execution Components
# ============================================================================

from flowforge.services.workflow.context import (
    ExecutionContext,
    NodeExecutionContext,
    NodeInstance,
)
from flowforge.services.workflow.engine import WorkflowEngine
from flowforge.services.workflow.events import EventBus, WorkflowEvent
from flowforge.services.workflow.exceptions import (
    CleanupWarning,
    ExecutionError,
    ExecutionLimitExceeded,
    ExecutionStoppedError,
    ExecutionTimeoutError,
    NodeExecutionError,
    NodeInitializationError,
    NodeNotFoundError,
    RunAbortedError,
)
from flowforge.services.workflow.history import ExecutionHistory
from flowforge.services.workflow.walker import GraphWalker

__all__ = [
    # Validation
    "CycleDetectedError",
    "Graph",
    "GraphAlgorithms",
    "InvalidNodeReferenceError",
    "NoTriggerError",
    "WorkflowValidationError",
    "WorkflowValidator",
    # Execution
    "CleanupWarning",
    "EventBus",
    "ExecutionContext",
    "ExecutionError",
    "ExecutionHistory",
    "ExecutionLimitExceeded",
    "ExecutionStoppedError",
    "ExecutionTimeoutError",
    "GraphWalker",
    "NodeExecutionContext",
    "NodeExecutionError",
    "NodeInitializationError",
    "NodeInstance",
    "NodeNotFoundError",
    "RunAbortedError",
    "WorkflowEngine",
    "WorkflowEvent",
]
