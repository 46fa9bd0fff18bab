"""Workflow validation and execution exceptions.

Two hierarchies:

- WorkflowValidationError: the workflow cannot start (malformed graph,
  dangling references, cycles, no trigger). The run is marked failed and
  never partially executes.
- ExecutionError: something went wrong while the run was being prepared or
  walked. RunAbortedError subclasses end the whole run; the others abort
  only the subtree they occur in.
"""

from typing import Any


# ============================================================================
# Validation Exceptions
# ============================================================================


class WorkflowValidationError(Exception):
    """Base exception for workflow validation errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code.
        errors: Every validation error found.
        details: Additional error context as dictionary.
    """

    def __init__(
        self,
        errors: list[str],
        error_code: str = "VALIDATION_FAILED",
        details: dict[str, Any] | None = None,
    ) -> None:
        message = f"Workflow validation failed: {', '.join(errors)}"
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.errors = list(errors)
        self.details = {"errors": self.errors, **(details or {})}


class CycleDetectedError(WorkflowValidationError):
    """Raised when a cycle is detected in the graph.

    Attributes:
        cycle_path: Node ids forming the cycle, first node repeated last.
    """

    def __init__(self, cycle_path: list[str]) -> None:
        cycle_str = " -> ".join(cycle_path)
        super().__init__(
            [f"Workflow contains circular dependencies: {cycle_str}"],
            error_code="CYCLE_DETECTED",
            details={"cycle_path": list(cycle_path)},
        )
        self.cycle_path = cycle_path


class InvalidNodeReferenceError(WorkflowValidationError):
    """Raised when connections reference unknown nodes.

    Attributes:
        missing_nodes: Node ids that were not found.
    """

    def __init__(self, node_ids: list[str]) -> None:
        super().__init__(
            [f"Connection references unknown node: {node_id}" for node_id in node_ids],
            error_code="NODE_NOT_FOUND",
            details={"missing_nodes": list(node_ids)},
        )
        self.missing_nodes = node_ids


class NoTriggerError(WorkflowValidationError):
    """Raised when a workflow has no trigger-category node."""

    def __init__(self) -> None:
        super().__init__(
            ["No trigger nodes found in workflow"],
            error_code="NO_TRIGGER_NODE",
        )


# ============================================================================
# Execution Exceptions
# ============================================================================


class ExecutionError(Exception):
    """Base exception for workflow execution errors.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NodeNotFoundError(ExecutionError):
    """Raised when a dispatch targets a node absent from the run."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node {node_id} not found in execution context")
        self.node_id = node_id


class NodeInitializationError(ExecutionError):
    """Raised when a node cannot be constructed or initialized.

    Aborts the whole run before any dispatch.
    """

    def __init__(self, node_id: str, reason: str, original_error: Exception | None = None) -> None:
        super().__init__(f"Failed to initialize node {node_id}: {reason}")
        self.node_id = node_id
        self.reason = reason
        self.original_error = original_error


class ExecutionLimitExceeded(ExecutionError):
    """Raised when a dispatch cap is reached.

    Attributes:
        node_id: Node whose dispatch was refused.
        limit: The cap that was hit.
        scope: "node" for the per-node cap, "execution" for the run-wide cap.
    """

    def __init__(self, node_id: str, limit: int, scope: str = "node") -> None:
        if scope == "node":
            message = f"Node {node_id} exceeded maximum executions ({limit})"
        else:
            message = f"Execution exceeded maximum node dispatches ({limit}) at node {node_id}"
        super().__init__(message)
        self.node_id = node_id
        self.limit = limit
        self.scope = scope


class NodeExecutionError(ExecutionError):
    """Raised when a node's own execute() fails.

    Attributes:
        node_id: ID of the node that failed.
        message: Error message.
        original_error: The original exception that caused the failure.
    """

    def __init__(self, node_id: str, message: str, original_error: Exception | None = None) -> None:
        super().__init__(f"Node {node_id} execution failed: {message}")
        self.node_id = node_id
        self.reason = message
        self.original_error = original_error


class RunAbortedError(ExecutionError):
    """Base for errors that end the whole run.

    Never isolated at a fan-out.
    """


class ExecutionTimeoutError(RunAbortedError):
    """Raised when a run exceeds its wall-clock bound.

    Attributes:
        execution_id: ID of the run.
        timeout_seconds: Timeout duration in seconds.
    """

    def __init__(self, execution_id: str, timeout_seconds: float) -> None:
        super().__init__(f"Execution {execution_id} timed out after {timeout_seconds}s")
        self.execution_id = execution_id
        self.timeout_seconds = timeout_seconds


class ExecutionStoppedError(RunAbortedError):
    """Raised when a dispatch is attempted on a run that is no longer running.

    Attributes:
        execution_id: ID of the stopped run.
    """

    def __init__(self, execution_id: str, status: str = "stopped") -> None:
        super().__init__(f"Execution {execution_id} is no longer running ({status})")
        self.execution_id = execution_id
        self.status = status


class CleanupWarning(RuntimeWarning):
    """A node's cleanup() hook failed during teardown.

    Logged, never raised.
    """

    def __init__(self, node_id: str, reason: str) -> None:
        super().__init__(f"Cleanup failed for node {node_id}: {reason}")
        self.node_id = node_id
        self.reason = reason
