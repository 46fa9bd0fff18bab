"""Pydantic schemas for workflow execution options and results.

Every schema handed back to a caller is a frozen snapshot: mutating the
engine's run state after the fact never changes a result already returned.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, Field, model_validator

from flowforge.core.config import get_settings
from flowforge.models.enums import ExecutionStatus, NodeStatus
from flowforge.schemas.base import SnapshotSchema


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Run configuration
# =============================================================================


class ExecutionOptions(SnapshotSchema):
    """Per-run execution limits.

    Defaults come from Settings. camelCase keys used by the editor
    (``timeout``, ``maxNodesPerExecution``) are accepted. ``timeout`` is in
    milliseconds; an explicit ``timeout_seconds`` wins over it.
    """

    timeout_seconds: float = Field(
        default_factory=lambda: get_settings().EXECUTION_TIMEOUT_SECONDS,
        gt=0,
        validation_alias=AliasChoices("timeout_seconds", "timeoutSeconds"),
        description="Wall-clock bound for the whole run",
    )
    max_node_executions: int = Field(
        default_factory=lambda: get_settings().MAX_NODE_EXECUTIONS,
        ge=1,
        validation_alias=AliasChoices("max_node_executions", "maxNodeExecutions"),
        description="Maximum dispatches of a single node within one run",
    )
    max_nodes_per_execution: int = Field(
        default_factory=lambda: get_settings().MAX_NODES_PER_EXECUTION,
        ge=1,
        validation_alias=AliasChoices(
            "max_nodes_per_execution", "maxNodesPerExecution", "maxNodes"
        ),
        description="Maximum node dispatches across the whole run",
    )
    isolate_trigger_failures: bool = Field(
        default_factory=lambda: get_settings().ISOLATE_TRIGGER_FAILURES,
        validation_alias=AliasChoices(
            "isolate_trigger_failures", "isolateTriggerFailures"
        ),
        description="Keep running other triggers when one trigger's walk fails",
    )
    debug: bool = False

    @model_validator(mode="before")
    @classmethod
    def _timeout_from_milliseconds(cls, data: Any) -> Any:
        """Convert the editor's ``timeout`` (milliseconds) into ``timeout_seconds``."""
        if not isinstance(data, Mapping) or "timeout" not in data:
            return data

        data = dict(data)
        timeout = data.pop("timeout")
        if "timeout_seconds" in data or "timeoutSeconds" in data:
            return data
        if isinstance(timeout, int | float) and not isinstance(timeout, bool):
            timeout = timeout / 1000
        data["timeout_seconds"] = timeout
        return data


# =============================================================================
# Run records
# =============================================================================


class ExecutionErrorRecord(SnapshotSchema):
    """One entry of a run's append-only error log."""

    node_id: str | None = None
    message: str
    error_type: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)


class LogEntry(SnapshotSchema):
    """One entry of a run's log buffer."""

    timestamp: datetime = Field(default_factory=_utcnow)
    level: str
    message: str
    node_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class DispatchResult(SnapshotSchema):
    """Outcome of dispatching one node and, recursively, its targets.

    Attributes:
        node_id: The dispatched node.
        result: The node's output map.
        connected_results: Results of the downstream dispatches that
            succeeded, in dispatch order.
        duration_ms: Time spent inside the node's execute().
    """

    node_id: str
    result: dict[str, Any] = Field(default_factory=dict)
    connected_results: list[DispatchResult] = Field(default_factory=list)
    duration_ms: float = 0.0


class NodeExecutionSummary(SnapshotSchema):
    """Per-node summary included in an ExecutionResult."""

    node_id: str
    type: str
    status: NodeStatus
    executions: int = 0
    duration_ms: float | None = None
    error: str | None = None


class ExecutionResult(SnapshotSchema):
    """Complete record of a finished run.

    Returned by WorkflowEngine.execute_workflow when the run completes.
    Subtree failures isolated at a fan-out appear in ``errors`` while
    ``status`` stays ``completed``.
    """

    execution_id: str
    workflow_id: str
    status: ExecutionStatus
    start_time: datetime
    end_time: datetime | None = None
    duration_ms: float | None = None
    node_executions: list[NodeExecutionSummary] = Field(default_factory=list)
    results: list[DispatchResult] = Field(default_factory=list)
    errors: list[ExecutionErrorRecord] = Field(default_factory=list)
    variables: dict[str, Any] = Field(default_factory=dict)
    logs: list[LogEntry] = Field(default_factory=list)

    def get_node_execution(self, node_id: str) -> NodeExecutionSummary | None:
        """Find the summary for ``node_id``."""
        for summary in self.node_executions:
            if summary.node_id == node_id:
                return summary
        return None


class ExecutionSummary(SnapshotSchema):
    """Compact run entry used by the history and active-run queries.

    For active runs ``duration_ms`` is the elapsed time so far.
    """

    id: str
    workflow_id: str
    status: ExecutionStatus
    start_time: datetime
    end_time: datetime | None = None
    duration_ms: float | None = None
    node_count: int = 0
    error_count: int = 0
    error: str | None = None
