"""Per-run execution state.

This module provides:
- NodeInstance: one constructed node and its per-run status record
- ExecutionContext: everything owned by a single execute_workflow call
- NodeExecutionContext: the dispatch-scoped view handed to node.execute()

Dispatch within a run is strictly sequential, so the run state here is
plain data with no locking. Concurrent runs never share an ExecutionContext.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from flowforge.core.logging import ExecutionLogAdapter, get_logger, resolve_level
from flowforge.models.enums import ExecutionStatus, NodeStatus
from flowforge.schemas.execution import (
    DispatchResult,
    ExecutionErrorRecord,
    ExecutionOptions,
    ExecutionResult,
    ExecutionSummary,
    LogEntry,
    NodeExecutionSummary,
)
from flowforge.services.workflow.exceptions import ExecutionStoppedError

if TYPE_CHECKING:
    from flowforge.schemas.workflow import WorkflowDefinition
    from flowforge.services.workflow.nodes.base import BaseNode


@dataclass
class NodeInstance:
    """A constructed node and its status within one run.

    Status moves pending -> initialized -> executing -> completed | failed,
    and back to executing on every further dispatch.

    Attributes:
        id: Node id from the workflow definition.
        type: Node type name.
        handle: The constructed BaseNode.
        execution_count: Dispatches so far in this run.
        last_result: Output map of the last successful dispatch.
    """

    id: str
    type: str
    handle: BaseNode
    status: NodeStatus = NodeStatus.PENDING
    execution_count: int = 0
    last_result: dict[str, Any] | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_ms: float | None = None
    error: str | None = None

    def mark_initialized(self) -> None:
        self.status = NodeStatus.INITIALIZED

    def mark_executing(self) -> None:
        self.status = NodeStatus.EXECUTING
        self.execution_count += 1
        self.start_time = datetime.now(UTC)
        self.end_time = None
        self.error = None

    def mark_completed(self, result: dict[str, Any], duration_ms: float) -> None:
        self.status = NodeStatus.COMPLETED
        self.last_result = result
        self.end_time = datetime.now(UTC)
        self.duration_ms = duration_ms

    def mark_failed(self, error: str, duration_ms: float) -> None:
        self.status = NodeStatus.FAILED
        self.error = error
        self.end_time = datetime.now(UTC)
        self.duration_ms = duration_ms

    def to_summary(self) -> NodeExecutionSummary:
        return NodeExecutionSummary(
            node_id=self.id,
            type=self.type,
            status=self.status,
            executions=self.execution_count,
            duration_ms=self.duration_ms,
            error=self.error,
        )


class ExecutionContext:
    """State of one workflow run.

    Created by WorkflowEngine.execute_workflow and owned exclusively by it
    (and by stop_execution once the run is stopped).

    Attributes:
        id: Unique run id (uuid4 string).
        workflow_id: Id of the workflow definition being run.
        status: running until the run finishes; terminal states are final.
        nodes: Node instances keyed by node id.
        variables: Run-scoped variable store shared by all nodes.
        errors: Append-only error log.
        logs: Append-only run log.
        results: Top-level dispatch result per trigger node.
        dispatch_count: Node dispatches so far across the whole run.
    """

    def __init__(
        self,
        workflow_id: str,
        options: ExecutionOptions | None = None,
        trigger_data: Any = None,
        execution_id: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.id: str = execution_id or str(uuid4())
        self.workflow_id = workflow_id
        self.status = ExecutionStatus.RUNNING
        self.options = options or ExecutionOptions()
        self.trigger_data = trigger_data

        self.nodes: dict[str, NodeInstance] = {}
        self.variables: dict[str, Any] = {}
        self.errors: list[ExecutionErrorRecord] = []
        self.logs: list[LogEntry] = []
        self.results: list[DispatchResult] = []
        self.dispatch_count = 0

        self.start_time = datetime.now(UTC)
        self.end_time: datetime | None = None
        self.duration_ms: float | None = None
        self.error: str | None = None
        self.finalized = False
        self.cleaned_up: set[str] = set()
        self._started = time.perf_counter()

        self.logger = ExecutionLogAdapter(
            logger or get_logger("flowforge.execution"),
            execution_id=self.id,
            workflow_id=workflow_id,
        )

    # ------------------------------------------------------------------
    # Status and timing
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.status == ExecutionStatus.RUNNING

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000

    def remaining_seconds(self) -> float:
        """Time left before the run timeout (may be negative)."""
        return self.options.timeout_seconds - self.elapsed_ms() / 1000

    def expired(self) -> bool:
        return self.remaining_seconds() <= 0

    def ensure_running(self) -> None:
        """Raise if the run has left the running state.

        Raises:
            ExecutionStoppedError: If the run is completed, failed or stopped.
        """
        if not self.is_running:
            raise ExecutionStoppedError(self.id, str(self.status))

    def finish(self, status: ExecutionStatus, error: str | None = None) -> bool:
        """Move the run to a terminal status and stamp its timing.

        Returns:
            False if the run had already finished; its status is kept.
        """
        if not self.is_running:
            return False
        self.status = status
        self.end_time = datetime.now(UTC)
        self.duration_ms = self.elapsed_ms()
        if error is not None:
            self.error = error
        return True

    # ------------------------------------------------------------------
    # Nodes and variables
    # ------------------------------------------------------------------

    def add_node(self, instance: NodeInstance) -> None:
        self.nodes[instance.id] = instance

    def get_node(self, node_id: str) -> NodeInstance | None:
        return self.nodes.get(node_id)

    def get_variable(self, name: str, default: Any = None) -> Any:
        return self.variables.get(name, default)

    def set_variable(self, name: str, value: Any) -> None:
        self.variables[name] = value

    # ------------------------------------------------------------------
    # Error and log recording
    # ------------------------------------------------------------------

    def record_error(
        self,
        message: str,
        node_id: str | None = None,
        error_type: str | None = None,
    ) -> ExecutionErrorRecord:
        """Append an entry to the run's error log."""
        record = ExecutionErrorRecord(node_id=node_id, message=message, error_type=error_type)
        self.errors.append(record)
        return record

    def log(
        self,
        level: str | int,
        message: str,
        node_id: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> LogEntry:
        """Write to the run log and to the process logger.

        ``level`` accepts logging level names, their lowercase forms, and the
        editor aliases ``log`` (info) and ``warn`` (warning).
        """
        levelno = resolve_level(level)
        entry = LogEntry(
            level=logging.getLevelName(levelno).lower(),
            message=message,
            node_id=node_id,
            data=dict(data or {}),
        )
        self.logs.append(entry)

        context: dict[str, Any] = dict(data or {})
        if node_id is not None:
            context["node_id"] = node_id
        self.logger.log(levelno, message, extra={"context": context})
        return entry

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_result(self) -> ExecutionResult:
        """Immutable snapshot of the run."""
        return ExecutionResult(
            execution_id=self.id,
            workflow_id=self.workflow_id,
            status=self.status,
            start_time=self.start_time,
            end_time=self.end_time,
            duration_ms=self.duration_ms,
            node_executions=[node.to_summary() for node in self.nodes.values()],
            results=list(self.results),
            errors=list(self.errors),
            variables=dict(self.variables),
            logs=list(self.logs),
        )

    def to_summary(self) -> ExecutionSummary:
        """Compact snapshot; running runs report elapsed time as duration."""
        return ExecutionSummary(
            id=self.id,
            workflow_id=self.workflow_id,
            status=self.status,
            start_time=self.start_time,
            end_time=self.end_time,
            duration_ms=self.duration_ms if self.duration_ms is not None else self.elapsed_ms(),
            node_count=len(self.nodes),
            error_count=len(self.errors),
            error=self.error,
        )

    def __repr__(self) -> str:
        return f"ExecutionContext(id={self.id!r}, workflow_id={self.workflow_id!r}, status={self.status!s})"


class NodeExecutionContext:
    """View of a run handed to one node dispatch.

    Example:
        >>> async def execute(self, context):
        ...     payload = context.get_input_data()
        ...     context.set_variable("seen", True)
        ...     context.log("info", "processed", {"keys": list(payload)})
    """

    def __init__(
        self,
        context: ExecutionContext,
        workflow: WorkflowDefinition,
        node_id: str,
        input_data: Any = None,
        source_node_id: str | None = None,
    ) -> None:
        self._context = context
        self._workflow = workflow
        self.node_id = node_id
        self.input_data = input_data
        self.source_node_id = source_node_id
        self.logger = context.logger.bind(node_id=node_id)

    @property
    def execution_id(self) -> str:
        return self._context.id

    @property
    def workflow_id(self) -> str:
        return self._context.workflow_id

    def get_input_data(self, port: str = "input") -> Any:
        """Resolve the data arriving on an input port.

        Among the incoming connections wired to ``port``, the one from the
        node that triggered this dispatch is preferred, else the first in
        declaration order. Its source's last output on the connection's
        source port is returned. Without such a connection (or before the
        source has produced output) the dispatch input is used: its ``port``
        entry if it is a mapping containing one, else the whole value.
        """
        candidates = [
            connection
            for connection in self._workflow.incoming_connections(self.node_id)
            if connection.target_port == port
        ]
        if candidates:
            connection = next(
                (c for c in candidates if c.source == self.source_node_id),
                candidates[0],
            )
            source = self._context.get_node(connection.source)
            if source is not None and source.last_result is not None:
                return source.last_result.get(connection.source_port)

        if isinstance(self.input_data, Mapping) and port in self.input_data:
            return self.input_data[port]
        return self.input_data

    def get_variable(self, name: str, default: Any = None) -> Any:
        return self._context.get_variable(name, default)

    def set_variable(self, name: str, value: Any) -> None:
        self._context.set_variable(name, value)

    def log(self, level: str | int, message: str, data: Mapping[str, Any] | None = None) -> LogEntry:
        return self._context.log(level, message, node_id=self.node_id, data=data)


__all__ = ["ExecutionContext", "NodeExecutionContext", "NodeInstance"]
