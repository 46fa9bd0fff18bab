"""GraphWalker: dispatch of one node and propagation along its connections.

The walk is a sequential depth-first recursion. For each dispatched node:

1. Guard: run still running, run timeout, run-wide dispatch cap, node
   exists, per-node dispatch cap.
2. Invoke node.execute() with a NodeExecutionContext, bounded by the time
   left in the run.
3. Propagate: outgoing connections are grouped by target (first-seen
   order); a target is dispatched only if at least one of the output ports
   wired to it is present in the result. Targets run one after another.

A failing target never stops its siblings: the failure is recorded and the
fan-out moves on. Run-level aborts (timeout, stop) are the exception and
always unwind the whole walk.

Fan-in is not joined: a node fed by two branches is dispatched once per
branch that reaches it, each time with only that branch's data.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from flowforge.core.logging import get_logger
from flowforge.models.enums import EventType
from flowforge.schemas.execution import DispatchResult
from flowforge.services.workflow.context import (
    ExecutionContext,
    NodeExecutionContext,
    NodeInstance,
)
from flowforge.services.workflow.exceptions import (
    ExecutionError,
    ExecutionLimitExceeded,
    ExecutionTimeoutError,
    NodeExecutionError,
    NodeNotFoundError,
    RunAbortedError,
)

if TYPE_CHECKING:
    from flowforge.schemas.workflow import Connection, WorkflowDefinition
    from flowforge.services.workflow.events import EventBus

logger = get_logger(__name__)


class GraphWalker:
    """Dispatches nodes of a validated workflow within one run.

    Stateless apart from the optional event bus; all run state lives in the
    ExecutionContext passed to every call.

    Example:
        >>> walker = GraphWalker(event_bus)
        >>> result = await walker.execute_from_node(context, workflow, "1", {"foo": "bar"})
        >>> [child.node_id for child in result.connected_results]
        ['2']
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self.event_bus = event_bus

    async def execute_from_node(
        self,
        context: ExecutionContext,
        workflow: WorkflowDefinition,
        node_id: str,
        input_data: Any = None,
        source_node_id: str | None = None,
    ) -> DispatchResult:
        """Dispatch ``node_id`` and, recursively, every target it feeds.

        Args:
            context: The run.
            workflow: The validated workflow definition.
            node_id: Node to dispatch.
            input_data: Data for this dispatch (trigger input, or the
                ``{target_port: value}`` map built by the upstream node).
            source_node_id: The upstream node that caused this dispatch.

        Returns:
            DispatchResult with the node output and the results of the
            downstream dispatches that succeeded.

        Raises:
            ExecutionStoppedError: If the run is no longer running.
            ExecutionTimeoutError: If the run timeout has been reached.
            ExecutionLimitExceeded: If a dispatch cap is reached.
            NodeNotFoundError: If the node is not part of the run.
            NodeExecutionError: If the node's execute() fails.
        """
        context.ensure_running()
        if context.expired():
            raise ExecutionTimeoutError(context.id, context.options.timeout_seconds)

        max_dispatches = context.options.max_nodes_per_execution
        if context.dispatch_count >= max_dispatches:
            raise self._refuse(
                context, ExecutionLimitExceeded(node_id, max_dispatches, scope="execution")
            )

        instance = context.get_node(node_id)
        if instance is None:
            raise self._refuse(context, NodeNotFoundError(node_id))

        max_executions = context.options.max_node_executions
        if instance.execution_count >= max_executions:
            raise self._refuse(context, ExecutionLimitExceeded(node_id, max_executions))

        instance.mark_executing()
        context.dispatch_count += 1

        if context.options.debug:
            context.log(
                "debug",
                f"Dispatching node {node_id}",
                node_id=node_id,
                data={"source_node_id": source_node_id, "execution": instance.execution_count},
            )
        await self._publish(
            EventType.NODE_STARTED,
            context,
            node_id,
            data={"type": instance.type, "execution": instance.execution_count},
        )

        view = NodeExecutionContext(context, workflow, node_id, input_data, source_node_id)
        started = time.perf_counter()

        try:
            result = await self._invoke(context, instance, view)
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            error = e if isinstance(e, ExecutionError) else NodeExecutionError(
                node_id, str(e) or type(e).__name__, original_error=e
            )
            await self._fail(context, instance, error, duration_ms)
            if error is e:
                raise
            raise error from e

        duration_ms = (time.perf_counter() - started) * 1000
        instance.mark_completed(result, duration_ms)
        await self._publish(
            EventType.NODE_COMPLETED,
            context,
            node_id,
            data={"duration_ms": duration_ms, "ports": list(result)},
        )

        connected_results: list[DispatchResult] = []
        if context.is_running:
            connected_results = await self._propagate(context, workflow, node_id, result)
        else:
            context.log(
                "warning",
                f"Run is {context.status}; not propagating output of node {node_id}",
                node_id=node_id,
            )

        return DispatchResult(
            node_id=node_id,
            result=result,
            connected_results=connected_results,
            duration_ms=duration_ms,
        )

    # ==========================================================================
    # Private Helper Methods
    # ==========================================================================

    async def _invoke(
        self,
        context: ExecutionContext,
        instance: NodeInstance,
        view: NodeExecutionContext,
    ) -> dict[str, Any]:
        """Run node.execute() within the remaining run time and normalize its output."""
        remaining = context.remaining_seconds()
        if remaining <= 0:
            raise ExecutionTimeoutError(context.id, context.options.timeout_seconds)

        try:
            async with asyncio.timeout(remaining) as deadline:
                result = await instance.handle.execute(view)
        except TimeoutError as e:
            # A TimeoutError raised by the node itself is a node failure
            if deadline.expired():
                raise ExecutionTimeoutError(context.id, context.options.timeout_seconds) from e
            raise

        if result is None:
            return {}
        if not isinstance(result, Mapping):
            raise NodeExecutionError(
                instance.id,
                f"execute() returned {type(result).__name__}, expected a mapping of output ports",
            )
        return dict(result)

    async def _propagate(
        self,
        context: ExecutionContext,
        workflow: WorkflowDefinition,
        node_id: str,
        result: dict[str, Any],
    ) -> list[DispatchResult]:
        """Dispatch every target fed by a populated output port."""
        targets: dict[str, list[Connection]] = {}
        for connection in workflow.outgoing_connections(node_id):
            targets.setdefault(connection.target, []).append(connection)

        connected_results: list[DispatchResult] = []

        for target_id, connections in targets.items():
            populated = [c for c in connections if c.source_port in result]
            if not populated:
                if context.options.debug:
                    context.log(
                        "debug",
                        f"Skipping node {target_id}: no populated port from {node_id}",
                        node_id=target_id,
                    )
                continue

            target_input = {c.target_port: result[c.source_port] for c in populated}

            try:
                connected_results.append(
                    await self.execute_from_node(
                        context, workflow, target_id, target_input, source_node_id=node_id
                    )
                )
            except RunAbortedError:
                raise
            except ExecutionError as e:
                context.log(
                    "warning",
                    f"Branch {node_id} -> {target_id} failed: {e.message}",
                    node_id=target_id,
                    data={"source_node_id": node_id, "error_type": type(e).__name__},
                )

        return connected_results

    def _refuse(self, context: ExecutionContext, error: ExecutionError) -> ExecutionError:
        """Record a dispatch refused before the node ran."""
        context.record_error(
            error.message,
            node_id=getattr(error, "node_id", None),
            error_type=type(error).__name__,
        )
        context.log("error", error.message, node_id=getattr(error, "node_id", None))
        return error

    async def _fail(
        self,
        context: ExecutionContext,
        instance: NodeInstance,
        error: ExecutionError,
        duration_ms: float,
    ) -> None:
        original = getattr(error, "original_error", None)
        instance.mark_failed(error.message, duration_ms)
        context.record_error(
            error.message,
            node_id=instance.id,
            error_type=type(original or error).__name__,
        )
        context.log(
            "error",
            error.message,
            node_id=instance.id,
            data={"duration_ms": duration_ms},
        )
        await self._publish(EventType.NODE_FAILED, context, instance.id, error=error.message)

    async def _publish(
        self,
        event_type: EventType,
        context: ExecutionContext,
        node_id: str,
        data: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.emit(
            event_type,
            workflow_id=context.workflow_id,
            execution_id=context.id,
            node_id=node_id,
            data=data,
            error=error,
        )


__all__ = ["GraphWalker"]
