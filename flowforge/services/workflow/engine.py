"""WorkflowEngine: end-to-end orchestration of workflow runs.

A run goes through:

1. Allocate an ExecutionContext and register it as active.
2. Validate the workflow; every structural error is reported at once.
3. Construct and initialize every node through the NodeCatalog.
4. Dispatch each trigger node (definition order) with the trigger input.
5. Mark the run completed and return its ExecutionResult.

Whatever the outcome, node cleanup runs and a summary lands in the bounded
run history. Several runs may be in flight on one engine; each has its own
context and nothing else is shared besides the catalog, event bus and
history.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from flowforge.core.logging import get_logger
from flowforge.models.enums import EventType, ExecutionStatus, NodeCategory, NodeStatus
from flowforge.schemas.execution import ExecutionOptions, ExecutionResult, ExecutionSummary
from flowforge.schemas.validation import ValidationResult
from flowforge.schemas.workflow import WorkflowDefinition
from flowforge.services.workflow.context import ExecutionContext, NodeInstance
from flowforge.services.workflow.events import EventBus
from flowforge.services.workflow.exceptions import (
    CleanupWarning,
    ExecutionError,
    ExecutionStoppedError,
    NodeInitializationError,
    NoTriggerError,
    RunAbortedError,
    WorkflowValidationError,
)
from flowforge.services.workflow.history import ExecutionHistory
from flowforge.services.workflow.nodes.registry import NodeCatalog, get_catalog
from flowforge.services.workflow.validator import WorkflowValidator
from flowforge.services.workflow.walker import GraphWalker

logger = get_logger(__name__)


class WorkflowEngine:
    """Runs workflow definitions and tracks active and finished runs.

    Attributes:
        catalog: Node types available to workflows.
        event_bus: Receives workflow and node lifecycle events.
        history: Bounded newest-first history of finished runs.
        validator: Structural validator used before every run.
        walker: Node dispatcher.

    Example:
        >>> engine = WorkflowEngine()
        >>> result = await engine.execute_workflow(
        ...     {
        ...         "id": "wf-1",
        ...         "nodes": [
        ...             {"id": "1", "type": "ManualTrigger", "config": {}},
        ...             {"id": "2", "type": "ConsoleOutput", "config": {}},
        ...         ],
        ...         "connections": [{"source": "1", "target": "2"}],
        ...     },
        ...     trigger_input={"foo": "bar"},
        ... )
        >>> result.status
        'completed'
    """

    def __init__(
        self,
        catalog: NodeCatalog | None = None,
        event_bus: EventBus | None = None,
        history_size: int | None = None,
        validator: WorkflowValidator | None = None,
    ) -> None:
        self.catalog = catalog or get_catalog()
        self.event_bus = event_bus or EventBus()
        self.history = ExecutionHistory(history_size)
        self.validator = validator or WorkflowValidator()
        self.walker = GraphWalker(self.event_bus)
        self._active: dict[str, ExecutionContext] = {}

    async def execute_workflow(
        self,
        workflow: WorkflowDefinition | Mapping[str, Any],
        trigger_input: Any = None,
        options: ExecutionOptions | Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        """Run a workflow to completion.

        Args:
            workflow: Definition object or its JSON mapping.
            trigger_input: Data handed to every trigger node.
            options: Run limits; defaults come from Settings.

        Returns:
            ExecutionResult of the completed run. Failures isolated at a
            fan-out are listed in its ``errors``.

        Raises:
            WorkflowValidationError: If the workflow is structurally invalid.
            NoTriggerError: If no node has a trigger type.
            NodeInitializationError: If a node cannot be constructed or initialized.
            ExecutionTimeoutError: If the run exceeds its timeout.
            ExecutionStoppedError: If the run was stopped with stop_execution().
            ExecutionError: If a trigger's walk fails and trigger failures
                are not isolated.
            pydantic.ValidationError: If ``options`` is invalid (raised
                before the run is registered).
        """
        run_options = self._resolve_options(options)
        workflow_id = self._workflow_id(workflow)
        context = ExecutionContext(workflow_id, run_options, trigger_data=trigger_input)
        self._active[context.id] = context

        context.log("info", f"Workflow execution started: {workflow_id}")
        await self._publish(EventType.WORKFLOW_STARTED, context)

        try:
            definition = self._prepare_workflow(context, workflow, workflow_id)
            await self.initialize_nodes(context, definition)

            trigger_ids = self._find_trigger_nodes(definition)
            if not trigger_ids:
                raise NoTriggerError()

            for trigger_id in trigger_ids:
                await self._run_trigger(context, definition, trigger_id, trigger_input)

            # A stop while the last walk was in flight lands here
            context.ensure_running()

            context.finish(ExecutionStatus.COMPLETED)
            context.log(
                "info",
                "Workflow execution completed successfully",
                data={"duration_ms": context.duration_ms, "dispatches": context.dispatch_count},
            )
            await self._publish(
                EventType.WORKFLOW_COMPLETED,
                context,
                data={"duration_ms": context.duration_ms, "dispatches": context.dispatch_count},
            )
            # Finalize first so cleanup warnings are part of the returned log
            await self._finalize(context)
            return context.to_result()

        except Exception as e:
            message = getattr(e, "message", None) or str(e) or type(e).__name__
            if context.finish(ExecutionStatus.FAILED, error=message):
                context.record_error(message, error_type=type(e).__name__)
                context.log("error", f"Workflow execution failed: {message}")
                await self._publish(EventType.WORKFLOW_FAILED, context, error=message)
            elif context.status == ExecutionStatus.STOPPED and not isinstance(
                e, ExecutionStoppedError
            ):
                raise ExecutionStoppedError(context.id) from e
            raise

        finally:
            await self._finalize(context)

    def validate_workflow(self, workflow: WorkflowDefinition | Mapping[str, Any]) -> ValidationResult:
        """Validate a workflow without running it."""
        return self.validator.validate(workflow)

    def get_active_executions(self) -> list[ExecutionSummary]:
        """Summaries of runs still in progress, with elapsed time as duration."""
        return [context.to_summary() for context in self._active.values() if context.is_running]

    def get_execution_history(self, limit: int = 50) -> list[ExecutionSummary]:
        """Most recent finished runs, newest first."""
        return self.history.list(limit)

    def get_execution(self, execution_id: str) -> ExecutionSummary | None:
        """Look up a run by id in the history, then among active runs."""
        summary = self.history.get(execution_id)
        if summary is not None:
            return summary

        context = self._active.get(execution_id)
        return context.to_summary() if context is not None else None

    async def stop_execution(self, execution_id: str) -> bool:
        """Stop an active run.

        The run is marked stopped, its nodes are cleaned up and it moves to
        history. A node call already in progress is not interrupted; once it
        returns, its output is not propagated.

        Returns:
            False if the id is unknown or the run already finished.
        """
        context = self._active.get(execution_id)
        if context is None or not context.finish(
            ExecutionStatus.STOPPED, error="Execution stopped"
        ):
            logger.debug(f"Stop requested for inactive execution {execution_id}")
            return False

        context.log("warning", "Workflow execution stopped")
        await self._publish(EventType.WORKFLOW_STOPPED, context)
        await self._finalize(context, initializing=True)
        return True

    async def initialize_nodes(self, context: ExecutionContext, workflow: WorkflowDefinition) -> None:
        """Construct and initialize every node of the workflow, in order.

        Raises:
            NodeInitializationError: On the first node that fails. Nodes
                created before it, the failing one included, are cleaned up
                with the run.
            ExecutionStoppedError: If the run was stopped while a node was
                initializing.
        """
        for node in workflow.nodes:
            try:
                handle = self.catalog.create_node(node.type, node.config, node_id=node.id)
            except Exception as e:
                reason = getattr(e, "message", None) or str(e) or type(e).__name__
                raise NodeInitializationError(node.id, reason, original_error=e) from e

            instance = NodeInstance(id=node.id, type=node.type, handle=handle)
            context.add_node(instance)
            try:
                await handle.initialize()
            except Exception as e:
                reason = getattr(e, "message", None) or str(e) or type(e).__name__
                raise NodeInitializationError(node.id, reason, original_error=e) from e

            instance.mark_initialized()
            context.ensure_running()

        if context.options.debug:
            context.log("debug", f"Initialized {len(context.nodes)} nodes")

    # ==========================================================================
    # Private Helper Methods
    # ==========================================================================

    @staticmethod
    def _resolve_options(options: ExecutionOptions | Mapping[str, Any] | None) -> ExecutionOptions:
        if options is None:
            return ExecutionOptions()
        if isinstance(options, ExecutionOptions):
            return options
        return ExecutionOptions.model_validate(dict(options))

    @staticmethod
    def _workflow_id(workflow: Any) -> str:
        if isinstance(workflow, WorkflowDefinition):
            return workflow.id
        if isinstance(workflow, Mapping) and workflow.get("id") is not None:
            return str(workflow["id"])
        return str(uuid4())

    def _prepare_workflow(
        self,
        context: ExecutionContext,
        workflow: WorkflowDefinition | Mapping[str, Any],
        workflow_id: str,
    ) -> WorkflowDefinition:
        """Validate the workflow and return it as a WorkflowDefinition."""
        result = self.validator.validate(workflow)
        if not result.valid:
            raise WorkflowValidationError(result.errors)

        for warning in result.warnings:
            context.log("warning", warning)

        if isinstance(workflow, WorkflowDefinition):
            return workflow

        try:
            return WorkflowDefinition.model_validate({**workflow, "id": workflow_id})
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            ]
            raise WorkflowValidationError(errors) from e

    def _find_trigger_nodes(self, workflow: WorkflowDefinition) -> list[str]:
        trigger_ids = []
        for node in workflow.nodes:
            metadata = self.catalog.get_node_metadata(node.type)
            if metadata is not None and metadata.category == NodeCategory.TRIGGER:
                trigger_ids.append(node.id)
        return trigger_ids

    async def _run_trigger(
        self,
        context: ExecutionContext,
        workflow: WorkflowDefinition,
        trigger_id: str,
        trigger_input: Any,
    ) -> None:
        try:
            result = await self.walker.execute_from_node(context, workflow, trigger_id, trigger_input)
        except RunAbortedError:
            raise
        except ExecutionError as e:
            if not context.options.isolate_trigger_failures:
                raise
            context.log(
                "warning",
                f"Trigger {trigger_id} failed: {e.message}",
                node_id=trigger_id,
                data={"error_type": type(e).__name__},
            )
            return

        context.results.append(result)

    async def _cleanup_nodes(self, context: ExecutionContext, skip_pending: bool = False) -> None:
        """Await cleanup() once per node; failures are logged, never raised.

        With ``skip_pending`` a node whose initialize() has not returned yet
        is left for a later pass.
        """
        for instance in list(context.nodes.values()):
            if instance.id in context.cleaned_up:
                continue
            if skip_pending and instance.status == NodeStatus.PENDING:
                continue

            context.cleaned_up.add(instance.id)
            try:
                await instance.handle.cleanup()
            except Exception as e:
                warning = CleanupWarning(instance.id, str(e) or type(e).__name__)
                context.log(
                    "warning",
                    str(warning),
                    node_id=instance.id,
                    data={"error_type": type(e).__name__},
                )

    async def _finalize(self, context: ExecutionContext, initializing: bool = False) -> None:
        """Clean up nodes, leave the active table and record history.

        History is recorded once. Later calls only clean up nodes added since,
        such as one whose initialize() was in flight when the run was stopped.
        """
        await self._cleanup_nodes(context, skip_pending=initializing)
        if context.finalized:
            return
        context.finalized = True

        self._active.pop(context.id, None)
        self.history.record(context.to_summary())

    async def _publish(
        self,
        event_type: EventType,
        context: ExecutionContext,
        data: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        await self.event_bus.emit(
            event_type,
            workflow_id=context.workflow_id,
            execution_id=context.id,
            data=data,
            error=error,
        )


__all__ = ["WorkflowEngine"]
