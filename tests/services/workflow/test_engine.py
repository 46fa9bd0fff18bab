"""Tests for WorkflowEngine.

Covers end-to-end runs, validation and initialization failures, branch
suppression, dispatch caps, failure isolation, run history, stop and
timeouts.
"""

import asyncio

import pytest

from flowforge.models.enums import EventType, ExecutionStatus, NodeStatus
from flowforge.schemas.workflow import WorkflowDefinition
from flowforge.services.workflow.exceptions import (
    ExecutionStoppedError,
    ExecutionTimeoutError,
    NodeExecutionError,
    NodeInitializationError,
    NoTriggerError,
    WorkflowValidationError,
)
from flowforge.services.workflow.nodes.errors import NodeNotRegisteredError


async def wait_for_event(engine, event_type, node_id=None, attempts=200):
    """Poll the engine's event history until a matching event shows up."""
    for _ in range(attempts):
        for event in engine.event_bus.get_event_history(event_type=event_type, limit=1000):
            if node_id is None or event.node_id == node_id:
                return event
        await asyncio.sleep(0.005)
    raise AssertionError(f"No {event_type} event for {node_id}")


class TestEndToEnd:
    """Tests for complete successful runs."""

    @pytest.mark.asyncio
    async def test_manual_trigger_to_console_output(self, engine, workflow_factory) -> None:
        """Test the canonical two-node workflow completes with one dispatch each."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("2", "ConsoleOutput")],
            [("1", "2")],
        )

        result = await engine.execute_workflow(workflow, trigger_input={"foo": "bar"})

        assert result.status == ExecutionStatus.COMPLETED
        assert result.errors == []
        assert result.workflow_id == "wf-test"
        console = result.get_node_execution("2")
        assert console.executions == 1
        assert console.status == NodeStatus.COMPLETED

        trigger_result = result.results[0]
        assert trigger_result.node_id == "1"
        assert trigger_result.result["output"]["data"] == {"foo": "bar"}
        assert [child.node_id for child in trigger_result.connected_results] == ["2"]

        console_output = trigger_result.connected_results[0].result["output"]
        assert console_output["data"] == {"foo": "bar"}
        assert console_output["_console"]["logged"] is True

    @pytest.mark.asyncio
    async def test_accepts_workflow_definition_object(self, engine, workflow_factory) -> None:
        """Test a WorkflowDefinition instance runs like its mapping."""
        definition = WorkflowDefinition.model_validate(
            workflow_factory([("1", "ManualTrigger"), ("2", "Echo")], [("1", "2")])
        )

        result = await engine.execute_workflow(definition)

        assert result.status == ExecutionStatus.COMPLETED
        assert result.workflow_id == definition.id

    @pytest.mark.asyncio
    async def test_workflow_without_id_gets_one(self, engine, workflow_factory) -> None:
        """Test a mapping without an id still runs under a generated workflow id."""
        workflow = workflow_factory([("1", "ManualTrigger")])
        del workflow["id"]

        result = await engine.execute_workflow(workflow)

        assert result.workflow_id
        assert engine.get_execution(result.execution_id).workflow_id == result.workflow_id

    @pytest.mark.asyncio
    async def test_multiple_triggers_run_in_definition_order(self, engine, workflow_factory) -> None:
        """Test every trigger node seeds a walk, in definition order."""
        workflow = workflow_factory(
            [("t2", "ManualTrigger"), ("t1", "ManualTrigger"), ("e", "Echo")],
            [("t1", "e"), ("t2", "e")],
        )

        result = await engine.execute_workflow(workflow, {"n": 1})

        assert [r.node_id for r in result.results] == ["t2", "t1"]
        assert result.get_node_execution("e").executions == 2

    @pytest.mark.asyncio
    async def test_variables_are_run_scoped(self, engine, workflow_factory) -> None:
        """Test variables set in one run are not visible in the next."""
        workflow = workflow_factory(
            [
                ("1", "ManualTrigger"),
                ("2", "SetVariable", {"variables": [{"name": "count", "value": 1, "operation": "increment"}]}),
            ],
            [("1", "2")],
        )

        first = await engine.execute_workflow(workflow)
        second = await engine.execute_workflow(workflow)

        assert first.variables == {"count": 1}
        assert second.variables == {"count": 1}

    @pytest.mark.asyncio
    async def test_events_published_in_order(self, engine, workflow_factory) -> None:
        """Test lifecycle events follow the dispatch order."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("2", "Echo")],
            [("1", "2")],
        )

        result = await engine.execute_workflow(workflow)

        events = engine.event_bus.get_event_history(execution_id=result.execution_id)
        assert [(e.event_type, e.node_id) for e in events] == [
            (EventType.WORKFLOW_STARTED, None),
            (EventType.NODE_STARTED, "1"),
            (EventType.NODE_COMPLETED, "1"),
            (EventType.NODE_STARTED, "2"),
            (EventType.NODE_COMPLETED, "2"),
            (EventType.WORKFLOW_COMPLETED, None),
        ]


class TestValidationFailures:
    """Tests for runs rejected before any node is dispatched."""

    @pytest.mark.asyncio
    async def test_dangling_reference_rejected(self, engine, workflow_factory) -> None:
        """Test a connection to an unknown node fails with every error listed."""
        workflow = workflow_factory([("1", "ManualTrigger")], [("1", "9"), ("8", "1")])

        with pytest.raises(WorkflowValidationError) as exc_info:
            await engine.execute_workflow(workflow)

        assert exc_info.value.errors == [
            "Connection 0 (1 -> 9) references unknown target node: 9",
            "Connection 1 (8 -> 1) references unknown source node: 8",
        ]
        assert exc_info.value.error_code == "VALIDATION_FAILED"

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, engine, workflow_factory) -> None:
        """Test A -> B -> C -> A is rejected naming the cycle."""
        workflow = workflow_factory(
            [("A", "Echo"), ("B", "Echo"), ("C", "Echo")],
            [("A", "B"), ("B", "C"), ("C", "A")],
        )

        with pytest.raises(WorkflowValidationError) as exc_info:
            await engine.execute_workflow(workflow)

        assert "Workflow contains circular dependencies: A -> B -> C -> A" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_rejected_run_is_recorded_as_failed(self, engine, workflow_factory) -> None:
        """Test validation failures still leave a history entry and no active run."""
        workflow = workflow_factory([], [])

        with pytest.raises(WorkflowValidationError):
            await engine.execute_workflow(workflow)

        history = engine.get_execution_history()
        assert len(history) == 1
        assert history[0].status == ExecutionStatus.FAILED
        assert history[0].end_time is not None
        assert "at least one node" in history[0].error
        assert engine.get_active_executions() == []

    @pytest.mark.asyncio
    async def test_no_trigger_node(self, engine, workflow_factory) -> None:
        """Test a workflow without a trigger-category node is refused."""
        workflow = workflow_factory([("1", "Echo"), ("2", "Echo")], [("1", "2")])

        with pytest.raises(NoTriggerError):
            await engine.execute_workflow(workflow)

        assert engine.get_execution_history()[0].error.endswith("No trigger nodes found in workflow")

    def test_validate_workflow_reports_warnings(self, engine, workflow_factory) -> None:
        """Test validate_workflow returns the validator result without running."""
        workflow = workflow_factory([("1", "ManualTrigger"), ("2", "Echo")])

        result = engine.validate_workflow(workflow)

        assert result.valid is True
        assert result.warnings == ["Node 1 has no connections", "Node 2 has no connections"]
        assert engine.get_execution_history() == []


class TestNodeInitialization:
    """Tests for node construction and lifecycle hooks."""

    @pytest.mark.asyncio
    async def test_unknown_node_type(self, engine, workflow_factory) -> None:
        """Test an unregistered type fails initialization naming the node."""
        workflow = workflow_factory([("1", "ManualTrigger"), ("2", "Nope")], [("1", "2")])

        with pytest.raises(NodeInitializationError) as exc_info:
            await engine.execute_workflow(workflow)

        assert exc_info.value.node_id == "2"
        assert isinstance(exc_info.value.original_error, NodeNotRegisteredError)

    @pytest.mark.asyncio
    async def test_invalid_node_config(self, engine, workflow_factory) -> None:
        """Test a config rejected by the node's schema fails initialization."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("2", "HttpRequest", {"url": "ftp://example.com"})],
            [("1", "2")],
        )

        with pytest.raises(NodeInitializationError) as exc_info:
            await engine.execute_workflow(workflow)

        assert exc_info.value.node_id == "2"
        assert "http:// or https://" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_initialized_nodes_cleaned_up_after_init_failure(
        self, engine, workflow_factory, lifecycle_events
    ) -> None:
        """Test nodes initialized before the failing one still get cleanup()."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("2", "Lifecycle"), ("3", "BrokenInit")],
            [("1", "2"), ("2", "3")],
        )

        with pytest.raises(NodeInitializationError) as exc_info:
            await engine.execute_workflow(workflow)

        assert exc_info.value.node_id == "3"
        assert lifecycle_events == [("initialize", "2"), ("cleanup", "2")]

    @pytest.mark.asyncio
    async def test_lifecycle_hooks_order(self, engine, workflow_factory, lifecycle_events) -> None:
        """Test initialize, execute and cleanup are each called in order."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("2", "Lifecycle")],
            [("1", "2")],
        )

        await engine.execute_workflow(workflow)

        assert lifecycle_events == [("initialize", "2"), ("execute", "2"), ("cleanup", "2")]

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_a_warning(self, engine, workflow_factory) -> None:
        """Test a failing cleanup() is logged, not raised."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("2", "BrokenCleanup")],
            [("1", "2")],
        )

        result = await engine.execute_workflow(workflow)

        assert result.status == ExecutionStatus.COMPLETED
        warnings = [entry for entry in result.logs if entry.level == "warning"]
        assert len(warnings) == 1
        assert warnings[0].message == "Cleanup failed for node 2: handle already closed"
        assert warnings[0].node_id == "2"


class TestBranching:
    """Tests for output port routing."""

    @pytest.mark.asyncio
    async def test_unpopulated_branch_is_suppressed(self, engine, workflow_factory) -> None:
        """Test only targets wired to a populated port are dispatched."""
        workflow = workflow_factory(
            [
                ("1", "ManualTrigger"),
                ("if", "IfElse", {"condition": "equals", "field": "data.foo", "value": "bar"}),
                ("yes", "Echo"),
                ("no", "Echo"),
            ],
            [("1", "if"), ("if", "yes", "true", "input"), ("if", "no", "false", "input")],
        )

        result = await engine.execute_workflow(workflow, {"foo": "bar"})

        assert result.get_node_execution("yes").executions == 1
        assert result.get_node_execution("no").executions == 0
        assert result.get_node_execution("no").status == NodeStatus.INITIALIZED

        yes_result = result.results[0].connected_results[0].connected_results[0]
        assert yes_result.node_id == "yes"
        assert yes_result.result["output"]["data"] == {"foo": "bar"}

    @pytest.mark.asyncio
    async def test_diamond_dispatches_join_once_per_branch(self, engine, workflow_factory) -> None:
        """Test a node fed by two branches runs once per branch with that branch's data."""
        workflow = workflow_factory(
            [
                ("1", "ManualTrigger"),
                ("a", "SetVariable", {"variables": [{"name": "branch", "value": "a"}], "outputFormat": "variables_only"}),
                ("b", "SetVariable", {"variables": [{"name": "branch", "value": "b"}], "outputFormat": "variables_only"}),
                ("join", "Echo"),
            ],
            [("1", "a"), ("1", "b"), ("a", "join"), ("b", "join")],
        )

        result = await engine.execute_workflow(workflow)

        assert result.get_node_execution("join").executions == 2
        a_result, b_result = result.results[0].connected_results
        assert a_result.connected_results[0].result == {"output": {"branch": "a"}}
        assert b_result.connected_results[0].result == {"output": {"branch": "b"}}


class TestLimits:
    """Tests for the per-node and per-run dispatch caps."""

    @pytest.mark.asyncio
    async def test_per_node_cap(self, engine, workflow_factory) -> None:
        """Test dispatches beyond max_node_executions are refused and recorded."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("a", "Echo"), ("b", "Echo"), ("c", "Echo"), ("d", "Echo")],
            [("1", "a"), ("1", "b"), ("1", "c"), ("a", "d"), ("b", "d"), ("c", "d")],
        )

        result = await engine.execute_workflow(workflow, options={"max_node_executions": 2})

        assert result.status == ExecutionStatus.COMPLETED
        assert result.get_node_execution("d").executions == 2
        assert result.get_node_execution("c").status == NodeStatus.COMPLETED
        assert [(e.node_id, e.message) for e in result.errors] == [
            ("d", "Node d exceeded maximum executions (2)"),
        ]

    @pytest.mark.asyncio
    async def test_per_run_cap(self, engine, workflow_factory) -> None:
        """Test the total number of dispatches never exceeds max_nodes_per_execution."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("a", "Echo"), ("b", "Echo"), ("c", "Echo"), ("d", "Echo")],
            [("1", "a"), ("1", "b"), ("1", "c"), ("a", "d")],
        )

        result = await engine.execute_workflow(workflow, options={"maxNodesPerExecution": 3})

        assert sum(n.executions for n in result.node_executions) == 3
        assert [e.node_id for e in result.errors] == ["b", "c"]
        assert result.errors[0].message == (
            "Execution exceeded maximum node dispatches (3) at node b"
        )


class TestFailureIsolation:
    """Tests for failure handling at fan-outs and triggers."""

    @pytest.mark.asyncio
    async def test_sibling_runs_after_failure(self, engine, workflow_factory) -> None:
        """Test a failing target does not stop its siblings."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("x", "Fail"), ("y", "Echo"), ("z", "Echo")],
            [("1", "x"), ("1", "y"), ("x", "z")],
        )

        result = await engine.execute_workflow(workflow)

        assert result.status == ExecutionStatus.COMPLETED
        assert result.get_node_execution("x").status == NodeStatus.FAILED
        assert result.get_node_execution("y").executions == 1
        assert result.get_node_execution("z").executions == 0

        assert len(result.errors) == 1
        assert result.errors[0].node_id == "x"
        assert result.errors[0].message == "Node x execution failed: boom"
        assert result.errors[0].error_type == "RuntimeError"
        assert [child.node_id for child in result.results[0].connected_results] == ["y"]

    @pytest.mark.asyncio
    async def test_trigger_failure_fails_run(self, engine, workflow_factory) -> None:
        """Test a failing trigger aborts the run by default."""
        workflow = workflow_factory([("t", "FailTrigger"), ("m", "ManualTrigger")])

        with pytest.raises(NodeExecutionError) as exc_info:
            await engine.execute_workflow(workflow)

        assert exc_info.value.node_id == "t"
        summary = engine.get_execution_history()[0]
        assert summary.status == ExecutionStatus.FAILED
        assert summary.error == "Node t execution failed: boom"

    @pytest.mark.asyncio
    async def test_isolated_trigger_failure(self, engine, workflow_factory) -> None:
        """Test isolate_trigger_failures keeps the remaining triggers running."""
        workflow = workflow_factory([("t", "FailTrigger"), ("m", "ManualTrigger")])

        result = await engine.execute_workflow(workflow, options={"isolateTriggerFailures": True})

        assert result.status == ExecutionStatus.COMPLETED
        assert [r.node_id for r in result.results] == ["m"]
        assert [e.node_id for e in result.errors] == ["t"]

    @pytest.mark.asyncio
    async def test_non_mapping_result_fails_node(self, engine, workflow_factory) -> None:
        """Test execute() returning a non-mapping is a node failure."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("bad", "BadResult"), ("none", "NoneResult")],
            [("1", "bad"), ("1", "none")],
        )

        result = await engine.execute_workflow(workflow)

        assert result.get_node_execution("bad").status == NodeStatus.FAILED
        assert "expected a mapping" in result.errors[0].message
        assert result.get_node_execution("none").status == NodeStatus.COMPLETED


class TestHistory:
    """Tests for the bounded run history."""

    @pytest.mark.asyncio
    async def test_history_is_bounded_newest_first(self, catalog, workflow_factory) -> None:
        """Test history keeps only the newest capacity entries."""
        from flowforge.services.workflow.engine import WorkflowEngine

        engine = WorkflowEngine(catalog=catalog, history_size=3)
        workflow = workflow_factory([("1", "ManualTrigger")])

        execution_ids = [(await engine.execute_workflow(workflow)).execution_id for _ in range(5)]

        history = engine.get_execution_history(3)
        assert [entry.id for entry in history] == execution_ids[:1:-1]
        assert engine.get_execution(execution_ids[0]) is None
        assert engine.get_execution(execution_ids[1]) is None
        assert engine.get_execution(execution_ids[4]).status == ExecutionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_history_limit(self, engine, workflow_factory) -> None:
        """Test get_execution_history honours its limit."""
        workflow = workflow_factory([("1", "ManualTrigger")])
        for _ in range(4):
            await engine.execute_workflow(workflow)

        assert len(engine.get_execution_history(2)) == 2
        assert len(engine.get_execution_history()) == 4

    @pytest.mark.asyncio
    async def test_summary_fields(self, engine, workflow_factory) -> None:
        """Test a history entry summarises the run."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("2", "Fail")],
            [("1", "2")],
        )

        result = await engine.execute_workflow(workflow)
        summary = engine.get_execution(result.execution_id)

        assert summary.node_count == 2
        assert summary.error_count == 1
        assert summary.duration_ms == result.duration_ms
        assert summary.error is None


class TestStopAndTimeout:
    """Tests for external stop and run timeouts."""

    @pytest.mark.asyncio
    async def test_stop_unknown_execution(self, engine) -> None:
        """Test stopping an unknown id returns False."""
        assert await engine.stop_execution("does-not-exist") is False

    @pytest.mark.asyncio
    async def test_stop_finished_execution(self, engine, workflow_factory) -> None:
        """Test stopping a finished run returns False and leaves it unchanged."""
        result = await engine.execute_workflow(workflow_factory([("1", "ManualTrigger")]))

        assert await engine.stop_execution(result.execution_id) is False
        assert engine.get_execution(result.execution_id).status == ExecutionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_stop_in_flight_run(self, engine, workflow_factory) -> None:
        """Test stopping a run mid-node suppresses propagation and records it once."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("slow", "Slow", {"seconds": 0.2}), ("after", "Echo")],
            [("1", "slow"), ("slow", "after")],
        )

        task = asyncio.create_task(engine.execute_workflow(workflow))
        started = await wait_for_event(engine, EventType.NODE_STARTED, "slow")

        active = engine.get_active_executions()
        assert [summary.id for summary in active] == [started.execution_id]
        assert active[0].status == ExecutionStatus.RUNNING

        assert await engine.stop_execution(started.execution_id) is True
        assert await engine.stop_execution(started.execution_id) is False
        assert engine.get_active_executions() == []

        with pytest.raises(ExecutionStoppedError):
            await task

        history = engine.get_execution_history()
        assert len(history) == 1
        assert history[0].status == ExecutionStatus.STOPPED

        dispatched = {
            event.node_id
            for event in engine.event_bus.get_event_history(
                execution_id=started.execution_id, event_type=EventType.NODE_STARTED
            )
        }
        assert dispatched == {"1", "slow"}

    @pytest.mark.asyncio
    async def test_stop_during_initialization_cleans_up_every_node(
        self, engine, workflow_factory, lifecycle_events
    ) -> None:
        """Test a stop while a node is initializing leaves no initialized node behind."""
        workflow = workflow_factory(
            [
                ("1", "ManualTrigger"),
                ("a", "SlowInitLifecycle", {"seconds": 0.05}),
                ("b", "SlowInitLifecycle", {"seconds": 0.05}),
                ("c", "SlowInitLifecycle", {"seconds": 0.05}),
            ],
            [("1", "a"), ("a", "b"), ("b", "c")],
        )

        task = asyncio.create_task(engine.execute_workflow(workflow))
        started = await wait_for_event(engine, EventType.WORKFLOW_STARTED)
        await asyncio.sleep(0.02)

        assert await engine.stop_execution(started.execution_id) is True

        with pytest.raises(ExecutionStoppedError):
            await task

        initialized = {node_id for event, node_id in lifecycle_events if event == "initialize"}
        cleaned_up = {node_id for event, node_id in lifecycle_events if event == "cleanup"}
        assert initialized == cleaned_up
        assert "c" not in initialized
        assert not any(event == "execute" for event, _ in lifecycle_events)
        assert engine.get_execution(started.execution_id).status == ExecutionStatus.STOPPED

    @pytest.mark.asyncio
    async def test_run_timeout(self, engine, workflow_factory) -> None:
        """Test a run exceeding its timeout fails with ExecutionTimeoutError."""
        workflow = workflow_factory(
            [("1", "ManualTrigger"), ("slow", "Slow", {"seconds": 1})],
            [("1", "slow")],
        )

        with pytest.raises(ExecutionTimeoutError):
            await engine.execute_workflow(workflow, options={"timeout": 50})

        summary = engine.get_execution_history()[0]
        assert summary.status == ExecutionStatus.FAILED
        assert "timed out" in summary.error

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_independent(self, engine, workflow_factory) -> None:
        """Test runs in flight at the same time keep separate state."""
        workflow = workflow_factory(
            [
                ("1", "ManualTrigger"),
                ("slow", "Slow", {"seconds": 0.05}),
                ("set", "SetVariable", {"variables": [{"name": "seen", "value": "{{data.tag}}"}]}),
            ],
            [("1", "slow"), ("slow", "set")],
        )

        first, second = await asyncio.gather(
            engine.execute_workflow(workflow, {"tag": "first"}),
            engine.execute_workflow(workflow, {"tag": "second"}),
        )

        assert first.execution_id != second.execution_id
        assert first.variables == {"seen": "first"}
        assert second.variables == {"seen": "second"}
        assert len(engine.get_execution_history()) == 2
