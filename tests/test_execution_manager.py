"""
Tests for the execution manager: dispatch, statistics, workflows and batches.
"""

import pytest

from mediaflow.config import MediaflowConfig
from mediaflow.models.execution import BatchOptions, WorkflowOptions
from mediaflow.models.node import ExecutionDescriptor, Node, NodeConfiguration, RoutingDecision
from mediaflow.services.errors import WorkflowAbortedError
from mediaflow.services.execution_manager import ExecutionContext, create_execution_manager


def text_node(node_id: str = "t1", text: str = "hello") -> Node:
    return Node(id=node_id, type="text-input", data={"text": text})


def assert_stats_consistent(stats: dict) -> None:
    assert stats["successful_executions"] + stats["failed_executions"] == stats["total_executions"]


# ---------------------------------------------------------------------------
# Single execution
# ---------------------------------------------------------------------------


class TestExecute:

    @pytest.mark.asyncio
    async def test_legacy_dispatch(self, manager):
        node = text_node()
        result = await manager.execute(node, None, manager.get_node_routing(node.type))

        assert result.success is True
        assert result.data.text == "hello"
        stats = manager.get_execution_stats()
        assert stats["legacy_executions"] == 1
        assert stats["dynamic_executions"] == 0

    @pytest.mark.asyncio
    async def test_dynamic_dispatch(self, manager):
        result = await manager.execute(
            {"id": "u1", "type": "upper-node"},
            "quiet",
            {"manager": "dynamic", "confidence": 1.0, "source": "registry"},
        )

        assert result.success is True
        assert result.data.text == "QUIET"
        assert manager.get_execution_stats()["dynamic_executions"] == 1

    @pytest.mark.asyncio
    async def test_execution_time_is_wall_clock(self, manager):
        result = await manager.execute(
            Node(id="s1", type="slow-node"), None, manager.get_node_routing("slow-node")
        )
        assert result.success is False
        assert result.execution_time >= 90
        assert "timed out after 0.1s" in result.error

    @pytest.mark.asyncio
    async def test_missing_routing_is_a_failed_result(self, manager):
        result = await manager.execute(text_node(), None, None)

        assert result.success is False
        assert result.source == "execution_manager"
        assert result.data is None
        stats = manager.get_execution_stats()
        assert stats["total_executions"] == 1
        assert stats["failed_executions"] == 1
        assert stats["legacy_executions"] == 0
        assert stats["dynamic_executions"] == 0

    @pytest.mark.asyncio
    async def test_unsupported_manager(self, manager):
        result = await manager.execute(text_node(), None, {"manager": "remote"})
        assert result.success is False
        assert "unsupported router manager: remote" in result.error

    @pytest.mark.asyncio
    async def test_invalid_node(self, manager):
        result = await manager.execute({"type": "text-input"}, None, {"manager": "legacy"})
        assert result.success is False
        assert result.source == "execution_manager"

    @pytest.mark.asyncio
    async def test_missing_dynamic_configuration(self, manager):
        result = await manager.execute(
            Node(id="g1", type="ghost"),
            None,
            RoutingDecision(manager="dynamic", confidence=0.5, source="fallback"),
        )

        assert result.success is False
        assert "node configuration not found: ghost" in result.error
        assert manager.get_execution_stats()["dynamic_executions"] == 1

    @pytest.mark.asyncio
    async def test_unknown_legacy_type(self, manager):
        result = await manager.execute(
            Node(id="x1", type="echo-node"),
            None,
            RoutingDecision(manager="legacy", confidence=1.0, source="registry"),
        )
        assert result.success is False
        assert result.error.startswith("legacy node execution failed")


class TestStats:

    @pytest.mark.asyncio
    async def test_invariants_hold_across_mixed_runs(self, manager):
        runs = [
            (text_node(), None),
            (Node(id="e1", type="echo-node"), "x"),
            (Node(id="f1", type="transform"), "x"),
            (text_node("t2", ""), None),
        ]
        times = []
        for node, data in runs:
            result = await manager.execute(node, data, manager.get_node_routing(node.type))
            times.append(result.execution_time)

        stats = manager.get_execution_stats()
        assert stats["total_executions"] == 4
        assert stats["legacy_executions"] + stats["dynamic_executions"] == 4
        assert stats["successful_executions"] == 2
        assert stats["failed_executions"] == 2
        assert stats["success_rate"] == 50
        assert stats["legacy_rate"] == 50
        assert stats["dynamic_rate"] == 50
        assert stats["average_execution_time"] == pytest.approx(sum(times) / len(times))
        assert_stats_consistent(stats)

    @pytest.mark.asyncio
    async def test_reset(self, manager):
        await manager.execute(text_node(), None, manager.get_node_routing("text-input"))
        manager.reset_stats()

        stats = manager.get_execution_stats()
        assert stats["total_executions"] == 0
        assert stats["average_execution_time"] == 0
        assert stats["success_rate"] == 0

    @pytest.mark.asyncio
    async def test_reset_then_one_success(self, manager):
        await manager.execute(Node(id="f1", type="transform"), None, manager.get_node_routing("transform"))
        manager.reset_stats()

        result = await manager.execute(text_node(), None, manager.get_node_routing("text-input"))

        stats = manager.get_execution_stats()
        assert result.success is True
        assert stats["total_executions"] == 1
        assert stats["successful_executions"] == 1
        assert stats["failed_executions"] == 0
        assert stats["legacy_executions"] == 1
        assert stats["average_execution_time"] == result.execution_time

    @pytest.mark.asyncio
    async def test_shared_context(self, node_registry, handlers):
        context = ExecutionContext()
        first = create_execution_manager(node_registry, handlers, context=context)
        second = create_execution_manager(node_registry, handlers, context=context)
        await first.execute(text_node(), None, first.get_node_routing("text-input"))
        await second.execute(text_node(), None, second.get_node_routing("text-input"))
        assert context.stats.total_executions == 2

    @pytest.mark.asyncio
    async def test_separate_managers_do_not_share_stats(self, node_registry, handlers):
        first = create_execution_manager(node_registry, handlers)
        second = create_execution_manager(node_registry, handlers)
        await first.execute(text_node(), None, first.get_node_routing("text-input"))
        assert second.get_execution_stats()["total_executions"] == 0


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


class TestExecuteWorkflow:

    @pytest.mark.asyncio
    async def test_data_flows_between_steps(self, manager):
        nodes = [
            text_node(text="hello"),
            Node(id="u1", type="upper-node"),
            Node(id="o1", type="output"),
        ]
        result = await manager.execute_workflow(nodes, WorkflowOptions(workflow_id="wf-1"))

        assert result.success is True
        assert result.workflow_id == "wf-1"
        assert result.total_steps == 3
        assert result.success_count == 3
        assert result.failure_count == 0
        assert result.final_result.text == "HELLO"
        assert [s.step_number for s in result.execution_results] == [1, 2, 3]
        assert [s.node_id for s in result.execution_results] == ["t1", "u1", "o1"]

    @pytest.mark.asyncio
    async def test_next_step_receives_previous_step_data(self, manager, handlers, node_registry, monkeypatch):
        received = []

        @handlers.register("recorder")
        async def _recorder(handler_input):
            received.append(handler_input.workflow_data)
            return "recorded"

        node_registry.register(
            NodeConfiguration(node_type="recorder-node", execution=ExecutionDescriptor(handler="recorder"))
        )

        results = []
        original_execute = manager.execute

        async def recording_execute(*args, **kwargs):
            result = await original_execute(*args, **kwargs)
            results.append(result)
            return result

        monkeypatch.setattr(manager, "execute", recording_execute)

        await manager.execute_workflow([text_node(text="hello"), Node(id="r1", type="recorder-node")])

        assert len(received) == 1
        assert received[0] == results[0].data
        assert received[0].text == "hello"
        assert received[0].metadata["node_id"] == "t1"

    @pytest.mark.asyncio
    async def test_each_step_output_carries_its_own_node_metadata(self, manager):
        result = await manager.execute_workflow([text_node(text="hello"), Node(id="o1", type="output")])

        metadata = result.final_result.metadata
        assert result.final_result.text == "hello"
        assert metadata["node_id"] == "o1"
        assert metadata["node_type"] == "output"
        assert metadata["source"] == "legacy_executor"
        assert metadata["label"] == "Output"

    @pytest.mark.asyncio
    async def test_abort_on_non_continuable_failure(self, manager):
        completed, errored = [], []
        nodes = [
            text_node(),
            Node(id="x1", type="transform"),
            Node(id="o1", type="output"),
        ]
        options = WorkflowOptions(on_step_complete=completed.append, on_step_error=errored.append)

        with pytest.raises(WorkflowAbortedError) as exc_info:
            await manager.execute_workflow(nodes, options)

        steps = exc_info.value.execution_results
        assert len(steps) == 2
        assert steps[0].success is True
        assert steps[1].success is False
        assert steps[1].node_type == "transform"
        assert "boom" in steps[1].error
        assert len(completed) == 2
        assert len(errored) == 1
        # The output step never ran
        assert manager.get_execution_stats()["total_executions"] == 2

    @pytest.mark.asyncio
    async def test_continue_on_error_keeps_carried_value(self, manager):
        nodes = [
            text_node(text="hello"),
            Node(id="x1", type="transform"),
            Node(id="o1", type="output"),
        ]
        result = await manager.execute_workflow(nodes, {"continue_on_error": True})

        assert result.success is True
        assert result.success_count == 2
        assert result.failure_count == 1
        assert result.final_result.text == "hello"

    @pytest.mark.asyncio
    async def test_download_failure_is_continuable(self, manager):
        nodes = [Node(id="d1", type="download"), Node(id="e1", type="echo-node")]
        result = await manager.execute_workflow(nodes)

        assert result.success_count == 1
        assert result.failure_count == 1
        assert result.execution_results[0].success is False
        assert result.execution_results[1].success is True

    @pytest.mark.asyncio
    async def test_all_failed_continuable_workflow(self, manager):
        result = await manager.execute_workflow([Node(id="d1", type="download")])
        assert result.success is False
        assert result.final_result is None

    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited(self, manager):
        seen = []

        async def on_complete(summary):
            seen.append(summary.node_id)

        await manager.execute_workflow([text_node()], WorkflowOptions(on_step_complete=on_complete))
        assert seen == ["t1"]

    @pytest.mark.asyncio
    async def test_empty_workflow(self, manager):
        with pytest.raises(ValueError):
            await manager.execute_workflow([])

    def test_should_continue_on_error(self):
        from mediaflow.services.execution_manager import ExecutionManager

        options = WorkflowOptions()
        assert ExecutionManager.should_continue_on_error(Node(id="a", type="output"), options)
        assert ExecutionManager.should_continue_on_error(Node(id="a", type="download"), options)
        assert not ExecutionManager.should_continue_on_error(Node(id="a", type="tts"), options)
        assert ExecutionManager.should_continue_on_error(
            Node(id="a", type="tts"), WorkflowOptions(continue_on_error=True)
        )


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------


def batch_entries() -> list[dict]:
    return [
        {"node": {"id": "e1", "type": "echo-node"}, "input_data": "a"},
        {"node": {"id": "x1", "type": "transform"}, "input_data": "b"},
        {"node": {"id": "u1", "type": "upper-node"}, "input_data": "c"},
    ]


class TestExecuteBatch:

    @pytest.mark.asyncio
    async def test_parallel_with_one_failure(self, manager):
        result = await manager.execute_batch(batch_entries(), BatchOptions(parallel=True))

        assert result.success is True
        assert result.total_count == 3
        assert result.success_count == 2
        assert result.failure_count == 1
        assert [item.index for item in result.results] == [0, 1, 2]
        assert result.results[1].success is False
        assert "boom" in result.results[1].result.error
        assert result.results[2].result.data.text == "C"

    @pytest.mark.asyncio
    async def test_serial(self, manager):
        result = await manager.execute_batch(batch_entries(), {"parallel": False})

        assert result.success_count == 2
        assert result.results[0].result.data.text == "a"
        assert_stats_consistent(manager.get_execution_stats())

    @pytest.mark.asyncio
    async def test_parallel_with_stagger(self, manager):
        result = await manager.execute_batch(
            batch_entries(), BatchOptions(parallel=True, stagger_seconds=0.01)
        )
        assert result.success_count == 2

    @pytest.mark.asyncio
    async def test_parallel_entries_run_concurrently(self, manager):
        entries = [{"node": {"id": f"s{i}", "type": "slow-node"}} for i in range(3)]
        result = await manager.execute_batch(entries, BatchOptions(parallel=True))

        assert result.success is False
        assert result.failure_count == 3
        # Three 0.1s timeouts side by side, not one after another
        assert max(item.result.execution_time for item in result.results) < 300

    @pytest.mark.asyncio
    async def test_parallel_entry_that_raises_does_not_sink_siblings(self, manager, monkeypatch):
        original_routing = manager.get_node_routing

        def routing(node_type):
            if node_type == "broken-node":
                raise RuntimeError("router unavailable")
            return original_routing(node_type)

        monkeypatch.setattr(manager, "get_node_routing", routing)
        entries = [
            {"node": {"id": "e1", "type": "echo-node"}, "input_data": "a"},
            {"node": {"id": "b1", "type": "broken-node"}},
        ]
        result = await manager.execute_batch(entries, BatchOptions(parallel=True, stagger_seconds=0))

        assert result.success_count == 1
        assert result.failure_count == 1
        assert result.results[0].success is True
        assert result.results[0].result.data.text == "a"
        assert result.results[1].index == 1
        assert result.results[1].success is False
        assert result.results[1].result is None
        assert result.results[1].error == "router unavailable"

    @pytest.mark.asyncio
    async def test_serial_entry_that_raises_does_not_sink_siblings(self, manager, monkeypatch):
        def routing(node_type):
            raise RuntimeError("router unavailable")

        monkeypatch.setattr(manager, "get_node_routing", routing)
        result = await manager.execute_batch([{"node": {"id": "e1", "type": "echo-node"}}] * 2)

        assert result.failure_count == 2
        assert [item.error for item in result.results] == ["router unavailable"] * 2

    @pytest.mark.asyncio
    async def test_empty_batch(self, manager):
        with pytest.raises(ValueError):
            await manager.execute_batch([])


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, manager):
        await manager.execute(text_node(), None, manager.get_node_routing("text-input"))
        health = manager.get_health_status()

        assert health["status"] == "healthy"
        assert "tts" in health["capabilities"]["legacy_node_types"]
        assert "echo-node" in health["capabilities"]["dynamic_node_types"]
        assert "echo" in health["capabilities"]["handlers"]
        assert "tts_synthesize_handler" in health["capabilities"]["handlers"]

    @pytest.mark.asyncio
    async def test_critical_error_rate(self, manager):
        await manager.execute(Node(id="x1", type="transform"), None, manager.get_node_routing("transform"))
        health = manager.get_health_status()

        assert health["status"] == "critical"
        assert health["issues"]

    def test_warning_threshold(self, manager, monkeypatch):
        monkeypatch.setattr(MediaflowConfig, "HEALTH_CRITICAL_ERROR_RATE", 50.0)
        stats = manager.context.stats
        stats.total_executions = 10
        stats.successful_executions = 8
        stats.failed_executions = 2

        health = manager.get_health_status()
        assert health["status"] == "warning"
        assert health["warnings"]
