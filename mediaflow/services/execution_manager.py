"""
Execution manager: the single entry point for running nodes.

Dispatches each node to the legacy or dynamic executor according to its
routing decision, records one statistics entry per call, and sequences
(execute_workflow) or batches (execute_batch) multiple nodes.

A node failure never leaves the manager in a bad state: ``execute`` always
returns an ExecutionResult. Only ``execute_workflow`` raises on purpose, when
a step fails that the workflow cannot continue past.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Sequence

from mediaflow.config import MediaflowConfig
from mediaflow.handlers.builtin import register_builtin_handlers
from mediaflow.models.execution import (
    BatchEntry,
    BatchItemResult,
    BatchOptions,
    BatchResult,
    ExecutionOptions,
    ExecutionResult,
    ExecutionStats,
    StepSummary,
    WorkflowOptions,
    WorkflowResult,
)
from mediaflow.models.node import ManagerKind, Node, RoutingDecision
from mediaflow.services.dynamic_executor import DynamicExecutor
from mediaflow.services.errors import UnsupportedRouterError, WorkflowAbortedError
from mediaflow.services.handler_registry import HandlerRegistry
from mediaflow.services.legacy_executor import LegacyExecutor
from mediaflow.services.node_config_registry import InMemoryNodeConfigRegistry, NodeConfigRegistry
from mediaflow.services.node_router import NodeRouter

logger = logging.getLogger(__name__)

SOURCE = "execution_manager"

# Node types whose failure does not stop a workflow
CONTINUABLE_NODE_TYPES = frozenset({"output", "download"})


class ExecutionContext:
    """Mutable statistics shared by one manager instance."""

    def __init__(self) -> None:
        self.stats = ExecutionStats()

    def record(self, manager: ManagerKind | None, success: bool, execution_time: int) -> None:
        stats = self.stats
        stats.total_executions += 1
        if manager == "legacy":
            stats.legacy_executions += 1
        elif manager == "dynamic":
            stats.dynamic_executions += 1
        if success:
            stats.successful_executions += 1
        else:
            stats.failed_executions += 1
        n = stats.total_executions
        stats.average_execution_time = (stats.average_execution_time * (n - 1) + execution_time) / n

    def reset(self) -> None:
        self.stats = ExecutionStats()


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _coerce_routing(routing: Any) -> RoutingDecision:
    if isinstance(routing, RoutingDecision):
        return routing
    if not isinstance(routing, dict) or not routing.get("manager"):
        raise ValueError("routing decision is missing a manager")
    if routing["manager"] not in ("legacy", "dynamic"):
        raise UnsupportedRouterError(f"unsupported router manager: {routing['manager']}")
    return RoutingDecision.model_validate({"confidence": 1.0, "source": "registry", **routing})


async def _notify(callback: Callable[[StepSummary], Any] | None, summary: StepSummary) -> None:
    if callback is None:
        return
    outcome = callback(summary)
    if inspect.isawaitable(outcome):
        await outcome


class ExecutionManager:
    def __init__(
        self,
        router: NodeRouter,
        legacy_executor: LegacyExecutor,
        dynamic_executor: DynamicExecutor,
        context: ExecutionContext | None = None,
        handlers: HandlerRegistry | None = None,
    ):
        self._router = router
        self._legacy = legacy_executor
        self._dynamic = dynamic_executor
        self._handlers = handlers
        self.context = context or ExecutionContext()

    # ------------------------------------------------------------------
    # Single node
    # ------------------------------------------------------------------

    async def execute(
        self,
        node: Node | dict[str, Any],
        input_data: Any,
        routing: RoutingDecision | dict[str, Any] | None,
        options: ExecutionOptions | dict[str, Any] | None = None,
    ) -> ExecutionResult:
        start = time.perf_counter()
        dispatched_to: ManagerKind | None = None
        node_id = node.get("id") if isinstance(node, dict) else getattr(node, "id", None)

        try:
            if node is None:
                raise ValueError("node is required")
            node = node if isinstance(node, Node) else Node.model_validate(node)
            if routing is None:
                raise ValueError("routing decision is required")
            routing = _coerce_routing(routing)
            if options is None:
                options = ExecutionOptions()
            elif not isinstance(options, ExecutionOptions):
                options = ExecutionOptions.model_validate(options)

            if routing.manager == "legacy":
                dispatched_to = "legacy"
                result = await self._legacy.execute(node, input_data, routing, options)
            elif routing.manager == "dynamic":
                dispatched_to = "dynamic"
                result = await self._dynamic.execute(node, input_data, routing, options)
            else:
                raise UnsupportedRouterError(f"unsupported router manager: {routing.manager}")
        except Exception as e:
            elapsed_ms = _elapsed_ms(start)
            message = str(e) or type(e).__name__
            if dispatched_to is not None:
                message = f"{dispatched_to} node execution failed: {message}"
            logger.error("Node %s failed after %dms: %s", node_id, elapsed_ms, message)
            self.context.record(dispatched_to, False, elapsed_ms)
            return ExecutionResult(
                success=False,
                data=None,
                error=message,
                execution_time=elapsed_ms,
                source=SOURCE,
            )

        elapsed_ms = _elapsed_ms(start)
        result = result.model_copy(update={"execution_time": elapsed_ms})
        self.context.record(dispatched_to, result.success, elapsed_ms)
        logger.info(
            "Node %s (%s) %s in %dms",
            node.id,
            node.type,
            "succeeded" if result.success else "failed",
            elapsed_ms,
        )
        return result

    def get_node_routing(self, node_type: str) -> RoutingDecision:
        return self._router.route(node_type)

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    @staticmethod
    def should_continue_on_error(node: Node, options: WorkflowOptions) -> bool:
        if options.continue_on_error:
            return True
        return node.type in CONTINUABLE_NODE_TYPES

    async def execute_workflow(
        self,
        nodes: Sequence[Node | dict[str, Any]],
        options: WorkflowOptions | dict[str, Any] | None = None,
    ) -> WorkflowResult:
        """
        Run nodes strictly in order, feeding each step the previous step's data.

        A failed step leaves the carried data unchanged. When a failed step
        cannot be continued past, WorkflowAbortedError is raised carrying the
        summaries of every step run so far (the failed one included).
        """
        if not nodes:
            raise ValueError("workflow has no nodes")
        if options is None:
            options = WorkflowOptions()
        elif not isinstance(options, WorkflowOptions):
            options = WorkflowOptions.model_validate(options)
        nodes = [n if isinstance(n, Node) else Node.model_validate(n) for n in nodes]

        workflow_id = options.workflow_id or f"workflow_{int(time.time() * 1000)}"
        logger.info("Starting workflow %s with %d steps", workflow_id, len(nodes))

        execution_results: list[StepSummary] = []
        carried: Any = None
        success_count = 0

        for index, node in enumerate(nodes):
            step_number = index + 1
            routing = self.get_node_routing(node.type)
            result = await self.execute(
                node,
                carried,
                routing,
                ExecutionOptions(
                    system_config=options.system_config,
                    user_config=options.user_config,
                    step_number=step_number,
                    workflow_id=workflow_id,
                ),
            )
            summary = StepSummary(
                node_id=node.id,
                step_number=step_number,
                node_type=node.type,
                success=result.success,
                execution_time=result.execution_time,
                error=None if result.success else result.error,
            )
            execution_results.append(summary)
            await _notify(options.on_step_complete, summary)

            if result.success:
                success_count += 1
                carried = result.data
                continue

            await _notify(options.on_step_error, summary)
            if self.should_continue_on_error(node, options):
                logger.warning(
                    "Workflow %s: step %d (%s) failed, continuing: %s",
                    workflow_id,
                    step_number,
                    node.type,
                    result.error,
                )
                continue

            logger.error(
                "Workflow %s aborted at step %d (%s): %s",
                workflow_id,
                step_number,
                node.type,
                result.error,
            )
            raise WorkflowAbortedError(
                f"step {step_number} ({node.type}) failed, aborting workflow: {result.error}",
                execution_results,
            )

        logger.info(
            "Workflow %s finished: %d/%d steps succeeded",
            workflow_id,
            success_count,
            len(nodes),
        )
        return WorkflowResult(
            success=success_count > 0,
            workflow_id=workflow_id,
            total_steps=len(nodes),
            success_count=success_count,
            failure_count=len(nodes) - success_count,
            final_result=carried,
            execution_results=execution_results,
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def _run_batch_entry(self, index: int, entry: BatchEntry, delay: float) -> BatchItemResult:
        if delay > 0:
            await asyncio.sleep(delay)
        routing = self.get_node_routing(entry.node.type)
        result = await self.execute(entry.node, entry.input_data, routing, entry.options)
        return BatchItemResult(index=index, success=result.success, result=result)

    async def execute_batch(
        self,
        entries: Sequence[BatchEntry | dict[str, Any]],
        options: BatchOptions | dict[str, Any] | None = None,
    ) -> BatchResult:
        if not entries:
            raise ValueError("batch has no entries")
        if options is None:
            options = BatchOptions()
        elif not isinstance(options, BatchOptions):
            options = BatchOptions.model_validate(options)
        entries = [e if isinstance(e, BatchEntry) else BatchEntry.model_validate(e) for e in entries]

        items: list[BatchItemResult] = []
        if options.parallel:
            stagger = (
                options.stagger_seconds
                if options.stagger_seconds is not None
                else MediaflowConfig.BATCH_STAGGER_SECONDS
            )
            outcomes = await asyncio.gather(
                *(
                    self._run_batch_entry(index, entry, index * stagger)
                    for index, entry in enumerate(entries)
                ),
                return_exceptions=True,
            )
            for index, outcome in enumerate(outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Batch entry %d raised: %s", index, outcome)
                    items.append(
                        BatchItemResult(
                            index=index,
                            success=False,
                            error=str(outcome) or type(outcome).__name__,
                        )
                    )
                else:
                    items.append(outcome)
        else:
            for index, entry in enumerate(entries):
                try:
                    items.append(await self._run_batch_entry(index, entry, 0))
                except Exception as e:
                    logger.error("Batch entry %d raised: %s", index, e)
                    items.append(BatchItemResult(index=index, success=False, error=str(e) or type(e).__name__))

        success_count = sum(1 for item in items if item.success)
        logger.info("Batch finished: %d/%d entries succeeded", success_count, len(entries))
        return BatchResult(
            success=success_count > 0,
            total_count=len(entries),
            success_count=success_count,
            failure_count=len(entries) - success_count,
            results=items,
        )

    # ------------------------------------------------------------------
    # Statistics and health
    # ------------------------------------------------------------------

    def get_execution_stats(self) -> dict[str, Any]:
        return self.context.stats.snapshot()

    def reset_stats(self) -> None:
        self.context.reset()
        logger.info("Execution statistics reset")

    def get_health_status(self) -> dict[str, Any]:
        error_rate = self.context.stats.error_rate
        status = "healthy"
        issues: list[str] = []
        warnings: list[str] = []

        if error_rate > MediaflowConfig.HEALTH_CRITICAL_ERROR_RATE:
            status = "critical"
            issues.append(f"execution error rate too high: {error_rate:.2f}%")
        elif error_rate > MediaflowConfig.HEALTH_WARNING_ERROR_RATE:
            status = "warning"
            warnings.append(f"execution error rate elevated: {error_rate:.2f}%")

        legacy_health = self._legacy.check_health()
        dynamic_health = self._dynamic.check_health()
        warnings.extend(legacy_health["issues"])
        warnings.extend(dynamic_health["issues"])

        return {
            "status": status,
            "issues": issues,
            "warnings": warnings,
            "stats": self.get_execution_stats(),
            "capabilities": {
                "legacy_node_types": legacy_health["supported_node_types"],
                "dynamic_node_types": dynamic_health["supported_node_types"],
                "handlers": self._handlers.names() if self._handlers is not None else [],
            },
        }


def create_execution_manager(
    node_registry: NodeConfigRegistry | None,
    handler_registry: HandlerRegistry | None = None,
    context: ExecutionContext | None = None,
) -> ExecutionManager:
    """Build the router, executors and manager around one handler registry."""
    handlers = handler_registry if handler_registry is not None else HandlerRegistry()
    register_builtin_handlers(handlers, replace=False)

    if node_registry is None:
        node_registry = InMemoryNodeConfigRegistry()

    return ExecutionManager(
        router=NodeRouter(node_registry),
        legacy_executor=LegacyExecutor(handlers),
        dynamic_executor=DynamicExecutor(node_registry, handlers),
        context=context,
        handlers=handlers,
    )
