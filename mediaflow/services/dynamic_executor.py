"""
Dynamic executor: runs node types described by an external node configuration.

Steps per execution:
1. resolve the NodeConfiguration from the registry
2. extract the execution descriptor (synthesized default when absent)
3. build the AdapterConfig
4. run the adapter pipeline
"""

from __future__ import annotations

import logging
from typing import Any

from mediaflow.config import MediaflowConfig
from mediaflow.models.execution import ExecutionOptions, ExecutionResult
from mediaflow.models.node import (
    AdapterConfig,
    ExecutionDescriptor,
    Node,
    NodeConfiguration,
    RoutingDecision,
)
from mediaflow.services.adapter_pipeline import AdapterPipeline
from mediaflow.services.errors import DynamicExecutionError, NodeConfigurationError
from mediaflow.services.handler_registry import HandlerRegistry
from mediaflow.services.node_config_registry import NodeConfigRegistry

logger = logging.getLogger(__name__)

SOURCE = "dynamic_executor"


class DynamicExecutor:
    def __init__(self, registry: NodeConfigRegistry, handlers: HandlerRegistry):
        self._registry = registry
        self._handlers = handlers

    async def execute(
        self,
        node: Node,
        input_data: Any,
        routing: RoutingDecision | None = None,
        options: ExecutionOptions | None = None,
    ) -> ExecutionResult:
        options = options or ExecutionOptions()
        logger.info("Executing dynamic node %s (%s)", node.id, node.type)

        try:
            node_config = self.get_node_config(node.type)
            descriptor = self.extract_executor_config(node_config)
            adapter_config = AdapterConfig(
                node_config=node_config,
                node_data=node,
                system_config=options.system_config,
                user_config=options.user_config,
                executor_config=descriptor,
                source=SOURCE,
                node_type=node.type,
            )
        except DynamicExecutionError:
            raise
        except Exception as e:
            logger.error("Failed to prepare dynamic node %s: %s", node.type, e)
            raise DynamicExecutionError(f"[{node.type}] {e}") from e

        pipeline = AdapterPipeline(adapter_config, self._handlers)
        return await pipeline.process(input_data)

    def get_node_config(self, node_type: str) -> NodeConfiguration:
        node_config = self._registry.get_full_node_config(node_type)
        if node_config is None:
            raise NodeConfigurationError(f"node configuration not found: {node_type}")
        return node_config

    @staticmethod
    def extract_executor_config(node_config: NodeConfiguration) -> ExecutionDescriptor:
        if node_config.execution is None:
            logger.warning(
                "Node type %s has no execution descriptor, using %s",
                node_config.node_type,
                MediaflowConfig.DEFAULT_HANDLER,
            )
            return ExecutionDescriptor(
                type="local",
                handler=MediaflowConfig.DEFAULT_HANDLER,
                timeout=MediaflowConfig.DEFAULT_TIMEOUT,
            )
        return node_config.execution.model_copy()

    def get_supported_node_types(self) -> list[str]:
        try:
            registered = self._registry.get_all_registered_types()
        except Exception as e:
            logger.error("Could not list registered node types: %s", e)
            return []
        supported = []
        for node_type in registered:
            config = self._registry.get_full_node_config(node_type)
            if config is not None and config.manager == "dynamic":
                supported.append(node_type)
        return supported

    def is_dynamic_node_type(self, node_type: str) -> bool:
        return node_type in self.get_supported_node_types()

    def check_health(self) -> dict[str, Any]:
        """Report node types whose configured handler is not registered."""
        issues: list[str] = []
        supported = self.get_supported_node_types()
        for node_type in supported:
            config = self._registry.get_full_node_config(node_type)
            handler = (
                config.execution.handler
                if config is not None and config.execution is not None
                else MediaflowConfig.DEFAULT_HANDLER
            )
            if not self._handlers.has(handler):
                issues.append(f"{node_type}: handler '{handler}' is not registered")
        return {
            "status": "degraded" if issues else "healthy",
            "issues": issues,
            "supported_node_types": supported,
        }
