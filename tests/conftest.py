"""
Shared fixtures: a handler registry with mock handlers and a node
configuration registry describing dynamic node types that use them.
"""

import asyncio
from typing import Any

import pytest

from mediaflow.models.node import ExecutionDescriptor, HandlerInput, NodeConfiguration
from mediaflow.models.workflow_data import extract_text
from mediaflow.services.execution_manager import ExecutionManager, create_execution_manager
from mediaflow.services.handler_registry import HandlerRegistry
from mediaflow.services.node_config_registry import InMemoryNodeConfigRegistry


@pytest.fixture
def handlers() -> HandlerRegistry:
    registry = HandlerRegistry()

    @registry.register("echo")
    async def _echo(handler_input: HandlerInput) -> Any:
        """Mock handler that passes its input through."""
        return handler_input.workflow_data

    @registry.register("uppercase")
    async def _uppercase(handler_input: HandlerInput) -> str:
        """Mock processor that upper-cases upstream text."""
        return (extract_text(handler_input.workflow_data) or "").upper()

    @registry.register("explode")
    async def _explode(handler_input: HandlerInput) -> Any:
        """Mock handler that always fails."""
        raise RuntimeError("boom")

    @registry.register("slow")
    async def _slow(handler_input: HandlerInput) -> str:
        """Mock handler that outlives its timeout."""
        await asyncio.sleep(5)
        return "late"

    return registry


@pytest.fixture
def node_registry() -> InMemoryNodeConfigRegistry:
    return InMemoryNodeConfigRegistry(
        [
            NodeConfiguration(node_type="echo-node", execution=ExecutionDescriptor(handler="echo")),
            NodeConfiguration(node_type="upper-node", execution=ExecutionDescriptor(handler="uppercase")),
            NodeConfiguration(node_type="transform", execution=ExecutionDescriptor(handler="explode")),
            NodeConfiguration(
                node_type="slow-node",
                execution=ExecutionDescriptor(handler="slow", timeout=0.1),
            ),
            # No execution block: falls back to the generic processor
            NodeConfiguration(node_type="bare-node"),
        ]
    )


@pytest.fixture
def manager(node_registry, handlers) -> ExecutionManager:
    return create_execution_manager(node_registry, handlers)
