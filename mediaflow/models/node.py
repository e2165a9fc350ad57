"""
Node models: what a workflow step is and how it should be executed.

A Node is produced by the workflow definition; a NodeConfiguration is owned
by the node configuration registry and borrowed for one execution at a time.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ManagerKind = Literal["legacy", "dynamic"]
RoutingSource = Literal["registry", "fallback"]
ExecutionType = Literal["local", "api"]


class Node(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    # Parameters set on the node in the editor
    data: dict[str, Any] = Field(default_factory=dict)


class RoutingDecision(BaseModel):
    manager: ManagerKind
    confidence: float = Field(ge=0.0, le=1.0)
    source: RoutingSource


class ExecutionDescriptor(BaseModel):
    type: ExecutionType = "local"
    handler: str
    timeout: float = Field(default=30.0, gt=0)
    retry: int = Field(default=0, ge=0)
    endpoint: str | None = None
    method: str | None = None
    headers: dict[str, str] | None = None
    request_mapping: dict[str, Any] | None = None
    response_mapping: dict[str, Any] | None = None


class NodeConfiguration(BaseModel):
    node_type: str
    execution: ExecutionDescriptor | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    manager: ManagerKind = "dynamic"


class AdapterConfig(BaseModel):
    """Materialized configuration for one adapter pipeline run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    node_config: NodeConfiguration
    node_data: Node
    system_config: dict[str, Any] = Field(default_factory=dict)
    user_config: dict[str, Any] = Field(default_factory=dict)
    executor_config: ExecutionDescriptor
    source: str
    node_type: str


class HandlerInput(BaseModel):
    """The only shape a handler ever receives."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    workflow_data: Any = None
    user_config: dict[str, Any] = Field(default_factory=dict)
    node_config: NodeConfiguration
