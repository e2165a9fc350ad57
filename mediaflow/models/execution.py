"""
Execution result models returned by the execution manager.
"""

from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from mediaflow.models.node import Node


class ExecutionResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Any = None
    error: str | None = None
    execution_time: int | None = None  # ms
    source: str | None = None


class ExecutionOptions(BaseModel):
    system_config: dict[str, Any] = Field(default_factory=dict)
    user_config: dict[str, Any] = Field(default_factory=dict)
    step_number: int | None = None
    workflow_id: str | None = None


class StepSummary(BaseModel):
    node_id: str
    step_number: int
    node_type: str
    success: bool
    execution_time: int | None = None
    error: str | None = None


class WorkflowOptions(BaseModel):
    workflow_id: str | None = None
    continue_on_error: bool = False
    on_step_complete: Callable[[StepSummary], Any] | None = None
    on_step_error: Callable[[StepSummary], Any] | None = None
    system_config: dict[str, Any] = Field(default_factory=dict)
    user_config: dict[str, Any] = Field(default_factory=dict)


class WorkflowResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    workflow_id: str
    total_steps: int
    success_count: int
    failure_count: int
    final_result: Any = None
    execution_results: list[StepSummary]


class BatchEntry(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    node: Node
    input_data: Any = None
    options: ExecutionOptions | None = None


class BatchOptions(BaseModel):
    parallel: bool = False
    stagger_seconds: float | None = Field(default=None, ge=0)


class BatchItemResult(BaseModel):
    index: int
    success: bool
    result: ExecutionResult | None = None
    error: str | None = None


class BatchResult(BaseModel):
    success: bool
    total_count: int
    success_count: int
    failure_count: int
    results: list[BatchItemResult]


class ExecutionStats(BaseModel):
    total_executions: int = 0
    legacy_executions: int = 0
    dynamic_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_execution_time: float = 0.0  # ms, streaming mean

    def _rate(self, count: int) -> int:
        if self.total_executions == 0:
            return 0
        return round(count / self.total_executions * 100)

    @property
    def success_rate(self) -> int:
        return self._rate(self.successful_executions)

    @property
    def legacy_rate(self) -> int:
        return self._rate(self.legacy_executions)

    @property
    def dynamic_rate(self) -> int:
        return self._rate(self.dynamic_executions)

    @property
    def error_rate(self) -> float:
        if self.total_executions == 0:
            return 0.0
        return self.failed_executions / self.total_executions * 100

    def snapshot(self) -> dict[str, Any]:
        """Read-only view including the derived rates."""
        return {
            **self.model_dump(),
            "success_rate": self.success_rate,
            "legacy_rate": self.legacy_rate,
            "dynamic_rate": self.dynamic_rate,
        }
