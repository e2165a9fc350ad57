from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from mediaflow.models.execution import (
    BatchEntry,
    BatchOptions,
    BatchResult,
    ExecutionOptions,
    ExecutionResult,
    WorkflowOptions,
    WorkflowResult,
)
from mediaflow.models.node import Node, RoutingDecision
from mediaflow.services.errors import WorkflowAbortedError
from mediaflow.services.execution_manager import ExecutionManager

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/execution", tags=["execution"])


def get_execution_manager(request: Request) -> ExecutionManager:
    manager = getattr(request.app.state, "execution_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Execution manager is not initialized.")
    return manager


class ExecuteRequest(BaseModel):
    node: Node
    input_data: Any = None
    # Routed through the node router when omitted
    routing: RoutingDecision | None = None
    options: ExecutionOptions | None = None


class WorkflowRequest(BaseModel):
    nodes: list[Node]
    workflow_id: str | None = None
    continue_on_error: bool = False
    system_config: dict[str, Any] = Field(default_factory=dict)
    user_config: dict[str, Any] = Field(default_factory=dict)


class BatchRequest(BaseModel):
    entries: list[BatchEntry]
    parallel: bool = False
    stagger_seconds: float | None = Field(default=None, ge=0)


@router.post("/execute", response_model=ExecutionResult)
async def execute_node(
    request: ExecuteRequest,
    manager: ExecutionManager = Depends(get_execution_manager),
):
    routing = request.routing or manager.get_node_routing(request.node.type)
    return await manager.execute(request.node, request.input_data, routing, request.options)


@router.post("/workflows", response_model=WorkflowResult)
async def execute_workflow(
    request: WorkflowRequest,
    manager: ExecutionManager = Depends(get_execution_manager),
):
    options = WorkflowOptions(
        workflow_id=request.workflow_id,
        continue_on_error=request.continue_on_error,
        system_config=request.system_config,
        user_config=request.user_config,
    )
    try:
        return await manager.execute_workflow(request.nodes, options)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except WorkflowAbortedError as exc:
        logger.warning("Workflow aborted: %s", exc)
        raise HTTPException(
            status_code=409,
            detail={
                "message": str(exc),
                "execution_results": [
                    summary.model_dump() for summary in exc.execution_results
                ],
            },
        ) from exc


@router.post("/batch", response_model=BatchResult)
async def execute_batch(
    request: BatchRequest,
    manager: ExecutionManager = Depends(get_execution_manager),
):
    options = BatchOptions(parallel=request.parallel, stagger_seconds=request.stagger_seconds)
    try:
        return await manager.execute_batch(request.entries, options)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/routing/{node_type}", response_model=RoutingDecision)
async def get_routing(
    node_type: str,
    manager: ExecutionManager = Depends(get_execution_manager),
):
    return manager.get_node_routing(node_type)


@router.get("/stats")
async def get_stats(manager: ExecutionManager = Depends(get_execution_manager)) -> dict[str, Any]:
    return manager.get_execution_stats()


@router.post("/stats/reset")
async def reset_stats(manager: ExecutionManager = Depends(get_execution_manager)) -> dict[str, Any]:
    manager.reset_stats()
    return manager.get_execution_stats()


@router.get("/health")
async def get_health(manager: ExecutionManager = Depends(get_execution_manager)) -> dict[str, Any]:
    return manager.get_health_status()
