"""Handler for the built-in ``output`` node: shows whatever arrives."""

from __future__ import annotations

from typing import Any

from mediaflow.models.node import HandlerInput
from mediaflow.models.workflow_data import WorkflowData


async def output_handler(handler_input: HandlerInput) -> Any:
    if handler_input.workflow_data is None:
        return WorkflowData.create_text("no input data", {"source": "output"})
    return handler_input.workflow_data
