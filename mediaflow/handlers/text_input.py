"""Handler for the built-in ``text-input`` node."""

from __future__ import annotations

from mediaflow.models.node import HandlerInput
from mediaflow.models.workflow_data import WorkflowData


async def text_input_handler(handler_input: HandlerInput) -> WorkflowData:
    text = handler_input.user_config.get("text") or ""
    if not isinstance(text, str) or not text.strip():
        raise ValueError("text input node has no text")
    return WorkflowData.create_text(text, {"source": "text-input", "length": len(text)})
