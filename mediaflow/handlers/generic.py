"""Fallback handler for dynamic node types configured without an execution block."""

from __future__ import annotations

import logging
from typing import Any

from mediaflow.models.node import HandlerInput

logger = logging.getLogger(__name__)


async def generic_processor(handler_input: HandlerInput) -> Any:
    logger.debug("Generic processor for %s", handler_input.node_config.node_type)
    if handler_input.workflow_data is None:
        return {"config": dict(handler_input.user_config)}
    return handler_input.workflow_data
