"""Text clean-up handler."""

from __future__ import annotations

import logging
import re

from mediaflow.models.node import HandlerInput
from mediaflow.models.workflow_data import extract_text

logger = logging.getLogger(__name__)

_EMPTY_LINE = re.compile(r"^\s*\n", re.MULTILINE)


async def text_process_handler(handler_input: HandlerInput) -> str:
    text = extract_text(handler_input.workflow_data) or ""
    original_length = len(text)
    config = handler_input.user_config

    if config.get("remove_empty_lines"):
        text = _EMPTY_LINE.sub("", text)
    if config.get("trim_whitespace"):
        text = text.strip()
    max_length = config.get("max_length")
    if max_length and len(text) > int(max_length):
        text = text[: int(max_length)]

    logger.debug("Processed text: %d -> %d characters", original_length, len(text))
    return text
