"""Registration of the handlers that ship with mediaflow."""

from __future__ import annotations

from mediaflow.config import MediaflowConfig
from mediaflow.handlers.asr_transcribe import asr_transcribe_handler
from mediaflow.handlers.download import download_handler
from mediaflow.handlers.generic import generic_processor
from mediaflow.handlers.media_input import media_input_handler
from mediaflow.handlers.output import output_handler
from mediaflow.handlers.text_input import text_input_handler
from mediaflow.handlers.text_process import text_process_handler
from mediaflow.handlers.tts import tts_synthesize_handler
from mediaflow.models.node import ExecutionDescriptor, NodeConfiguration
from mediaflow.services.handler_registry import Handler, HandlerRegistry

BUILTIN_HANDLERS: dict[str, Handler] = {
    # Dynamic node handlers
    "asr_transcribe_handler": asr_transcribe_handler,
    "media_input_handler": media_input_handler,
    "text_process_handler": text_process_handler,
    MediaflowConfig.DEFAULT_HANDLER: generic_processor,
    # Legacy node handlers
    "text_input_handler": text_input_handler,
    "output_handler": output_handler,
    "tts_synthesize_handler": tts_synthesize_handler,
    "download_handler": download_handler,
}


def register_builtin_handlers(registry: HandlerRegistry, replace: bool = True) -> HandlerRegistry:
    """Add the built-in handlers; with ``replace=False`` existing names are kept."""
    for name, fn in BUILTIN_HANDLERS.items():
        if replace or not registry.has(name):
            registry.add(name, fn)
    return registry


# Dynamic node types available without any external configuration
BUILTIN_NODE_CONFIGS: list[NodeConfiguration] = [
    NodeConfiguration(
        node_type="media-input",
        execution=ExecutionDescriptor(handler="media_input_handler", timeout=60),
        metadata={"label": "Media Input", "category": "input"},
    ),
    NodeConfiguration(
        node_type="asr-node",
        execution=ExecutionDescriptor(type="api", handler="asr_transcribe_handler", timeout=120),
        metadata={"label": "Speech Recognition", "category": "processor"},
    ),
    NodeConfiguration(
        node_type="text-process",
        execution=ExecutionDescriptor(handler="text_process_handler", timeout=10),
        metadata={"label": "Text Processing", "category": "processor"},
    ),
]
