"""
Legacy executor: hand-coded execution for the original built-in node types.

The configuration table below is fixed. New node types go through node
configurations and the dynamic executor, never here.
"""

from __future__ import annotations

import logging
import re
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
from mediaflow.services.errors import LegacyExecutionError, NodeConfigurationError
from mediaflow.services.handler_registry import HandlerRegistry

logger = logging.getLogger(__name__)

SOURCE = "legacy_executor"

LEGACY_NODE_CONFIGS: dict[str, NodeConfiguration] = {
    "text-input": NodeConfiguration(
        node_type="text-input",
        manager="legacy",
        execution=ExecutionDescriptor(handler="text_input_handler", timeout=5),
        metadata={"label": "Text Input", "category": "input"},
    ),
    "tts": NodeConfiguration(
        node_type="tts",
        manager="legacy",
        execution=ExecutionDescriptor(type="api", handler="tts_synthesize_handler", timeout=60),
        metadata={"label": "Speech Synthesis", "category": "processor"},
    ),
    "download": NodeConfiguration(
        node_type="download",
        manager="legacy",
        execution=ExecutionDescriptor(handler="download_handler", timeout=10),
        metadata={"label": "Download", "category": "output"},
    ),
    "output": NodeConfiguration(
        node_type="output",
        manager="legacy",
        execution=ExecutionDescriptor(handler="output_handler", timeout=5),
        metadata={"label": "Output", "category": "output"},
    ),
}

_ILLEGAL_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')


class LegacyExecutor:
    def __init__(self, handlers: HandlerRegistry):
        self._handlers = handlers

    async def execute(
        self,
        node: Node,
        input_data: Any,
        routing: RoutingDecision | None = None,
        options: ExecutionOptions | None = None,
    ) -> ExecutionResult:
        options = options or ExecutionOptions()
        if node.type not in LEGACY_NODE_CONFIGS:
            raise NodeConfigurationError(f"unsupported legacy node type: {node.type}")

        logger.info("Executing legacy node %s (%s)", node.id, node.type)
        try:
            node_config = LEGACY_NODE_CONFIGS[node.type]
            user_config = self.prepare_user_config(node, options)
            for problem in validate_legacy_config(node.type, user_config):
                logger.warning("[%s:%s] %s", node.type, node.id, problem)

            descriptor = node_config.execution
            if descriptor.type == "api":
                descriptor = descriptor.model_copy(update={"endpoint": user_config.get("tts_api_url")})

            adapter_config = AdapterConfig(
                node_config=node_config,
                node_data=node,
                system_config=options.system_config,
                user_config=user_config,
                executor_config=descriptor,
                source=SOURCE,
                node_type=node.type,
            )
        except Exception as e:
            logger.error("Failed to prepare legacy node %s: %s", node.type, e)
            raise LegacyExecutionError(f"[{node.type}] {e}") from e

        pipeline = AdapterPipeline(adapter_config, self._handlers)
        return await pipeline.process(input_data)

    def prepare_user_config(self, node: Node, options: ExecutionOptions) -> dict[str, Any]:
        config = {**node.data, **options.user_config}
        if node.type == "tts":
            return self._prepare_tts_config(config, options.system_config)
        if node.type == "download":
            return self._prepare_download_config(config)
        return config

    @staticmethod
    def _prepare_tts_config(config: dict[str, Any], system_config: dict[str, Any]) -> dict[str, Any]:
        return {
            **config,
            "tts_api_url": MediaflowConfig.get_tts_url(
                config.get("tts_api_url") or system_config.get("tts_api_url")
            ),
            "mode": config.get("mode") or "character",
            "selected_character": config.get("selected_character") or config.get("character"),
        }

    @staticmethod
    def _prepare_download_config(config: dict[str, Any]) -> dict[str, Any]:
        return {
            **config,
            "auto_download": bool(config.get("auto_download", False)),
            "custom_file_name": config.get("custom_file_name") or "",
            "download_format": config.get("download_format") or "auto",
            "show_progress": config.get("show_progress") is not False,
            "allow_retry": config.get("allow_retry") is not False,
        }

    @staticmethod
    def get_supported_node_types() -> list[str]:
        return list(LEGACY_NODE_CONFIGS)

    def check_health(self) -> dict[str, Any]:
        issues = [
            f"{node_type}: handler '{config.execution.handler}' is not registered"
            for node_type, config in LEGACY_NODE_CONFIGS.items()
            if not self._handlers.has(config.execution.handler)
        ]
        return {
            "status": "degraded" if issues else "healthy",
            "issues": issues,
            "supported_node_types": self.get_supported_node_types(),
        }


def validate_legacy_config(node_type: str, config: dict[str, Any]) -> list[str]:
    """Return human-readable problems with a legacy node's configuration."""
    errors: list[str] = []
    if node_type == "text-input":
        text = config.get("text")
        if not isinstance(text, str) or not text.strip():
            errors.append("text input node has no text")
    elif node_type == "tts":
        if not config.get("mode"):
            errors.append("tts node has no mode")
        if config.get("mode") == "character" and not config.get("selected_character"):
            errors.append("character mode requires a selected character")
        if not config.get("tts_api_url"):
            errors.append("tts node has no API URL")
    elif node_type == "download":
        file_name = config.get("custom_file_name")
        if file_name and _ILLEGAL_FILENAME_CHARS.search(file_name):
            errors.append("custom file name contains illegal characters")
    return errors
