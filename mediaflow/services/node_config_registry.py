"""
Node configuration registry.

The execution core only needs two lookups from it; loading configuration
files is somebody else's job, so the in-memory implementation accepts
already-parsed configuration objects or dicts.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

from pydantic import ValidationError

from mediaflow.models.node import NodeConfiguration
from mediaflow.services.errors import NodeConfigurationError

logger = logging.getLogger(__name__)


class NodeConfigRegistry(Protocol):
    def get_full_node_config(self, node_type: str) -> NodeConfiguration | None: ...

    def get_all_registered_types(self) -> list[str]: ...


class InMemoryNodeConfigRegistry:
    def __init__(self, configs: Iterable[NodeConfiguration] | None = None) -> None:
        self._configs: dict[str, NodeConfiguration] = {}
        if configs:
            self.register_many(configs)

    def register(self, config: NodeConfiguration) -> None:
        if config.node_type in self._configs:
            logger.info("Overriding node configuration for '%s'", config.node_type)
        self._configs[config.node_type] = config

    def register_many(self, configs: Iterable[NodeConfiguration]) -> None:
        for config in configs:
            self.register(config)

    def load_configs(self, raw_configs: Iterable[dict[str, Any]]) -> list[str]:
        """Validate and register parsed configuration dicts; returns the node types loaded."""
        loaded: list[str] = []
        for raw in raw_configs:
            try:
                config = NodeConfiguration.model_validate(raw)
            except ValidationError as e:
                node_type = raw.get("node_type", "<unknown>") if isinstance(raw, dict) else "<unknown>"
                raise NodeConfigurationError(
                    f"Invalid node configuration for '{node_type}': {e}"
                ) from e
            self.register(config)
            loaded.append(config.node_type)
        logger.info("Loaded %d node configurations", len(loaded))
        return loaded

    def unregister(self, node_type: str) -> bool:
        return self._configs.pop(node_type, None) is not None

    def clear(self) -> None:
        self._configs.clear()

    def get_full_node_config(self, node_type: str) -> NodeConfiguration | None:
        return self._configs.get(node_type)

    def get_all_registered_types(self) -> list[str]:
        return list(self._configs)
