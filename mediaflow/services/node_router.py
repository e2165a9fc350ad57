"""
Node router: decides which executor runs a node type.

Registered node types are routed by the manager kind recorded in their
configuration. Anything else falls back to a fixed allow-list of legacy
types; that path is logged and reported with lower confidence.
"""

from __future__ import annotations

import logging

from mediaflow.models.node import RoutingDecision
from mediaflow.services.node_config_registry import NodeConfigRegistry

logger = logging.getLogger(__name__)

LEGACY_NODE_TYPES = frozenset({"tts", "download", "text-input", "output"})


class NodeRouter:
    def __init__(self, registry: NodeConfigRegistry | None = None):
        self._registry = registry

    def route(self, node_type: str) -> RoutingDecision:
        if self._registry is not None:
            try:
                if node_type in self._registry.get_all_registered_types():
                    config = self._registry.get_full_node_config(node_type)
                    if config is not None:
                        logger.debug("Routing %s -> %s (registry)", node_type, config.manager)
                        return RoutingDecision(
                            manager=config.manager, confidence=1.0, source="registry"
                        )
            except Exception as e:
                logger.warning("Node registry lookup failed for %s: %s", node_type, e)

        manager = "legacy" if node_type in LEGACY_NODE_TYPES else "dynamic"
        logger.warning("Routing %s -> %s (fallback, not in registry)", node_type, manager)
        return RoutingDecision(manager=manager, confidence=0.5, source="fallback")
