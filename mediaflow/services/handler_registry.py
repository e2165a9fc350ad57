"""
Handler registry: maps handler names (as written in node configurations)
to async handler callables.

Each handler receives a HandlerInput and returns whatever output is natural
for it; the adapter pipeline normalizes the result afterwards.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from mediaflow.models.node import HandlerInput

logger = logging.getLogger(__name__)

Handler = Callable[[HandlerInput], Awaitable[Any]]


class HandlerRegistry:
    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, name: str):
        """
        Decorator that registers an async handler under ``name``.

        Usage:
            @registry.register("my_handler")
            async def my_handler(handler_input: HandlerInput) -> Any:
                return {"text": "..."}
        """
        def decorator(fn: Handler) -> Handler:
            self.add(name, fn)
            return fn
        return decorator

    def add(self, name: str, fn: Handler) -> None:
        if name in self._handlers and self._handlers[name] is not fn:
            logger.warning("Replacing handler '%s'", name)
        self._handlers[name] = fn

    def get(self, name: str) -> Handler | None:
        return self._handlers.get(name)

    def has(self, name: str) -> bool:
        return name in self._handlers

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)
