"""
Exception taxonomy for node execution.

Configuration errors are fatal for a node and never retried. Timeout and
handler errors are raised inside the adapter pipeline and converted into
failed results there. Workflow aborts unwind ``execute_workflow``.
"""

from __future__ import annotations

from typing import Any


class MediaflowError(RuntimeError):
    """Base class for all execution errors."""


class NodeConfigurationError(MediaflowError):
    """Missing or unusable node configuration."""


class HandlerNotFoundError(NodeConfigurationError):
    """The execution descriptor names a handler that is not registered."""

    def __init__(self, handler_name: str):
        self.handler_name = handler_name
        super().__init__(f"Handler '{handler_name}' is not registered")


class HandlerTimeoutError(MediaflowError):
    """A handler did not settle within its configured timeout."""

    def __init__(self, handler_name: str, timeout: float):
        self.handler_name = handler_name
        self.timeout = timeout
        super().__init__(f"Handler '{handler_name}' timed out after {timeout:g}s")


class HandlerExecutionError(MediaflowError):
    """A handler raised while processing its input."""

    def __init__(self, handler_name: str, message: str):
        self.handler_name = handler_name
        super().__init__(f"Handler '{handler_name}' failed: {message}")


class DynamicExecutionError(MediaflowError):
    """Dynamic node could not be prepared for execution."""


class LegacyExecutionError(MediaflowError):
    """Legacy node could not be prepared for execution."""


class UnsupportedRouterError(MediaflowError):
    """Routing decision names a manager that does not exist."""


class WorkflowAbortedError(MediaflowError):
    """A non-continuable step failed and stopped the workflow."""

    def __init__(self, message: str, execution_results: list[Any] | None = None):
        super().__init__(message)
        self.execution_results = list(execution_results or [])
