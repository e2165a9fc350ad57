"""
Adapter pipeline: the three-phase contract every node execution goes through.

    preprocess_input  -> HandlerInput (node params merged with user config)
    execute           -> named handler, bounded by timeout, optional retry
    postprocess_output -> WorkflowData envelope

Only ``process`` is meant to be called from outside. It never raises; any
stage failure becomes a failed ExecutionResult carrying an error envelope.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from mediaflow.config import MediaflowConfig
from mediaflow.models.execution import ExecutionResult
from mediaflow.models.node import AdapterConfig, HandlerInput
from mediaflow.models.workflow_data import WorkflowData
from mediaflow.services.errors import (
    HandlerExecutionError,
    HandlerNotFoundError,
    HandlerTimeoutError,
)
from mediaflow.services.handler_registry import Handler, HandlerRegistry

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    CREATED = "created"
    PREPROCESSING = "preprocessing"
    EXECUTING = "executing"
    POSTPROCESSING = "postprocessing"
    COMPLETED = "completed"
    FAILED = "failed"


class AdapterPipeline:
    def __init__(self, config: AdapterConfig, handlers: HandlerRegistry):
        self.config = config
        self._handlers = handlers
        self.state = PipelineState.CREATED
        self.attempts = 0

    def _set_state(self, state: PipelineState) -> None:
        logger.debug(
            "[%s:%s] %s -> %s",
            self.config.node_type,
            self.config.node_data.id,
            self.state.value,
            state.value,
        )
        self.state = state

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def preprocess_input(self, raw_input: Any) -> HandlerInput:
        self._set_state(PipelineState.PREPROCESSING)
        user_config = {**self.config.node_data.data, **self.config.user_config}
        return HandlerInput(
            workflow_data=raw_input,
            user_config=user_config,
            node_config=self.config.node_config,
        )

    async def execute(self, handler_input: HandlerInput) -> Any:
        self._set_state(PipelineState.EXECUTING)
        descriptor = self.config.executor_config
        handler = self._handlers.get(descriptor.handler)
        if handler is None:
            raise HandlerNotFoundError(descriptor.handler)

        attempt = 0
        while True:
            self.attempts = attempt + 1
            try:
                return await self._invoke(handler, handler_input)
            except (HandlerTimeoutError, HandlerExecutionError) as e:
                if attempt >= descriptor.retry:
                    raise
                delay = MediaflowConfig.retry_delay(attempt)
                logger.warning(
                    "%s (attempt %d/%d), retrying in %.2fs",
                    e,
                    attempt + 1,
                    descriptor.retry + 1,
                    delay,
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def _invoke(self, handler: Handler, handler_input: HandlerInput) -> Any:
        descriptor = self.config.executor_config

        async def run() -> Any:
            try:
                return await handler(handler_input)
            except asyncio.TimeoutError as e:
                # Raised by the handler itself, not by the wait_for deadline
                raise HandlerExecutionError(descriptor.handler, str(e) or type(e).__name__) from e

        try:
            return await asyncio.wait_for(run(), timeout=descriptor.timeout)
        except HandlerExecutionError:
            raise
        except asyncio.TimeoutError as e:
            raise HandlerTimeoutError(descriptor.handler, descriptor.timeout) from e
        except Exception as e:
            raise HandlerExecutionError(descriptor.handler, str(e) or type(e).__name__) from e

    def postprocess_output(self, raw_output: Any) -> WorkflowData:
        self._set_state(PipelineState.POSTPROCESSING)
        metadata = {
            "source": self.config.source,
            "executed_at": datetime.now(timezone.utc).isoformat(),
            "node_type": self.config.node_type,
            "node_id": self.config.node_data.id,
            **self.config.node_config.metadata,
        }
        return WorkflowData.normalize(raw_output, self.config.node_type, metadata)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def process(self, raw_input: Any) -> ExecutionResult:
        start = time.perf_counter()
        try:
            handler_input = self.preprocess_input(raw_input)
            raw_output = await self.execute(handler_input)
            data = self.postprocess_output(raw_output)
        except Exception as e:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            failed_stage = self.state.value
            self._set_state(PipelineState.FAILED)
            message = str(e) or type(e).__name__
            logger.error(
                "[%s:%s] failed during %s: %s",
                self.config.node_type,
                self.config.node_data.id,
                failed_stage,
                message,
            )
            return ExecutionResult(
                success=False,
                error=message,
                data=WorkflowData.create_error(
                    message,
                    {
                        "source": self.config.source,
                        "node_type": self.config.node_type,
                        "node_id": self.config.node_data.id,
                        "stage": failed_stage,
                    },
                ),
                execution_time=elapsed_ms,
                source=self.config.source,
            )

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        self._set_state(PipelineState.COMPLETED)
        logger.info(
            "[%s:%s] completed in %dms",
            self.config.node_type,
            self.config.node_data.id,
            elapsed_ms,
        )
        return ExecutionResult(
            success=True,
            data=data,
            execution_time=elapsed_ms,
            source=self.config.source,
        )
