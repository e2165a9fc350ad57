"""Speech-to-text handler backed by the ASR HTTP service."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mediaflow.config import MediaflowConfig
from mediaflow.handlers import audio as audio_utils
from mediaflow.handlers.audio import AudioSourceError, extract_audio_source, to_binary_audio
from mediaflow.models.node import HandlerInput

logger = logging.getLogger(__name__)


class TranscriptionError(RuntimeError):
    """Raised when the ASR service rejects or fails a request."""


def _asr_base_url(handler_input: HandlerInput) -> str:
    config = handler_input.user_config
    descriptor = handler_input.node_config.execution
    override = config.get("asr_api_url") or (descriptor.endpoint if descriptor else None)
    return MediaflowConfig.get_asr_url(override)


async def asr_transcribe_handler(handler_input: HandlerInput) -> dict[str, Any]:
    config = handler_input.user_config
    language = config.get("language") or "zh"
    output_format = config.get("format") or "txt"

    source = extract_audio_source(handler_input.workflow_data)
    if source is None:
        raise AudioSourceError("no audio received from the previous step")
    audio = await to_binary_audio(source)

    url = f"{_asr_base_url(handler_input)}/transcribe"
    logger.info(
        "ASR request | file=%s bytes=%d language=%s format=%s",
        audio.filename,
        audio.size,
        language,
        output_format,
    )
    async with audio_utils.http_client() as client:
        try:
            response = await client.post(
                url,
                params={"language": language, "format": output_format},
                files={"file": (audio.filename, audio.data, audio.mime_type)},
            )
        except httpx.HTTPError as e:
            raise TranscriptionError(f"ASR request failed: {e}") from e

    if response.status_code >= 400:
        detail = response.text[:500]
        raise TranscriptionError(f"ASR API failed ({response.status_code}): {detail}")

    if output_format == "json":
        try:
            result = response.json()
        except ValueError as e:
            raise TranscriptionError(f"ASR API returned invalid JSON: {e}") from e
        if isinstance(result, dict):
            return {
                "transcription": result.get("text") or str(result),
                "confidence": result.get("confidence"),
            }
        return {"transcription": str(result), "confidence": None}

    return {"transcription": response.text, "confidence": None}
