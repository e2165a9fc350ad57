"""
Text-to-speech handler for the built-in ``tts`` node.

Two synthesis modes against the TTS HTTP service:
- character: JSON POST to /tts_with_character
- custom:    form POST to /tts_with_custom_voice
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mediaflow.config import MediaflowConfig
from mediaflow.handlers import audio as audio_utils
from mediaflow.models.node import HandlerInput
from mediaflow.models.workflow_data import WorkflowData, extract_text

logger = logging.getLogger(__name__)


class SpeechSynthesisError(RuntimeError):
    """Raised when the TTS service rejects or fails a request."""


def _tts_base_url(handler_input: HandlerInput) -> str:
    config = handler_input.user_config
    descriptor = handler_input.node_config.execution
    override = config.get("tts_api_url") or (descriptor.endpoint if descriptor else None)
    return MediaflowConfig.get_tts_url(override)


def build_tts_request(text: str | None, config: dict[str, Any]) -> dict[str, Any]:
    if text is None:
        raise ValueError("tts node received no text input")
    if not text.strip():
        raise ValueError("tts node requires non-empty text")

    request: dict[str, Any] = {
        "text": text.strip(),
        "mode": config.get("mode") or "character",
        "gender": config.get("gender") or None,
        "pitch": config.get("pitch") or None,
        "speed": config.get("speed") or None,
    }
    if request["mode"] == "character":
        request["character_id"] = config.get("selected_character") or config.get("character") or ""
        if not request["character_id"]:
            raise ValueError("character mode requires a selected voice character")
    elif request["mode"] == "custom":
        request["username"] = config.get("username") or "workflow_user"
        request["voice_id"] = config.get("voice_id") or None
        if not request["voice_id"]:
            raise ValueError("custom voice mode requires a voice_id")
    else:
        raise ValueError(f"unsupported tts mode: {request['mode']}")
    return request


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return default
    if isinstance(payload, dict):
        return payload.get("detail") or payload.get("message") or default
    return default


async def _post(base_url: str, request: dict[str, Any]) -> dict[str, Any]:
    async with audio_utils.http_client() as client:
        try:
            if request["mode"] == "character":
                response = await client.post(
                    f"{base_url}/tts_with_character",
                    json={
                        "text": request["text"],
                        "character_id": request["character_id"],
                        "gender": request["gender"],
                        "pitch": request["pitch"],
                        "speed": request["speed"],
                    },
                )
            else:
                form = {
                    "text": request["text"],
                    "username": request["username"],
                    "voice_id": request["voice_id"],
                }
                for key in ("gender", "pitch", "speed"):
                    if request[key]:
                        form[key] = str(request[key])
                response = await client.post(f"{base_url}/tts_with_custom_voice", data=form)
        except httpx.HTTPError as e:
            raise SpeechSynthesisError(f"TTS request failed: {e}") from e

    if response.status_code >= 400:
        raise SpeechSynthesisError(
            _error_message(response, f"TTS API failed ({response.status_code})")
        )
    try:
        return response.json()
    except ValueError as e:
        raise SpeechSynthesisError(f"TTS API returned invalid JSON: {e}") from e


async def tts_synthesize_handler(handler_input: HandlerInput) -> WorkflowData:
    config = handler_input.user_config
    request = build_tts_request(extract_text(handler_input.workflow_data), config)
    base_url = _tts_base_url(handler_input)

    logger.info(
        "TTS request | mode=%s chars=%d url=%s",
        request["mode"],
        len(request["text"]),
        base_url,
    )
    result = await _post(base_url, request)

    audio_id = result.get("audio_id")
    audio_info = {
        "id": audio_id,
        "url": result.get("audio_url") or f"{base_url}/download/{audio_id}",
        "name": f"tts_{audio_id}.wav",
        "type": "audio/wav",
        "format": "wav",
        "size": result.get("file_size"),
    }
    return WorkflowData.create_audio(
        audio_info,
        {
            "source": "tts",
            "character": config.get("selected_character") or config.get("character"),
            "original_text": result.get("text") or request["text"],
            "data_size": result.get("file_size"),
            "parameters": {
                "gender": request["gender"],
                "pitch": request["pitch"],
                "speed": request["speed"],
            },
        },
    )
