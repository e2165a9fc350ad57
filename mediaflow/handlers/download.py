"""
Download handler for the built-in ``download`` node.

Builds download information for whatever the previous step produced.
Audio, image and video keep their remote URL; text and generic data are
embedded as ``data:`` URIs so the caller can save them without a server.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from typing import Any

from mediaflow.models.audio_source import AUDIO_SOURCE_TYPES, UrlAudio
from mediaflow.models.node import HandlerInput
from mediaflow.models.workflow_data import WorkflowData, extract_text

logger = logging.getLogger(__name__)

DEFAULT_FORMATS = {
    "audio": "wav",
    "text": "txt",
    "image": "png",
    "video": "mp4",
    "data": "json",
}


def detect_data_type(value: Any) -> str:
    if isinstance(value, WorkflowData):
        if value.type in ("audio", "text"):
            return value.type
        value = value.content
    if isinstance(value, AUDIO_SOURCE_TYPES):
        return "audio"
    if isinstance(value, str):
        return "text"
    if isinstance(value, dict):
        content = value.get("content") if isinstance(value.get("content"), dict) else {}
        if value.get("type") == "audio" or content.get("audio") or value.get("audio_id"):
            return "audio"
        if value.get("type") == "text" or isinstance(content.get("text"), str):
            return "text"
        if value.get("image_url") or content.get("image"):
            return "image"
        if value.get("video_url") or content.get("video"):
            return "video"
    return "data"


def _data_uri(payload: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}"


def _audio_info(value: Any) -> dict[str, Any] | None:
    if isinstance(value, WorkflowData):
        audio = value.content.get("audio") if isinstance(value.content, dict) else None
        original_text = value.metadata.get("original_text")
    elif isinstance(value, dict):
        content = value.get("content") if isinstance(value.get("content"), dict) else {}
        audio = content.get("audio")
        if audio is None and value.get("audio_id"):
            audio = {"id": value["audio_id"], "url": value.get("audio_url"), "size": value.get("file_size")}
        original_text = (value.get("metadata") or {}).get("original_text") or value.get("original_text")
    else:
        audio, original_text = value, None

    if isinstance(audio, UrlAudio):
        return {"id": None, "url": audio.url, "size": None, "original_text": original_text}
    if isinstance(audio, AUDIO_SOURCE_TYPES):
        size = len(audio.data) if hasattr(audio, "data") and isinstance(audio.data, bytes) else None
        return {"id": None, "url": None, "size": size, "original_text": original_text}
    if isinstance(audio, dict):
        return {
            "id": audio.get("id"),
            "url": audio.get("url"),
            "size": audio.get("size"),
            "original_text": original_text,
        }
    return None


def _media_url(value: Any, key: str) -> str | None:
    if isinstance(value, WorkflowData):
        value = value.content
    if not isinstance(value, dict):
        return None
    content = value.get("content") if isinstance(value.get("content"), dict) else value
    media = content.get(key)
    return value.get(f"{key}_url") or (media.get("url") if isinstance(media, dict) else None)


def _jsonable(value: Any) -> Any:
    if isinstance(value, WorkflowData):
        return value.model_dump(mode="json")
    if isinstance(value, AUDIO_SOURCE_TYPES):
        return value.model_dump(mode="json")
    return value


def generate_download_info(value: Any, data_type: str, config: dict[str, Any]) -> dict[str, Any]:
    timestamp = int(time.time() * 1000)
    requested_format = config.get("download_format") or "auto"
    info: dict[str, Any] = {
        "data_type": data_type,
        "filename": config.get("custom_file_name") or f"download_{timestamp}",
        "format": DEFAULT_FORMATS.get(data_type, "json") if requested_format == "auto" else requested_format,
        "size": None,
        "url": None,
        "can_download": False,
        "metadata": {"timestamp": timestamp, "source": data_type},
    }

    if data_type == "audio":
        audio = _audio_info(value)
        if audio:
            info["url"] = audio["url"]
            info["size"] = audio["size"]
            info["can_download"] = bool(audio["url"])
            info["metadata"]["audio_id"] = audio["id"]
            info["metadata"]["original_text"] = audio["original_text"]
    elif data_type == "text":
        text = extract_text(value) or ""
        if text:
            payload = text.encode("utf-8")
            info["url"] = _data_uri(payload, "text/plain")
            info["size"] = len(payload)
            info["can_download"] = True
            info["metadata"]["length"] = len(text)
            info["metadata"]["lines"] = len(text.split("\n"))
    elif data_type in ("image", "video"):
        url = _media_url(value, data_type)
        if url:
            info["url"] = url
            info["can_download"] = True
            info["metadata"][f"{data_type}_url"] = url
    else:
        payload = json.dumps(_jsonable(value), indent=2, ensure_ascii=False, default=str).encode("utf-8")
        info["url"] = _data_uri(payload, "application/json")
        info["size"] = len(payload)
        info["can_download"] = True
        info["format"] = "json"
        info["metadata"]["keys"] = len(value) if isinstance(value, dict) else 0

    if "." not in info["filename"]:
        info["filename"] = f"{info['filename']}.{info['format']}"
    return info


async def download_handler(handler_input: HandlerInput) -> WorkflowData:
    source = handler_input.workflow_data
    if source is None:
        raise ValueError("download node received no input data")

    config = handler_input.user_config
    data_type = detect_data_type(source)
    info = generate_download_info(source, data_type, config)
    if config.get("auto_download") and not info["can_download"]:
        logger.warning("Auto download requested but %s has nothing to download", info["filename"])

    logger.info("Prepared %s download %s (can_download=%s)", data_type, info["filename"], info["can_download"])
    return WorkflowData.create_download(info, {"source": "download", "data_type": data_type})
