"""
Media input handler: turns the node's configured audio input into an audio
source the next step (usually transcription) can consume directly.

input_type:     file | url | path | base64
output_format:  standard (in-memory bytes) | base64 (data URI) | url (remote URL)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from mediaflow.handlers.audio import (
    AudioSourceError,
    filename_from_url,
    is_audio_file,
    to_binary_audio,
    to_data_uri,
)
from mediaflow.models.audio_source import (
    AUDIO_SOURCE_TYPES,
    Base64Audio,
    BinaryAudio,
    FileHandleAudio,
    LocalPathAudio,
    UrlAudio,
    parse_audio_source,
)
from mediaflow.models.node import HandlerInput

logger = logging.getLogger(__name__)


def _source_from_file(config: dict[str, Any]) -> Any:
    media_file = config.get("media_file")
    if media_file is None:
        raise AudioSourceError("no audio file was provided, select a file")
    if isinstance(media_file, AUDIO_SOURCE_TYPES):
        return media_file
    if isinstance(media_file, dict):
        try:
            return parse_audio_source(media_file)
        except ValidationError as e:
            raise AudioSourceError(f"invalid media file: {e}") from e
    if isinstance(media_file, (bytes, bytearray)):
        return BinaryAudio(data=bytes(media_file), filename=config.get("file_name") or "audio.wav")
    if isinstance(media_file, str):
        return LocalPathAudio(path=media_file)
    if hasattr(media_file, "read"):
        filename = getattr(media_file, "name", None) or config.get("file_name") or "audio.wav"
        return FileHandleAudio(handle=media_file, filename=str(filename).rsplit("/", 1)[-1])
    raise AudioSourceError(f"unsupported media file value: {type(media_file).__name__}")


def _source_from_url(config: dict[str, Any]) -> UrlAudio:
    url = config.get("url_input")
    if not isinstance(url, str) or not url.startswith(("http://", "https://")):
        raise AudioSourceError("enter a valid audio file URL")
    return UrlAudio(url=url, filename=filename_from_url(url))


def _source_from_path(config: dict[str, Any]) -> LocalPathAudio:
    path = config.get("media_path") or config.get("media_file")
    if not isinstance(path, str) or not path:
        raise AudioSourceError("no local audio path was provided")
    return LocalPathAudio(path=path)


def _source_from_base64(config: dict[str, Any]) -> Base64Audio:
    data_uri = config.get("media_data")
    if not isinstance(data_uri, str) or not data_uri.startswith("data:"):
        raise AudioSourceError("base64 input requires a data URI")
    return Base64Audio(data_uri=data_uri, filename=config.get("file_name") or "audio.wav")


_SOURCE_BUILDERS = {
    "file": _source_from_file,
    "url": _source_from_url,
    "path": _source_from_path,
    "base64": _source_from_base64,
}


async def media_input_handler(handler_input: HandlerInput) -> dict[str, Any]:
    config = handler_input.user_config
    input_type = config.get("input_type") or "file"
    output_format = config.get("output_format") or "standard"

    builder = _SOURCE_BUILDERS.get(input_type)
    if builder is None:
        raise AudioSourceError(f"unsupported input type: {input_type}")
    source = builder(config)
    audio = await to_binary_audio(source)

    if not is_audio_file(audio.filename, audio.mime_type):
        logger.warning("Media input %s does not look like an audio file (%s)", audio.filename, audio.mime_type)

    file_info: dict[str, Any] = {
        "name": audio.filename,
        "size": audio.size,
        "type": audio.mime_type,
        "is_local_file": isinstance(source, LocalPathAudio),
        "path": source.path if isinstance(source, LocalPathAudio) else None,
    }
    metadata: dict[str, Any] = {
        "processed_at": datetime.now(timezone.utc).isoformat(),
        "source": "media-input",
        "output_format": output_format,
        "file_info": file_info,
    }

    if output_format == "base64":
        content: Any = Base64Audio(data_uri=to_data_uri(audio), filename=audio.filename)
    elif output_format == "url":
        if isinstance(source, UrlAudio):
            content = source
            file_info["url"] = source.url
        else:
            # Local input has no remote URL to hand on
            logger.warning("Media input %s has no remote URL, emitting base64", audio.filename)
            metadata["output_format"] = "base64"
            content = Base64Audio(data_uri=to_data_uri(audio), filename=audio.filename)
    else:
        content = audio

    logger.info(
        "Media input ready | file=%s bytes=%d input_type=%s output_format=%s",
        audio.filename,
        audio.size,
        input_type,
        metadata["output_format"],
    )
    return {"content": content, "metadata": metadata}
