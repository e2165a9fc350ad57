"""
Audio source helpers shared by the media handlers:
- extracting an AudioSource from whatever an upstream step produced
- converting any AudioSource variant into in-memory bytes
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import inspect
import logging
import mimetypes
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import httpx
from pydantic import ValidationError

from mediaflow.config import MediaflowConfig
from mediaflow.models.audio_source import (
    AUDIO_SOURCE_TYPES,
    Base64Audio,
    BinaryAudio,
    FileHandleAudio,
    LocalPathAudio,
    UrlAudio,
    parse_audio_source,
)
from mediaflow.models.workflow_data import WorkflowData

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPES = {
    "wav": "audio/wav",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "ogg": "audio/ogg",
    "wma": "audio/x-ms-wma",
}


class AudioSourceError(ValueError):
    """Raised when audio input is missing or cannot be read."""


def http_client(timeout: float | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout or MediaflowConfig.HTTP_TIMEOUT)


def guess_audio_mime_type(filename: str | None) -> str:
    name = (filename or "").lower()
    ext = name.rsplit(".", 1)[-1] if "." in name else ""
    if ext in AUDIO_MIME_TYPES:
        return AUDIO_MIME_TYPES[ext]
    guessed, _ = mimetypes.guess_type(name)
    return guessed or "audio/wav"


def is_audio_file(filename: str | None, mime_type: str | None) -> bool:
    if mime_type and mime_type.startswith("audio/"):
        return True
    name = (filename or "").lower()
    return any(name.endswith(f".{ext}") for ext in AUDIO_MIME_TYPES)


def filename_from_url(url: str) -> str | None:
    name = Path(unquote(urlparse(url).path)).name
    return name or None


def to_data_uri(audio: BinaryAudio) -> str:
    encoded = base64.b64encode(audio.data).decode("ascii")
    return f"data:{audio.mime_type};base64,{encoded}"


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def _decode_data_uri(source: Base64Audio) -> BinaryAudio:
    header, sep, payload = source.data_uri.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise AudioSourceError("base64 audio must be a data URI (data:<mime>;base64,<payload>)")
    mime_type = header[len("data:"):].split(";", 1)[0] or guess_audio_mime_type(source.filename)
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AudioSourceError(f"invalid base64 audio payload: {e}") from e
    return BinaryAudio(data=data, filename=source.filename, mime_type=mime_type)


async def _download(source: UrlAudio) -> BinaryAudio:
    filename = source.filename or filename_from_url(source.url) or "downloaded-audio.wav"
    async with http_client() as client:
        try:
            response = await client.get(source.url)
        except httpx.HTTPError as e:
            raise AudioSourceError(f"failed to fetch audio from {source.url}: {e}") from e
    if response.status_code >= 400:
        raise AudioSourceError(
            f"failed to fetch audio from {source.url} ({response.status_code})"
        )
    content_type = (response.headers.get("content-type") or "").split(";", 1)[0].strip()
    return BinaryAudio(
        data=response.content,
        filename=filename,
        mime_type=content_type or guess_audio_mime_type(filename),
    )


async def _read_path(source: LocalPathAudio) -> BinaryAudio:
    path = Path(source.path).expanduser()
    if not path.is_file():
        raise AudioSourceError(f"audio file not found: {source.path}")
    data = await asyncio.to_thread(path.read_bytes)
    return BinaryAudio(data=data, filename=path.name, mime_type=guess_audio_mime_type(path.name))


async def _read_handle(source: FileHandleAudio) -> BinaryAudio:
    read = getattr(source.handle, "read", None)
    if read is None:
        raise AudioSourceError("file handle audio has no read() method")
    data = read()
    if inspect.isawaitable(data):
        data = await data
    if not isinstance(data, (bytes, bytearray)):
        raise AudioSourceError("file handle must be opened in binary mode")
    return BinaryAudio(data=bytes(data), filename=source.filename, mime_type=source.mime_type)


async def to_binary_audio(source: Any) -> BinaryAudio:
    """Normalize every AudioSource variant into in-memory bytes."""
    try:
        source = parse_audio_source(source)
    except ValidationError as e:
        raise AudioSourceError(f"not a valid audio source: {e}") from e

    if isinstance(source, BinaryAudio):
        audio = source
    elif isinstance(source, Base64Audio):
        audio = _decode_data_uri(source)
    elif isinstance(source, UrlAudio):
        audio = await _download(source)
    elif isinstance(source, LocalPathAudio):
        audio = await _read_path(source)
    elif isinstance(source, FileHandleAudio):
        audio = await _read_handle(source)
    else:
        raise AudioSourceError(f"unsupported audio source: {type(source).__name__}")

    if not audio.data:
        raise AudioSourceError(f"audio from {source.kind} source is empty")
    logger.debug("Resolved %s audio: %s (%d bytes)", source.kind, audio.filename, audio.size)
    return audio


# ---------------------------------------------------------------------------
# Extraction from upstream data
# ---------------------------------------------------------------------------


def extract_audio_source(value: Any) -> Any | None:
    """
    Find an AudioSource in an upstream step's output.

    Accepts AudioSource models and tagged dicts, raw bytes, data URIs and
    http(s) URLs, audio WorkflowData envelopes (either an AudioSource or an
    audio info dict with a url) and {content, metadata} wrappers.
    """
    if value is None:
        return None
    if isinstance(value, AUDIO_SOURCE_TYPES):
        return value
    if isinstance(value, (bytes, bytearray)):
        return BinaryAudio(data=bytes(value))
    if isinstance(value, str):
        if value.startswith("data:"):
            return Base64Audio(data_uri=value)
        if value.startswith(("http://", "https://")):
            return UrlAudio(url=value)
        if is_audio_file(value, None):
            return LocalPathAudio(path=value)
        return None
    if isinstance(value, WorkflowData):
        if value.type == "audio" and isinstance(value.content, dict):
            return extract_audio_source(value.content.get("audio"))
        if value.type == "data":
            return extract_audio_source(value.content)
        return None
    if isinstance(value, dict):
        if value.get("kind") in ("binary", "base64", "url", "path", "file"):
            try:
                return parse_audio_source(value)
            except ValidationError:
                return None
        if isinstance(value.get("url"), str):
            return UrlAudio(url=value["url"], filename=value.get("name"))
        for key in ("content", "audio"):
            if key in value:
                found = extract_audio_source(value[key])
                if found is not None:
                    return found
    return None
