"""
WorkflowData: the envelope every node output is normalized into.

Handlers return whatever is natural for them (a string, a dict, an audio
source); the adapter pipeline turns that into one of five envelope types
so the next step and the caller always see the same shape.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from mediaflow.models.audio_source import AUDIO_SOURCE_TYPES

WorkflowDataType = Literal["text", "audio", "error", "download", "data"]

_ENVELOPE_TYPES = {"text", "audio", "error", "download", "data"}


class WorkflowData(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: WorkflowDataType
    content: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def create_text(cls, text: str, metadata: dict[str, Any] | None = None) -> WorkflowData:
        return cls(type="text", content={"text": text}, metadata=dict(metadata or {}))

    @classmethod
    def create_audio(cls, audio: Any, metadata: dict[str, Any] | None = None) -> WorkflowData:
        return cls(type="audio", content={"audio": audio}, metadata=dict(metadata or {}))

    @classmethod
    def create_error(cls, error: str, metadata: dict[str, Any] | None = None) -> WorkflowData:
        return cls(type="error", content={"error": error}, metadata=dict(metadata or {}))

    @classmethod
    def create_download(
        cls, download: dict[str, Any], metadata: dict[str, Any] | None = None
    ) -> WorkflowData:
        return cls(type="download", content={"download": download}, metadata=dict(metadata or {}))

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    @classmethod
    def normalize(
        cls,
        value: Any,
        source: str = "unknown",
        metadata: dict[str, Any] | None = None,
    ) -> WorkflowData:
        """
        Convert an arbitrary handler output into a WorkflowData envelope.

        Rules, first match wins:
        - WorkflowData: copied; given metadata overrides its keys, ``source`` only fills a gap
        - serialized envelope dict ({type, content, metadata}): validated
        - {content, metadata} wrapper: content normalized, given metadata overrides the wrapper's
        - str: text
        - AudioSource model: audio
        - dict with audio / audio_id / audio_url: audio
        - Exception or dict with a truthy ``error``: error
        - dict with a string ``text``: text
        - anything else: data
        """
        extra = {"source": source, **(metadata or {})}

        if isinstance(value, WorkflowData):
            merged = {"source": source, **value.metadata, **(metadata or {})}
            return value.model_copy(update={"metadata": merged})

        if isinstance(value, dict):
            if (
                value.get("type") in _ENVELOPE_TYPES
                and "content" in value
                and isinstance(value.get("metadata"), dict)
            ):
                return cls.normalize(cls.model_validate(value), source, metadata)
            if "content" in value and isinstance(value.get("metadata"), dict) and len(value) == 2:
                merged = {**value["metadata"], **(metadata or {})}
                return cls.normalize(value["content"], source, merged)

        if isinstance(value, str):
            return cls.create_text(value, {**extra, "original_format": "string"})

        if isinstance(value, AUDIO_SOURCE_TYPES):
            return cls.create_audio(value, {**extra, "original_format": value.kind})

        if isinstance(value, BaseException):
            return cls.create_error(str(value) or type(value).__name__, {**extra, "original_format": "error"})

        if isinstance(value, dict):
            if value.get("audio") is not None:
                return cls.create_audio(value["audio"], {**extra, "original_format": "audio"})
            if value.get("audio_id") or value.get("audio_url"):
                audio_info = {
                    "id": value.get("audio_id"),
                    "url": value.get("audio_url") or value.get("url"),
                    "name": value.get("name") or "audio.wav",
                    "size": value.get("file_size") or value.get("size"),
                    "format": value.get("format") or "wav",
                }
                return cls.create_audio(audio_info, {**extra, "original_format": "legacy_audio"})
            if value.get("error"):
                return cls.create_error(str(value["error"]), {**extra, "original_format": "error"})
            if isinstance(value.get("text"), str):
                return cls.create_text(value["text"], {**extra, "original_format": "object_text"})

        return cls(type="data", content=value, metadata={**extra, "original_format": "object"})

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------

    @property
    def text(self) -> str | None:
        if self.type == "text" and isinstance(self.content, dict):
            return self.content.get("text")
        return None

    @property
    def error(self) -> str | None:
        if self.type == "error" and isinstance(self.content, dict):
            return self.content.get("error")
        return None

    def preview(self) -> dict[str, Any]:
        """Short human-readable summary used by logs and the HTTP layer."""
        content = self.content if isinstance(self.content, dict) else {}
        if self.type == "text":
            text = content.get("text") or ""
            summary = text[:50] + "..." if len(text) > 50 else text
            return {"type": "text", "summary": summary, "details": f"{len(text)} characters"}
        if self.type == "audio":
            audio = content.get("audio")
            if isinstance(audio, AUDIO_SOURCE_TYPES):
                name = getattr(audio, "filename", None) or "audio.wav"
                return {"type": "audio", "summary": name, "details": f"source: {audio.kind}"}
            info = audio if isinstance(audio, dict) else {}
            return {
                "type": "audio",
                "summary": info.get("name") or "audio.wav",
                "details": f"format: {info.get('format') or 'wav'}, size: {format_size(info.get('size'))}",
            }
        if self.type == "error":
            return {
                "type": "error",
                "summary": content.get("error") or "Unknown error",
                "details": f"source: {self.metadata.get('source', 'unknown')}",
            }
        if self.type == "download":
            download = content.get("download") or {}
            return {
                "type": "download",
                "summary": download.get("filename") or "download",
                "details": f"type: {download.get('data_type', 'unknown')}",
            }
        size = len(self.content) if isinstance(self.content, (dict, list, tuple)) else 0
        return {"type": "data", "summary": "Data object", "details": f"{size} fields"}

    def validate_payload(self) -> dict[str, Any]:
        """Check that the content carries the fields its type requires."""
        errors: list[str] = []
        if self.content is None:
            errors.append("missing content")
        content = self.content if isinstance(self.content, dict) else {}

        if self.type == "text" and not isinstance(content.get("text"), str):
            errors.append("text data is missing the text field")
        elif self.type == "audio":
            audio = content.get("audio")
            if audio is None:
                errors.append("audio data is missing the audio field")
            elif isinstance(audio, dict) and not audio.get("url"):
                errors.append("audio data is missing a URL")
        elif self.type == "download" and not content.get("download"):
            errors.append("download data is missing the download field")

        return {"valid": not errors, "errors": errors}

    def to_compatible_format(self, target_node_type: str) -> Any:
        """Shape this envelope for a node that predates WorkflowData."""
        if target_node_type in ("text-input", "tts"):
            if self.type == "text":
                return self.text
            if self.metadata.get("original_text"):
                return self.metadata["original_text"]
            return str(self.content)
        return self


def extract_text(value: Any) -> str | None:
    """Pull plain text out of whatever an upstream step produced."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, WorkflowData):
        if value.type == "text":
            return value.text
        if value.type == "data":
            return extract_text(value.content)
        return None
    if isinstance(value, dict):
        for key in ("text", "transcription"):
            if isinstance(value.get(key), str):
                return value[key]
        if isinstance(value.get("content"), (dict, str)):
            return extract_text(value["content"])
    return None


def format_size(size: Any) -> str:
    if not isinstance(size, (int, float)) or isinstance(size, bool):
        return "unknown"
    if size == 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{value:.1f}".rstrip("0").rstrip(".") + f" {units[index]}"
