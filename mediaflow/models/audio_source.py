"""
Audio input variants accepted by the media handlers.

Every variant carries an explicit ``kind`` tag; handlers never sniff the
shape of a dict to guess what they were given.
"""

from __future__ import annotations

import base64
import binascii
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class BinaryAudio(BaseModel):
    model_config = ConfigDict(ser_json_bytes="base64")

    kind: Literal["binary"] = "binary"
    data: bytes
    filename: str = "audio.wav"
    mime_type: str = "audio/wav"

    @field_validator("data", mode="before")
    @classmethod
    def decode_serialized_data(cls, value: Any) -> Any:
        # JSON dumps carry the bytes as (url-safe) base64 text
        if isinstance(value, str):
            try:
                return base64.urlsafe_b64decode(value)
            except (binascii.Error, ValueError) as e:
                raise ValueError(f"binary audio data is not valid base64: {e}") from e
        return value

    @property
    def size(self) -> int:
        return len(self.data)


class Base64Audio(BaseModel):
    kind: Literal["base64"] = "base64"
    # data:<mime>;base64,<payload>
    data_uri: str
    filename: str = "audio.wav"


class UrlAudio(BaseModel):
    kind: Literal["url"] = "url"
    url: str
    filename: str | None = None


class LocalPathAudio(BaseModel):
    kind: Literal["path"] = "path"
    path: str


class FileHandleAudio(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: Literal["file"] = "file"
    handle: Any = Field(exclude=True)
    filename: str = "audio.wav"
    mime_type: str = "audio/wav"


AudioSource = Annotated[
    Union[BinaryAudio, Base64Audio, UrlAudio, LocalPathAudio, FileHandleAudio],
    Field(discriminator="kind"),
]

AUDIO_SOURCE_TYPES = (BinaryAudio, Base64Audio, UrlAudio, LocalPathAudio, FileHandleAudio)

_audio_source_adapter: TypeAdapter[Any] = TypeAdapter(AudioSource)


def parse_audio_source(value: Any) -> Any:
    """Validate a tagged dict (or pass through a model) as an AudioSource."""
    if isinstance(value, AUDIO_SOURCE_TYPES):
        return value
    return _audio_source_adapter.validate_python(value)
