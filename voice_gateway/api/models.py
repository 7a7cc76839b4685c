"""Request schemas and capability results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .settings import DEFAULT_AUDIO_FORMAT, DEFAULT_VOICE


Role = Literal["system", "user", "assistant"]
AudioFormat = Literal["mp3", "wav", "opus"]


class ChatMessage(BaseModel):
    role: Role = "user"
    content: str = ""

    @model_validator(mode="before")  # type: ignore[misc]
    @classmethod
    def _resolve_content_alias(cls, data: Any) -> Any:
        # clients send either "text" or "content"; "text" wins when both are set
        if isinstance(data, dict):
            data = dict(data)
            text = data.pop("text", None)
            content = text if text is not None else data.get("content")
            if content is None:
                data["content"] = ""
            else:
                data["content"] = content if isinstance(content, str) else str(content)
            if not data.get("role"):
                data.pop("role", None)
        return data


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)

    @field_validator("messages", mode="before")  # type: ignore[misc]
    @classmethod
    def _coerce_messages(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    def preview(self, limit: int = 120) -> str:
        """Whitespace-collapsed head of the last message, for logs."""
        if not self.messages:
            return ""
        return " ".join(self.messages[-1].content[:limit].split())


class SynthesisRequest(BaseModel):
    text: str = ""
    voice: str = DEFAULT_VOICE
    format: AudioFormat = DEFAULT_AUDIO_FORMAT

    @field_validator("text", mode="before")  # type: ignore[misc]
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("voice", mode="before")  # type: ignore[misc]
    @classmethod
    def _default_voice(cls, value: Any) -> Any:
        return DEFAULT_VOICE if value is None else value

    @field_validator("format", mode="before")  # type: ignore[misc]
    @classmethod
    def _default_format(cls, value: Any) -> Any:
        return DEFAULT_AUDIO_FORMAT if value is None else value

    @staticmethod
    def lacks_text(data: Any) -> bool:
        """True when a raw body has no usable ``text``; checked before full validation."""
        if not isinstance(data, dict):
            return True
        value = data.get("text")
        return not value or not str(value).strip()

    def preview(self, limit: int = 80) -> str:
        return " ".join(self.text[:limit].split())


@dataclass(frozen=True)
class TextResult:
    """Plain-text outcome of transcription or chat."""

    text: str
    summary: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BinaryResult:
    """Complete audio buffer produced by speech synthesis."""

    content: bytes
    content_type: str
    summary: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Rejection:
    """A handler short-circuiting with its own client error."""

    status_code: int
    error: str
    summary: dict[str, Any] = field(default_factory=dict)


CapabilityResult = TextResult | BinaryResult | Rejection


__all__ = [
    "AudioFormat",
    "BinaryResult",
    "CapabilityResult",
    "ChatMessage",
    "ChatRequest",
    "Rejection",
    "Role",
    "SynthesisRequest",
    "TextResult",
]
