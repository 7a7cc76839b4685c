"""Adapter for the external generative-AI backend.

Each capability maps to exactly one HTTP round trip against an
OpenAI-compatible REST API. Results are normalized to plain Python values and
every failure, whatever its cause, surfaces as ``BackendFailure``. Nothing is
retried here.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import IO, Any, Protocol

import httpx

from voice_gateway.common.structured_logging import get_logger

from .models import ChatMessage


logger = get_logger(__name__)


class BackendFailure(Exception):
    """A backend call failed; carries the capability that was attempted."""

    def __init__(self, capability: str, message: str) -> None:
        self.capability = capability
        self.message = message
        super().__init__(f"{capability}: {message}")


class BackendAdapter(Protocol):
    """Operations the gateway needs from the generative-AI backend."""

    async def transcribe(
        self, audio: IO[bytes], *, filename: str, mime_type: str, language: str
    ) -> str: ...

    async def chat(
        self, messages: Sequence[ChatMessage], *, persona: str, temperature: float
    ) -> str: ...

    async def synthesize(
        self, text: str, *, voice: str, audio_format: str
    ) -> tuple[bytes, str]: ...

    async def list_models(self) -> list[str]: ...

    async def aclose(self) -> None: ...


def build_chat_messages(
    messages: Sequence[ChatMessage], persona: str
) -> list[dict[str, str]]:
    """Persona system message followed by the caller's messages, in order."""
    return [
        {"role": "system", "content": persona},
        *({"role": m.role, "content": m.content} for m in messages),
    ]


class OpenAIBackend:
    """``BackendAdapter`` over the OpenAI REST API using one shared httpx client.

    The instance holds no per-call state, so a single adapter serves all
    concurrent requests.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        transcription_model: str = "gpt-4o-transcribe",
        chat_model: str = "gpt-4o-mini",
        speech_model: str = "gpt-4o-mini-tts",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.transcription_model = transcription_model
        self.chat_model = chat_model
        self.speech_model = speech_model
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        if client is None:
            client = httpx.AsyncClient(
                base_url=base_url.rstrip("/"),
                headers=headers,
                timeout=httpx.Timeout(timeout, connect=10.0),
            )
        else:
            client.headers.update(headers)
        self._client = client

    async def _request(
        self, capability: str, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "backend.request_failed",
                capability=capability,
                path=path,
                status_code=exc.response.status_code,
                body=exc.response.text[:500],
            )
            raise BackendFailure(
                capability, f"backend returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "backend.request_failed",
                capability=capability,
                path=path,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise BackendFailure(capability, str(exc) or type(exc).__name__) from exc
        return response

    @staticmethod
    def _json(capability: str, response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise BackendFailure(capability, "backend returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise BackendFailure(capability, "backend returned unexpected payload")
        return payload

    async def transcribe(
        self,
        audio: IO[bytes],
        *,
        filename: str,
        mime_type: str,
        language: str,
    ) -> str:
        # httpx reads sync file objects on the event loop; load the upload off-loop
        content = await asyncio.to_thread(audio.read)
        response = await self._request(
            "transcribe",
            "POST",
            "/audio/transcriptions",
            files={"file": (filename, content, mime_type)},
            data={"model": self.transcription_model, "language": language},
        )
        payload = self._json("transcribe", response)
        return str(payload.get("text") or "").strip()

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        *,
        persona: str,
        temperature: float,
    ) -> str:
        response = await self._request(
            "chat",
            "POST",
            "/chat/completions",
            json={
                "model": self.chat_model,
                "messages": build_chat_messages(messages, persona),
                "temperature": temperature,
            },
        )
        payload = self._json("chat", response)
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return ""
        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message") or {}
        return str(message.get("content") or "").strip()

    async def synthesize(
        self,
        text: str,
        *,
        voice: str,
        audio_format: str,
    ) -> tuple[bytes, str]:
        response = await self._request(
            "synthesize",
            "POST",
            "/audio/speech",
            json={
                "model": self.speech_model,
                "voice": voice,
                "input": text,
                "response_format": audio_format,
            },
        )
        return response.content, f"audio/{audio_format}"

    async def list_models(self) -> list[str]:
        response = await self._request("list_models", "GET", "/models")
        payload = self._json("list_models", response)
        return [
            str(item.get("id"))
            for item in payload.get("data") or []
            if isinstance(item, dict)
        ]

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = [
    "BackendAdapter",
    "BackendFailure",
    "OpenAIBackend",
    "build_chat_messages",
]
