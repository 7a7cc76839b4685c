"""Test configuration for voice_gateway.api."""

import asyncio
import json
from collections.abc import Callable, Generator, Sequence
from io import StringIO
from typing import IO, Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from voice_gateway.api.app import create_app
from voice_gateway.api.backend import BackendFailure, build_chat_messages
from voice_gateway.api.models import ChatMessage
from voice_gateway.api.settings import load_config
from voice_gateway.common.config import ServiceConfig
from voice_gateway.common.structured_logging import configure_logging


TEST_PERSONA = "You are a test persona."


class FakeBackend:
    """In-memory backend recording every call it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.transcript = "olá mundo"
        self.reply = "Oi! Tudo bem?"
        self.audio = b"ID3\x04\x00fake-mp3-frames"
        self.failures: dict[str, Exception] = {}
        self.delay = 0.0
        self.closed = False

    def fail(self, operation: str, exc: Exception | None = None) -> None:
        self.failures[operation] = exc or BackendFailure(operation, "backend down")

    def calls_to(self, operation: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == operation]

    async def _enter(self, operation: str, **kwargs: Any) -> None:
        self.calls.append((operation, kwargs))
        if self.delay:
            await asyncio.sleep(self.delay)
        if operation in self.failures:
            raise self.failures[operation]

    async def transcribe(
        self, audio: IO[bytes], *, filename: str, mime_type: str, language: str
    ) -> str:
        await self._enter(
            "transcribe",
            path=audio.name,
            content=audio.read(),
            filename=filename,
            mime_type=mime_type,
            language=language,
        )
        return self.transcript

    async def chat(
        self, messages: Sequence[ChatMessage], *, persona: str, temperature: float
    ) -> str:
        await self._enter(
            "chat",
            forwarded=build_chat_messages(messages, persona),
            temperature=temperature,
        )
        return self.reply

    async def synthesize(
        self, text: str, *, voice: str, audio_format: str
    ) -> tuple[bytes, str]:
        await self._enter("synthesize", text=text, voice=voice, audio_format=audio_format)
        return self.audio, f"audio/{audio_format}"

    async def list_models(self) -> list[str]:
        await self._enter("list_models")
        return ["gpt-4o-mini"]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def config() -> ServiceConfig:
    """Configuration loaded from an empty environment."""
    return load_config(environ={})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def app(config: ServiceConfig, backend: FakeBackend) -> FastAPI:
    return create_app(config, backend=backend, persona=TEST_PERSONA)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def lenient_client(app: FastAPI) -> TestClient:
    """Test client that returns 500 responses instead of re-raising server errors."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def captured_logs() -> Generator[Callable[[], list[dict[str, Any]]], None, None]:
    """Route JSON logs into a buffer; call the fixture value to read parsed records."""
    output = StringIO()
    configure_logging(level="INFO", json_logs=True, service_name="gateway", stream=output)

    def records() -> list[dict[str, Any]]:
        return [
            json.loads(line)
            for line in output.getvalue().splitlines()
            if line.strip()
        ]

    yield records
    configure_logging(level="INFO", json_logs=True, service_name="gateway")


@pytest.fixture
def sample_audio() -> bytes:
    """A few bytes standing in for an m4a recording."""
    return b"\x00\x00\x00\x20ftypM4A \x00\x00\x00\x00" + b"\x11" * 512
