"""Capability endpoints: transcription, chat and speech synthesis.

Handlers validate their input, make one backend call and return a capability
result; rendering, timing, logging and failure handling belong to
``instrumented``.
"""

import json
from typing import Any

from fastapi import APIRouter, Depends, Request

from voice_gateway.common.config import ServiceConfig
from voice_gateway.common.structured_logging import get_logger

from .backend import BackendAdapter
from .instrumentation import instrumented
from .metrics import TTS_AUDIO_BYTES
from .models import (
    BinaryResult,
    CapabilityResult,
    ChatRequest,
    Rejection,
    SynthesisRequest,
    TextResult,
)
from .settings import (
    MAX_JSON_BYTES,
    TRANSCRIPTION_UPLOAD_NAME,
    TRANSCRIPTION_UPLOAD_TYPE,
)
from .uploads import NoFileProvided, PayloadTooLarge, receive_upload


logger = get_logger(__name__)

router = APIRouter()


def get_backend(request: Request) -> BackendAdapter:
    return request.app.state.backend


def get_config(request: Request) -> ServiceConfig:
    return request.app.state.config


def get_persona(request: Request) -> str:
    return request.app.state.persona


async def json_body(request: Request) -> dict[str, Any]:
    """Parsed JSON object body, capped at ``MAX_JSON_BYTES``.

    An empty body reads as ``{}``; malformed JSON is left to the catch-all
    error handler.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > MAX_JSON_BYTES:
        raise PayloadTooLarge(MAX_JSON_BYTES)
    raw = await request.body()
    if len(raw) > MAX_JSON_BYTES:
        raise PayloadTooLarge(MAX_JSON_BYTES)
    if not raw.strip():
        return {}
    payload = json.loads(raw)
    return payload if isinstance(payload, dict) else {}


@router.post("/transcribe", response_model=None)
@instrumented("transcribe", error_code="transcription")
async def transcribe(
    request: Request,
    backend: BackendAdapter = Depends(get_backend),
    config: ServiceConfig = Depends(get_config),
) -> CapabilityResult:
    try:
        async with receive_upload(request, "audio") as media:
            logger.info(
                "transcribe.file_received",
                name=media.original_name,
                type=media.mime_type,
                size_bytes=media.size_bytes,
                tmp=str(media.path),
            )
            with media.open() as stream:
                text = await backend.transcribe(
                    stream,
                    filename=TRANSCRIPTION_UPLOAD_NAME,
                    mime_type=TRANSCRIPTION_UPLOAD_TYPE,
                    language=config.models.language,
                )
    except NoFileProvided:
        return Rejection(status_code=400, error="no_file")

    return TextResult(
        text=text,
        summary={
            "file": {
                "name": media.original_name,
                "type": media.mime_type,
                "size": media.size_bytes,
            },
            "text_len": len(text),
        },
    )


@router.post("/chat", response_model=None)
@instrumented("chat")
async def chat(
    request: Request,
    body: dict[str, Any] = Depends(json_body),
    backend: BackendAdapter = Depends(get_backend),
    config: ServiceConfig = Depends(get_config),
    persona: str = Depends(get_persona),
) -> CapabilityResult:
    payload = ChatRequest.model_validate(body)
    logger.info(
        "chat.request",
        messages_len=len(payload.messages),
        last=payload.preview(),
    )

    text = await backend.chat(
        payload.messages,
        persona=persona,
        temperature=config.models.temperature,
    )
    return TextResult(text=text, summary={"reply_len": len(text)})


@router.post("/tts", response_model=None)
@instrumented("tts")
async def tts(
    request: Request,
    body: dict[str, Any] = Depends(json_body),
    backend: BackendAdapter = Depends(get_backend),
) -> CapabilityResult:
    if SynthesisRequest.lacks_text(body):
        return Rejection(status_code=400, error="no_text")

    payload = SynthesisRequest.model_validate(body)
    logger.info(
        "tts.request",
        voice=payload.voice,
        format=payload.format,
        text_preview=payload.preview(),
    )

    audio, content_type = await backend.synthesize(
        payload.text,
        voice=payload.voice,
        audio_format=payload.format,
    )
    TTS_AUDIO_BYTES.observe(len(audio))
    return BinaryResult(
        content=audio,
        content_type=content_type,
        summary={"bytes": len(audio), "voice": payload.voice, "format": payload.format},
    )


__all__ = [
    "get_backend",
    "get_config",
    "get_persona",
    "json_body",
    "router",
]
