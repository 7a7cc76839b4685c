"""Configuration sections and fixed limits for the gateway service."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from voice_gateway.common.config import (
    BaseConfig,
    ConfigBuilder,
    FieldDefinition,
    LoggingConfig,
    ServiceConfig,
    validate_url,
)


SERVICE_NAME = "gateway"

# Fixed ceilings, deliberately not read from the environment
MAX_UPLOAD_BYTES = 50 * 1024 * 1024
MAX_JSON_BYTES = 2 * 1000 * 1000

# The transcription backend keys its decoder off the extension and mimetype,
# so uploads are always resubmitted under this name regardless of the client's
TRANSCRIPTION_UPLOAD_NAME = "audio.m4a"
TRANSCRIPTION_UPLOAD_TYPE = "audio/m4a"

DEFAULT_VOICE = "marin"
DEFAULT_AUDIO_FORMAT = "mp3"
AUDIO_FORMATS = ("mp3", "wav", "opus")


class GatewayConfig(BaseConfig):
    """Backend credentials, listener and deployment settings."""

    def __init__(
        self,
        openai_api_key: str = "",
        openai_base_url: str = "https://api.openai.com/v1",
        request_timeout: float = 120.0,
        ping_openai: bool = False,
        host: str = "0.0.0.0",
        port: int = 3001,
        environment: str = "development",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.openai_api_key = openai_api_key
        self.openai_base_url = openai_base_url
        self.request_timeout = request_timeout
        self.ping_openai = ping_openai
        self.host = host
        self.port = port
        self.environment = environment

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            FieldDefinition(
                name="openai_api_key",
                field_type=str,
                default="",
                description="Bearer credential for the generative-AI backend",
                env_var="OPENAI_API_KEY",
            ),
            FieldDefinition(
                name="openai_base_url",
                field_type=str,
                default="https://api.openai.com/v1",
                description="Base URL of the OpenAI-compatible backend",
                validator=validate_url,
                env_var="OPENAI_BASE_URL",
            ),
            FieldDefinition(
                name="request_timeout",
                field_type=float,
                default=120.0,
                description="Timeout in seconds for a single backend call",
                min_value=0.1,
                max_value=600.0,
                env_var="OPENAI_TIMEOUT",
            ),
            FieldDefinition(
                name="ping_openai",
                field_type=bool,
                default=False,
                description="Whether /status also checks backend reachability",
                env_var="PING_OPENAI",
            ),
            FieldDefinition(
                name="host",
                field_type=str,
                default="0.0.0.0",
                description="Listen address",
                env_var="HOST",
            ),
            FieldDefinition(
                name="port",
                field_type=int,
                default=3001,
                description="Listen port",
                min_value=1,
                max_value=65535,
                env_var="PORT",
            ),
            FieldDefinition(
                name="environment",
                field_type=str,
                default="development",
                description="Deployment environment label reported by /status",
                env_var="APP_ENV",
            ),
        ]


class BackendModelsConfig(BaseConfig):
    """Model identifiers and generation parameters sent to the backend."""

    def __init__(
        self,
        transcription: str = "gpt-4o-transcribe",
        chat: str = "gpt-4o-mini",
        speech: str = "gpt-4o-mini-tts",
        language: str = "pt",
        temperature: float = 0.5,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.transcription = transcription
        self.chat = chat
        self.speech = speech
        self.language = language
        self.temperature = temperature

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            FieldDefinition(
                name="transcription",
                field_type=str,
                default="gpt-4o-transcribe",
                env_var="TRANSCRIPTION_MODEL",
            ),
            FieldDefinition(
                name="chat",
                field_type=str,
                default="gpt-4o-mini",
                env_var="CHAT_MODEL",
            ),
            FieldDefinition(
                name="speech",
                field_type=str,
                default="gpt-4o-mini-tts",
                env_var="SPEECH_MODEL",
            ),
            FieldDefinition(
                name="language",
                field_type=str,
                default="pt",
                description="ISO-639-1 hint for transcription",
                pattern=r"^[a-z]{2,3}$",
                env_var="TRANSCRIPTION_LANGUAGE",
            ),
            FieldDefinition(
                name="temperature",
                field_type=float,
                default=0.5,
                min_value=0.0,
                max_value=2.0,
                env_var="CHAT_TEMPERATURE",
            ),
        ]


def load_config(environ: Mapping[str, str] | None = None) -> ServiceConfig:
    """Load and validate the gateway configuration.

    Args:
        environ: Optional mapping used instead of ``os.environ`` (tests).
    """
    config = (
        ConfigBuilder.for_service(SERVICE_NAME, environ=environ)
        .add_config("logging", LoggingConfig)
        .add_config("gateway", GatewayConfig)
        .add_config("models", BackendModelsConfig)
        .load()
    )
    config.validate()
    return config


__all__ = [
    "AUDIO_FORMATS",
    "BackendModelsConfig",
    "DEFAULT_AUDIO_FORMAT",
    "DEFAULT_VOICE",
    "GatewayConfig",
    "MAX_JSON_BYTES",
    "MAX_UPLOAD_BYTES",
    "SERVICE_NAME",
    "TRANSCRIPTION_UPLOAD_NAME",
    "TRANSCRIPTION_UPLOAD_TYPE",
    "load_config",
]
