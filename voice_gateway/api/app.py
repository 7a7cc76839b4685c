"""Gateway application factory and CLI entry point."""

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from voice_gateway import __version__
from voice_gateway.common.config import ServiceConfig
from voice_gateway.common.structured_logging import configure_logging, get_logger

from .backend import BackendAdapter, OpenAIBackend
from .handlers import get_backend, get_config, router
from .metrics import render_latest
from .persona import DEFAULT_PERSONA
from .responses import failure
from .settings import SERVICE_NAME, load_config
from .status import probe
from .uploads import PayloadTooLarge


logger = get_logger(__name__)


def build_backend(config: ServiceConfig) -> OpenAIBackend:
    """Backend adapter configured from the ``gateway`` and ``models`` sections."""
    gateway = config.gateway
    models = config.models
    return OpenAIBackend(
        gateway.openai_api_key,
        base_url=gateway.openai_base_url,
        timeout=gateway.request_timeout,
        transcription_model=models.transcription,
        chat_model=models.chat,
        speech_model=models.speech,
    )


async def _payload_too_large(_request: Request, exc: Exception) -> Response:
    response = failure("payload_too_large", status_code=413)
    response.headers.update(getattr(exc, "headers", None) or {})
    return response


async def _unhandled(request: Request, exc: Exception) -> Response:
    logger.error(
        "gateway.unhandled",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return failure("internal_error")


def create_app(
    config: ServiceConfig | None = None,
    *,
    backend: BackendAdapter | None = None,
    persona: str = DEFAULT_PERSONA,
) -> FastAPI:
    """Create the gateway app.

    Args:
        config: Loaded configuration; read from the environment when omitted
        backend: Backend adapter to use; an ``OpenAIBackend`` is built from
                 ``config`` when omitted and closed on shutdown
        persona: System persona prepended to chat conversations
    """
    if config is None:
        config = load_config()
    owns_backend = backend is None
    if backend is None:
        backend = build_backend(config)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            f"{SERVICE_NAME}.startup_complete",
            env=config.gateway.environment,
            ping_openai=config.gateway.ping_openai,
        )
        yield
        if owns_backend:
            try:
                await backend.aclose()
            except Exception as exc:
                logger.error(f"{SERVICE_NAME}.shutdown_failed", error=str(exc))
        logger.info(f"{SERVICE_NAME}.shutdown")

    app = FastAPI(title="Voice Gateway", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.backend = backend
    app.state.persona = persona

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )
    app.add_exception_handler(PayloadTooLarge, _payload_too_large)
    app.add_exception_handler(Exception, _unhandled)

    @app.get("/status", response_model=None)
    async def status(
        backend: BackendAdapter = Depends(get_backend),
        config: ServiceConfig = Depends(get_config),
    ) -> JSONResponse:
        payload, status_code = await probe(
            config.gateway.environment,
            backend if config.gateway.ping_openai else None,
        )
        return JSONResponse(payload, status_code=status_code)

    @app.get("/metrics")
    async def metrics() -> Response:
        return render_latest()

    app.include_router(router)
    return app


def main() -> None:  # pragma: no cover - CLI entrypoint
    import uvicorn

    config = load_config()
    configure_logging(
        config.logging.level,
        json_logs=config.logging.json_logs,
        service_name=SERVICE_NAME,
    )
    app = create_app(config)
    logger.info(
        f"{SERVICE_NAME}.boot",
        host=config.gateway.host,
        port=config.gateway.port,
    )
    uvicorn.run(
        app,
        host=config.gateway.host,
        port=config.gateway.port,
        log_config=None,
    )


__all__ = ["build_backend", "create_app", "main"]


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
