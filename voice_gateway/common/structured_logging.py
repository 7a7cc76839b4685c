"""Centralized logging utilities for the voice gateway."""

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import IO, Any

import structlog


_LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_ACCESS_LOG_RE = re.compile(r'^(.+?):(\d+) - "(\w+) ([^"]+) (HTTP/[\d.]+)" (\d+)')

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "multipart", "multipart.multipart")


def _numeric_level(level: str) -> int:
    name = (level or "").upper()
    return _LEVELS.get(name, logging.INFO)


Processor = Callable[[Any, str, dict[str, Any]], dict[str, Any]]


def _add_service(service_name: str | None) -> Processor:
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        if service_name and "service" not in event_dict:
            event_dict["service"] = service_name
        return event_dict

    return processor


def _renderers(json_logs: bool) -> list[Processor]:
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    return [structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer]


def configure_logging(
    level: str = "INFO",
    *,
    json_logs: bool = True,
    service_name: str | None = None,
    stream: IO[str] | None = None,
    full_tracebacks: bool | None = None,
) -> None:
    """Configure structlog + stdlib logging for the process.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to output JSON formatted logs (True) or console format (False)
        service_name: Optional service name to include in all log messages
        stream: Optional output stream for logs (defaults to sys.stdout).
                Useful for testing to capture log output to StringIO.
        full_tracebacks: Whether to render exceptions as structured dicts
                        (dict_tracebacks) or as a formatted string. If None,
                        LOG_FULL_TRACEBACKS decides, falling back to full
                        tracebacks only at DEBUG level.

    Example:
        # Production usage
        configure_logging(level="INFO", json_logs=True, service_name="gateway")

        # Test usage
        from io import StringIO
        output = StringIO()
        configure_logging(level="INFO", json_logs=True, stream=output)
    """

    numeric_level = _numeric_level(level)
    output_stream = stream if stream is not None else sys.stdout

    if full_tracebacks is None:
        env_full_tracebacks = os.getenv("LOG_FULL_TRACEBACKS", "").lower()
        if env_full_tracebacks in ("true", "1", "yes"):
            full_tracebacks = True
        elif env_full_tracebacks in ("false", "0", "no"):
            full_tracebacks = False
        else:
            full_tracebacks = numeric_level <= logging.DEBUG

    exception_processor = (
        structlog.processors.dict_tracebacks
        if full_tracebacks
        else structlog.processors.format_exc_info
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        _add_service(service_name),
        exception_processor,
    ]

    handler = logging.StreamHandler(output_stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=_renderers(json_logs),
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)
    logging.captureWarnings(True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configure_uvicorn_access_logger(output_stream, json_logs, service_name)


def get_logger(
    name: str,
    *,
    request_id: str | None = None,
    service_name: str | None = None,
) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound with standard metadata."""

    logger = structlog.stdlib.get_logger(name)
    if request_id:
        logger = logger.bind(request_id=request_id)
    if service_name:
        logger = logger.bind(service=service_name)
    return logger


@contextmanager
def correlation_context(
    request_id: str | None,
) -> Generator[structlog.stdlib.BoundLogger, None, None]:
    """Bind a request id to the structlog context for the duration of a block.

    Every log line emitted inside the block, from any module, carries the
    ``request_id`` field. The previous binding (if any) is restored on exit.

    Example:
        with correlation_context("4f2a9c01b7de") as logger:
            logger.info("chat.start")
    """
    previous_request_id = None
    if request_id:
        previous_request_id = structlog.contextvars.get_contextvars().get(
            "request_id"
        )
        structlog.contextvars.bind_contextvars(request_id=request_id)

    logger = structlog.stdlib.get_logger()

    try:
        yield logger
    finally:
        if request_id:
            if previous_request_id is not None:
                structlog.contextvars.bind_contextvars(request_id=previous_request_id)
            else:
                structlog.contextvars.unbind_contextvars("request_id")


def _parse_uvicorn_access_log(message: str) -> dict[str, Any]:
    """Parse a uvicorn access log line into structured fields.

    Uvicorn formats access lines as ``IP:PORT - "METHOD PATH HTTP/x.y" STATUS``,
    e.g. ``172.18.0.15:46132 - "POST /chat HTTP/1.1" 200``.
    """
    match = _ACCESS_LOG_RE.match(message.strip())
    if match:
        client_ip, client_port, method, path, http_version, status_code = match.groups()
        return {
            "event": "uvicorn.access",
            "client_ip": client_ip,
            "client_port": int(client_port),
            "method": method,
            "path": path,
            "http_version": http_version,
            "status_code": int(status_code),
        }
    return {"event": "uvicorn.access", "message": message}


def _uvicorn_access_processor(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    message = event_dict.get("event") or event_dict.get("message") or ""
    if isinstance(message, str) and message.strip() and "status_code" not in event_dict:
        event_dict.pop("event", None)
        event_dict.pop("message", None)
        event_dict.update(_parse_uvicorn_access_log(message))
    return event_dict


def _configure_uvicorn_access_logger(
    stream: IO[str], json_logs: bool, service_name: str | None
) -> None:
    """Route uvicorn's access log through the structured formatter."""
    access_logger = logging.getLogger("uvicorn.access")
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = False

    shared_processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        _add_service(service_name),
        _uvicorn_access_processor,
    ]

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=_renderers(json_logs),
        )
    )
    access_logger.handlers = [handler]


__all__ = [
    "configure_logging",
    "correlation_context",
    "get_logger",
]
