"""Liveness probe, optionally checking that the backend answers."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any

from voice_gateway.common.structured_logging import get_logger

from .backend import BackendAdapter


logger = get_logger(__name__)

_PROCESS_STARTED = time.monotonic()


def uptime_seconds() -> float:
    return round(time.monotonic() - _PROCESS_STARTED, 3)


async def probe(
    environment: str, backend: BackendAdapter | None = None
) -> tuple[dict[str, Any], int]:
    """Build the /status payload and its HTTP status.

    When ``backend`` is given its cheapest call (listing models) is made;
    an unreachable backend turns the status into 500.
    """
    payload: dict[str, Any] = {
        "status": "ok",
        "uptime": uptime_seconds(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "env": environment,
    }
    if backend is None:
        return payload, 200

    try:
        await backend.list_models()
    except Exception as exc:
        logger.warning(
            "status.backend_unreachable",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        payload["openai"] = "unreachable"
        payload["openai_error"] = str(exc) or type(exc).__name__
        return payload, 500

    payload["openai"] = "reachable"
    return payload, 200


__all__ = ["probe", "uptime_seconds"]
