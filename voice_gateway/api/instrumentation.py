"""Per-request instrumentation for capability endpoints.

``instrumented`` wraps a FastAPI endpoint that returns a capability result
and turns it into a fully observed request:

- a fresh ``RequestContext`` (request id, client, user agent, start time)
- ``request_id`` bound into the structlog context for every nested log line
- one ``<capability>.start`` and one ``<capability>.ok``/``.error`` record
- result rendering through the response emitter
- failures classified into ``500 {"error": "<code>_failed"}``
- the request id echoed in ``X-Correlation-ID``
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response
from starlette.exceptions import HTTPException

from voice_gateway.common.correlation import CORRELATION_HEADER, RequestContext
from voice_gateway.common.structured_logging import correlation_context, get_logger

from .metrics import observe_request
from .models import CapabilityResult, Rejection
from .responses import emit, failure


logger = get_logger(__name__)

CapabilityHandler = Callable[..., Awaitable[CapabilityResult]]


def _find_request(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Request:
    candidate = kwargs.get("request")
    if isinstance(candidate, Request):
        return candidate
    for value in args:
        if isinstance(value, Request):
            return value
    raise TypeError("instrumented endpoints must accept a 'request: Request' parameter")


def instrumented(
    capability: str, *, error_code: str | None = None
) -> Callable[[CapabilityHandler], Callable[..., Awaitable[Response]]]:
    """Decorate a capability endpoint with correlation, timing and error handling.

    Args:
        capability: Name used for log events and metrics labels
        error_code: Prefix of the generic failure code; defaults to ``capability``
                    (``transcription`` yields ``transcription_failed``)

    The wrapped endpoint keeps the handler's signature, so FastAPI still
    resolves its dependencies. ``HTTPException`` passes through untouched;
    any other exception becomes the capability's generic 500.
    """
    failure_code = f"{error_code or capability}_failed"

    def decorator(handler: CapabilityHandler) -> Callable[..., Awaitable[Response]]:
        @functools.wraps(handler)
        async def endpoint(*args: Any, **kwargs: Any) -> Response:
            context = RequestContext.from_request(_find_request(args, kwargs))

            with correlation_context(context.request_id):
                logger.info(
                    f"{capability}.start",
                    client_address=context.client_address,
                    user_agent=context.user_agent,
                )
                try:
                    result = await handler(*args, **kwargs)
                except HTTPException as exc:
                    logger.warning(
                        f"{capability}.rejected",
                        duration_ms=context.elapsed_ms(),
                        status_code=exc.status_code,
                        detail=exc.detail,
                    )
                    observe_request(capability, "rejected", context.elapsed_ms() / 1000)
                    exc.headers = {
                        **(exc.headers or {}),
                        CORRELATION_HEADER: context.request_id,
                    }
                    raise
                except Exception as exc:
                    duration_ms = context.elapsed_ms()
                    logger.error(
                        f"{capability}.error",
                        duration_ms=duration_ms,
                        error=str(exc),
                        error_type=type(exc).__name__,
                        exc_info=True,
                    )
                    observe_request(capability, "error", duration_ms / 1000)
                    response = failure(failure_code)
                else:
                    response = emit(result)
                    duration_ms = context.elapsed_ms()
                    fields = dict(result.summary)
                    outcome = "ok"
                    if isinstance(result, Rejection):
                        fields.setdefault("error", result.error)
                        outcome = "rejected"
                    logger.info(
                        f"{capability}.ok",
                        duration_ms=duration_ms,
                        status_code=response.status_code,
                        **fields,
                    )
                    observe_request(capability, outcome, duration_ms / 1000)

            response.headers[CORRELATION_HEADER] = context.request_id
            return response

        return endpoint

    return decorator


__all__ = ["instrumented"]
