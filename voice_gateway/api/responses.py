"""Rendering of capability results into HTTP responses."""

from __future__ import annotations

from fastapi.responses import JSONResponse, Response

from .models import BinaryResult, CapabilityResult, Rejection, TextResult


def emit(result: CapabilityResult) -> Response:
    """Render a capability result.

    Binary results are sent whole, never streamed, with ``Content-Length``
    equal to the buffer size.
    """
    if isinstance(result, TextResult):
        return JSONResponse({"text": result.text})
    if isinstance(result, BinaryResult):
        return Response(
            content=result.content,
            media_type=result.content_type,
            headers={"Content-Length": str(len(result.content))},
        )
    if isinstance(result, Rejection):
        return JSONResponse({"error": result.error}, status_code=result.status_code)
    raise TypeError(f"unsupported capability result: {type(result).__name__}")


def failure(error_code: str, status_code: int = 500) -> JSONResponse:
    """Generic error body ``{"error": <code>}``."""
    return JSONResponse({"error": error_code}, status_code=status_code)


__all__ = ["emit", "failure"]
