"""Lifecycle of uploaded media: multipart ingestion into a temporary file.

``receive_upload`` is the only way handlers obtain an upload. It is an async
context manager, so the temporary file is removed on every way out of the
``async with`` block: normal return, client error, backend failure or
cancellation.
"""

from __future__ import annotations

import asyncio
import os
import re
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from fastapi import HTTPException
from starlette.datastructures import UploadFile
from starlette.requests import Request

from voice_gateway.common.structured_logging import get_logger

from .settings import MAX_UPLOAD_BYTES


logger = get_logger(__name__)

# Room for boundaries and part headers on top of the file itself
_MULTIPART_SLACK = 64 * 1024
_COPY_CHUNK = 1024 * 1024
_SAFE_SUFFIX_RE = re.compile(r"^\.[A-Za-z0-9]{1,8}$")


class NoFileProvided(Exception):
    """The expected multipart file field is absent."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"no file in form field {field!r}")


class PayloadTooLarge(HTTPException):
    """Upload exceeds the size ceiling; raised before any artifact exists."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(status_code=413, detail="payload_too_large")


@dataclass(frozen=True)
class UploadedMedia:
    """A received upload spilled to a temporary file."""

    path: Path
    original_name: str
    mime_type: str
    size_bytes: int

    def open(self) -> IO[bytes]:
        """Binary stream positioned at the start of the content."""
        return self.path.open("rb")


def _suffix_for(filename: str) -> str:
    suffix = Path(filename).suffix
    return suffix if _SAFE_SUFFIX_RE.match(suffix) else ""


def _declared_length(request: Request) -> int | None:
    raw = request.headers.get("content-length")
    if raw is None or not raw.strip().isdigit():
        return None
    return int(raw)


def _measure(source: IO[bytes]) -> int:
    source.seek(0, os.SEEK_END)
    size = source.tell()
    source.seek(0)
    return size


def _copy_into(fd: int, source: IO[bytes]) -> None:
    source.seek(0)
    with os.fdopen(fd, "wb") as target:
        shutil.copyfileobj(source, target, _COPY_CHUNK)


async def _discard(path: Path) -> None:
    try:
        await asyncio.to_thread(path.unlink)
    except OSError as exc:
        logger.warning(
            "uploads.cleanup_failed",
            path=str(path),
            error=str(exc),
            error_type=type(exc).__name__,
        )
    else:
        logger.debug("uploads.cleaned_up", path=str(path))


@asynccontextmanager
async def receive_upload(
    request: Request,
    field: str = "audio",
    *,
    max_bytes: int = MAX_UPLOAD_BYTES,
    directory: str | os.PathLike[str] | None = None,
) -> AsyncIterator[UploadedMedia]:
    """Receive the file in ``field`` and yield it as an ``UploadedMedia``.

    Args:
        request: Inbound request carrying a multipart body
        field: Name of the multipart file field
        max_bytes: Size ceiling for the file content
        directory: Where to create the temporary file (system default if None)

    Raises:
        PayloadTooLarge: The declared body or the file exceeds ``max_bytes``
        NoFileProvided: The field is missing or is not a file
    """
    declared = _declared_length(request)
    if declared is not None and declared > max_bytes + _MULTIPART_SLACK:
        logger.warning(
            "uploads.rejected_too_large",
            declared_bytes=declared,
            max_bytes=max_bytes,
        )
        raise PayloadTooLarge(max_bytes)

    form = await request.form()
    try:
        upload = form.get(field)
        if not isinstance(upload, UploadFile):
            raise NoFileProvided(field)

        size = upload.size
        if size is None:
            size = await asyncio.to_thread(_measure, upload.file)
        if size > max_bytes:
            logger.warning(
                "uploads.rejected_too_large",
                size_bytes=size,
                max_bytes=max_bytes,
            )
            raise PayloadTooLarge(max_bytes)

        original_name = upload.filename or ""
        mime_type = upload.content_type or "application/octet-stream"
        fd, raw_path = tempfile.mkstemp(
            prefix="upload-", suffix=_suffix_for(original_name), dir=directory
        )
        path = Path(raw_path)
        try:
            await asyncio.to_thread(_copy_into, fd, upload.file)
        except BaseException:
            await _discard(path)
            raise
    finally:
        await form.close()

    media = UploadedMedia(
        path=path,
        original_name=original_name,
        mime_type=mime_type,
        size_bytes=size,
    )
    try:
        yield media
    finally:
        await _discard(path)


__all__ = [
    "NoFileProvided",
    "PayloadTooLarge",
    "UploadedMedia",
    "receive_upload",
]
