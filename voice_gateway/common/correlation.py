"""Per-request correlation context.

A ``RequestContext`` is minted when a request enters an instrumented
endpoint. Its ``request_id`` links every log line the request produces and
is echoed back to the caller in the ``X-Correlation-ID`` header.
"""

from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass, field

from starlette.requests import Request


CORRELATION_HEADER = "X-Correlation-ID"

# 6 random bytes -> 12 hex chars; collisions between live requests are negligible
_REQUEST_ID_BYTES = 6
_REQUEST_ID_RE = re.compile(r"^[0-9a-f]{12}$")


def generate_request_id() -> str:
    """Return a short opaque token for a new request."""
    return secrets.token_hex(_REQUEST_ID_BYTES)


def is_valid_request_id(request_id: str | None) -> bool:
    """Check that a value has the shape produced by ``generate_request_id``."""
    return bool(request_id) and bool(_REQUEST_ID_RE.match(request_id or ""))


def client_address(request: Request) -> str:
    """Best-effort caller address: first X-Forwarded-For hop, then the peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "-"


@dataclass(frozen=True)
class RequestContext:
    """Identity and timing basis of one inbound request."""

    request_id: str
    client_address: str = "-"
    user_agent: str = "-"
    started_at: float = field(default_factory=time.perf_counter)

    @classmethod
    def from_request(cls, request: Request) -> RequestContext:
        return cls(
            request_id=generate_request_id(),
            client_address=client_address(request),
            user_agent=request.headers.get("user-agent") or "-",
        )

    def elapsed_ms(self) -> float:
        """Milliseconds since the request entered the gateway."""
        return round((time.perf_counter() - self.started_at) * 1000, 2)


__all__ = [
    "CORRELATION_HEADER",
    "RequestContext",
    "client_address",
    "generate_request_id",
    "is_valid_request_id",
]
