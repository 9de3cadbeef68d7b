import logging
import re
import time
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("app.core.middleware")

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{8,64}$")
_QUIET_PATHS = frozenset({"/health"})


def _resolve_request_id(scope: Scope) -> str:
  """Reuse a well-formed caller request id so mobile clients can correlate retries."""
  incoming = Headers(scope=scope).get("x-request-id")
  if incoming and _REQUEST_ID_PATTERN.match(incoming):
    return incoming
  return uuid.uuid4().hex


class RequestLoggingMiddleware:
  """Log one line per request and tag every response with a request id."""

  def __init__(self, app: ASGIApp, *, slow_request_ms: float = 2000.0) -> None:
    self.app = app
    self.slow_request_ms = slow_request_ms

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    request_id = _resolve_request_id(scope)
    scope.setdefault("state", {})["request_id"] = request_id
    path = scope.get("path", "")
    method = scope.get("method", "UNKNOWN")
    started = time.perf_counter()
    status_code = 0

    async def send_with_request_id(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status", 0)
        MutableHeaders(scope=message)["x-request-id"] = request_id
      await send(message)

    try:
      await self.app(scope, receive, send_with_request_id)
    finally:
      elapsed_ms = (time.perf_counter() - started) * 1000
      level = logging.DEBUG if path in _QUIET_PATHS else logging.INFO
      if elapsed_ms >= self.slow_request_ms:
        level = logging.WARNING
      logger.log(level, "HTTP %s %s status=%s request_id=%s took=%.1fms", method, path, status_code, request_id, elapsed_ms)
