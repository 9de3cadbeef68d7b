import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.jobs.errors import JobNotFoundError, QuotaExceededError
from app.schema.generation import InvalidPayloadError
from app.services.generations import ArtifactUnavailableError, UserNotFoundError
from app.storage.quota_repo import QuotaRecordNotFoundError

logger = logging.getLogger("uvicorn.error")


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  # Serialize exception instances explicitly to avoid leaking non-serializable objects.
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def _error_payload(detail: Any, *, request_id: str | None = None, **extra: Any) -> dict[str, Any]:
  """Build a safe error payload that avoids leaking internal details to clients."""
  payload: dict[str, Any] = {**extra, "detail": detail}
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  request_id = _request_id(request)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors for debugging without leaking payloads."""
  request_id = _request_id(request)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, request_id=request_id))


async def invalid_payload_exception_handler(request: Request, exc: InvalidPayloadError) -> JSONResponse:
  """Reject payloads that do not match their category's schema."""
  request_id = _request_id(request)
  sanitized_errors = _sanitize_validation_errors(exc.errors)
  logger.warning("Generation payload rejected request_id=%s category=%s errors=%s", request_id, exc.category.value, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle FastAPI HTTPExceptions while avoiding leaking internal diagnostics."""
  from app.config import get_settings

  settings = get_settings()
  request_id = _request_id(request)
  # Log 5xx HTTPExceptions with a traceback for diagnostics; do not expose `exc.detail` to callers.
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  if settings.log_http_4xx:
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)

  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id))


async def quota_exceeded_exception_handler(request: Request, exc: QuotaExceededError) -> JSONResponse:
  """Admission rejected: the user has no generations left in this period."""
  request_id = _request_id(request)
  logger.info("Quota exceeded request_id=%s user_id=%s category=%s", request_id, exc.user_id, exc.category)
  return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=_error_payload("Generation quota exceeded for this period.", request_id=request_id, error="QUOTA_EXCEEDED"))


async def not_found_exception_handler(request: Request, exc: LookupError) -> JSONResponse:
  """Render unknown users, quota records and jobs as 404s."""
  request_id = _request_id(request)
  messages = {UserNotFoundError: "User not found.", QuotaRecordNotFoundError: "Quota records not found.", JobNotFoundError: "Job not found.", ArtifactUnavailableError: "Artifact not available."}
  detail = messages.get(type(exc), "Not found.")
  return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_payload(detail, request_id=request_id))
