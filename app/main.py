from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import devices, generations, quotas, users
from app.config import get_settings
from app.core.exceptions import (
  global_exception_handler,
  http_exception_handler,
  invalid_payload_exception_handler,
  not_found_exception_handler,
  quota_exceeded_exception_handler,
  request_validation_exception_handler,
)
from app.core.lifespan import lifespan
from app.core.middleware import RequestLoggingMiddleware
from app.jobs.errors import JobNotFoundError, QuotaExceededError
from app.schema.generation import InvalidPayloadError
from app.services.generations import ArtifactUnavailableError, UserNotFoundError
from app.storage.quota_repo import QuotaRecordNotFoundError

settings = get_settings()

app = FastAPI(title="GigaFit Generation Engine", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "PUT", "OPTIONS"], allow_headers=["content-type", "authorization", "x-request-id"], expose_headers=["content-length", "x-request-id"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(InvalidPayloadError, invalid_payload_exception_handler)
app.add_exception_handler(QuotaExceededError, quota_exceeded_exception_handler)
app.add_exception_handler(UserNotFoundError, not_found_exception_handler)
app.add_exception_handler(QuotaRecordNotFoundError, not_found_exception_handler)
app.add_exception_handler(JobNotFoundError, not_found_exception_handler)
app.add_exception_handler(ArtifactUnavailableError, not_found_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(generations.router, prefix="/v1/generations", tags=["generations"])
app.include_router(quotas.router, prefix="/v1/quotas", tags=["quotas"])
app.include_router(devices.router, prefix="/v1/devices", tags=["devices"])
app.include_router(users.router, prefix="/v1/users", tags=["users"])
