"""Shared FastAPI dependencies for pipeline collaborators."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from app.notifications.device_token_repo import DeviceTokenRepository
from app.services.generations import GenerationService
from app.services.pipeline import Pipeline


def get_pipeline(request: Request) -> Pipeline:
  """Return the pipeline built during application startup."""
  pipeline: Pipeline | None = getattr(request.app.state, "pipeline", None)
  if pipeline is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Generation pipeline is not ready")
  return pipeline


def get_generation_service(request: Request) -> GenerationService:
  return get_pipeline(request).service


def get_device_token_repo(request: Request) -> DeviceTokenRepository:
  return get_pipeline(request).repositories.device_tokens
