"""Routes for push device token registration."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import get_device_token_repo
from app.api.models import DeviceRegisterRequest
from app.notifications.device_token_repo import DeviceTokenEntry, DeviceTokenRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def register_device(request: DeviceRegisterRequest, repo: DeviceTokenRepository = Depends(get_device_token_repo)) -> Response:  # noqa: B008
  """Register or re-bind a device token for generation notifications."""
  await repo.upsert(DeviceTokenEntry(user_id=request.user_id, token=request.token.strip(), platform=request.platform))
  logger.info("Device registered user_id=%s platform=%s", request.user_id, request.platform)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
